"""Data-driven facts, rules and events."""

from factrule.actions import ActionDispatcher
from factrule.condition import (
    AllOf,
    Always,
    AnyOf,
    Condition,
    ConditionEvaluator,
    Equals,
    Exists,
    ExprCondition,
    GreaterOrEqual,
    GreaterThan,
    IsFalse,
    IsTrue,
    LessOrEqual,
    LessThan,
    Not,
    NotEquals,
    NotExists,
)
from factrule.config import EngineConfig
from factrule.database import FactDatabase, FactReader, UndoLog
from factrule.engine import RuleEngine, TickReport
from factrule.errors import (
    CascadeDepthExceededError,
    ConfigError,
    DivisionByZeroError,
    DuplicateRuleIdError,
    EngineStateError,
    EvaluationError,
    ExpressionSyntaxError,
    FactRuleError,
    InvalidScopePopError,
    RuleLoadError,
    TypeMismatchError,
    UnknownFactError,
)
from factrule.events import Event, EventQueue
from factrule.expr import evaluate, parse_expression
from factrule.layered import LayeredFactDatabase
from factrule.loader import RuleSet, load_rule_set
from factrule.modifications import (
    Add,
    Decrement,
    Divide,
    Increment,
    Modification,
    Multiply,
    Remove,
    Set,
    SetIfChanged,
    Subtract,
    Toggle,
)
from factrule.observability import (
    CollectingSink,
    EngineIssue,
    FanOutSink,
    IssueSink,
    LoggingSink,
    configure_logging,
)
from factrule.registry import GLOBAL_SCOPE, RuleRegistry
from factrule.rule import Rule
from factrule.values import Bool, FactValue, Float, Int, IntList, String, StringList

__all__ = [
    "ActionDispatcher",
    "Add",
    "AllOf",
    "Always",
    "AnyOf",
    "Bool",
    "CascadeDepthExceededError",
    "CollectingSink",
    "Condition",
    "ConditionEvaluator",
    "ConfigError",
    "Decrement",
    "DivisionByZeroError",
    "Divide",
    "DuplicateRuleIdError",
    "EngineConfig",
    "EngineIssue",
    "EngineStateError",
    "Equals",
    "EvaluationError",
    "Event",
    "EventQueue",
    "Exists",
    "ExprCondition",
    "ExpressionSyntaxError",
    "FactDatabase",
    "FactReader",
    "FactRuleError",
    "FactValue",
    "FanOutSink",
    "Float",
    "GLOBAL_SCOPE",
    "GreaterOrEqual",
    "GreaterThan",
    "Increment",
    "Int",
    "IntList",
    "InvalidScopePopError",
    "IsFalse",
    "IsTrue",
    "IssueSink",
    "LayeredFactDatabase",
    "LessOrEqual",
    "LessThan",
    "LoggingSink",
    "Modification",
    "Multiply",
    "Not",
    "NotEquals",
    "NotExists",
    "Remove",
    "Rule",
    "RuleEngine",
    "RuleLoadError",
    "RuleRegistry",
    "RuleSet",
    "Set",
    "SetIfChanged",
    "String",
    "StringList",
    "Subtract",
    "TickReport",
    "Toggle",
    "TypeMismatchError",
    "UndoLog",
    "UnknownFactError",
    "configure_logging",
    "evaluate",
    "load_rule_set",
    "parse_expression",
]
