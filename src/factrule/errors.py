"""Custom exceptions for the fact/rule/event engine."""

from __future__ import annotations


class FactRuleError(Exception):
    """Base exception for engine failures."""


class EvaluationError(FactRuleError):
    """Raised when evaluating an expression or condition fails at runtime."""

    kind = "evaluation_error"


class UnknownFactError(EvaluationError):
    """Raised when an expression references a fact that is not stored."""

    kind = "unknown_fact"

    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown fact: {key}")
        self.key = key


class TypeMismatchError(EvaluationError):
    """Raised when an operand or accessor has an incompatible type."""

    kind = "type_mismatch"


class DivisionByZeroError(EvaluationError):
    """Raised when dividing or taking a modulo by zero."""

    kind = "division_by_zero"


class ExpressionSyntaxError(FactRuleError):
    """Raised when expression text cannot be parsed."""

    def __init__(self, message: str, source: str, position: int) -> None:
        super().__init__(f"{message} at position {position} in {source!r}")
        self.source = source
        self.position = position


class RuleLoadError(FactRuleError):
    """Raised when a rule set document is invalid."""


class DuplicateRuleIdError(FactRuleError):
    """Raised when a rule id is already registered in a scope."""

    def __init__(self, rule_id: str, scope: str) -> None:
        super().__init__(f"Rule id {rule_id!r} already registered in scope {scope!r}.")
        self.rule_id = rule_id
        self.scope = scope


class InvalidScopePopError(FactRuleError):
    """Raised when leaving a scope or context that was never entered."""


class CascadeDepthExceededError(FactRuleError):
    """Describes a rule chain that exceeded the configured cascade depth."""

    kind = "cascade_depth_exceeded"

    def __init__(self, max_depth: int, pending: list[str], roots: list[str]) -> None:
        super().__init__(
            f"Cascade depth {max_depth} exceeded with {len(pending)} pending event(s): "
            f"{', '.join(pending)} (triggered by {', '.join(roots)})"
        )
        self.max_depth = max_depth
        self.pending = pending
        self.roots = roots


class EngineStateError(FactRuleError):
    """Raised when the engine is driven while it is already draining."""


class ConfigError(FactRuleError):
    """Raised when engine configuration is invalid."""
