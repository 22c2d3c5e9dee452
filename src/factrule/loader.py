"""Rule set documents: pydantic validation and conversion to runtime rules.

A document is ``{"facts": {...}, "rules": [...]}``. All expression text is
parsed here, so a malformed rule fails the whole load before anything is
registered.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from factrule.condition import (
    AllOf,
    Always,
    AnyOf,
    Condition,
    Exists,
    ExprCondition,
    IsFalse,
    IsTrue,
    KEY_COMPARISONS,
    Not,
    NotExists,
)
from factrule.errors import FactRuleError, RuleLoadError
from factrule.expr.parser import parse_expression
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
from factrule.rule import Rule
from factrule.values import FactValue


def _fact_value(raw: Any) -> FactValue:
    if isinstance(raw, dict) and "kind" in raw:
        return FactValue.from_dict(raw)
    return FactValue.of(raw)


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid")


# Conditions


class AlwaysModel(_Model):
    kind: Literal["always"] = "always"


class ExprModel(_Model):
    kind: Literal["expr"] = "expr"
    source: str


class KeyCompareModel(_Model):
    kind: Literal[
        "equals", "not_equals", "greater_than", "less_than", "greater_or_equal", "less_or_equal"
    ]
    key: str
    value: Any


class KeyCheckModel(_Model):
    kind: Literal["exists", "not_exists", "is_true", "is_false"]
    key: str


class GroupModel(_Model):
    kind: Literal["all", "any"]
    conditions: list["ConditionSpec"] = Field(default_factory=list)


class NotModel(_Model):
    kind: Literal["not"] = "not"
    condition: "ConditionSpec"


ConditionModel = Annotated[
    Union[AlwaysModel, ExprModel, KeyCompareModel, KeyCheckModel, GroupModel, NotModel],
    Field(discriminator="kind"),
]
ConditionSpec = Union[str, ConditionModel]

GroupModel.model_rebuild()
NotModel.model_rebuild()


# Modifications


class SetModel(_Model):
    op: Literal["set", "set_if_changed"]
    key: str
    value: Any = None
    expr: Optional[str] = None
    layer: Optional[Literal["local", "global"]] = None
    outputs_on_change: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_source(self):
        if (self.value is None) == (self.expr is None):
            raise ValueError("Exactly one of 'value' or 'expr' is required.")
        if self.op == "set" and self.outputs_on_change:
            raise ValueError("'outputs_on_change' is only valid for set_if_changed.")
        return self


class StepModel(_Model):
    op: Literal["increment", "decrement"]
    key: str
    amount: Union[int, float, str] = 1
    layer: Optional[Literal["local", "global"]] = None


class CompoundModel(_Model):
    op: Literal["add", "sub", "mul", "div"]
    key: str
    operand: Union[int, float, str]
    layer: Optional[Literal["local", "global"]] = None


class KeyOpModel(_Model):
    op: Literal["remove", "toggle"]
    key: str
    layer: Optional[Literal["local", "global"]] = None


ModificationModel = Annotated[
    Union[SetModel, StepModel, CompoundModel, KeyOpModel], Field(discriminator="op")
]


# Rules


class ActionEventModel(_Model):
    action: str
    kind: Literal["just_pressed", "pressed", "just_released"]

    def event_id(self) -> str:
        return f"action:{self.action}:{self.kind}"


class RuleModel(_Model):
    id: Optional[str] = None
    event: Union[str, ActionEventModel] = Field(validation_alias=AliasChoices("event", "trigger"))
    conditions: list[str] = Field(default_factory=list)
    condition: Union[ConditionSpec, list[ConditionSpec], None] = None
    modifications: list[ModificationModel] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    consume_event: bool = False
    priority: int = 0
    enabled: bool = True

    def event_id(self) -> str:
        if isinstance(self.event, ActionEventModel):
            return self.event.event_id()
        return self.event


class RuleSetModel(_Model):
    facts: dict[str, Any] = Field(default_factory=dict)
    rules: list[RuleModel] = Field(default_factory=list)


# Conversion


def build_condition(spec: Any) -> Condition:
    if spec is None:
        return Always()
    if isinstance(spec, str):
        return ExprCondition(parse_expression(spec), source=spec)
    if isinstance(spec, list):
        items = [build_condition(item) for item in spec]
        if not items:
            return Always()
        return items[0] if len(items) == 1 else AllOf(tuple(items))
    if isinstance(spec, AlwaysModel):
        return Always()
    if isinstance(spec, ExprModel):
        return build_condition(spec.source)
    if isinstance(spec, KeyCompareModel):
        return KEY_COMPARISONS[spec.kind](key=spec.key, value=_fact_value(spec.value))
    if isinstance(spec, KeyCheckModel):
        check = {"exists": Exists, "not_exists": NotExists, "is_true": IsTrue, "is_false": IsFalse}
        return check[spec.kind](spec.key)
    if isinstance(spec, GroupModel):
        children = tuple(build_condition(item) for item in spec.conditions)
        return AllOf(children) if spec.kind == "all" else AnyOf(children)
    if isinstance(spec, NotModel):
        return Not(build_condition(spec.condition))
    raise RuleLoadError(f"Unsupported condition: {spec!r}")


_COMPOUND_TYPES = {"add": Add, "sub": Subtract, "mul": Multiply, "div": Divide}


def build_modification(spec: Any) -> Modification:
    if isinstance(spec, SetModel):
        value: Any = parse_expression(spec.expr) if spec.expr is not None else _fact_value(spec.value)
        if spec.op == "set":
            return Set(key=spec.key, value=value, layer=spec.layer)
        return SetIfChanged(
            key=spec.key,
            value=value,
            layer=spec.layer,
            outputs_on_change=tuple(spec.outputs_on_change),
        )
    if isinstance(spec, StepModel):
        step = Increment if spec.op == "increment" else Decrement
        return step(key=spec.key, amount=spec.amount, layer=spec.layer)
    if isinstance(spec, CompoundModel):
        return _COMPOUND_TYPES[spec.op](key=spec.key, operand=spec.operand, layer=spec.layer)
    if isinstance(spec, KeyOpModel):
        op_type = Remove if spec.op == "remove" else Toggle
        return op_type(key=spec.key, layer=spec.layer)
    raise RuleLoadError(f"Unsupported modification: {spec!r}")


def default_rule_id(event_id: str, index: int) -> str:
    return f"rule_{event_id.replace(':', '_')}_{index:03}"


def _rule_condition(model: RuleModel) -> Condition:
    """Combine the legacy ``condition`` with the ``conditions`` expressions; all must hold."""
    if not model.conditions:
        return build_condition(model.condition)
    parts = [build_condition(source) for source in model.conditions]
    if model.condition is not None:
        parts.insert(0, build_condition(model.condition))
    return parts[0] if len(parts) == 1 else AllOf(tuple(parts))


def build_rule(model: RuleModel, index: int) -> Rule:
    event_id = model.event_id()
    return Rule(
        id=model.id or default_rule_id(event_id, index),
        event=event_id,
        condition=_rule_condition(model),
        modifications=tuple(build_modification(item) for item in model.modifications),
        actions=tuple(model.actions),
        outputs=tuple(model.outputs),
        consume_event=model.consume_event,
        priority=model.priority,
        enabled=model.enabled,
    )


@dataclass(frozen=True)
class RuleSet:
    """Initial facts plus fully parsed rules, ready for ``RuleEngine.load``."""

    facts: dict[str, FactValue] = field(default_factory=dict)
    rules: tuple[Rule, ...] = field(default_factory=tuple)

    @staticmethod
    def from_dict(data: Any) -> "RuleSet":
        return load_rule_set(data)

    @staticmethod
    def from_json(text: str) -> "RuleSet":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RuleLoadError(f"Rule set is not valid JSON: {exc}") from exc
        return load_rule_set(data)

    @staticmethod
    def from_json_file(path: Path | str) -> "RuleSet":
        path = Path(path)
        if not path.exists():
            raise RuleLoadError(f"Rule set file not found: {path}")
        return RuleSet.from_json(path.read_text(encoding="utf-8"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "facts": {key: value.to_dict() for key, value in self.facts.items()},
            "rules": [rule.to_dict() for rule in self.rules],
        }


def load_rule_set(data: Any) -> RuleSet:
    """Validate ``data`` and build a ``RuleSet``; every failure is a ``RuleLoadError``."""
    try:
        document = RuleSetModel.model_validate(data)
    except ValidationError as exc:
        raise RuleLoadError(f"Invalid rule set document: {exc}") from exc

    facts: dict[str, FactValue] = {}
    for key, raw in document.facts.items():
        try:
            facts[key] = _fact_value(raw)
        except FactRuleError as exc:
            raise RuleLoadError(f"Invalid value for fact {key!r}: {exc}") from exc

    rules: list[Rule] = []
    for index, model in enumerate(document.rules):
        label = model.id or f"#{index}"
        try:
            rules.append(build_rule(model, index))
        except FactRuleError as exc:
            raise RuleLoadError(f"Rule {label}: {exc}") from exc
    return RuleSet(facts=facts, rules=tuple(rules))
