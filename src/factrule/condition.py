"""Rule conditions: expression conditions and structured condition trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Union

from factrule.errors import ExpressionSyntaxError, TypeMismatchError
from factrule.expr.ast import Expression, expr_from_dict
from factrule.expr.evaluator import FactLookup, as_resolver, compare, evaluate_bool
from factrule.expr.parser import parse_expression
from factrule.values import FactValue


class Condition:
    """Base class for condition nodes."""

    def check(self, lookup: FactLookup) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True)
class Always(Condition):
    def check(self, lookup: FactLookup) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "always"}


@dataclass(frozen=True)
class ExprCondition(Condition):
    expression: Expression
    source: str | None = None

    def check(self, lookup: FactLookup) -> bool:
        return evaluate_bool(self.expression, lookup)

    def to_dict(self) -> dict[str, Any]:
        if self.source is not None:
            return {"kind": "expr", "source": self.source}
        return {"kind": "expr", "expression": self.expression.to_dict()}


@dataclass(frozen=True)
class _KeyComparison(Condition):
    """Compare a stored fact against a constant. A missing fact never matches."""

    key: str
    value: FactValue

    op = "eq"
    name = "equals"

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", FactValue.of(self.value))

    def check(self, lookup: FactLookup) -> bool:
        current = as_resolver(lookup)(self.key)
        if current is None:
            return False
        return bool(compare(self.op, current, self.value).value)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.name, "key": self.key, "value": self.value.to_dict()}


class Equals(_KeyComparison):
    op = "eq"
    name = "equals"


class NotEquals(_KeyComparison):
    op = "ne"
    name = "not_equals"


class GreaterThan(_KeyComparison):
    op = "gt"
    name = "greater_than"


class LessThan(_KeyComparison):
    op = "lt"
    name = "less_than"


class GreaterOrEqual(_KeyComparison):
    op = "ge"
    name = "greater_or_equal"


class LessOrEqual(_KeyComparison):
    op = "le"
    name = "less_or_equal"


@dataclass(frozen=True)
class Exists(Condition):
    key: str

    def check(self, lookup: FactLookup) -> bool:
        return as_resolver(lookup)(self.key) is not None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "exists", "key": self.key}


@dataclass(frozen=True)
class NotExists(Condition):
    key: str

    def check(self, lookup: FactLookup) -> bool:
        return as_resolver(lookup)(self.key) is None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "not_exists", "key": self.key}


@dataclass(frozen=True)
class IsTrue(Condition):
    key: str

    def check(self, lookup: FactLookup) -> bool:
        return _bool_fact(lookup, self.key) is True

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "is_true", "key": self.key}


@dataclass(frozen=True)
class IsFalse(Condition):
    key: str

    def check(self, lookup: FactLookup) -> bool:
        return _bool_fact(lookup, self.key) is False

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "is_false", "key": self.key}


@dataclass(frozen=True)
class AllOf(Condition):
    conditions: tuple[Condition, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def check(self, lookup: FactLookup) -> bool:
        return all(cond.check(lookup) for cond in self.conditions)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "all", "conditions": [c.to_dict() for c in self.conditions]}


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: tuple[Condition, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def check(self, lookup: FactLookup) -> bool:
        return any(cond.check(lookup) for cond in self.conditions)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "any", "conditions": [c.to_dict() for c in self.conditions]}


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def check(self, lookup: FactLookup) -> bool:
        return not self.condition.check(lookup)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "not", "condition": self.condition.to_dict()}


ConditionLike = Union[Condition, Expression, str, Iterable["ConditionLike"], None]

KEY_COMPARISONS: dict[str, type[_KeyComparison]] = {
    cls.name: cls
    for cls in (Equals, NotEquals, GreaterThan, LessThan, GreaterOrEqual, LessOrEqual)
}


def _bool_fact(lookup: FactLookup, key: str) -> bool | None:
    value = as_resolver(lookup)(key)
    if value is None:
        return None
    if value.kind != "bool":
        raise TypeMismatchError(f"Fact {key!r} is {value.kind}, expected bool.")
    return bool(value.value)


def as_condition(spec: ConditionLike) -> Condition:
    """Normalize a condition spec; expression text is parsed here, at load time."""
    if spec is None:
        return Always()
    if isinstance(spec, Condition):
        return spec
    if isinstance(spec, Expression):
        return ExprCondition(spec)
    if isinstance(spec, str):
        return ExprCondition(parse_expression(spec), source=spec)
    if isinstance(spec, Iterable):
        items = [as_condition(item) for item in spec]
        if not items:
            return Always()
        if len(items) == 1:
            return items[0]
        return AllOf(tuple(items))
    raise ExpressionSyntaxError("Unsupported condition spec", repr(spec), 0)


def condition_from_dict(data: dict[str, Any]) -> Condition:
    kind = data.get("kind")
    if kind == "always":
        return Always()
    if kind == "expr":
        if "source" in data:
            return as_condition(data["source"])
        return ExprCondition(expr_from_dict(data["expression"]))
    if kind in KEY_COMPARISONS:
        value = data["value"]
        if isinstance(value, dict):
            value = FactValue.from_dict(value)
        return KEY_COMPARISONS[kind](key=data["key"], value=value)
    if kind == "exists":
        return Exists(data["key"])
    if kind == "not_exists":
        return NotExists(data["key"])
    if kind == "is_true":
        return IsTrue(data["key"])
    if kind == "is_false":
        return IsFalse(data["key"])
    if kind == "all":
        return AllOf(tuple(condition_from_dict(c) for c in data.get("conditions", [])))
    if kind == "any":
        return AnyOf(tuple(condition_from_dict(c) for c in data.get("conditions", [])))
    if kind == "not":
        return Not(condition_from_dict(data["condition"]))
    raise ExpressionSyntaxError(f"Unknown condition kind {kind!r}", repr(data), 0)


class ConditionEvaluator:
    """Evaluate conditions against a fact lookup.

    Evaluation errors propagate; the engine decides how to recover from them.
    """

    def evaluate(self, condition: ConditionLike, lookup: FactLookup) -> bool:
        return as_condition(condition).check(lookup)
