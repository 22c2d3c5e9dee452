"""Fact modifications applied when a rule fires.

Every modification returns whether the stored value actually changed. Values may
be constants or expressions; expressions are evaluated at application time, so a
later modification in the same rule sees the writes of the earlier ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from factrule.errors import RuleLoadError, TypeMismatchError, UnknownFactError
from factrule.expr.ast import Expression, expr_from_dict
from factrule.expr.evaluator import FactLookup, arithmetic, evaluate
from factrule.expr.parser import parse_expression
from factrule.layered import LayeredFactDatabase, LayerName
from factrule.values import FactValue


ValueSpec = Union[FactValue, Expression]


def _const_or_expr(value: object) -> ValueSpec:
    if isinstance(value, Expression):
        return value
    return FactValue.of(value)


def _amount(value: object) -> ValueSpec:
    if isinstance(value, str):
        return parse_expression(value)
    return _const_or_expr(value)


def _spec_to_dict(spec: ValueSpec) -> dict[str, Any]:
    if isinstance(spec, Expression):
        return {"expr": spec.to_dict()}
    return {"value": spec.to_dict()}


def _spec_from_dict(data: dict[str, Any]) -> ValueSpec:
    if "expr" in data:
        return expr_from_dict(data["expr"])
    return FactValue.from_dict(data["value"])


def resolve_value(spec: ValueSpec, lookup: FactLookup) -> FactValue:
    if isinstance(spec, Expression):
        return evaluate(spec, lookup)
    return spec


def check_assignable(key: str, current: Optional[FactValue], new_value: FactValue) -> FactValue:
    """Reject writes that would change the variant of an existing fact.

    An int written over a float fact is widened to float.
    """
    if current is None or current.kind == new_value.kind:
        return new_value
    if current.kind == "float" and new_value.kind == "int":
        return FactValue("float", float(new_value.value))  # type: ignore[arg-type]
    raise TypeMismatchError(
        f"Cannot write {new_value.kind} into {current.kind} fact {key!r}."
    )


class Modification:
    """Base class for modifications."""

    key: str
    layer: Optional[LayerName]

    def apply(
        self,
        db: LayeredFactDatabase,
        lookup: FactLookup | None = None,
        default_layer: LayerName = "local",
    ) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def outputs(self, changed: bool) -> tuple[str, ...]:
        """Events to emit because of this modification."""
        return ()

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError

    def _target(self, default_layer: LayerName) -> LayerName:
        return self.layer or default_layer


def _write(
    db: LayeredFactDatabase, layer: LayerName, key: str, value: FactValue
) -> bool:
    return db.layer(layer).set_if_changed(key, value)


@dataclass(frozen=True)
class Set(Modification):
    """Overwrite ``key`` with a constant or an expression result."""

    key: str
    value: ValueSpec
    layer: Optional[LayerName] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _const_or_expr(self.value))

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        new_value = resolve_value(self.value, lookup or db)
        new_value = check_assignable(self.key, db.get(self.key), new_value)
        return _write(db, self._target(default_layer), self.key, new_value)

    def to_dict(self) -> dict[str, Any]:
        return {"op": "set", "key": self.key, "layer": self.layer, **_spec_to_dict(self.value)}


@dataclass(frozen=True)
class SetIfChanged(Modification):
    """Write only when the value differs; ``outputs_on_change`` fire only on a write."""

    key: str
    value: ValueSpec
    layer: Optional[LayerName] = None
    outputs_on_change: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _const_or_expr(self.value))
        object.__setattr__(self, "outputs_on_change", tuple(self.outputs_on_change))

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        new_value = resolve_value(self.value, lookup or db)
        current = db.get(self.key)
        new_value = check_assignable(self.key, current, new_value)
        if current == new_value:
            return False
        return db.set_if_changed(self.key, new_value, layer=self._target(default_layer))

    def outputs(self, changed: bool) -> tuple[str, ...]:
        return self.outputs_on_change if changed else ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "set_if_changed",
            "key": self.key,
            "layer": self.layer,
            "outputs_on_change": list(self.outputs_on_change),
            **_spec_to_dict(self.value),
        }


@dataclass(frozen=True)
class Increment(Modification):
    """Add ``amount`` to a numeric fact; a missing fact starts from 0."""

    key: str
    amount: ValueSpec = FactValue("int", 1)
    layer: Optional[LayerName] = None

    op = "increment"
    sign = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _amount(self.amount))

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        amount = resolve_value(self.amount, lookup or db)
        existing = db.get(self.key)
        current = existing if existing is not None else FactValue("int", 0)
        op = "add" if self.sign > 0 else "sub"
        result = check_assignable(self.key, existing, arithmetic(op, current, amount))
        return _write(db, self._target(default_layer), self.key, result)

    def to_dict(self) -> dict[str, Any]:
        payload = _spec_to_dict(self.amount)
        return {"op": self.op, "key": self.key, "layer": self.layer, "amount": payload}


@dataclass(frozen=True)
class Decrement(Increment):
    op = "decrement"
    sign = -1


@dataclass(frozen=True)
class _Compound(Modification):
    """Combine an existing numeric fact with an operand: ``key = key <op> operand``."""

    key: str
    operand: ValueSpec
    layer: Optional[LayerName] = None

    op = "add"

    def __post_init__(self) -> None:
        object.__setattr__(self, "operand", _amount(self.operand))

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        current = db.get(self.key)
        if current is None:
            raise UnknownFactError(self.key)
        operand = resolve_value(self.operand, lookup or db)
        result = check_assignable(self.key, current, arithmetic(self.op, current, operand))
        return _write(db, self._target(default_layer), self.key, result)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "key": self.key,
            "layer": self.layer,
            "operand": _spec_to_dict(self.operand),
        }


class Add(_Compound):
    op = "add"


class Subtract(_Compound):
    op = "sub"


class Multiply(_Compound):
    op = "mul"


class Divide(_Compound):
    op = "div"


@dataclass(frozen=True)
class Remove(Modification):
    key: str
    layer: Optional[LayerName] = None

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        return db.layer(self._target(default_layer)).remove(self.key) is not None

    def to_dict(self) -> dict[str, Any]:
        return {"op": "remove", "key": self.key, "layer": self.layer}


@dataclass(frozen=True)
class Toggle(Modification):
    """Flip a bool fact; a missing fact counts as false."""

    key: str
    layer: Optional[LayerName] = None

    def apply(self, db, lookup=None, default_layer="local") -> bool:
        current = db.get(self.key)
        if current is not None and current.kind != "bool":
            raise TypeMismatchError(f"Cannot toggle {current.kind} fact {self.key!r}.")
        flipped = not (current is not None and current.value)
        return _write(db, self._target(default_layer), self.key, FactValue("bool", flipped))

    def to_dict(self) -> dict[str, Any]:
        return {"op": "toggle", "key": self.key, "layer": self.layer}


_COMPOUND = {"add": Add, "sub": Subtract, "mul": Multiply, "div": Divide}


def modification_from_dict(data: dict[str, Any]) -> Modification:
    op = data.get("op")
    key = data["key"]
    layer = data.get("layer")
    if op == "set":
        return Set(key=key, value=_spec_from_dict(data), layer=layer)
    if op == "set_if_changed":
        return SetIfChanged(
            key=key,
            value=_spec_from_dict(data),
            layer=layer,
            outputs_on_change=tuple(data.get("outputs_on_change", ())),
        )
    if op == "increment":
        return Increment(key=key, amount=_spec_from_dict(data["amount"]), layer=layer)
    if op == "decrement":
        return Decrement(key=key, amount=_spec_from_dict(data["amount"]), layer=layer)
    if op in _COMPOUND:
        return _COMPOUND[op](key=key, operand=_spec_from_dict(data["operand"]), layer=layer)
    if op == "remove":
        return Remove(key=key, layer=layer)
    if op == "toggle":
        return Toggle(key=key, layer=layer)
    raise RuleLoadError(f"Unknown modification op: {op!r}")
