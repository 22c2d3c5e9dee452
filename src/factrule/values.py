"""Typed fact values stored in fact databases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from factrule.errors import TypeMismatchError


ValueKind = Literal["int", "float", "bool", "string", "int_list", "string_list"]

VALUE_KINDS: tuple[str, ...] = ("int", "float", "bool", "string", "int_list", "string_list")

Scalar = Union[int, float, bool, str]
Payload = Union[int, float, bool, str, tuple[int, ...], tuple[str, ...]]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class FactValue:
    """A single stored value tagged with its variant.

    Equality is structural: ``Int(1)`` and ``Float(1.0)`` are different values.
    List payloads are normalized to tuples so values stay hashable and immutable.
    """

    kind: ValueKind
    value: Payload

    def __post_init__(self) -> None:
        kind = self.kind
        value = self.value
        if kind == "int":
            if not _is_int(value):
                raise TypeMismatchError(f"Int value must be an int: {value!r}")
        elif kind == "float":
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise TypeMismatchError(f"Float value must be a number: {value!r}")
            object.__setattr__(self, "value", float(value))
        elif kind == "bool":
            if not isinstance(value, bool):
                raise TypeMismatchError(f"Bool value must be a bool: {value!r}")
        elif kind == "string":
            if not isinstance(value, str):
                raise TypeMismatchError(f"String value must be a str: {value!r}")
        elif kind == "int_list":
            if not isinstance(value, (list, tuple)) or not all(_is_int(v) for v in value):
                raise TypeMismatchError(f"IntList value must be a sequence of ints: {value!r}")
            object.__setattr__(self, "value", tuple(value))
        elif kind == "string_list":
            if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                raise TypeMismatchError(
                    f"StringList value must be a sequence of strings: {value!r}"
                )
            object.__setattr__(self, "value", tuple(value))
        else:
            raise TypeMismatchError(f"Unknown FactValue kind: {kind!r}")

    @staticmethod
    def of(value: object) -> "FactValue":
        """Wrap a native Python value, inferring the variant.

        An empty sequence becomes a ``string_list``.
        """
        if isinstance(value, FactValue):
            return value
        if isinstance(value, bool):
            return FactValue("bool", value)
        if isinstance(value, int):
            return FactValue("int", value)
        if isinstance(value, float):
            return FactValue("float", value)
        if isinstance(value, str):
            return FactValue("string", value)
        if isinstance(value, (list, tuple)):
            items = list(value)
            if items and all(_is_int(v) for v in items):
                return FactValue("int_list", tuple(items))
            if all(isinstance(v, str) for v in items):
                return FactValue("string_list", tuple(items))
            raise TypeMismatchError(f"Lists must hold only ints or only strings: {value!r}")
        raise TypeMismatchError(f"Unsupported fact value type: {type(value).__name__}")

    @property
    def is_numeric(self) -> bool:
        return self.kind in ("int", "float")

    def as_int(self) -> Optional[int]:
        return self.value if self.kind == "int" else None  # type: ignore[return-value]

    def as_float(self) -> Optional[float]:
        return self.value if self.kind == "float" else None  # type: ignore[return-value]

    def as_bool(self) -> Optional[bool]:
        return self.value if self.kind == "bool" else None  # type: ignore[return-value]

    def as_string(self) -> Optional[str]:
        return self.value if self.kind == "string" else None  # type: ignore[return-value]

    def as_int_list(self) -> Optional[tuple[int, ...]]:
        return self.value if self.kind == "int_list" else None  # type: ignore[return-value]

    def as_string_list(self) -> Optional[tuple[str, ...]]:
        return self.value if self.kind == "string_list" else None  # type: ignore[return-value]

    def as_number(self) -> float | int:
        """Return the numeric payload, raising on non-numeric variants."""
        if not self.is_numeric:
            raise TypeMismatchError(f"Expected a number, got {self.kind}.")
        return self.value  # type: ignore[return-value]

    def to_python(self) -> Any:
        if self.kind in ("int_list", "string_list"):
            return list(self.value)  # type: ignore[arg-type]
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": self.to_python()}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "FactValue":
        if not isinstance(data, dict) or "kind" not in data:
            raise TypeMismatchError("FactValue payload must be a dict with 'kind'.")
        return FactValue(kind=data["kind"], value=data.get("value"))

    def __str__(self) -> str:
        if self.kind == "string":
            return repr(self.value)
        if self.kind == "bool":
            return "true" if self.value else "false"
        return str(self.to_python())


def Int(value: int) -> FactValue:
    return FactValue("int", value)


def Float(value: float) -> FactValue:
    return FactValue("float", value)


def Bool(value: bool) -> FactValue:
    return FactValue("bool", value)


def String(value: str) -> FactValue:
    return FactValue("string", value)


def IntList(values: list[int] | tuple[int, ...]) -> FactValue:
    return FactValue("int_list", tuple(values))


def StringList(values: list[str] | tuple[str, ...]) -> FactValue:
    return FactValue("string_list", tuple(values))
