"""Expression AST for conditions and computed values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from factrule.errors import ExpressionSyntaxError
from factrule.values import FactValue


UNARY_OPS = ("neg", "not")
ARITHMETIC_OPS = ("add", "sub", "mul", "div", "mod")
COMPARISON_OPS = ("lt", "le", "gt", "ge", "eq", "ne")
LOGIC_OPS = ("and", "or")
BINARY_OPS = ARITHMETIC_OPS + COMPARISON_OPS + LOGIC_OPS

OP_SYMBOLS = {
    "neg": "-",
    "not": "not ",
    "add": "+",
    "sub": "-",
    "mul": "*",
    "div": "/",
    "mod": "%",
    "lt": "<",
    "le": "<=",
    "gt": ">",
    "ge": ">=",
    "eq": "==",
    "ne": "!=",
    "and": "and",
    "or": "or",
}


class Expression:
    """Base class for expression nodes."""

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError

    def children(self) -> tuple["Expression", ...]:
        return ()

    def walk(self) -> Iterator["Expression"]:
        yield self
        for child in self.children():
            yield from child.walk()

    def fact_refs(self) -> list[str]:
        """Keys referenced by this expression, in first-seen order."""
        seen: list[str] = []
        for node in self.walk():
            if isinstance(node, FactRef) and node.key not in seen:
                seen.append(node.key)
        return seen


@dataclass(frozen=True)
class Literal(Expression):
    value: FactValue

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "literal", "value": self.value.to_dict()}

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FactRef(Expression):
    key: str

    def __post_init__(self) -> None:
        if not self.key:
            raise ExpressionSyntaxError("FactRef key must be non-empty", self.key, 0)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "fact", "key": self.key}

    def __str__(self) -> str:
        return f"${self.key}"


@dataclass(frozen=True)
class UnaryOp(Expression):
    op: str
    operand: Expression

    def __post_init__(self) -> None:
        if self.op not in UNARY_OPS:
            raise ExpressionSyntaxError(f"Unknown unary operator {self.op!r}", self.op, 0)

    def children(self) -> tuple[Expression, ...]:
        return (self.operand,)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "unary", "op": self.op, "operand": self.operand.to_dict()}

    def __str__(self) -> str:
        return f"{OP_SYMBOLS[self.op]}({self.operand})"


@dataclass(frozen=True)
class BinaryOp(Expression):
    op: str
    left: Expression
    right: Expression

    def __post_init__(self) -> None:
        if self.op not in BINARY_OPS:
            raise ExpressionSyntaxError(f"Unknown binary operator {self.op!r}", self.op, 0)

    def children(self) -> tuple[Expression, ...]:
        return (self.left, self.right)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "binary",
            "op": self.op,
            "left": self.left.to_dict(),
            "right": self.right.to_dict(),
        }

    def __str__(self) -> str:
        return f"({self.left} {OP_SYMBOLS[self.op]} {self.right})"


def expr_from_dict(data: dict[str, Any]) -> Expression:
    if not isinstance(data, dict):
        raise ExpressionSyntaxError("Expression payload must be a dict", repr(data), 0)
    kind = data.get("kind")
    if kind == "literal":
        return Literal(value=FactValue.from_dict(data["value"]))
    if kind == "fact":
        return FactRef(key=data["key"])
    if kind == "unary":
        return UnaryOp(op=data["op"], operand=expr_from_dict(data["operand"]))
    if kind == "binary":
        return BinaryOp(
            op=data["op"],
            left=expr_from_dict(data["left"]),
            right=expr_from_dict(data["right"]),
        )
    raise ExpressionSyntaxError(f"Unknown expression kind {kind!r}", repr(data), 0)
