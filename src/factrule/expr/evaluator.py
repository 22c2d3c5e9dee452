"""Expression evaluation over a fact lookup."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Union

from factrule.errors import DivisionByZeroError, TypeMismatchError, UnknownFactError
from factrule.expr.ast import BinaryOp, Expression, FactRef, Literal, UnaryOp
from factrule.values import FactValue


class SupportsGet(Protocol):
    def get(self, key: str) -> Optional[FactValue]: ...


FactLookup = Union[Callable[[str], Optional[FactValue]], SupportsGet]

_ORDERED_KINDS = ("int", "float", "string")


def as_resolver(lookup: FactLookup) -> Callable[[str], Optional[FactValue]]:
    if callable(lookup):
        return lookup
    return lookup.get


def evaluate(expr: Expression, lookup: FactLookup) -> FactValue:
    """Evaluate ``expr`` against facts resolved through ``lookup``.

    Raises ``UnknownFactError``, ``TypeMismatchError`` or ``DivisionByZeroError``.
    """
    return _eval(expr, as_resolver(lookup))


def _eval(expr: Expression, resolve: Callable[[str], Optional[FactValue]]) -> FactValue:
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, FactRef):
        value = resolve(expr.key)
        if value is None:
            raise UnknownFactError(expr.key)
        return value
    if isinstance(expr, UnaryOp):
        operand = _eval(expr.operand, resolve)
        if expr.op == "neg":
            return negate(operand)
        return FactValue("bool", not _require_bool(operand, "not"))
    if isinstance(expr, BinaryOp):
        if expr.op in ("and", "or"):
            left = _require_bool(_eval(expr.left, resolve), expr.op)
            if expr.op == "and" and not left:
                return FactValue("bool", False)
            if expr.op == "or" and left:
                return FactValue("bool", True)
            return FactValue("bool", _require_bool(_eval(expr.right, resolve), expr.op))
        left_value = _eval(expr.left, resolve)
        right_value = _eval(expr.right, resolve)
        if expr.op in ("lt", "le", "gt", "ge", "eq", "ne"):
            return compare(expr.op, left_value, right_value)
        return arithmetic(expr.op, left_value, right_value)
    raise TypeMismatchError(f"Unsupported expression node: {type(expr).__name__}")


def evaluate_bool(expr: Expression, lookup: FactLookup) -> bool:
    return _require_bool(evaluate(expr, lookup), "condition")


def _require_bool(value: FactValue, context: str) -> bool:
    if value.kind != "bool":
        raise TypeMismatchError(f"'{context}' requires bool operands, got {value.kind}.")
    return bool(value.value)


def negate(value: FactValue) -> FactValue:
    if value.kind == "int":
        return FactValue("int", -value.value)  # type: ignore[operator]
    if value.kind == "float":
        return FactValue("float", -value.value)  # type: ignore[operator]
    raise TypeMismatchError(f"Cannot negate {value.kind}.")


def trunc_div(left: int, right: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(left) // abs(right)
    return quotient if (left >= 0) == (right >= 0) else -quotient


def arithmetic(op: str, left: FactValue, right: FactValue) -> FactValue:
    """Apply ``add``/``sub``/``mul``/``div``/``mod`` with int->float promotion."""
    if op == "add" and left.kind == "string" and right.kind == "string":
        return FactValue("string", left.value + right.value)  # type: ignore[operator]
    if not left.is_numeric or not right.is_numeric:
        raise TypeMismatchError(f"Operator '{op}' not defined for {left.kind} and {right.kind}.")
    a = left.value
    b = right.value
    if op == "mod":
        if left.kind != "int" or right.kind != "int":
            raise TypeMismatchError("Operator 'mod' requires int operands.")
        if b == 0:
            raise DivisionByZeroError("Modulo by zero.")
        return FactValue("int", a - b * trunc_div(a, b))  # type: ignore[arg-type,operator]
    as_int = left.kind == "int" and right.kind == "int"
    if op == "add":
        result = a + b  # type: ignore[operator]
    elif op == "sub":
        result = a - b  # type: ignore[operator]
    elif op == "mul":
        result = a * b  # type: ignore[operator]
    elif op == "div":
        if b == 0:
            raise DivisionByZeroError("Division by zero.")
        result = trunc_div(a, b) if as_int else a / b  # type: ignore[arg-type,operator]
    else:
        raise TypeMismatchError(f"Unknown arithmetic operator: {op}")
    return FactValue("int", result) if as_int else FactValue("float", result)


def compare(op: str, left: FactValue, right: FactValue) -> FactValue:
    """Compare two values of the same variant; int and float compare numerically."""
    if left.is_numeric and right.is_numeric:
        a, b = left.value, right.value
    elif left.kind == right.kind:
        if op not in ("eq", "ne") and left.kind not in _ORDERED_KINDS:
            raise TypeMismatchError(f"Operator '{op}' not defined for {left.kind}.")
        a, b = left.value, right.value
    else:
        raise TypeMismatchError(f"Cannot compare {left.kind} with {right.kind}.")
    if op == "eq":
        result = a == b
    elif op == "ne":
        result = a != b
    elif op == "lt":
        result = a < b  # type: ignore[operator]
    elif op == "le":
        result = a <= b  # type: ignore[operator]
    elif op == "gt":
        result = a > b  # type: ignore[operator]
    elif op == "ge":
        result = a >= b  # type: ignore[operator]
    else:
        raise TypeMismatchError(f"Unknown comparison operator: {op}")
    return FactValue("bool", bool(result))
