"""Expression language: AST, parser and evaluator."""

from factrule.expr.ast import (
    BinaryOp,
    Expression,
    FactRef,
    Literal,
    UnaryOp,
    expr_from_dict,
)
from factrule.expr.evaluator import (
    FactLookup,
    arithmetic,
    compare,
    evaluate,
    evaluate_bool,
    negate,
)
from factrule.expr.parser import parse_expression

__all__ = [
    "BinaryOp",
    "Expression",
    "FactLookup",
    "FactRef",
    "Literal",
    "UnaryOp",
    "arithmetic",
    "compare",
    "evaluate",
    "evaluate_bool",
    "expr_from_dict",
    "negate",
    "parse_expression",
]
