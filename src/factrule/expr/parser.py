"""Infix expression parser.

Text is parsed once, when rules are loaded. Every syntax problem surfaces here as
an ``ExpressionSyntaxError``; the resulting AST never fails to *parse* later.

Precedence, loosest first: ``or``, ``and``, ``not``, comparisons (non-chaining),
``+ -``, ``* / %``, unary minus.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from factrule.errors import ExpressionSyntaxError
from factrule.expr.ast import BinaryOp, Expression, FactRef, Literal, UnaryOp
from factrule.values import FactValue


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<float>\d+\.\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+)
  | (?P<int>\d+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<fact>\$[A-Za-z_][A-Za-z0-9_.:]*)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_.:]*)
  | (?P<op><=|>=|==|!=|&&|\|\||[-+*/%<>!])
  | (?P<punct>[()\[\],])
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "true", "false"}

_COMPARISONS = {"<": "lt", "<=": "le", ">": "gt", ">=": "ge", "==": "eq", "!=": "ne"}
_ADDITIVE = {"+": "add", "-": "sub"}
_MULTIPLICATIVE = {"*": "mul", "/": "div", "%": "mod"}

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionSyntaxError(f"Unexpected character {source[pos]!r}", source, pos)
        kind = match.lastgroup or ""
        text = match.group()
        if kind != "ws":
            if kind == "ident":
                lowered = text.lower()
                if lowered in _KEYWORDS:
                    kind, text = "keyword", lowered
            elif kind == "op":
                text = {"&&": "and", "||": "or", "!": "not"}.get(text, text)
                if text in ("and", "or", "not"):
                    kind = "keyword"
            tokens.append(Token(kind=kind, text=text, pos=pos))
        pos = match.end()
    tokens.append(Token(kind="eof", text="", pos=len(source)))
    return tokens


def _unquote(text: str, source: str, pos: int) -> str:
    body = text[1:-1]
    out: list[str] = []
    idx = 0
    while idx < len(body):
        ch = body[idx]
        if ch == "\\":
            idx += 1
            escaped = body[idx]
            if escaped not in _ESCAPES:
                raise ExpressionSyntaxError(f"Unknown escape \\{escaped}", source, pos + idx + 1)
            out.append(_ESCAPES[escaped])
        else:
            out.append(ch)
        idx += 1
    return "".join(out)


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, kind: str, text: str | None = None) -> Token | None:
        token = self.current
        if token.kind == kind and (text is None or token.text == text):
            return self._advance()
        return None

    def _expect(self, kind: str, text: str) -> Token:
        token = self._accept(kind, text)
        if token is None:
            self._fail(f"Expected {text!r}")
        return token  # type: ignore[return-value]

    def _fail(self, message: str) -> None:
        token = self.current
        found = "end of expression" if token.kind == "eof" else repr(token.text)
        raise ExpressionSyntaxError(f"{message}, found {found}", self.source, token.pos)

    def parse(self) -> Expression:
        if self.current.kind == "eof":
            self._fail("Empty expression")
        expr = self._or()
        if self.current.kind != "eof":
            self._fail("Unexpected token")
        return expr

    def _or(self) -> Expression:
        left = self._and()
        while self._accept("keyword", "or"):
            left = BinaryOp("or", left, self._and())
        return left

    def _and(self) -> Expression:
        left = self._not()
        while self._accept("keyword", "and"):
            left = BinaryOp("and", left, self._not())
        return left

    def _not(self) -> Expression:
        if self._accept("keyword", "not"):
            return UnaryOp("not", self._not())
        return self._comparison()

    def _comparison(self) -> Expression:
        left = self._additive()
        token = self.current
        if token.kind == "op" and token.text in _COMPARISONS:
            self._advance()
            left = BinaryOp(_COMPARISONS[token.text], left, self._additive())
            follow = self.current
            if follow.kind == "op" and follow.text in _COMPARISONS:
                self._fail("Comparisons cannot be chained")
        return left

    def _additive(self) -> Expression:
        left = self._term()
        while self.current.kind == "op" and self.current.text in _ADDITIVE:
            op = _ADDITIVE[self._advance().text]
            left = BinaryOp(op, left, self._term())
        return left

    def _term(self) -> Expression:
        left = self._unary()
        while self.current.kind == "op" and self.current.text in _MULTIPLICATIVE:
            op = _MULTIPLICATIVE[self._advance().text]
            left = BinaryOp(op, left, self._unary())
        return left

    def _unary(self) -> Expression:
        if self._accept("op", "-"):
            return UnaryOp("neg", self._unary())
        return self._primary()

    def _primary(self) -> Expression:
        token = self.current
        if token.kind == "int":
            self._advance()
            return Literal(FactValue("int", int(token.text)))
        if token.kind == "float":
            self._advance()
            return Literal(FactValue("float", float(token.text)))
        if token.kind == "string":
            self._advance()
            return Literal(FactValue("string", _unquote(token.text, self.source, token.pos)))
        if token.kind == "keyword" and token.text in ("true", "false"):
            self._advance()
            return Literal(FactValue("bool", token.text == "true"))
        if token.kind == "fact":
            self._advance()
            return FactRef(token.text[1:])
        if token.kind == "ident":
            self._advance()
            return FactRef(token.text)
        if self._accept("punct", "("):
            expr = self._or()
            self._expect("punct", ")")
            return expr
        if self._accept("punct", "["):
            return self._list(token)
        self._fail("Expected a value")
        raise AssertionError("unreachable")  # pragma: no cover

    def _list(self, opening: Token) -> Expression:
        items: list[object] = []
        if not self._accept("punct", "]"):
            while True:
                items.append(self._list_item())
                if self._accept("punct", "]"):
                    break
                self._expect("punct", ",")
        kinds = {type(item) for item in items}
        if len(kinds) > 1:
            raise ExpressionSyntaxError(
                "List literals must hold only ints or only strings", self.source, opening.pos
            )
        return Literal(FactValue.of(items))

    def _list_item(self) -> object:
        negative = self._accept("op", "-") is not None
        token = self.current
        if token.kind == "int":
            self._advance()
            value = int(token.text)
            return -value if negative else value
        if token.kind == "string" and not negative:
            self._advance()
            return _unquote(token.text, self.source, token.pos)
        self._fail("List items must be int or string literals")
        raise AssertionError("unreachable")  # pragma: no cover


@lru_cache(maxsize=1024)
def parse_expression(source: str) -> Expression:
    """Parse expression text into an immutable AST."""
    if not isinstance(source, str):
        raise ExpressionSyntaxError("Expression source must be a string", repr(source), 0)
    return _Parser(source).parse()
