"""Boolean expression language used by conditional template blocks.

An expression is a literal, a dotted path or a helper call.  Three call
spellings are accepted and produce the same AST::

    eq(options.transformer, 'superjson')     # call form
    (eq options.transformer 'superjson')     # parenthesised form
    eq options.transformer 'superjson'       # bare form, top level only

The helper set is closed: ``eq``, ``and``, ``or`` and ``hasPlugin``.  Unknown
helpers and arity mistakes are reported while parsing, so a broken template
fails even when the faulty branch would never be taken.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from scaforge.codegen.context import BindingContext
from scaforge.errors import TemplateSyntaxError

# helper name -> (min args, max args or None)
HELPERS: dict[str, tuple[int, int | None]] = {
    "eq": (2, 2),
    "and": (1, None),
    "or": (1, None),
    "hasPlugin": (1, 1),
}

_KEYWORDS: dict[str, Any] = {"true": True, "false": False, "null": None, "undefined": None}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?)(?![\w.])
  | (?P<name>[A-Za-z_@$][\w$-]*(?:\.[\w$-]+)*)
  | (?P<punct>[(),])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class PathLookup:
    parts: tuple[str, ...]


@dataclass(frozen=True)
class HelperCall:
    name: str
    args: tuple["Expr", ...]


Expr = Literal | PathLookup | HelperCall


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise TemplateSyntaxError(
                f"unexpected character {source[pos]!r} in expression {source!r}"
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group()))
        pos = match.end()
    return tokens


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def parse(self) -> Expr:
        if not self.tokens:
            raise TemplateSyntaxError("empty expression")
        first = self.tokens[0]
        if first.kind == "name" and len(self.tokens) > 1 and self.tokens[1].text != "(":
            # bare form: `eq a b`
            self.pos = 1
            args: list[Expr] = []
            while self.pos < len(self.tokens):
                args.append(self._expr())
            return _make_call(first.text, args)
        expr = self._expr()
        if self.pos != len(self.tokens):
            raise TemplateSyntaxError(
                f"unexpected {self.tokens[self.pos].text!r} in expression {self.source!r}"
            )
        return expr

    def _next(self) -> _Token:
        if self.pos >= len(self.tokens):
            raise TemplateSyntaxError(f"unexpected end of expression {self.source!r}")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _expr(self) -> Expr:
        token = self._next()
        if token.kind == "string":
            return Literal(_unquote(token.text))
        if token.kind == "number":
            return Literal(float(token.text) if "." in token.text else int(token.text))
        if token.kind == "name":
            nxt = self._peek()
            if nxt is not None and nxt.text == "(":
                self.pos += 1
                return _make_call(token.text, self._call_args())
            if token.text in _KEYWORDS:
                return Literal(_KEYWORDS[token.text])
            return PathLookup(tuple(token.text.split(".")))
        if token.text == "(":
            head = self._next()
            if head.kind != "name":
                raise TemplateSyntaxError(
                    f"expected helper name after '(' in expression {self.source!r}"
                )
            args: list[Expr] = []
            while True:
                nxt = self._peek()
                if nxt is None:
                    raise TemplateSyntaxError(f"missing ')' in expression {self.source!r}")
                if nxt.text == ")":
                    self.pos += 1
                    break
                args.append(self._expr())
            return _make_call(head.text, args)
        raise TemplateSyntaxError(f"unexpected {token.text!r} in expression {self.source!r}")

    def _call_args(self) -> list[Expr]:
        args: list[Expr] = []
        nxt = self._peek()
        if nxt is not None and nxt.text == ")":
            self.pos += 1
            return args
        while True:
            args.append(self._expr())
            sep = self._next()
            if sep.text == ")":
                return args
            if sep.text != ",":
                raise TemplateSyntaxError(
                    f"expected ',' or ')' but found {sep.text!r} in expression {self.source!r}"
                )


def _make_call(name: str, args: list[Expr]) -> HelperCall:
    if name not in HELPERS:
        raise TemplateSyntaxError(f"unknown helper {name!r}")
    low, high = HELPERS[name]
    if len(args) < low or (high is not None and len(args) > high):
        expected = str(low) if low == high else f"at least {low}"
        raise TemplateSyntaxError(
            f"helper {name!r} expects {expected} argument(s), got {len(args)}"
        )
    return HelperCall(name, tuple(args))


def parse_expression(source: str) -> Expr:
    """Parse *source* into an expression AST.

    Raises:
        TemplateSyntaxError: On malformed input or an unknown helper.
    """
    return _Parser(source.strip()).parse()


def _equals(a: Any, b: Any) -> bool:
    # booleans never equal numbers (True == 1 in Python)
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def evaluate(expr: Expr, context: BindingContext) -> Any:
    """Evaluate *expr* against *context*.  Evaluation has no side effects."""
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, PathLookup):
        return context.lookup(expr.parts)
    if expr.name == "eq":
        return _equals(evaluate(expr.args[0], context), evaluate(expr.args[1], context))
    if expr.name == "and":
        return all(is_truthy(evaluate(arg, context)) for arg in expr.args)
    if expr.name == "or":
        return any(is_truthy(evaluate(arg, context)) for arg in expr.args)
    if expr.name == "hasPlugin":
        return context.has_plugin(evaluate(expr.args[0], context))
    raise TemplateSyntaxError(f"unknown helper {expr.name!r}")


def is_truthy(value: Any) -> bool:
    return bool(value)


def stringify(value: Any) -> str:
    """Render a value for interpolation; ``None`` becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)) or hasattr(value, "items"):
        return json.dumps(_plain(value))
    return str(value)


def _plain(value: Any) -> Any:
    if hasattr(value, "items"):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
