"""Conditional template rendering for plugin-contributed files.

Plugin templates use a small Handlebars-like syntax::

    import {{ options.client }} from './client';
    {{#if hasPlugin('db-prisma')}}
    import { prisma } from '@/lib/prisma';
    {{else}}
    const prisma = null;
    {{/if}}

Rendering happens in three steps.  The source is split into a flat token
stream (text, variable, ``#if``, ``else``, ``/if``).  The tokens are parsed
into a small AST.  The AST is evaluated against a :class:`BindingContext`.
Parsed templates are cached by source text, so rendering the same template
with the same context is byte-identical.

Block tags that sit alone on a line are *standalone*: the whole line,
including its newline, is dropped from the output.  ``\{{`` emits a literal
``{{`` (for JSX such as ``style=\{{ color: 'red' }}``), and quoted strings
inside a tag may contain ``}}``.  Missing variables render as the empty
string.  Malformed blocks and unknown helpers raise
:class:`~scaforge.errors.TemplateSyntaxError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from scaforge.codegen.context import BindingContext
from scaforge.codegen.expressions import Expr, evaluate, is_truthy, parse_expression, stringify
from scaforge.errors import TemplateSyntaxError

if TYPE_CHECKING:
    from scaforge.plugins.models import FileSpec

# A tag body may hold quoted strings containing "}}"; "\{{" is a literal "{{".
_TAG_RE = re.compile(
    r"""
    (?P<escape>\\\{\{)
  | \{\{(?P<body>(?:'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|[^'"}]|\}(?!\}))*?)\}\}
    """,
    re.VERBOSE | re.DOTALL,
)
_UNTERMINATED_BLOCK_RE = re.compile(r"\{\{\s*[#/]")


# ---------------------------------------------------------------------------
# Tokens and AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Token:
    kind: str  # "text" | "var" | "if" | "else" | "endif"
    value: str
    line: int


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class VarNode:
    expr: Expr


@dataclass(frozen=True)
class IfNode:
    condition: Expr
    body: tuple["Node", ...]
    orelse: tuple["Node", ...] = ()


Node = TextNode | VarNode | IfNode


@dataclass
class _OpenBlock:
    condition: Expr
    line: int
    body: list[Node] = field(default_factory=list)
    orelse: list[Node] = field(default_factory=list)
    in_else: bool = False

    @property
    def active(self) -> list[Node]:
        return self.orelse if self.in_else else self.body


@dataclass(frozen=True)
class RenderedFile:
    """A plugin file after rendering, ready for the file writer."""

    path: str
    content: str
    overwrite: bool


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _classify(body: str, line: int) -> tuple[str, str]:
    if body.startswith("#if"):
        condition = body[3:]
        if condition and not condition[0].isspace():
            raise TemplateSyntaxError(f"unknown block '{{{{{body}}}}}' on line {line}")
        if not condition.strip():
            raise TemplateSyntaxError(f"'{{{{#if}}}}' without a condition on line {line}")
        return "if", condition.strip()
    if body == "else":
        return "else", ""
    if body == "/if":
        return "endif", ""
    if body.startswith(("#", "/")) or body.startswith("else "):
        raise TemplateSyntaxError(f"unknown block '{{{{{body}}}}}' on line {line}")
    if not body:
        raise TemplateSyntaxError(f"empty tag on line {line}")
    return "var", body


def tokenize(source: str) -> list[_Token]:
    """Split *source* into a flat token stream."""
    tokens: list[_Token] = []
    pos = 0
    for match in _TAG_RE.finditer(source):
        start, end = match.span()
        line = source.count("\n", 0, start) + 1
        if match.group("escape"):
            if start > pos:
                _append_text(tokens, source[pos:start], line)
            tokens.append(_Token("text", "{{", line))
            pos = end
            continue
        kind, value = _classify(match.group("body").strip(), line)
        text = source[pos:start]

        if kind != "var":
            line_start = source.rfind("\n", 0, start) + 1
            line_end = source.find("\n", end)
            if line_end == -1:
                line_end = len(source)
            standalone = (
                line_start >= pos
                and not source[line_start:start].strip()
                and not source[end:line_end].strip()
            )
            if standalone:
                text = source[pos:line_start]
                end = min(line_end + 1, len(source))

        if text:
            _append_text(tokens, text, line)
        tokens.append(_Token(kind, value, line))
        pos = end

    if pos < len(source):
        _append_text(tokens, source[pos:], source.count("\n", 0, pos) + 1)
    return tokens


def _append_text(tokens: list[_Token], text: str, line: int) -> None:
    if _UNTERMINATED_BLOCK_RE.search(text):
        raise TemplateSyntaxError(f"unterminated block tag near line {line}")
    if "{{" in text:
        raise TemplateSyntaxError(f"unterminated tag near line {line}")
    tokens.append(_Token("text", text, line))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def parse_template(source: str) -> tuple[Node, ...]:
    """Parse *source* into an AST.

    Raises:
        TemplateSyntaxError: On a stray ``{{else}}``/``{{/if}}``, an
            unterminated ``{{#if}}`` or an invalid expression.
    """
    root: list[Node] = []
    stack: list[_OpenBlock] = []
    current = root

    for token in tokenize(source):
        if token.kind == "text":
            current.append(TextNode(token.value))
        elif token.kind == "var":
            current.append(VarNode(parse_expression(token.value)))
        elif token.kind == "if":
            block = _OpenBlock(parse_expression(token.value), token.line)
            stack.append(block)
            current = block.body
        elif token.kind == "else":
            if not stack:
                raise TemplateSyntaxError(
                    f"'{{{{else}}}}' outside of an '{{{{#if}}}}' block on line {token.line}"
                )
            if stack[-1].in_else:
                raise TemplateSyntaxError(f"duplicate '{{{{else}}}}' on line {token.line}")
            stack[-1].in_else = True
            current = stack[-1].orelse
        else:
            if not stack:
                raise TemplateSyntaxError(
                    f"'{{{{/if}}}}' without a matching '{{{{#if}}}}' on line {token.line}"
                )
            block = stack.pop()
            current = stack[-1].active if stack else root
            current.append(IfNode(block.condition, tuple(block.body), tuple(block.orelse)))

    if stack:
        raise TemplateSyntaxError(
            f"unclosed '{{{{#if}}}}' block opened on line {stack[-1].line}"
        )
    return tuple(root)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders plugin templates against a :class:`BindingContext`.

    The renderer holds no state besides a parse cache, so one instance can be
    shared by every plugin in a manager.
    """

    def __init__(self) -> None:
        self._cache: dict[str, tuple[Node, ...]] = {}

    def compile(self, source: str) -> tuple[Node, ...]:
        nodes = self._cache.get(source)
        if nodes is None:
            nodes = parse_template(source)
            self._cache[source] = nodes
        return nodes

    def render(
        self,
        source: str,
        context: BindingContext,
        *,
        plugin: str | None = None,
        path: str | None = None,
    ) -> str:
        """Render *source* with *context*.

        ``plugin`` and ``path`` only serve to name the template's origin in
        a :class:`TemplateSyntaxError`.
        """
        try:
            nodes = self.compile(source)
        except TemplateSyntaxError as exc:
            raise exc.with_origin(plugin, path) from None
        out: list[str] = []
        _emit(nodes, context, out)
        return "".join(out)

    def render_file(
        self,
        spec: FileSpec,
        context: BindingContext,
        *,
        plugin: str | None = None,
    ) -> RenderedFile:
        """Render both the destination path and the body of *spec*."""
        path = self.render(spec.path, context, plugin=plugin, path=spec.path).strip()
        if not path:
            raise TemplateSyntaxError(
                "file path rendered to an empty string", plugin=plugin, path=spec.path
            )
        content = self.render(spec.template, context, plugin=plugin, path=spec.path)
        return RenderedFile(path=path, content=content, overwrite=spec.overwrite)

    def validate(self, source: str, *, plugin: str | None = None, path: str | None = None) -> None:
        """Parse *source* without rendering it, raising on syntax errors."""
        self.render(source, BindingContext.create(template=""), plugin=plugin, path=path)


def _emit(nodes: tuple[Node, ...], context: BindingContext, out: list[str]) -> None:
    for node in nodes:
        if isinstance(node, TextNode):
            out.append(node.text)
        elif isinstance(node, VarNode):
            out.append(stringify(evaluate(node.expr, context)))
        elif is_truthy(evaluate(node.condition, context)):
            _emit(node.body, context, out)
        else:
            _emit(node.orelse, context, out)
