"""Conditional template rendering for plugin files.

Quick usage::

    from scaforge.codegen import BindingContext, TemplateRenderer

    renderer = TemplateRenderer()
    context = BindingContext.create(
        template="nextjs",
        options={"transformer": "superjson"},
        installed_plugins={"api-trpc", "db-prisma"},
    )
    text = renderer.render("{{#if hasPlugin('db-prisma')}}db{{/if}}", context)
"""

from scaforge.codegen.context import BindingContext
from scaforge.codegen.expressions import HELPERS, evaluate, parse_expression
from scaforge.codegen.renderer import RenderedFile, TemplateRenderer, parse_template

__all__ = [
    "HELPERS",
    "BindingContext",
    "RenderedFile",
    "TemplateRenderer",
    "evaluate",
    "parse_expression",
    "parse_template",
]
