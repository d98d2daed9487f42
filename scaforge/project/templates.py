"""Jinja2 rendering for the files Scaforge owns in a project.

Scaforge renders its own files, ``scaforge.config.ts`` and the pages below
``docs/scaforge``, from the ``.j2`` templates in ``assets``.  Plugin files go
through :mod:`scaforge.codegen` instead, whose conditional syntax is part of
the plugin contract.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "assets"


class ProjectTemplateRenderer:
    """Loads ``.j2`` templates from the package's ``assets`` directory."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["js_string"] = _js_string_filter
        self.env.filters["js_value"] = _js_value_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        template = self.env.get_template(template_path)
        return template.render(**context)

    def list_templates(self) -> list[str]:
        return sorted(t for t in self.env.list_templates() if t.endswith(".j2"))


# ---------------------------------------------------------------------------
# Custom Jinja2 filters
# ---------------------------------------------------------------------------


def _js_string_filter(value: Any, single_quote: bool = True) -> str:
    """Quote *value* as a JavaScript string literal."""
    encoded = json.dumps(str(value), ensure_ascii=False)
    if not single_quote:
        return encoded
    inner = encoded[1:-1].replace('\\"', '"').replace("'", "\\'")
    return f"'{inner}'"


def _js_value_filter(value: Any, single_quote: bool = True) -> str:
    """Render a JSON-compatible value as a JavaScript literal.

    Strings use the configured quote style; containers are emitted inline.
    """
    if isinstance(value, str):
        return _js_string_filter(value, single_quote)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = ", ".join(
            f"{_js_key(str(k), single_quote)}: {_js_value_filter(v, single_quote)}"
            for k, v in value.items()
        )
        return "{ " + items + " }"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_js_value_filter(v, single_quote) for v in value) + "]"
    return _js_string_filter(value, single_quote)


def _js_key(key: str, single_quote: bool) -> str:
    if key.isidentifier() and key.isascii():
        return key
    return _js_string_filter(key, single_quote)
