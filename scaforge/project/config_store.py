"""Load and save ``scaforge.config.ts``.

The file is TypeScript, but Scaforge only ever writes a plain object literal
inside ``defineConfig(...)``.  Loading extracts that literal and converts it
to JSON with a small scanner that understands quoted strings in any of the
three JavaScript quote styles, comments, unquoted keys and trailing commas.
Anything else (identifiers, function calls, spreads) is rejected rather than
guessed at.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from scaforge.config import CONFIG_FILE_NAME, ScaforgeConfig
from scaforge.errors import ConfigInvalidError, ConfigNotFoundError
from scaforge.project.templates import ProjectTemplateRenderer

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = "scaforge.config.ts.j2"

_DEFINE_CONFIG_RE = re.compile(r"defineConfig\s*\(\s*(\{[\s\S]*\})\s*\)")
_EXPORT_DEFAULT_RE = re.compile(r"export\s+default\s+(\{[\s\S]*\})\s*;?\s*$")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_NUMBER_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_RE = re.compile(r"[0-9A-Fa-f]+")

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_config_content(content: str) -> Any:
    """Extract and decode the object literal from a config file's source."""
    match = _DEFINE_CONFIG_RE.search(content) or _EXPORT_DEFAULT_RE.search(content)
    if match is None:
        raise ConfigInvalidError(
            "Could not parse config file. Expected defineConfig() or export default."
        )
    return parse_object_literal(match.group(1))


def parse_object_literal(source: str) -> Any:
    """Decode a JSON-compatible JavaScript object literal."""
    try:
        return json.loads(_literal_to_json(source))
    except json.JSONDecodeError as exc:
        raise ConfigInvalidError(
            f"Failed to parse config object ({exc.msg} at position {exc.pos})"
        ) from exc


def _literal_to_json(source: str) -> str:
    out: list[str] = []
    pos = 0
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch in "'\"`":
            value, pos = _read_string(source, pos)
            out.append(json.dumps(value, ensure_ascii=False))
            continue

        if source.startswith("//", pos):
            newline = source.find("\n", pos)
            pos = length if newline == -1 else newline
            continue

        if source.startswith("/*", pos):
            close = source.find("*/", pos + 2)
            if close == -1:
                raise ConfigInvalidError("unterminated comment in config object")
            pos = close + 2
            continue

        if ch.isdigit() or (ch in "-." and pos + 1 < length and source[pos + 1].isdigit()):
            number = _NUMBER_RE.match(source, pos)
            if number is None:
                raise ConfigInvalidError(f"invalid number at position {pos}")
            out.append(number.group(0))
            pos = number.end()
            continue

        ident = _IDENT_RE.match(source, pos)
        if ident is not None:
            word = ident.group(0)
            pos = ident.end()
            if word in ("true", "false", "null"):
                out.append(word)
            elif word == "undefined":
                out.append("null")
            elif _next_significant(source, pos) == ":":
                out.append(json.dumps(word))
            else:
                raise ConfigInvalidError(f"unsupported expression '{word}' in config object")
            continue

        if ch in "}]":
            _drop_trailing_comma(out)

        out.append(ch)
        pos += 1

    return "".join(out)


def _read_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    chars: list[str] = []
    pos = start + 1
    while pos < len(source):
        ch = source[pos]
        if ch == quote:
            return "".join(chars), pos + 1
        if quote == "`" and source.startswith("${", pos):
            raise ConfigInvalidError("template literal interpolation is not supported")
        if ch == "\\":
            pos += 1
            if pos >= len(source):
                break
            esc = source[pos]
            if esc in _SIMPLE_ESCAPES:
                chars.append(_SIMPLE_ESCAPES[esc])
            elif esc in "ux":
                width = 4 if esc == "u" else 2
                digits = source[pos + 1 : pos + 1 + width]
                if not _HEX_RE.fullmatch(digits):
                    raise ConfigInvalidError(f"invalid escape sequence \\{esc}{digits}")
                chars.append(chr(int(digits, 16)))
                pos += width
            elif esc == "\n":
                pass
            else:
                chars.append(esc)
            pos += 1
            continue
        if ch == "\n" and quote != "`":
            raise ConfigInvalidError("unterminated string in config object")
        chars.append(ch)
        pos += 1
    raise ConfigInvalidError("unterminated string in config object")


def _next_significant(source: str, pos: int) -> str:
    while pos < len(source) and source[pos].isspace():
        pos += 1
    return source[pos] if pos < len(source) else ""


def _drop_trailing_comma(out: list[str]) -> None:
    index = len(out) - 1
    while index >= 0 and out[index].isspace():
        index -= 1
    if index >= 0 and out[index] == ",":
        del out[index]


# ---------------------------------------------------------------------------
# ConfigFileStore
# ---------------------------------------------------------------------------


class ConfigFileStore:
    """Reads and writes the project configuration file.

    Implements the ``ConfigStore`` interface consumed by
    :class:`~scaforge.plugins.manager.PluginManager`.
    """

    def __init__(
        self,
        file_name: str = CONFIG_FILE_NAME,
        renderer: ProjectTemplateRenderer | None = None,
    ) -> None:
        self.file_name = file_name
        self.renderer = renderer or ProjectTemplateRenderer()

    def config_path(self, project_root: str | Path) -> Path:
        return Path(project_root) / self.file_name

    def exists(self, project_root: str | Path) -> bool:
        return self.config_path(project_root).is_file()

    # -- Pure conversions --------------------------------------------------

    def render(self, config: ScaforgeConfig) -> str:
        """Render *config* as TypeScript, honouring its code-style settings."""
        code_style = config.settings.code_style if config.settings else None
        tab_width = code_style.tab_width if code_style else 2
        single_quote = code_style.single_quote if code_style else True
        semicolons = code_style.semicolons if code_style else True
        return self.renderer.render(
            CONFIG_TEMPLATE,
            {
                "config": config.model_dump(mode="json", by_alias=True),
                "indent": " " * tab_width,
                "single_quote": single_quote,
                "semi": ";" if semicolons else "",
            },
        )

    def parse(self, content: str) -> ScaforgeConfig:
        """Parse config file *content* into a validated :class:`ScaforgeConfig`."""
        data = parse_config_content(content)
        try:
            return ScaforgeConfig.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigInvalidError(problems) from exc

    # -- Filesystem --------------------------------------------------------

    async def load(self, project_root: str | Path) -> ScaforgeConfig:
        path = self.config_path(project_root)
        if not await asyncio.to_thread(path.is_file):
            raise ConfigNotFoundError(self.file_name)
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return self.parse(content)

    async def save(self, project_root: str | Path, config: ScaforgeConfig) -> None:
        path = self.config_path(project_root)
        content = self.render(config)
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")
        logger.debug("Saved %s", path)
