"""Management of the project's ``.env.example`` file.

Each plugin owns a section introduced by a ``# @scaforge/<plugin>`` marker
line.  Entries are kept sorted by plugin (unowned entries first) and then by
name, so repeated upserts produce a stable file.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from scaforge.config import ENV_EXAMPLE_FILE_NAME
from scaforge.plugins.models import EnvVarDefinition

logger = logging.getLogger(__name__)

PLUGIN_MARKER = "# @scaforge/"
ENV_FILE_NAME = ".env"


@dataclass
class EnvEntry:
    """A single ``NAME=value`` line with its optional comment and owner."""

    name: str
    value: str = ""
    comment: str | None = None
    plugin: str | None = None


# ---------------------------------------------------------------------------
# Parsing / serialisation
# ---------------------------------------------------------------------------


def parse_env_file(content: str) -> list[EnvEntry]:
    """Parse ``.env``-style *content* into entries.

    A comment line attaches to the next variable only.  A plugin marker
    applies to every variable after it until the next marker.
    """
    entries: list[EnvEntry] = []
    comment: str | None = None
    plugin: str | None = None

    for raw in content.splitlines():
        line = raw.strip()
        if line.startswith(PLUGIN_MARKER):
            plugin = line[len(PLUGIN_MARKER) :].strip() or None
            continue
        if line.startswith("#"):
            comment = line[1:].strip()
            continue
        if "=" in line:
            name, _, value = line.partition("=")
            if name.strip():
                entries.append(
                    EnvEntry(name=name.strip(), value=value.strip(), comment=comment, plugin=plugin)
                )
            comment = None
    return entries


def serialize_env_file(entries: list[EnvEntry]) -> str:
    lines: list[str] = []
    current_plugin: str | None = None
    for entry in entries:
        if entry.plugin and entry.plugin != current_plugin:
            if lines:
                lines.append("")
            lines.append(f"{PLUGIN_MARKER}{entry.plugin}")
            current_plugin = entry.plugin
        if entry.comment:
            lines.append(f"# {entry.comment}")
        lines.append(f"{entry.name}={entry.value}")
    return "\n".join(lines) + "\n"


def entry_from_definition(env_var: EnvVarDefinition, plugin_name: str) -> EnvEntry:
    parts = [env_var.description] if env_var.description else []
    if env_var.required:
        parts.append("(required)")
    if env_var.secret:
        parts.append("[secret]")
    return EnvEntry(
        name=env_var.name,
        value=env_var.default or "",
        comment=" ".join(parts) or None,
        plugin=plugin_name,
    )


def _sort_key(entry: EnvEntry) -> tuple[int, str, str]:
    return (0 if entry.plugin is None else 1, entry.plugin or "", entry.name)


# ---------------------------------------------------------------------------
# EnvExampleStore
# ---------------------------------------------------------------------------


class EnvExampleStore:
    """Implements the ``EnvVarStore`` interface on top of ``.env.example``."""

    def __init__(self, file_name: str = ENV_EXAMPLE_FILE_NAME) -> None:
        self.file_name = file_name

    def env_path(self, project_root: str | Path) -> Path:
        return Path(project_root) / self.file_name

    async def read_entries(self, project_root: str | Path) -> list[EnvEntry]:
        return await asyncio.to_thread(_read_entries, self.env_path(project_root))

    async def upsert_for_plugin(
        self,
        project_root: str | Path,
        plugin_name: str,
        env_vars: list[EnvVarDefinition],
    ) -> None:
        """Add or replace *plugin_name*'s variables, matching entries by name."""
        if not env_vars:
            return
        entries = await self.read_entries(project_root)
        by_name = {entry.name: index for index, entry in enumerate(entries)}
        for env_var in env_vars:
            entry = entry_from_definition(env_var, plugin_name)
            if entry.name in by_name:
                entries[by_name[entry.name]] = entry
            else:
                by_name[entry.name] = len(entries)
                entries.append(entry)
        entries.sort(key=_sort_key)
        await self._write(project_root, entries)
        logger.debug("Wrote %d env var(s) for %s", len(env_vars), plugin_name)

    async def remove_for_plugin(
        self, project_root: str | Path, plugin_name: str
    ) -> list[str]:
        """Drop every entry owned by *plugin_name*; returns the removed names."""
        path = self.env_path(project_root)
        if not await asyncio.to_thread(path.is_file):
            return []
        entries = await self.read_entries(project_root)
        removed = [entry.name for entry in entries if entry.plugin == plugin_name]
        remaining = [entry for entry in entries if entry.plugin != plugin_name]
        await self._write(project_root, remaining)
        return removed

    async def get_plugin_env_vars(
        self, project_root: str | Path, plugin_name: str
    ) -> list[EnvEntry]:
        entries = await self.read_entries(project_root)
        return [entry for entry in entries if entry.plugin == plugin_name]

    async def check_required_env_vars(
        self, project_root: str | Path, env_vars: list[EnvVarDefinition]
    ) -> list[str]:
        """Return required variables that are unset or blank in ``.env``."""
        entries = await asyncio.to_thread(_read_entries, Path(project_root) / ENV_FILE_NAME)
        values = {entry.name: entry.value for entry in entries}
        return [
            env_var.name
            for env_var in env_vars
            if env_var.required and not values.get(env_var.name, "").strip()
        ]

    async def _write(self, project_root: str | Path, entries: list[EnvEntry]) -> None:
        path = self.env_path(project_root)
        await asyncio.to_thread(path.write_text, serialize_env_file(entries), encoding="utf-8")


def _read_entries(path: Path) -> list[EnvEntry]:
    if not path.is_file():
        return []
    return parse_env_file(path.read_text(encoding="utf-8"))
