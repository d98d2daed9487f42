"""Plugin registry - the in-memory catalog of plugin definitions."""

from __future__ import annotations

import logging

from scaforge.errors import DuplicateNameError
from scaforge.plugins.models import PluginCategory, PluginDefinition

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Central registry for plugin definitions, keyed by unique name.

    Registration happens once at startup, before any manager operation runs,
    so no locking is done.  Tests call :meth:`clear` for isolation.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, PluginDefinition] = {}

    def register(self, definition: PluginDefinition) -> None:
        """Register a plugin definition.

        Raises:
            DuplicateNameError: If a definition with the same name exists.
        """
        if definition.name in self._plugins:
            raise DuplicateNameError(definition.name)
        self._plugins[definition.name] = definition
        logger.info("Registered plugin: %s (%s)", definition.name, definition.category.value)

    def unregister(self, name: str) -> bool:
        """Remove a plugin; returns ``False`` if it was not registered."""
        return self._plugins.pop(name, None) is not None

    def get(self, name: str) -> PluginDefinition | None:
        return self._plugins.get(name)

    def has(self, name: str) -> bool:
        return name in self._plugins

    def get_all(self) -> list[PluginDefinition]:
        """Snapshot of every registered definition, in registration order."""
        return list(self._plugins.values())

    def get_by_category(
        self, category: PluginCategory | str
    ) -> list[PluginDefinition]:
        """All definitions in *category*, sorted by name."""
        try:
            wanted = PluginCategory(category)
        except ValueError:
            return []
        return sorted(
            (p for p in self._plugins.values() if p.category == wanted),
            key=lambda p: p.name,
        )

    def get_categories(self) -> list[PluginCategory]:
        """Distinct categories that currently have at least one plugin."""
        seen: dict[PluginCategory, None] = {}
        for plugin in self._plugins.values():
            seen.setdefault(plugin.category, None)
        return list(seen)

    def size(self) -> int:
        return len(self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def clear(self) -> None:
        self._plugins.clear()
