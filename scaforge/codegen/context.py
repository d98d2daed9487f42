"""Binding context for plugin templates."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class BindingContext:
    """Facts available to a template while it renders.

    ``template`` is the project's framework id, ``options`` the plugin's
    resolved options and ``installed_plugins`` the names that ``hasPlugin``
    tests against.  ``config`` and ``plugin`` carry project and plugin
    metadata for interpolation (``{{config.name}}``, ``{{plugin.name}}``).
    """

    template: str
    options: Mapping[str, Any] = field(default_factory=_empty_mapping)
    installed_plugins: frozenset[str] = frozenset()
    config: Mapping[str, Any] = field(default_factory=_empty_mapping)
    plugin: Mapping[str, Any] = field(default_factory=_empty_mapping)

    @classmethod
    def create(
        cls,
        template: str,
        options: Mapping[str, Any] | None = None,
        installed_plugins: Iterable[str] = (),
        config: Mapping[str, Any] | None = None,
        plugin: Mapping[str, Any] | None = None,
    ) -> "BindingContext":
        return cls(
            template=template,
            options=MappingProxyType(dict(options or {})),
            installed_plugins=frozenset(installed_plugins),
            config=MappingProxyType(dict(config or {})),
            plugin=MappingProxyType(dict(plugin or {})),
        )

    def has_plugin(self, name: Any) -> bool:
        return isinstance(name, str) and name in self.installed_plugins

    def lookup(self, parts: tuple[str, ...]) -> Any:
        """Resolve a dotted path; any missing segment yields ``None``."""
        roots: dict[str, Any] = {
            "template": self.template,
            "options": self.options,
            "config": self.config,
            "plugin": self.plugin,
            "installedPlugins": sorted(self.installed_plugins),
        }
        if not parts or parts[0] not in roots:
            return None
        current = roots[parts[0]]
        for part in parts[1:]:
            if isinstance(current, Mapping):
                current = current.get(part)
            elif isinstance(current, (list, tuple)) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else None
            else:
                return None
            if current is None:
                return None
        return current
