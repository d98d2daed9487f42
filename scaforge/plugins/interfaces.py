"""Collaborator interfaces consumed by the plugin manager.

The manager never touches the filesystem or the package manager itself; it
awaits these collaborators one call at a time.  Default implementations live
in :mod:`scaforge.project`, and tests substitute recording fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from scaforge.config import ScaforgeConfig
from scaforge.plugins.models import EnvVarDefinition, FileSpec, PluginPackages

if TYPE_CHECKING:
    from scaforge.codegen.context import BindingContext
    from scaforge.codegen.renderer import RenderedFile

PathLike = str | Path


@runtime_checkable
class PackageInstaller(Protocol):
    async def install(self, project_root: PathLike, packages: PluginPackages) -> None: ...

    async def uninstall(self, project_root: PathLike, package_names: list[str]) -> None: ...


@runtime_checkable
class EnvVarStore(Protocol):
    async def upsert_for_plugin(
        self,
        project_root: PathLike,
        plugin_name: str,
        env_vars: list[EnvVarDefinition],
    ) -> None: ...

    async def remove_for_plugin(self, project_root: PathLike, plugin_name: str) -> list[str]: ...


@runtime_checkable
class FileWriter(Protocol):
    async def write(self, path: PathLike, content: str, *, overwrite: bool) -> bool:
        """Write *content*; returns ``False`` if an existing file was kept."""
        ...


@runtime_checkable
class ConfigStore(Protocol):
    async def load(self, project_root: PathLike) -> ScaforgeConfig: ...

    async def save(self, project_root: PathLike, config: ScaforgeConfig) -> None: ...


@runtime_checkable
class FileRenderer(Protocol):
    """Renders plugin templates and file specs for the manager."""

    def render(
        self,
        source: str,
        context: BindingContext,
        *,
        plugin: str | None = None,
        path: str | None = None,
    ) -> str: ...

    def render_file(
        self, spec: FileSpec, context: BindingContext, *, plugin: str | None = None
    ) -> RenderedFile: ...
