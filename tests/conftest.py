"""Shared pytest fixtures for the Scaforge test suite.

Provides reusable fixtures for:
- Temporary project directories with a saved ``scaforge.config.ts``
- Small hand-built plugin definitions and registries
- Recording fakes for every manager collaborator
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from scaforge.config import ScaforgeConfig, create_default_config
from scaforge.plugins.manager import PluginManager
from scaforge.plugins.models import (
    EnvVarDefinition,
    FileSpec,
    PluginCategory,
    PluginDefinition,
    PluginPackages,
)
from scaforge.plugins.registry import PluginRegistry
from scaforge.project.config_store import ConfigFileStore


# ---------------------------------------------------------------------------
# Plugin factories
# ---------------------------------------------------------------------------


def make_plugin(name: str, **overrides: Any) -> PluginDefinition:
    """Build a minimal valid plugin definition; *overrides* win."""
    fields: dict[str, Any] = {
        "name": name,
        "display_name": name.title(),
        "category": PluginCategory.API,
        "description": f"The {name} plugin",
        "supported_templates": ["nextjs"],
    }
    fields.update(overrides)
    return PluginDefinition(**fields)


@pytest.fixture
def db_plugin() -> PluginDefinition:
    return make_plugin(
        "db",
        category=PluginCategory.DATABASE,
        packages=PluginPackages(dependencies={"dbclient": "^1.0.0"}),
        env_vars=[EnvVarDefinition(name="DATABASE_URL", required=True, secret=True)],
        files=[FileSpec(path="src/db.ts", template="export const db = '{{config.name}}';\n")],
    )


@pytest.fixture
def auth_plugin() -> PluginDefinition:
    return make_plugin(
        "auth",
        category=PluginCategory.AUTH,
        dependencies=["db"],
        packages=PluginPackages(dependencies={"authlib": "^2.0.0"}),
        env_vars=[EnvVarDefinition(name="AUTH_SECRET", required=True, secret=True)],
        files=[
            FileSpec(
                path="src/auth.ts",
                template=(
                    "{{#if hasPlugin('db')}}\n"
                    "import { db } from './db';\n"
                    "{{/if}}\n"
                    "export const auth = {};\n"
                ),
            )
        ],
    )


@pytest.fixture
def trpc_plugin() -> PluginDefinition:
    return make_plugin("trpc")


@pytest.fixture
def apollo_plugin() -> PluginDefinition:
    # The conflict is declared on this side only.
    return make_plugin("apollo", conflicts=["trpc"])


@pytest.fixture
def registry(
    db_plugin: PluginDefinition,
    auth_plugin: PluginDefinition,
    trpc_plugin: PluginDefinition,
    apollo_plugin: PluginDefinition,
) -> PluginRegistry:
    reg = PluginRegistry()
    for definition in (db_plugin, auth_plugin, trpc_plugin, apollo_plugin):
        reg.register(definition)
    yield reg
    reg.clear()


# ---------------------------------------------------------------------------
# Recording collaborators
# ---------------------------------------------------------------------------


class RecordingInstaller:
    """PackageInstaller fake; ``fail_for`` makes installs of that package raise."""

    def __init__(self, events: list[tuple], fail_for: str | None = None) -> None:
        self.events = events
        self.fail_for = fail_for

    async def install(self, project_root: Any, packages: PluginPackages) -> None:
        names = packages.names()
        if self.fail_for and self.fail_for in names:
            raise RuntimeError(f"cannot install {self.fail_for}")
        self.events.append(("install", tuple(names)))

    async def uninstall(self, project_root: Any, package_names: list[str]) -> None:
        self.events.append(("uninstall", tuple(package_names)))


class RecordingEnvStore:
    def __init__(self, events: list[tuple]) -> None:
        self.events = events
        self.vars: dict[str, list[str]] = {}

    async def upsert_for_plugin(
        self, project_root: Any, plugin_name: str, env_vars: list[EnvVarDefinition]
    ) -> None:
        self.vars[plugin_name] = [v.name for v in env_vars]
        self.events.append(("env", plugin_name, tuple(self.vars[plugin_name])))

    async def remove_for_plugin(self, project_root: Any, plugin_name: str) -> list[str]:
        removed = self.vars.pop(plugin_name, [])
        self.events.append(("env-remove", plugin_name))
        return removed


class RecordingFileWriter:
    """FileWriter fake keeping files in memory, keyed by path relative to root."""

    def __init__(self, events: list[tuple], root: Path) -> None:
        self.events = events
        self.root = root
        self.files: dict[str, str] = {}

    async def write(self, path: Any, content: str, *, overwrite: bool) -> bool:
        key = Path(path).relative_to(self.root).as_posix()
        if key in self.files and not overwrite:
            self.events.append(("skip", key))
            return False
        self.files[key] = content
        self.events.append(("write", key))
        return True


class RecordingConfigStore:
    def __init__(self, events: list[tuple]) -> None:
        self.events = events
        self.saved: list[ScaforgeConfig] = []

    async def load(self, project_root: Any) -> ScaforgeConfig:
        return self.saved[-1]

    async def save(self, project_root: Any, config: ScaforgeConfig) -> None:
        self.saved.append(config)
        self.events.append(("save", tuple(sorted(config.plugins))))


@pytest.fixture
def events() -> list[tuple]:
    return []


@pytest.fixture
def project_root() -> Path:
    return Path("/project")


@pytest.fixture
def installer(events: list[tuple]) -> RecordingInstaller:
    return RecordingInstaller(events)


@pytest.fixture
def env_store(events: list[tuple]) -> RecordingEnvStore:
    return RecordingEnvStore(events)


@pytest.fixture
def file_writer(events: list[tuple], project_root: Path) -> RecordingFileWriter:
    return RecordingFileWriter(events, project_root)


@pytest.fixture
def config_store(events: list[tuple]) -> RecordingConfigStore:
    return RecordingConfigStore(events)


# ---------------------------------------------------------------------------
# Config & manager
# ---------------------------------------------------------------------------


@pytest.fixture
def nextjs_config() -> ScaforgeConfig:
    return create_default_config("test-app", "nextjs")


@pytest.fixture
def manager(
    nextjs_config: ScaforgeConfig,
    registry: PluginRegistry,
    project_root: Path,
    installer: RecordingInstaller,
    env_store: RecordingEnvStore,
    file_writer: RecordingFileWriter,
    config_store: RecordingConfigStore,
) -> PluginManager:
    return PluginManager(
        nextjs_config,
        registry,
        project_root=project_root,
        installer=installer,
        env_store=env_store,
        file_writer=file_writer,
        config_store=config_store,
    )


# ---------------------------------------------------------------------------
# Paths & directories
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary project directory containing a default ``scaforge.config.ts``."""
    project_dir = tmp_path / "test-app"
    project_dir.mkdir()
    store = ConfigFileStore()
    (project_dir / "scaforge.config.ts").write_text(
        store.render(create_default_config("test-app", "nextjs")), encoding="utf-8"
    )
    yield project_dir
