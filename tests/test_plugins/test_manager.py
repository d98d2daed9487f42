"""Tests for the plugin manager (scaforge.plugins.manager).

Covers:
- Queries: installed set, dependents, missing dependencies, conflicts
- validate_add / validate_remove error collection
- Dependency resolution order and cycle detection
- Option validation and defaulting against config schemas
- The add flow: call order, rendered files, integrations, partial failure
- The remove flow and the add/remove round trip
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import BaseModel, Field

from scaforge.codegen.renderer import RenderedFile, TemplateRenderer
from scaforge.config import PluginConfig, create_default_config
from scaforge.errors import (
    AlreadyInstalledError,
    ConflictError,
    CyclicDependencyError,
    DependentsExistError,
    MissingDependencyError,
    NotFoundError,
    NotInstalledError,
    SchemaValidationError,
    TemplateIncompatibleError,
    TemplateSyntaxError,
)
from scaforge.plugins.interfaces import FileRenderer
from scaforge.plugins.manager import PluginManager
from scaforge.plugins.models import FileCondition, FileSpec, PluginIntegration
from scaforge.plugins.registry import PluginRegistry
from conftest import RecordingInstaller, make_plugin


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


class LevelOptions(BaseModel):
    level: int = Field(default=1, ge=1, le=10)
    label: str = "default"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_fresh_project_has_nothing_installed(self, manager):
        assert manager.get_installed() == []
        assert manager.is_installed("db") is False

    def test_disabled_entries_are_not_installed(self, registry):
        config = create_default_config("app", "nextjs")
        config.plugins["db"] = PluginConfig(enabled=False)
        manager = PluginManager(config, registry)
        assert manager.is_installed("db") is False
        assert manager.get_installed() == []

    def test_constructor_copies_config(self, nextjs_config, registry):
        manager = PluginManager(nextjs_config, registry)
        nextjs_config.plugins["db"] = PluginConfig(enabled=True)
        assert manager.is_installed("db") is False

    @pytest.mark.asyncio
    async def test_get_config_returns_snapshot(self, manager):
        await manager.add("db")
        snapshot = manager.get_config()
        snapshot.plugins.clear()
        assert manager.is_installed("db") is True

    @pytest.mark.asyncio
    async def test_get_dependents(self, manager):
        await manager.add("auth")
        assert manager.get_dependents("db") == ["auth"]
        assert manager.get_dependents("auth") == []

    def test_missing_dependencies(self, manager, auth_plugin):
        assert manager.get_missing_dependencies(auth_plugin) == ["db"]

    @pytest.mark.asyncio
    async def test_conflicts_are_symmetric(self, manager, registry):
        await manager.add("trpc")
        assert manager.check_conflicts(registry.get("apollo")) == ["trpc"]

    @pytest.mark.asyncio
    async def test_conflicts_declared_by_requested_plugin(self, manager, registry):
        await manager.add("apollo")
        assert manager.check_conflicts(registry.get("trpc")) == ["apollo"]

    def test_conflicts_with_extra_names(self, manager, registry):
        assert manager.check_conflicts(registry.get("apollo"), extra=["trpc"]) == ["trpc"]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidateAdd:
    def test_valid(self, manager):
        result = manager.validate_add("auth")
        assert result.valid is True
        assert result.errors == []

    def test_unknown_plugin_short_circuits(self, manager):
        result = manager.validate_add("nope")
        assert result.valid is False
        assert result.errors == ['Plugin "nope" not found in registry']

    def test_template_mismatch(self, registry):
        manager = PluginManager(create_default_config("app", "nuxt"), registry)
        result = manager.validate_add("db")
        assert result.valid is False
        assert result.errors == ['Plugin "db" does not support nuxt template']

    @pytest.mark.asyncio
    async def test_already_installed(self, manager):
        await manager.add("db")
        result = manager.validate_add("db")
        assert result.errors == ['Plugin "db" is already installed']

    @pytest.mark.asyncio
    async def test_conflict(self, manager):
        await manager.add("trpc")
        result = manager.validate_add("apollo")
        assert result.valid is False
        assert len(result.errors) == 1
        assert "conflicts with installed plugins: trpc" in result.errors[0]

    def test_collects_every_error(self, registry):
        config = create_default_config("app", "tanstack")
        config.plugins["trpc"] = PluginConfig(enabled=True)
        config.plugins["apollo"] = PluginConfig(enabled=True)
        manager = PluginManager(config, registry)
        result = manager.validate_add("apollo")
        assert result.errors == [
            'Plugin "apollo" does not support tanstack template',
            'Plugin "apollo" is already installed',
            'Plugin "apollo" conflicts with installed plugins: trpc',
        ]

    def test_unregistered_installed_entry_is_reported(self, registry):
        config = create_default_config("app", "nextjs")
        config.plugins["ghost"] = PluginConfig(enabled=True)
        manager = PluginManager(config, registry)
        result = manager.validate_add("trpc")
        assert result.valid is False
        assert 'Plugin "ghost" not found in registry' in result.errors


class TestValidateRemove:
    def test_not_installed(self, manager):
        result = manager.validate_remove("db")
        assert result.errors == ['Plugin "db" is not installed']

    @pytest.mark.asyncio
    async def test_dependents_block_removal(self, manager):
        await manager.add("auth")
        result = manager.validate_remove("db")
        assert result.valid is False
        assert result.errors == ['Cannot remove "db": required by auth']

    @pytest.mark.asyncio
    async def test_valid(self, manager):
        await manager.add("auth")
        assert manager.validate_remove("auth").valid is True


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolveDependencies:
    def test_dependencies_come_first(self, manager):
        order = [d.name for d in manager.resolve_dependencies("auth")]
        assert order == ["db", "auth"]

    @pytest.mark.asyncio
    async def test_installed_dependencies_are_skipped(self, manager):
        await manager.add("db")
        assert [d.name for d in manager.resolve_dependencies("auth")] == ["auth"]

    def test_transitive_and_shared_dependencies(self, registry):
        registry.register(make_plugin("cache", dependencies=["db"]))
        registry.register(make_plugin("app", dependencies=["auth", "cache"]))
        manager = PluginManager(create_default_config("app", "nextjs"), registry)
        order = [d.name for d in manager.resolve_dependencies("app")]
        assert order == ["db", "auth", "cache", "app"]

    def test_cycle_is_detected(self):
        registry = PluginRegistry()
        registry.register(make_plugin("a", dependencies=["b"]))
        registry.register(make_plugin("b", dependencies=["a"]))
        manager = PluginManager(create_default_config("app", "nextjs"), registry)
        with pytest.raises(CyclicDependencyError) as exc_info:
            manager.resolve_dependencies("a")
        assert exc_info.value.cycle == ["a", "b", "a"]

    def test_unregistered_dependency(self):
        registry = PluginRegistry()
        registry.register(make_plugin("a", dependencies=["ghost"]))
        manager = PluginManager(create_default_config("app", "nextjs"), registry)
        with pytest.raises(NotFoundError, match="ghost"):
            manager.resolve_dependencies("a")


class TestResolveOptions:
    def test_no_schema_passes_options_through(self, manager, registry):
        assert manager.resolve_options(registry.get("trpc"), {"anything": 1}) == {"anything": 1}

    def test_defaults_are_filled(self, manager):
        definition = make_plugin("levels", config_schema=LevelOptions)
        assert manager.resolve_options(definition, {"level": 3}) == {
            "level": 3,
            "label": "default",
        }

    def test_invalid_options_list_fields(self, manager):
        definition = make_plugin("levels", config_schema=LevelOptions)
        with pytest.raises(SchemaValidationError) as exc_info:
            manager.resolve_options(definition, {"level": 99, "label": 5})
        fields = [err.split(":")[0] for err in exc_info.value.field_errors]
        assert fields == ["level", "label"]
        assert 'Invalid options for plugin "levels"' in exc_info.value.message


# ---------------------------------------------------------------------------
# Add
# ---------------------------------------------------------------------------


class TestAdd:
    @pytest.mark.asyncio
    async def test_auth_pulls_in_db(self, manager):
        result = await manager.add("auth")
        assert result.success is True
        assert result.message == 'Plugin "auth" added successfully'
        assert result.installed_dependencies == ["db"]
        assert manager.is_installed("db") is True
        assert manager.is_installed("auth") is True

    @pytest.mark.asyncio
    async def test_collaborator_call_order(self, manager, events):
        await manager.add("auth")
        assert events == [
            ("write", "src/db.ts"),
            ("install", ("dbclient",)),
            ("env", "db", ("DATABASE_URL",)),
            ("save", ("db",)),
            ("write", "src/auth.ts"),
            ("install", ("authlib",)),
            ("env", "auth", ("AUTH_SECRET",)),
            ("save", ("auth", "db")),
        ]

    @pytest.mark.asyncio
    async def test_rendered_files(self, manager, file_writer):
        result = await manager.add("auth")
        assert result.generated_files == ["src/db.ts", "src/auth.ts"]
        assert file_writer.files["src/db.ts"] == "export const db = 'test-app';\n"
        # db is part of the same add, so hasPlugin('db') already holds
        assert file_writer.files["src/auth.ts"] == (
            "import { db } from './db';\nexport const auth = {};\n"
        )

    @pytest.mark.asyncio
    async def test_persisted_config_records_enabled_plugins(self, manager, config_store):
        await manager.add("auth")
        saved = config_store.saved[-1]
        assert saved.plugins["auth"].enabled is True
        assert saved.plugins["db"].enabled is True

    @pytest.mark.asyncio
    async def test_unknown_plugin_raises(self, manager, events):
        with pytest.raises(NotFoundError):
            await manager.add("nope")
        assert events == []

    @pytest.mark.asyncio
    async def test_add_twice_raises(self, manager):
        await manager.add("db")
        with pytest.raises(AlreadyInstalledError):
            await manager.add("db")

    @pytest.mark.asyncio
    async def test_conflicting_add_raises(self, manager):
        await manager.add("trpc")
        with pytest.raises(ConflictError, match="conflicts with installed plugins"):
            await manager.add("apollo")

    @pytest.mark.asyncio
    async def test_conflict_inside_dependency_closure(self, manager, registry, events):
        registry.register(make_plugin("graph", dependencies=["apollo"]))
        await manager.add("trpc")
        events.clear()
        with pytest.raises(ConflictError) as exc_info:
            await manager.add("graph")
        assert exc_info.value.details["name"] == "apollo"
        assert events == []

    @pytest.mark.asyncio
    async def test_dependency_template_mismatch(self, registry):
        registry.register(make_plugin("wide", supported_templates=["nextjs", "nuxt"], dependencies=["db"]))
        manager = PluginManager(create_default_config("app", "nuxt"), registry)
        with pytest.raises(TemplateIncompatibleError, match='"db"'):
            await manager.add("wide")
        assert manager.get_installed() == []

    @pytest.mark.asyncio
    async def test_missing_dependency_without_auto_install(self, registry):
        manager = PluginManager(
            create_default_config("app", "nextjs"), registry, auto_install_dependencies=False
        )
        with pytest.raises(MissingDependencyError, match="db"):
            await manager.add("auth")

    @pytest.mark.asyncio
    async def test_no_auto_install_with_dependency_present(self, registry):
        manager = PluginManager(
            create_default_config("app", "nextjs"), registry, auto_install_dependencies=False
        )
        await manager.add("db")
        result = await manager.add("auth")
        assert result.installed_dependencies == []

    @pytest.mark.asyncio
    async def test_options_are_validated_before_side_effects(self, manager, registry, events):
        registry.register(make_plugin("levels", config_schema=LevelOptions, dependencies=["db"]))
        with pytest.raises(SchemaValidationError):
            await manager.add("levels", {"level": 0})
        assert events == []
        assert manager.get_installed() == []

    @pytest.mark.asyncio
    async def test_template_errors_are_raised_before_side_effects(self, manager, registry, events):
        registry.register(
            make_plugin(
                "broken",
                dependencies=["db"],
                files=[FileSpec(path="x.ts", template="{{#if nope('a')}}x{{/if}}")],
            )
        )
        with pytest.raises(TemplateSyntaxError) as exc_info:
            await manager.add("broken")
        assert exc_info.value.plugin == "broken"
        assert exc_info.value.path == "x.ts"
        assert events == []

    @pytest.mark.asyncio
    async def test_failure_keeps_completed_steps(
        self, nextjs_config, registry, project_root, events, env_store, file_writer, config_store
    ):
        manager = PluginManager(
            nextjs_config,
            registry,
            project_root=project_root,
            installer=RecordingInstaller(events, fail_for="authlib"),
            env_store=env_store,
            file_writer=file_writer,
            config_store=config_store,
        )
        with pytest.raises(RuntimeError, match="authlib"):
            await manager.add("auth")
        assert manager.get_installed() == ["db"]
        assert list(config_store.saved[-1].plugins) == ["db"]
        # files written before the failure are not rolled back
        assert "src/auth.ts" in file_writer.files

    @pytest.mark.asyncio
    async def test_existing_files_are_skipped(self, manager, file_writer):
        file_writer.files["src/db.ts"] = "// mine\n"
        result = await manager.add("db")
        assert result.generated_files == []
        assert result.skipped_files == ["src/db.ts"]
        assert file_writer.files["src/db.ts"] == "// mine\n"

    @pytest.mark.asyncio
    async def test_overwrite_flag_replaces_files(self, manager, registry, file_writer):
        registry.register(
            make_plugin("cfg", files=[FileSpec(path="a.ts", template="new\n", overwrite=True)])
        )
        file_writer.files["a.ts"] = "old\n"
        result = await manager.add("cfg")
        assert result.generated_files == ["a.ts"]
        assert file_writer.files["a.ts"] == "new\n"

    @pytest.mark.asyncio
    async def test_files_limited_to_other_templates_are_skipped(self, manager, registry):
        registry.register(
            make_plugin(
                "multi",
                files=[
                    FileSpec(path="next.ts", template="n", condition=FileCondition(template="nextjs")),
                    FileSpec(path="nuxt.ts", template="x", condition=FileCondition(template="nuxt")),
                ],
            )
        )
        result = await manager.add("multi")
        assert result.generated_files == ["next.ts"]

    @pytest.mark.asyncio
    async def test_path_is_rendered(self, manager, registry, file_writer):
        registry.register(
            make_plugin(
                "paths",
                config_schema=LevelOptions,
                files=[FileSpec(path="src/{{options.label}}.ts", template="x")],
            )
        )
        result = await manager.add("paths", {"label": "custom"})
        assert result.generated_files == ["src/custom.ts"]

    @pytest.mark.asyncio
    async def test_dependencies_get_default_options(self, manager, registry, config_store):
        registry.register(make_plugin("base", config_schema=LevelOptions))
        registry.register(make_plugin("top", config_schema=LevelOptions, dependencies=["base"]))
        await manager.add("top", {"level": 7})
        saved = config_store.saved[-1]
        assert saved.plugins["top"].options == {"level": 7, "label": "default"}
        assert saved.plugins["base"].options == {"level": 1, "label": "default"}

    @pytest.mark.asyncio
    async def test_post_install_is_rendered(self, manager, registry):
        registry.register(
            make_plugin(
                "notes",
                config_schema=LevelOptions,
                post_install="Level {{options.level}}{{#if hasPlugin('db')}} with db{{/if}}",
            )
        )
        result = await manager.add("notes", {"level": 4})
        assert result.post_install == "Level 4"

    @pytest.mark.asyncio
    async def test_works_without_collaborators(self, registry):
        manager = PluginManager(create_default_config("app", "nextjs"), registry)
        result = await manager.add("auth")
        assert result.generated_files == ["src/db.ts", "src/auth.ts"]
        assert manager.get_installed() == ["db", "auth"]


class TestIntegrations:
    @pytest.fixture
    def api_plugin(self):
        return make_plugin(
            "api",
            config_schema=LevelOptions,
            integrations=[
                PluginIntegration(
                    plugin="db",
                    files=[FileSpec(path="src/api-db.ts", template="// {{plugin.name}} {{options.label}}\n")],
                )
            ],
        )

    @pytest.mark.asyncio
    async def test_emitted_when_declaring_plugin_arrives_last(self, manager, registry, api_plugin, file_writer):
        registry.register(api_plugin)
        await manager.add("db")
        result = await manager.add("api", {"label": "v2"})
        assert "src/api-db.ts" in result.generated_files
        assert file_writer.files["src/api-db.ts"] == "// api v2\n"

    @pytest.mark.asyncio
    async def test_emitted_when_target_arrives_last(self, manager, registry, api_plugin, file_writer):
        registry.register(api_plugin)
        await manager.add("api", {"label": "v3"})
        result = await manager.add("db")
        assert result.generated_files == ["src/db.ts", "src/api-db.ts"]
        assert file_writer.files["src/api-db.ts"] == "// api v3\n"

    @pytest.mark.asyncio
    async def test_not_emitted_alone(self, manager, registry, api_plugin):
        registry.register(api_plugin)
        result = await manager.add("api")
        assert result.generated_files == []

    @pytest.mark.asyncio
    async def test_emitted_once_within_one_closure(self, manager, registry, file_writer, events):
        registry.register(
            make_plugin(
                "orm-api",
                dependencies=["db"],
                integrations=[PluginIntegration(plugin="db", files=[FileSpec(path="glue.ts", template="g")])],
            )
        )
        await manager.add("orm-api")
        assert [e for e in events if e == ("write", "glue.ts")] == [("write", "glue.ts")]


# ---------------------------------------------------------------------------
# Remove
# ---------------------------------------------------------------------------


class TestRemove:
    @pytest.mark.asyncio
    async def test_round_trip(self, manager):
        await manager.add("trpc")
        assert manager.is_installed("trpc") is True
        result = await manager.remove("trpc")
        assert result.success is True
        assert result.message == 'Plugin "trpc" removed successfully'
        assert manager.is_installed("trpc") is False

    @pytest.mark.asyncio
    async def test_not_installed_raises(self, manager):
        with pytest.raises(NotInstalledError):
            await manager.remove("db")

    @pytest.mark.asyncio
    async def test_collaborator_calls(self, manager, events):
        await manager.add("db")
        events.clear()
        result = await manager.remove("db")
        assert events == [
            ("uninstall", ("dbclient",)),
            ("env-remove", "db"),
            ("save", ()),
        ]
        assert result.removed_env_vars == ["DATABASE_URL"]

    @pytest.mark.asyncio
    async def test_no_uninstall_without_packages(self, manager, events):
        await manager.add("trpc")
        events.clear()
        await manager.remove("trpc")
        assert ("uninstall", ()) not in events
        assert events[0] == ("env-remove", "trpc")

    @pytest.mark.asyncio
    async def test_auth_db_scenario(self, manager):
        result = await manager.add("auth")
        assert result.installed_dependencies == ["db"]
        with pytest.raises(DependentsExistError, match='Cannot remove "db"'):
            await manager.remove("db")
        await manager.remove("auth")
        await manager.remove("db")
        assert manager.get_installed() == []

    @pytest.mark.asyncio
    async def test_apollo_trpc_scenario(self, manager):
        await manager.add("trpc")
        with pytest.raises(ConflictError, match="conflicts with installed plugins"):
            await manager.add("apollo")
        await manager.remove("trpc")
        result = await manager.add("apollo")
        assert result.success is True

    @pytest.mark.asyncio
    async def test_readd_uses_fresh_options(self, manager, registry):
        registry.register(make_plugin("levels", config_schema=LevelOptions))
        await manager.add("levels", {"level": 5})
        await manager.remove("levels")
        await manager.add("levels")
        entry = manager.get_config().plugins["levels"]
        assert entry.enabled is True
        assert entry.options == {"level": 1, "label": "default"}

    @pytest.mark.asyncio
    async def test_dependencies_stay_installed(self, manager):
        await manager.add("auth")
        await manager.remove("auth")
        assert manager.get_installed() == ["db"]

    @pytest.mark.asyncio
    async def test_root_is_passed_to_collaborators(self, nextjs_config, registry, events):
        seen = []

        class RootInstaller(RecordingInstaller):
            async def install(self, project_root, packages):
                seen.append(project_root)

        manager = PluginManager(
            nextjs_config, registry, project_root="/srv/app", installer=RootInstaller(events)
        )
        await manager.add("db")
        assert seen == [Path("/srv/app")]


# ---------------------------------------------------------------------------
# Renderer collaborator
# ---------------------------------------------------------------------------


class ShoutingRenderer:
    """Delegates to the default renderer and upper-cases file bodies."""

    def __init__(self) -> None:
        self.inner = TemplateRenderer()
        self.calls: list[str] = []

    def render(self, source, context, *, plugin=None, path=None):
        return self.inner.render(source, context, plugin=plugin, path=path)

    def render_file(self, spec, context, *, plugin=None):
        self.calls.append(spec.path)
        rendered = self.inner.render_file(spec, context, plugin=plugin)
        return RenderedFile(rendered.path, rendered.content.upper(), rendered.overwrite)


class TestRendererCollaborator:
    def test_default_renderer_satisfies_protocol(self, manager):
        assert isinstance(manager.renderer, TemplateRenderer)
        assert isinstance(manager.renderer, FileRenderer)
        assert isinstance(ShoutingRenderer(), FileRenderer)

    @pytest.mark.asyncio
    async def test_custom_renderer_is_used(
        self, nextjs_config, registry, project_root, installer, env_store, file_writer, config_store
    ):
        renderer = ShoutingRenderer()
        manager = PluginManager(
            nextjs_config,
            registry,
            project_root=project_root,
            installer=installer,
            env_store=env_store,
            file_writer=file_writer,
            config_store=config_store,
            renderer=renderer,
        )
        await manager.add("db")
        assert renderer.calls == ["src/db.ts"]
        assert file_writer.files["src/db.ts"] == "EXPORT CONST DB = 'TEST-APP';\n"
