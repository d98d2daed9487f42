"""Plugin manager - validation, dependency resolution and the add/remove flow.

The manager owns a private copy of the project's :class:`ScaforgeConfig` and
is its only writer.  An ``add`` runs in two stages:

1. **Plan.**  Validate the request, resolve the dependency closure
   (dependencies first), validate every member's options against its schema
   and render every file, integrations included.  Nothing touches a
   collaborator yet, so schema and template errors leave the project
   untouched.
2. **Execute.**  For each closure member in order, write its files, install
   its packages, register its env vars, mark it enabled and persist the
   config.

Collaborator failures during execution are fatal and not rolled back.
Members processed before the failure stay persisted as installed; the
failing member and the rest of the closure are not recorded.  The persisted
config therefore lists exactly the plugins whose steps all succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from scaforge.codegen.context import BindingContext
from scaforge.codegen.renderer import RenderedFile, TemplateRenderer
from scaforge.config import PluginConfig, ScaforgeConfig
from scaforge.errors import (
    AlreadyInstalledError,
    ConflictError,
    CyclicDependencyError,
    DependentsExistError,
    MissingDependencyError,
    NotFoundError,
    NotInstalledError,
    SchemaValidationError,
    ScaforgeError,
    TemplateIncompatibleError,
)
from scaforge.plugins.interfaces import (
    ConfigStore,
    EnvVarStore,
    FileRenderer,
    FileWriter,
    PackageInstaller,
)
from scaforge.plugins.models import FileSpec, PluginDefinition
from scaforge.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class ValidationResult:
    """Outcome of :meth:`PluginManager.validate_add` / ``validate_remove``."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class PluginOperationResult:
    success: bool
    message: str
    installed_dependencies: list[str] = field(default_factory=list)
    generated_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    removed_env_vars: list[str] = field(default_factory=list)
    post_install: str | None = None


@dataclass
class _InstallStep:
    definition: PluginDefinition
    options: dict[str, Any]
    files: list[RenderedFile] = field(default_factory=list)


# ---------------------------------------------------------------------------
# PluginManager
# ---------------------------------------------------------------------------


class PluginManager:
    """Adds and removes plugins for one project.

    Args:
        config: The project's configuration.  The manager keeps a deep copy;
            read it back with :meth:`get_config`.
        registry: Catalog the plugin names are resolved against.
        project_root: Directory handed to every collaborator.
        installer / env_store / file_writer / config_store: Side-effect
            collaborators.  ``None`` skips that side effect, which keeps the
            manager usable as a pure in-memory planner.
        renderer: Template renderer; a fresh one is created if omitted.
        auto_install_dependencies: When ``False``, ``add`` refuses to run
            while dependencies are missing instead of installing them.
    """

    def __init__(
        self,
        config: ScaforgeConfig,
        registry: PluginRegistry,
        *,
        project_root: str | Path = ".",
        installer: PackageInstaller | None = None,
        env_store: EnvVarStore | None = None,
        file_writer: FileWriter | None = None,
        config_store: ConfigStore | None = None,
        renderer: FileRenderer | None = None,
        auto_install_dependencies: bool = True,
    ) -> None:
        self._config = config.model_copy(deep=True)
        self.registry = registry
        self.project_root = Path(project_root)
        self.installer = installer
        self.env_store = env_store
        self.file_writer = file_writer
        self.config_store = config_store
        self.renderer = renderer or TemplateRenderer()
        self.auto_install_dependencies = auto_install_dependencies

    # -- Queries -----------------------------------------------------------

    def get_config(self) -> ScaforgeConfig:
        """Return a snapshot of the current configuration."""
        return self._config.model_copy(deep=True)

    def get_installed(self) -> list[str]:
        return [name for name, entry in self._config.plugins.items() if entry.enabled]

    def is_installed(self, name: str) -> bool:
        entry = self._config.plugins.get(name)
        return entry is not None and entry.enabled

    def get_dependents(self, name: str) -> list[str]:
        """Installed plugins that list *name* in their dependencies."""
        dependents: list[str] = []
        for other in self.get_installed():
            if other == name:
                continue
            definition = self.registry.get(other)
            if definition is not None and name in definition.dependencies:
                dependents.append(other)
        return dependents

    def get_missing_dependencies(self, definition: PluginDefinition) -> list[str]:
        return [dep for dep in definition.dependencies if not self.is_installed(dep)]

    def check_conflicts(
        self, definition: PluginDefinition, extra: Iterable[str] = ()
    ) -> list[str]:
        """Names in the installed set (plus *extra*) that conflict with *definition*.

        A conflict is declared by either side: *definition* lists the other
        plugin, or the other plugin lists *definition*.
        """
        present = [n for n in (*self.get_installed(), *extra) if n != definition.name]
        conflicts: list[str] = []
        for other in present:
            if other in conflicts:
                continue
            other_definition = self.registry.get(other)
            declared_by_other = (
                other_definition is not None and definition.name in other_definition.conflicts
            )
            if other in definition.conflicts or declared_by_other:
                conflicts.append(other)
        return conflicts

    # -- Validation --------------------------------------------------------

    def validate_add(self, name: str) -> ValidationResult:
        """Check whether *name* can be added, collecting every problem."""
        errors = self._add_errors(name)
        return ValidationResult(valid=not errors, errors=[e.message for e in errors])

    def validate_remove(self, name: str) -> ValidationResult:
        """Check whether *name* can be removed, collecting every problem."""
        errors = self._remove_errors(name)
        return ValidationResult(valid=not errors, errors=[e.message for e in errors])

    def _add_errors(self, name: str) -> list[ScaforgeError]:
        definition = self.registry.get(name)
        if definition is None:
            return [NotFoundError(name)]

        errors: list[ScaforgeError] = []
        if not definition.supports(self._config.template):
            errors.append(
                TemplateIncompatibleError(
                    name, self._config.template, definition.supported_templates
                )
            )
        if self.is_installed(name):
            errors.append(AlreadyInstalledError(name))
        errors.extend(NotFoundError(stale) for stale in self._unknown_installed())
        conflicts = self.check_conflicts(definition)
        if conflicts:
            errors.append(ConflictError(name, conflicts))
        return errors

    def _remove_errors(self, name: str) -> list[ScaforgeError]:
        if not self.is_installed(name):
            return [NotInstalledError(name)]
        errors: list[ScaforgeError] = [NotFoundError(n) for n in self._unknown_installed()]
        dependents = self.get_dependents(name)
        if dependents:
            errors.append(DependentsExistError(name, dependents))
        return errors

    def _unknown_installed(self) -> list[str]:
        return [n for n in self.get_installed() if not self.registry.has(n)]

    def _require(self, name: str) -> PluginDefinition:
        definition = self.registry.get(name)
        if definition is None:
            raise NotFoundError(name)
        return definition

    # -- Resolution --------------------------------------------------------

    def resolve_dependencies(self, name: str) -> list[PluginDefinition]:
        """Return the plugins to install for *name*, dependencies first.

        Already-installed dependencies are skipped; *name* itself is always
        last.

        Raises:
            NotFoundError: A dependency is not registered.
            CyclicDependencyError: The closure refers back to itself.
        """
        order: list[PluginDefinition] = []
        visiting: list[str] = []
        done: set[str] = set()

        def visit(current: str) -> None:
            if current in visiting:
                cycle = visiting[visiting.index(current):] + [current]
                raise CyclicDependencyError(cycle)
            if current in done:
                return
            if current != name and self.is_installed(current):
                done.add(current)
                return
            definition = self._require(current)
            visiting.append(current)
            for dependency in definition.dependencies:
                visit(dependency)
            visiting.pop()
            done.add(current)
            order.append(definition)

        visit(name)
        return order

    def resolve_options(
        self,
        definition: PluginDefinition,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Validate *options* against the plugin's schema and fill defaults.

        Raises:
            SchemaValidationError: Listing every offending field.
        """
        raw = dict(options or {})
        schema = definition.config_schema
        if schema is None:
            return raw
        try:
            model = schema.model_validate(raw)
        except ValidationError as exc:
            field_errors = [
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise SchemaValidationError(definition.name, field_errors) from exc
        return model.model_dump(mode="json", by_alias=True)

    # -- Add ---------------------------------------------------------------

    async def add(
        self,
        name: str,
        options: Mapping[str, Any] | None = None,
    ) -> PluginOperationResult:
        """Add *name* (and any missing dependencies) to the project.

        Raises:
            ScaforgeError: The first blocking validation error, or any
                resolution, schema or template error.  Collaborator errors
                propagate unchanged.
        """
        errors = self._add_errors(name)
        if errors:
            raise errors[0]

        steps = self._plan_add(name, options)
        generated: list[str] = []
        skipped: list[str] = []
        for step in steps:
            await self._execute_step(step, generated, skipped)

        requested = steps[-1]
        installed_dependencies = [s.definition.name for s in steps[:-1]]
        if installed_dependencies:
            logger.info(
                "Installed dependencies of %s: %s", name, ", ".join(installed_dependencies)
            )
        logger.info("Added plugin %s", name)

        post_install = None
        if requested.definition.post_install:
            post_install = self.renderer.render(
                requested.definition.post_install,
                self._context(requested.definition, requested.options),
                plugin=name,
                path="postInstall",
            )

        return PluginOperationResult(
            success=True,
            message=f'Plugin "{name}" added successfully',
            installed_dependencies=installed_dependencies,
            generated_files=generated,
            skipped_files=skipped,
            post_install=post_install,
        )

    def _plan_add(
        self, name: str, options: Mapping[str, Any] | None
    ) -> list[_InstallStep]:
        requested = self._require(name)
        if self.auto_install_dependencies:
            closure = self.resolve_dependencies(name)
        else:
            missing = self.get_missing_dependencies(requested)
            if missing:
                raise MissingDependencyError(name, missing)
            closure = [requested]

        planned = [d.name for d in closure]
        for definition in closure:
            if not definition.supports(self._config.template):
                raise TemplateIncompatibleError(
                    definition.name, self._config.template, definition.supported_templates
                )
            conflicts = self.check_conflicts(definition, extra=planned)
            if conflicts:
                raise ConflictError(definition.name, conflicts)

        steps = [
            _InstallStep(d, self.resolve_options(d, options if d.name == name else None))
            for d in closure
        ]

        final_installed = frozenset(self.get_installed()) | frozenset(planned)
        present: dict[str, dict[str, Any]] = {
            n: dict(self._config.plugins[n].options) for n in self.get_installed()
        }
        for step in steps:
            step.files = self._render_step(step, present, final_installed)
            present[step.definition.name] = step.options
        return steps

    def _render_step(
        self,
        step: _InstallStep,
        present: Mapping[str, Mapping[str, Any]],
        installed: frozenset[str],
    ) -> list[RenderedFile]:
        definition = step.definition
        context = self._context(definition, step.options, installed)
        files = self._render_files(definition, definition.files, context)

        # Integrations are emitted once per pair: by whichever side arrives last.
        for integration in definition.integrations:
            if integration.plugin in present:
                files.extend(self._render_files(definition, integration.files, context))
        for other_name, other_options in present.items():
            other = self._require(other_name)
            integration = other.integration_with(definition.name)
            if integration is not None:
                other_context = self._context(other, other_options, installed)
                files.extend(self._render_files(other, integration.files, other_context))
        return files

    def _render_files(
        self,
        definition: PluginDefinition,
        specs: Iterable[FileSpec],
        context: BindingContext,
    ) -> list[RenderedFile]:
        rendered: list[RenderedFile] = []
        for spec in specs:
            if not spec.applies_to(self._config.template):
                logger.debug(
                    "Skipping %s for %s: limited to template %s",
                    spec.path,
                    definition.name,
                    spec.condition.template if spec.condition else None,
                )
                continue
            rendered.append(self.renderer.render_file(spec, context, plugin=definition.name))
        return rendered

    def _context(
        self,
        definition: PluginDefinition,
        options: Mapping[str, Any],
        installed: Iterable[str] | None = None,
    ) -> BindingContext:
        if installed is None:
            installed = self.get_installed()
        return BindingContext.create(
            template=self._config.template,
            options=options,
            installed_plugins=installed,
            config={"name": self._config.name, "template": self._config.template},
            plugin={
                "name": definition.name,
                "displayName": definition.display_name,
                "category": definition.category.value,
                "version": definition.version,
            },
        )

    async def _execute_step(
        self,
        step: _InstallStep,
        generated: list[str],
        skipped: list[str],
    ) -> None:
        definition = step.definition

        for rendered in step.files:
            if self.file_writer is None:
                logger.debug("No file writer configured; not writing %s", rendered.path)
                generated.append(rendered.path)
                continue
            written = await self.file_writer.write(
                self.project_root / rendered.path,
                rendered.content,
                overwrite=rendered.overwrite,
            )
            (generated if written else skipped).append(rendered.path)

        if not definition.packages.is_empty():
            if self.installer is None:
                logger.debug("No package installer configured; skipping %s", definition.name)
            else:
                await self.installer.install(self.project_root, definition.packages)

        if definition.env_vars:
            if self.env_store is None:
                logger.debug("No env store configured; skipping %s", definition.name)
            else:
                await self.env_store.upsert_for_plugin(
                    self.project_root, definition.name, list(definition.env_vars)
                )

        self._config.plugins[definition.name] = PluginConfig(
            enabled=True, options=dict(step.options)
        )
        await self._persist()

    # -- Remove ------------------------------------------------------------

    async def remove(self, name: str) -> PluginOperationResult:
        """Remove *name* from the project.  Dependencies are left installed.

        Raises:
            NotInstalledError: *name* is not installed.
            DependentsExistError: Installed plugins depend on *name*.
        """
        errors = self._remove_errors(name)
        if errors:
            raise errors[0]
        definition = self._require(name)

        package_names = definition.packages.names()
        if package_names:
            if self.installer is None:
                logger.debug("No package installer configured; skipping %s", name)
            else:
                await self.installer.uninstall(self.project_root, package_names)

        removed_env_vars: list[str] = []
        if self.env_store is not None:
            removed_env_vars = await self.env_store.remove_for_plugin(self.project_root, name)

        del self._config.plugins[name]
        await self._persist()
        logger.info("Removed plugin %s", name)

        return PluginOperationResult(
            success=True,
            message=f'Plugin "{name}" removed successfully',
            removed_env_vars=removed_env_vars,
        )

    async def _persist(self) -> None:
        if self.config_store is None:
            return
        await self.config_store.save(self.project_root, self.get_config())
