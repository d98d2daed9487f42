"""Markdown documentation for the plugins installed in a project.

:class:`DocsGenerator` writes a small set of pages below ``docs/scaforge``:

* ``plugins.md`` lists every installed plugin grouped by category.
* ``api.md`` describes the API layer when an API plugin is installed.
* ``environment.md`` collects the environment variables plugins declare.
* ``README.md`` indexes the pages above.

Pages are rendered from the Jinja2 templates in ``assets/docs`` and written
through a ``FileWriter``, replacing whatever a previous run produced.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from scaforge.config import ScaforgeConfig
from scaforge.errors import FileConflictError
from scaforge.plugins.interfaces import FileWriter
from scaforge.plugins.models import PluginCategory, PluginDefinition
from scaforge.plugins.registry import PluginRegistry
from scaforge.project.files import ProjectFileWriter
from scaforge.project.templates import ProjectTemplateRenderer

logger = logging.getLogger(__name__)

DOCS_OUTPUT_DIR = "docs/scaforge"

CATEGORY_DISPLAY_NAMES: dict[PluginCategory, str] = {
    PluginCategory.API: "API Providers",
    PluginCategory.AUTH: "Authentication",
    PluginCategory.DATABASE: "Database",
    PluginCategory.PAYMENTS: "Payments",
    PluginCategory.EMAIL: "Email",
    PluginCategory.CMS: "Content Management",
    PluginCategory.AI: "AI & ML",
    PluginCategory.ANALYTICS: "Analytics",
    PluginCategory.CACHING: "Caching",
    PluginCategory.FORMS: "Forms",
    PluginCategory.I18N: "Internationalization",
    PluginCategory.JOBS: "Background Jobs",
    PluginCategory.MONITORING: "Monitoring",
    PluginCategory.REALTIME: "Real-time",
    PluginCategory.SEARCH: "Search",
    PluginCategory.STORAGE: "Storage",
}

OFFICIAL_DOCS_URLS: dict[str, str] = {
    "api-trpc": "https://trpc.io/docs",
    "api-apollo": "https://www.apollographql.com/docs/",
    "auth-authjs": "https://authjs.dev/",
    "auth-clerk": "https://clerk.com/docs",
    "db-prisma": "https://www.prisma.io/docs",
    "db-drizzle": "https://orm.drizzle.team/docs/overview",
    "cms-sanity": "https://www.sanity.io/docs",
    "payments-stripe": "https://stripe.com/docs",
    "email-resend": "https://resend.com/docs",
}

PLUGINS_PAGE = "plugins.md"
API_PAGE = "api.md"
ENV_PAGE = "environment.md"
INDEX_PAGE = "README.md"

_PAGE_TITLES = {PLUGINS_PAGE: "Plugins", API_PAGE: "API", ENV_PAGE: "Environment"}


@dataclass
class DocsGenerationResult:
    """Outcome of :meth:`DocsGenerator.generate`.

    ``generated_files`` are relative to the project root, index last.
    """

    output_dir: str
    generated_files: list[str] = field(default_factory=list)
    plugin_count: int = 0


def heading_anchor(title: str) -> str:
    """GitHub-style anchor for a Markdown heading."""
    slug = re.sub(r"[^\w\s-]", "", title.lower())
    return re.sub(r"\s", "-", slug.strip())


# ---------------------------------------------------------------------------
# DocsGenerator
# ---------------------------------------------------------------------------


class DocsGenerator:
    """Renders the documentation pages for the plugins in a project config.

    ``today`` pins the date in the page footers; it defaults to the current
    date at generation time.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        *,
        output_dir: str = DOCS_OUTPUT_DIR,
        include_api_docs: bool = True,
        include_env_docs: bool = True,
        renderer: ProjectTemplateRenderer | None = None,
        today: date | None = None,
    ) -> None:
        self.registry = registry
        self.output_dir = output_dir.strip("/") or DOCS_OUTPUT_DIR
        self.include_api_docs = include_api_docs
        self.include_env_docs = include_env_docs
        self.renderer = renderer or ProjectTemplateRenderer()
        self.today = today

    # -- Queries -------------------------------------------------------------

    def installed_plugins(self, config: ScaforgeConfig) -> list[PluginDefinition]:
        """Enabled plugins known to the registry, in config order."""
        plugins: list[PluginDefinition] = []
        for name, entry in config.plugins.items():
            if not entry.enabled:
                continue
            definition = self.registry.get(name)
            if definition is None:
                logger.warning("Plugin %s is not in the registry; leaving it out of the docs", name)
                continue
            plugins.append(definition)
        return plugins

    @staticmethod
    def api_plugin(plugins: list[PluginDefinition]) -> PluginDefinition | None:
        for plugin in plugins:
            if plugin.category == PluginCategory.API:
                return plugin
        return None

    def output_path(self, project_root: str | Path) -> Path:
        """Absolute documentation directory.

        Raises:
            FileConflictError: The directory is not strictly inside *project_root*.
        """
        root = Path(project_root).resolve()
        target = (root / self.output_dir).resolve()
        if root not in target.parents:
            raise FileConflictError(
                self.output_dir, reason="Docs directory is outside the project root"
            )
        return target

    def exists(self, project_root: str | Path) -> bool:
        return self.output_path(project_root).is_dir()

    # -- Pages ---------------------------------------------------------------

    def render_plugins_page(self, config: ScaforgeConfig, plugins: list[PluginDefinition]) -> str:
        sections: dict[PluginCategory, list[dict[str, Any]]] = {}
        for plugin in plugins:
            sections.setdefault(plugin.category, []).append(_plugin_context(plugin))
        return self._render(
            PLUGINS_PAGE,
            config,
            plugin_count=len(plugins),
            sections=[
                {
                    "title": _category_title(category),
                    "anchor": heading_anchor(_category_title(category)),
                    "plugins": entries,
                }
                for category, entries in sections.items()
            ],
        )

    def render_api_page(
        self,
        config: ScaforgeConfig,
        plugin: PluginDefinition,
        installed: list[PluginDefinition],
    ) -> str:
        """Describe *plugin*, listing the files it contributes to this project."""
        names = {p.name for p in installed}
        files = [spec.path for spec in plugin.files if spec.applies_to(config.template)]
        for integration in plugin.integrations:
            if integration.plugin in names:
                files.extend(
                    spec.path for spec in integration.files if spec.applies_to(config.template)
                )
        return self._render(
            API_PAGE, config, plugin=_plugin_context(plugin), files=sorted(set(files))
        )

    def render_env_page(self, config: ScaforgeConfig, plugins: list[PluginDefinition]) -> str:
        env_vars = [
            {
                "name": var.name,
                "plugin": plugin.display_name,
                "description": var.description,
                "required": var.required,
                "secret": var.secret,
                "default": var.default or "",
            }
            for plugin in plugins
            for var in plugin.env_vars
        ]
        groups = [
            {"title": title, "env_vars": [v for v in env_vars if v["required"] is required]}
            for title, required in (("Required Variables", True), ("Optional Variables", False))
        ]
        return self._render(
            ENV_PAGE,
            config,
            env_vars=env_vars,
            groups=[group for group in groups if group["env_vars"]],
        )

    def render_index_page(
        self, config: ScaforgeConfig, pages: list[str], plugin_count: int
    ) -> str:
        return self._render(
            INDEX_PAGE,
            config,
            plugin_count=plugin_count,
            pages=[{"title": _PAGE_TITLES[page], "file_name": page} for page in pages],
        )

    # -- Filesystem ----------------------------------------------------------

    async def generate(
        self,
        project_root: str | Path,
        config: ScaforgeConfig,
        file_writer: FileWriter | None = None,
    ) -> DocsGenerationResult:
        """Render every page and write it below :attr:`output_dir`.

        The API page is written only when an API plugin is installed.
        """
        root = Path(project_root)
        writer = file_writer or ProjectFileWriter(root)
        self.output_path(root)  # rejects directories outside the project
        plugins = self.installed_plugins(config)

        contents: dict[str, str] = {PLUGINS_PAGE: self.render_plugins_page(config, plugins)}
        api_plugin = self.api_plugin(plugins) if self.include_api_docs else None
        if api_plugin is not None:
            contents[API_PAGE] = self.render_api_page(config, api_plugin, plugins)
        if self.include_env_docs:
            contents[ENV_PAGE] = self.render_env_page(config, plugins)
        contents[INDEX_PAGE] = self.render_index_page(
            config, list(contents), len(plugins)
        )

        result = DocsGenerationResult(output_dir=self.output_dir, plugin_count=len(plugins))
        for page, content in contents.items():
            relative = f"{self.output_dir}/{page}"
            await writer.write(root / relative, content, overwrite=True)
            result.generated_files.append(relative)
        logger.info("Wrote %d documentation page(s) to %s", len(contents), self.output_dir)
        return result

    async def remove(self, project_root: str | Path) -> bool:
        """Delete the documentation directory; returns ``False`` if there was none."""
        target = self.output_path(project_root)
        if not await asyncio.to_thread(target.is_dir):
            return False
        await asyncio.to_thread(shutil.rmtree, target)
        logger.info("Removed %s", self.output_dir)
        return True

    # -- Internal ------------------------------------------------------------

    def _render(self, page: str, config: ScaforgeConfig, **context: Any) -> str:
        generated_on = (self.today or date.today()).isoformat()
        return self.renderer.render(
            f"docs/{page}.j2",
            {
                "name": config.name,
                "template": config.template,
                "generated_on": generated_on,
                **context,
            },
        )


def _category_title(category: PluginCategory) -> str:
    return CATEGORY_DISPLAY_NAMES.get(category, category.value)


def _plugin_context(plugin: PluginDefinition) -> dict[str, Any]:
    return {
        "name": plugin.name,
        "display_name": plugin.display_name,
        "version": plugin.version,
        "description": plugin.description,
        "dependencies": list(plugin.dependencies),
        "env_vars": [var.model_dump() for var in plugin.env_vars],
        "docs_url": OFFICIAL_DOCS_URLS.get(plugin.name, ""),
    }
