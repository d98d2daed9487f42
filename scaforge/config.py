"""Scaforge configuration.

Two kinds of configuration live here:

* The *project* configuration (:class:`ScaforgeConfig`), persisted in the
  project's ``scaforge.config.ts`` and mutated only by the plugin manager.
* The *tool* settings (:class:`ToolSettings`), which tune how the CLI talks to
  the filesystem and the package manager and can be supplied through
  environment variables.

All models use Pydantic v2 so they are validated at construction time and can
be serialised to/from JSON without boiler-plate.
"""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FRAMEWORK_TEMPLATES: tuple[str, ...] = ("nextjs", "tanstack", "nuxt", "hydrogen")

FrameworkTemplate = Literal["nextjs", "tanstack", "nuxt", "hydrogen"]

CONFIG_FILE_NAME = "scaforge.config.ts"
ENV_EXAMPLE_FILE_NAME = ".env.example"


class _ConfigModel(BaseModel):
    """Models persisted in scaforge.config.ts use camelCase keys on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PluginConfig(_ConfigModel):
    """Per-plugin entry in ``ScaforgeConfig.plugins``."""

    enabled: bool
    options: dict[str, Any] = Field(default_factory=dict)


class CodeStyle(_ConfigModel):
    """Code style preferences used when writing generated files."""

    semicolons: bool = True
    single_quote: bool = True
    tab_width: int = Field(default=2, ge=1, le=8)


class Settings(_ConfigModel):
    """Global project settings."""

    generate_examples: bool = True
    code_style: CodeStyle | None = None


class ScaforgeConfig(_ConfigModel):
    """The persisted project configuration.

    ``plugins`` maps plugin name to its enabled flag and resolved options.
    Entries are not checked against the registry on load: a plugin may be
    registered after the config is read, so names are resolved lazily by the
    plugin manager.
    """

    name: str = Field(..., min_length=1, max_length=214)
    template: FrameworkTemplate
    plugins: dict[str, PluginConfig] = Field(default_factory=dict)
    settings: Settings | None = None


def create_default_config(name: str, template: str) -> ScaforgeConfig:
    """Create the configuration for a freshly initialised project."""
    return ScaforgeConfig(
        name=name,
        template=template,
        plugins={},
        settings=Settings(generate_examples=True, code_style=CodeStyle()),
    )


class ToolSettings(BaseModel):
    """Runtime settings for the ``scaforge`` command line tool."""

    config_file_name: str = Field(default=CONFIG_FILE_NAME)
    env_file_name: str = Field(default=ENV_EXAMPLE_FILE_NAME)
    package_manager: Literal["npm", "yarn", "pnpm"] | None = Field(
        default=None, description="Override lockfile-based package manager detection"
    )
    force_overwrite: bool = Field(
        default=False, description="Overwrite existing files even when a plugin says not to"
    )
    install_timeout: int = Field(default=600, ge=10, description="Package install timeout in seconds")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="WARNING")

    @classmethod
    def from_env(cls) -> "ToolSettings":
        """Build ``ToolSettings`` from environment variables.

        Recognised variables (all optional):
            SCAFORGE_CONFIG_FILE, SCAFORGE_ENV_FILE, SCAFORGE_PACKAGE_MANAGER,
            SCAFORGE_FORCE_OVERWRITE, SCAFORGE_INSTALL_TIMEOUT, SCAFORGE_LOG_LEVEL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SCAFORGE_CONFIG_FILE"):
            kwargs["config_file_name"] = os.environ["SCAFORGE_CONFIG_FILE"]
        if os.environ.get("SCAFORGE_ENV_FILE"):
            kwargs["env_file_name"] = os.environ["SCAFORGE_ENV_FILE"]
        if os.environ.get("SCAFORGE_PACKAGE_MANAGER"):
            kwargs["package_manager"] = os.environ["SCAFORGE_PACKAGE_MANAGER"]
        if os.environ.get("SCAFORGE_FORCE_OVERWRITE"):
            kwargs["force_overwrite"] = os.environ["SCAFORGE_FORCE_OVERWRITE"].strip().lower() in (
                "1",
                "true",
                "yes",
            )
        if os.environ.get("SCAFORGE_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = os.environ["SCAFORGE_INSTALL_TIMEOUT"]
        if os.environ.get("SCAFORGE_LOG_LEVEL"):
            kwargs["log_level"] = os.environ["SCAFORGE_LOG_LEVEL"].upper()
        return cls(**kwargs)
