"""Pydantic models describing plugin definitions.

A :class:`PluginDefinition` is a static data bundle: packages to install,
environment variables to declare, an optional options schema, and the
template-rendered files the plugin contributes to a project.  Definitions are
frozen once constructed; the registry stores them by name.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PluginCategory(str, Enum):
    API = "api"
    AUTH = "auth"
    DATABASE = "database"
    PAYMENTS = "payments"
    EMAIL = "email"
    CMS = "cms"
    AI = "ai"
    ANALYTICS = "analytics"
    CACHING = "caching"
    FORMS = "forms"
    I18N = "i18n"
    JOBS = "jobs"
    MONITORING = "monitoring"
    REALTIME = "realtime"
    SEARCH = "search"
    STORAGE = "storage"


class FileCondition(BaseModel):
    """Restricts a file to projects built on one framework template."""

    model_config = ConfigDict(frozen=True)

    template: str | None = None


class FileSpec(BaseModel):
    """A file contributed by a plugin.

    Both ``path`` and ``template`` are rendered with the conditional template
    renderer, so destinations may depend on options too.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    template: str
    condition: FileCondition | None = None
    overwrite: bool = False

    def applies_to(self, template: str) -> bool:
        """Return ``True`` if this file should be emitted for *template*."""
        if self.condition is None or self.condition.template is None:
            return True
        return self.condition.template == template


class EnvVarDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    required: bool = False
    secret: bool = False
    default: str | None = None


class PluginPackages(BaseModel):
    """Runtime and development packages, as ``name -> version range``."""

    model_config = ConfigDict(frozen=True)

    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.dependencies and not self.dev_dependencies

    def names(self) -> list[str]:
        """All package names, runtime first, without duplicates."""
        seen: dict[str, None] = {}
        for name in (*self.dependencies, *self.dev_dependencies):
            seen.setdefault(name, None)
        return list(seen)


class PluginIntegration(BaseModel):
    """Extra files emitted only when ``plugin`` is installed alongside."""

    model_config = ConfigDict(frozen=True)

    plugin: str
    type: str = "custom"
    files: list[FileSpec] = Field(default_factory=list)


class PluginDefinition(BaseModel):
    """Immutable description of a plugin.

    ``config_schema`` is a Pydantic model class; user-supplied options are
    validated against it and defaults are filled in before templates are
    rendered.  Plugins without a schema accept options verbatim.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    display_name: str
    category: PluginCategory
    description: str = ""
    version: str = "1.0.0"
    supported_templates: list[str] = Field(..., min_length=1)
    dependencies: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    packages: PluginPackages = Field(default_factory=PluginPackages)
    config_schema: type[BaseModel] | None = None
    env_vars: list[EnvVarDefinition] = Field(default_factory=list)
    files: list[FileSpec] = Field(default_factory=list)
    integrations: list[PluginIntegration] = Field(default_factory=list)
    post_install: str | None = None

    def supports(self, template: str) -> bool:
        return template in self.supported_templates

    def integration_with(self, other: str) -> PluginIntegration | None:
        """Return the integration targeting *other*, if declared."""
        for integration in self.integrations:
            if integration.plugin == other:
                return integration
        return None
