"""Plugin system: definitions, the registry and the manager.

Quick usage::

    from scaforge.config import create_default_config
    from scaforge.plugins import PluginManager, create_default_registry

    registry = create_default_registry()
    manager = PluginManager(create_default_config("my-app", "nextjs"), registry)
    result = await manager.add("auth-authjs")
    result.installed_dependencies  # ["db-prisma"]
"""

from scaforge.plugins.builtin import BUILTIN_PLUGINS, create_default_registry
from scaforge.plugins.manager import PluginManager, PluginOperationResult, ValidationResult
from scaforge.plugins.models import (
    EnvVarDefinition,
    FileCondition,
    FileSpec,
    PluginCategory,
    PluginDefinition,
    PluginIntegration,
    PluginPackages,
)
from scaforge.plugins.registry import PluginRegistry

__all__ = [
    "BUILTIN_PLUGINS",
    "EnvVarDefinition",
    "FileCondition",
    "FileSpec",
    "PluginCategory",
    "PluginDefinition",
    "PluginIntegration",
    "PluginManager",
    "PluginOperationResult",
    "PluginPackages",
    "PluginRegistry",
    "ValidationResult",
    "create_default_registry",
]
