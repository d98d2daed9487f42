"""Default filesystem, package-manager and documentation collaborators."""

from scaforge.project.config_store import ConfigFileStore, parse_config_content, parse_object_literal
from scaforge.project.docs import DocsGenerationResult, DocsGenerator
from scaforge.project.env import EnvEntry, EnvExampleStore, parse_env_file, serialize_env_file
from scaforge.project.files import ProjectFileWriter
from scaforge.project.packages import NodePackageInstaller, detect_package_manager
from scaforge.project.templates import ProjectTemplateRenderer

__all__ = [
    "ConfigFileStore",
    "DocsGenerationResult",
    "DocsGenerator",
    "EnvEntry",
    "EnvExampleStore",
    "NodePackageInstaller",
    "ProjectFileWriter",
    "ProjectTemplateRenderer",
    "detect_package_manager",
    "parse_config_content",
    "parse_env_file",
    "parse_object_literal",
    "serialize_env_file",
]
