"""Error types for Scaforge operations.

Every failure raised by the core derives from :class:`ScaforgeError`, which
carries a stable :class:`ErrorCode` and an optional ``details`` mapping so the
CLI can render a consistent message without parsing exception text.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for all Scaforge errors."""

    PLUGIN_NOT_FOUND = "PLUGIN_NOT_FOUND"
    PLUGIN_DUPLICATE = "PLUGIN_DUPLICATE"
    PLUGIN_CONFLICT = "PLUGIN_CONFLICT"
    PLUGIN_DEPENDENCY_MISSING = "PLUGIN_DEPENDENCY_MISSING"
    PLUGIN_DEPENDENCY_CYCLE = "PLUGIN_DEPENDENCY_CYCLE"
    PLUGIN_HAS_DEPENDENTS = "PLUGIN_HAS_DEPENDENTS"
    PLUGIN_ALREADY_INSTALLED = "PLUGIN_ALREADY_INSTALLED"
    PLUGIN_NOT_INSTALLED = "PLUGIN_NOT_INSTALLED"
    TEMPLATE_NOT_SUPPORTED = "TEMPLATE_NOT_SUPPORTED"
    TEMPLATE_SYNTAX = "TEMPLATE_SYNTAX"
    OPTIONS_INVALID = "OPTIONS_INVALID"
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    FILE_EXISTS = "FILE_EXISTS"
    INSTALL_FAILED = "INSTALL_FAILED"


# Keys already interpolated into the message; not repeated in the display.
_MESSAGE_KEYS = frozenset(
    {"name", "conflicts", "dependency", "dependents", "template", "path", "details"}
)


class ScaforgeError(Exception):
    """Base class for every error raised by Scaforge."""

    code: ErrorCode = ErrorCode.CONFIG_INVALID

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details: dict[str, Any] = dict(details or {})


class NotFoundError(ScaforgeError):
    """A plugin name is not present in the registry."""

    code = ErrorCode.PLUGIN_NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f'Plugin "{name}" not found in registry', details={"name": name})


class DuplicateNameError(ScaforgeError):
    """A plugin with the same name is already registered."""

    code = ErrorCode.PLUGIN_DUPLICATE

    def __init__(self, name: str) -> None:
        super().__init__(f'Plugin "{name}" is already registered', details={"name": name})


class TemplateIncompatibleError(ScaforgeError):
    """The project's framework template is not supported by the plugin."""

    code = ErrorCode.TEMPLATE_NOT_SUPPORTED

    def __init__(self, name: str, template: str, supported: list[str]) -> None:
        super().__init__(
            f'Plugin "{name}" does not support {template} template',
            details={"name": name, "template": template, "supported_templates": supported},
        )


class AlreadyInstalledError(ScaforgeError):
    code = ErrorCode.PLUGIN_ALREADY_INSTALLED

    def __init__(self, name: str) -> None:
        super().__init__(f'Plugin "{name}" is already installed', details={"name": name})


class NotInstalledError(ScaforgeError):
    code = ErrorCode.PLUGIN_NOT_INSTALLED

    def __init__(self, name: str) -> None:
        super().__init__(f'Plugin "{name}" is not installed', details={"name": name})


class ConflictError(ScaforgeError):
    """The plugin and the installed set declare a conflict."""

    code = ErrorCode.PLUGIN_CONFLICT

    def __init__(self, name: str, conflicts: list[str]) -> None:
        super().__init__(
            f'Plugin "{name}" conflicts with installed plugins: {", ".join(conflicts)}',
            details={"name": name, "conflicts": list(conflicts)},
        )


class MissingDependencyError(ScaforgeError):
    """Dependencies are missing and automatic installation is disabled."""

    code = ErrorCode.PLUGIN_DEPENDENCY_MISSING

    def __init__(self, name: str, missing: list[str]) -> None:
        super().__init__(
            f'Plugin "{name}" requires these plugins to be installed first: '
            f'{", ".join(missing)}',
            details={"name": name, "dependency": list(missing)},
        )


class DependentsExistError(ScaforgeError):
    """Removal is blocked by installed plugins that depend on the target."""

    code = ErrorCode.PLUGIN_HAS_DEPENDENTS

    def __init__(self, name: str, dependents: list[str]) -> None:
        super().__init__(
            f'Cannot remove "{name}": required by {", ".join(dependents)}',
            details={"name": name, "dependents": list(dependents)},
        )


class CyclicDependencyError(ScaforgeError):
    """The dependency closure of a plugin refers back to itself."""

    code = ErrorCode.PLUGIN_DEPENDENCY_CYCLE

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(
            f"Circular plugin dependency detected: {' -> '.join(cycle)}",
            details={"cycle": list(cycle)},
        )
        self.cycle = list(cycle)


class SchemaValidationError(ScaforgeError):
    """User-supplied options failed a plugin's config schema."""

    code = ErrorCode.OPTIONS_INVALID

    def __init__(self, name: str, field_errors: list[str]) -> None:
        super().__init__(
            f'Invalid options for plugin "{name}": {"; ".join(field_errors)}',
            details={"name": name, "field_errors": list(field_errors)},
        )
        self.field_errors = list(field_errors)


class TemplateSyntaxError(ScaforgeError):
    """A template contains a malformed block, expression, or unknown helper."""

    code = ErrorCode.TEMPLATE_SYNTAX

    def __init__(
        self,
        reason: str,
        *,
        plugin: str | None = None,
        path: str | None = None,
    ) -> None:
        self.reason = reason
        self.plugin = plugin
        self.path = path
        origin = ""
        if plugin and path:
            origin = f' in plugin "{plugin}" file "{path}"'
        elif plugin:
            origin = f' in plugin "{plugin}"'
        elif path:
            origin = f' in file "{path}"'
        super().__init__(
            f"Template syntax error{origin}: {reason}",
            details={"plugin": plugin, "path": path},
        )

    def with_origin(self, plugin: str | None, path: str | None) -> "TemplateSyntaxError":
        """Return a copy of this error naming the template's origin."""
        return TemplateSyntaxError(
            self.reason,
            plugin=self.plugin or plugin,
            path=self.path or path,
        )


class ConfigNotFoundError(ScaforgeError):
    code = ErrorCode.CONFIG_NOT_FOUND

    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"{file_name} not found. Is this a Scaforge project?",
            details={"path": file_name},
        )


class ConfigInvalidError(ScaforgeError):
    code = ErrorCode.CONFIG_INVALID

    def __init__(self, details: str) -> None:
        super().__init__(f"Invalid configuration: {details}", details={"details": details})


class FileConflictError(ScaforgeError):
    """A generated file cannot be written at the requested location."""

    code = ErrorCode.FILE_EXISTS

    def __init__(self, path: str, reason: str = "File already exists") -> None:
        super().__init__(f"{reason}: {path}", details={"path": path})


class InstallError(ScaforgeError):
    """The package manager exited with a non-zero status."""

    code = ErrorCode.INSTALL_FAILED

    def __init__(self, command: str, stderr: str, returncode: int) -> None:
        super().__init__(
            f"Failed to install packages: {stderr or command}",
            details={"command": command, "returncode": returncode, "details": stderr},
        )


def is_scaforge_error(error: BaseException) -> bool:
    return isinstance(error, ScaforgeError)


def format_error_for_display(error: ScaforgeError) -> str:
    """Format a :class:`ScaforgeError` for terminal output.

    The first line is ``Error [CODE]: message``; any details that are not
    already part of the message are listed underneath as JSON values.
    """
    lines = [f"Error [{error.code.value}]: {error.message}"]
    extra = [
        f"  {key}: {json.dumps(value, default=str)}"
        for key, value in error.details.items()
        if key not in _MESSAGE_KEYS and value is not None
    ]
    if extra:
        lines.append("Additional details:")
        lines.extend(extra)
    return "\n".join(lines)
