"""Installing and removing npm packages for plugins."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Literal

from scaforge.errors import InstallError
from scaforge.plugins.models import PluginPackages
from scaforge.utils import run_command

logger = logging.getLogger(__name__)

PackageManagerName = Literal["npm", "yarn", "pnpm"]

# Checked in order; the first lockfile found wins.
_LOCKFILES: tuple[tuple[str, PackageManagerName], ...] = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
)


def detect_package_manager(project_root: str | Path) -> PackageManagerName:
    root = Path(project_root)
    for lockfile, manager in _LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return "npm"


def install_command(manager: PackageManagerName, specs: list[str], *, dev: bool) -> list[str]:
    if manager == "npm":
        return ["npm", "install", *(["--save-dev"] if dev else []), *specs]
    return [manager, "add", *(["-D"] if dev else []), *specs]


def uninstall_command(manager: PackageManagerName, names: list[str]) -> list[str]:
    verb = "uninstall" if manager == "npm" else "remove"
    return [manager, verb, *names]


def format_specs(packages: dict[str, str]) -> list[str]:
    """``{"zod": "^3.22.0"}`` -> ``["zod@^3.22.0"]``."""
    return [f"{name}@{version}" if version else name for name, version in packages.items()]


class NodePackageInstaller:
    """Implements the ``PackageInstaller`` interface with npm, yarn or pnpm.

    The package manager is taken from ``package_manager`` when given and
    otherwise detected from the lockfile in the project root.
    """

    def __init__(
        self,
        package_manager: PackageManagerName | None = None,
        timeout: int = 600,
    ) -> None:
        self.package_manager = package_manager
        self.timeout = timeout

    def manager_for(self, project_root: str | Path) -> PackageManagerName:
        return self.package_manager or detect_package_manager(project_root)

    async def install(self, project_root: str | Path, packages: PluginPackages) -> None:
        manager = self.manager_for(project_root)
        if packages.dependencies:
            await self._run(
                install_command(manager, format_specs(packages.dependencies), dev=False),
                project_root,
            )
        if packages.dev_dependencies:
            await self._run(
                install_command(manager, format_specs(packages.dev_dependencies), dev=True),
                project_root,
            )

    async def uninstall(self, project_root: str | Path, package_names: list[str]) -> None:
        if not package_names:
            return
        manager = self.manager_for(project_root)
        await self._run(uninstall_command(manager, list(package_names)), project_root)

    async def _run(self, cmd: list[str], cwd: str | Path) -> None:
        command = shlex.join(cmd)
        logger.info("Running %s", command)
        returncode, _stdout, stderr = await run_command(cmd, cwd=cwd, timeout=self.timeout)
        if returncode != 0:
            raise InstallError(command, stderr, returncode)
