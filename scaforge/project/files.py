"""Writing generated files into a project directory."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from scaforge.errors import FileConflictError

logger = logging.getLogger(__name__)


class ProjectFileWriter:
    """Implements the ``FileWriter`` interface for one project root.

    Relative paths are resolved against the root; absolute paths must still
    point inside it.  Existing files are left untouched unless the plugin
    marks the file ``overwrite`` or the writer was created with ``force``.
    """

    def __init__(self, project_root: str | Path, *, force: bool = False) -> None:
        self.project_root = Path(project_root).resolve()
        self.force = force

    def resolve(self, path: str | Path) -> Path:
        """Resolve *path* below the project root.

        Raises:
            FileConflictError: *path* escapes the project root.
        """
        target = Path(path)
        if not target.is_absolute():
            target = self.project_root / target
        target = target.resolve()
        if target != self.project_root and self.project_root not in target.parents:
            raise FileConflictError(str(path), reason="Path is outside the project root")
        if target == self.project_root:
            raise FileConflictError(str(path), reason="Path is the project root")
        return target

    async def write(self, path: str | Path, content: str, *, overwrite: bool) -> bool:
        """Write *content* to *path*; returns ``False`` if an existing file was kept."""
        target = self.resolve(path)
        return await asyncio.to_thread(self._write_sync, target, content, overwrite or self.force)

    def _write_sync(self, target: Path, content: str, overwrite: bool) -> bool:
        if target.is_dir():
            raise FileConflictError(str(target), reason="A directory exists at")
        if target.exists() and not overwrite:
            logger.warning("Keeping existing file %s", target.relative_to(self.project_root))
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return True

    async def exists(self, path: str | Path) -> bool:
        target = self.resolve(path)
        return await asyncio.to_thread(target.exists)
