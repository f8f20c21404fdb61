"""Project root resolution."""

import logging
from pathlib import Path
from typing import Optional, Protocol

from .buffer import TextBuffer
from .errors import NotInProject

logger = logging.getLogger(__name__)


class ProjectResolver(Protocol):
    def resolve_root(self, buffer: TextBuffer) -> Path:
        """Return the project root for ``buffer`` or raise NotInProject."""
        ...


def _start_dir(buffer: TextBuffer, fallback: Optional[Path]) -> Optional[Path]:
    if buffer.path is not None:
        return Path(buffer.path).resolve().parent
    return fallback


def find_project_root(start_dir: Path, submodule_independent: bool = False) -> Path:
    """Find the project root by walking upward looking for ``.git``.

    A ``.git`` directory marks a repository root. A ``.git`` file marks a
    submodule (or linked worktree); it is a root of its own only when
    ``submodule_independent`` is set, otherwise the walk continues to the
    enclosing repository.

    Raises:
        NotInProject: If no root is found before the filesystem root
    """
    current_dir = start_dir.resolve()
    nested_root: Optional[Path] = None

    while True:
        marker = current_dir / ".git"
        if marker.is_dir():
            return current_dir
        if marker.is_file():
            if submodule_independent:
                return current_dir
            nested_root = nested_root or current_dir

        parent_dir = current_dir.parent
        if parent_dir == current_dir:
            break
        current_dir = parent_dir

    # A submodule checked out without its superproject is still a project
    if nested_root is not None:
        return nested_root
    raise NotInProject(start_dir)


class GitProjectResolver:
    """Resolve a buffer's project as the version-control root containing its file."""

    def __init__(self, submodule_independent: bool = False, fallback_dir: Optional[Path] = None):
        self.submodule_independent = submodule_independent
        self.fallback_dir = fallback_dir

    def resolve_root(self, buffer: TextBuffer) -> Path:
        start = _start_dir(buffer, self.fallback_dir)
        if start is None:
            raise NotInProject(buffer.name)
        root = find_project_root(start, self.submodule_independent)
        logger.debug(f"Resolved project root {root} for buffer {buffer.name}")
        return root
