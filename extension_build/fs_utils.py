"""Filesystem helpers for staging and installing extension files."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from .errors import BuildError

__all__ = [
    "camel_to_hyphen",
    "copy_tree",
    "remove_path",
    "safe_source_path",
]

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def camel_to_hyphen(name: str) -> str:
    """Return ``name`` converted from CamelCase to hyphen-case.

    Examples
    --------
    >>> camel_to_hyphen("CustomModule")
    'custom-module'
    """
    return _CAMEL_BOUNDARY.sub(r"\1-\2", name).lower()


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, symlink, or directory tree.

    Missing paths are ignored so callers can clear stale state before
    recreating it.
    """
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def copy_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` into ``destination``, merging with existing contents.

    Parameters
    ----------
    source : Path
        File or directory to copy.
    destination : Path
        Target path. Existing files are overwritten and existing directories
        are merged.
    """
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)


def safe_source_path(root: Path, relative: str) -> Path:
    """Return ``relative`` resolved beneath ``root``.

    Parameters
    ----------
    root : Path
        Directory under which the path must reside.
    relative : str
        Path supplied by the operator, relative to ``root``.

    Returns
    -------
    Path
        Absolute path located below ``root``.

    Raises
    ------
    BuildError
        Raised when ``relative`` resolves outside ``root``.
    """

    target = (root / relative).resolve()
    if not target.is_relative_to(root.resolve()):
        message = f"Path escapes {root}: {relative}"
        raise BuildError(message)
    return target
