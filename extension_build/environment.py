"""Environment helpers shared by the build toolchain."""

from __future__ import annotations

import os
import typing as typ
from pathlib import Path

__all__ = ["WORKSPACE_ENV", "resolve_workspace"]

WORKSPACE_ENV = "EXTENSION_BUILD_WORKSPACE"


def resolve_workspace(environ: typ.Mapping[str, str] | None = None) -> Path:
    """Return the extension workspace root.

    Parameters
    ----------
    environ:
        Environment mapping to consult. Defaults to :data:`os.environ`.

    Returns
    -------
    Path
        Absolute path named by ``EXTENSION_BUILD_WORKSPACE`` when it is set
        and non-empty, otherwise the current working directory.
    """
    env = os.environ if environ is None else environ
    if value := env.get(WORKSPACE_ENV):
        return Path(value).resolve()
    return Path.cwd()
