"""Dependency manager invocation for extension modules."""

from __future__ import annotations

import typing as typ
from pathlib import Path

if typ.TYPE_CHECKING:
    from .gateway import ToolGateway

__all__ = [
    "DEPENDENCY_MANIFEST",
    "DEPENDENCY_METADATA_FILES",
    "install_dependencies",
]

DEPENDENCY_MANIFEST = "composer.json"
DEPENDENCY_METADATA_FILES = ("composer.json", "composer.lock", "composer.phar")


def install_dependencies(
    gateway: ToolGateway, module_dir: Path, *, include_dev: bool
) -> bool:
    """Run ``composer install`` in ``module_dir`` when it declares a manifest.

    Parameters
    ----------
    gateway : ToolGateway
        Runner used for the ``composer`` invocation.
    module_dir : Path
        Directory that may contain ``composer.json``.
    include_dev : bool
        Install development dependencies as well.

    Returns
    -------
    bool
        ``True`` when the dependency manager ran, ``False`` when the directory
        declares no dependencies.
    """
    if not (module_dir / DEPENDENCY_MANIFEST).is_file():
        return False

    print("Running composer install...")
    args = ["install"]
    if not include_dev:
        args.append("--no-dev")
    args.append("--ignore-platform-reqs")
    gateway.run("composer", args, cwd=module_dir)
    return True
