"""Readers for the extension's own metadata files.

``extension.json`` describes the module being built and ``package.json`` (or
``test-package.json`` when present) carries the package version.
"""

from __future__ import annotations

import dataclasses
import json
import shlex
import typing as typ
from pathlib import Path

from .errors import ConfigError
from .fs_utils import camel_to_hyphen

__all__ = [
    "EXTENSION_FILE",
    "ExtensionParams",
    "load_extension_params",
    "read_package_version",
]

EXTENSION_FILE = "extension.json"
PACKAGE_FILES = ("test-package.json", "package.json")


@dataclasses.dataclass(slots=True, frozen=True)
class ExtensionParams:
    """Describe the extension module declared in ``extension.json``.

    Attributes
    ----------
    module : str
        CamelCase module name, e.g. ``"CustomModule"``.
    name : str
        Human readable extension name.
    description : str
        Short description copied into the manifest.
    author : str
        Author copied into the manifest.
    php : typ.Any
        Runtime version constraints for the host.
    acceptable_versions : typ.Any
        Host versions the package installs on.
    bundled : bool
        ``True`` when client scripts ship as compiled chunks.
    package_name : str | None
        Overrides ``module`` when naming the archive.
    build_scripts : tuple[tuple[str, ...], ...]
        Auxiliary commands run before the package is staged.
    """

    module: str
    name: str
    description: str = ""
    author: str = ""
    php: typ.Any = None
    acceptable_versions: typ.Any = None
    bundled: bool = False
    package_name: str | None = None
    build_scripts: tuple[tuple[str, ...], ...] = ()

    @property
    def module_hyphen(self) -> str:
        """Client module identifier, e.g. ``"custom-module"``."""
        return camel_to_hyphen(self.module)

    @property
    def package_name_hyphen(self) -> str:
        """Archive base name derived from ``package_name`` or ``module``."""
        return camel_to_hyphen(self.package_name or self.module)


def load_extension_params(workspace: Path) -> ExtensionParams:
    """Parse ``extension.json`` from ``workspace``.

    Raises
    ------
    FileNotFoundError
        Raised when ``extension.json`` is absent.
    ConfigError
        Raised when the file is not valid JSON or lacks ``module``/``name``.
    """
    data = _load_json(workspace / EXTENSION_FILE)
    module = data.get("module")
    if not isinstance(module, str) or not module:
        message = f"Missing required key 'module' in {workspace / EXTENSION_FILE}"
        raise ConfigError(message)
    return ExtensionParams(
        module=module,
        name=str(data.get("name") or module),
        description=str(data.get("description", "")),
        author=str(data.get("author", "")),
        php=data.get("php"),
        acceptable_versions=data.get("acceptableVersions"),
        bundled=_parse_flag(data.get("bundled", False), "bundled"),
        package_name=data.get("packageName") or None,
        build_scripts=_parse_scripts(data.get("buildScripts", [])),
    )


def read_package_version(workspace: Path) -> str:
    """Return the package version from ``test-package.json`` or ``package.json``."""
    for name in PACKAGE_FILES:
        path = workspace / name
        if path.is_file():
            version = _load_json(path).get("version")
            if not isinstance(version, str) or not version:
                message = f"Missing required key 'version' in {path}"
                raise ConfigError(message)
            return version
    message = f"Package metadata not found in {workspace}"
    raise FileNotFoundError(message)


def _load_json(path: Path) -> dict[str, typ.Any]:
    if not path.is_file():
        message = f"Metadata file not found at {path}"
        raise FileNotFoundError(message)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        message = f"Invalid JSON in {path}: {exc}"
        raise ConfigError(message) from exc
    if not isinstance(data, dict):
        message = f"Expected a JSON object in {path}"
        raise ConfigError(message)
    return data


def _parse_flag(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        message = f"{key} must be true or false, got {value!r}"
        raise ConfigError(message)
    return value


def _parse_scripts(value: object) -> tuple[tuple[str, ...], ...]:
    """Return ``buildScripts`` entries as argument tuples.

    Entries may be shell-style strings or lists of arguments.

    Examples
    --------
    >>> _parse_scripts(["npm run lint", ["php", "gen.php"]])
    (('npm', 'run', 'lint'), ('php', 'gen.php'))
    """
    if not isinstance(value, list):
        message = "buildScripts must be a list"
        raise ConfigError(message)
    scripts: list[tuple[str, ...]] = []
    for entry in value:
        if isinstance(entry, str):
            parts = tuple(shlex.split(entry))
        elif isinstance(entry, list) and all(isinstance(item, str) for item in entry):
            parts = tuple(entry)
        else:
            message = f"Invalid buildScripts entry: {entry!r}"
            raise ConfigError(message)
        if parts:
            scripts.append(parts)
    return tuple(scripts)
