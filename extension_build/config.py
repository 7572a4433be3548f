"""Configuration models and loader for the extension build.

The build reads ``config-default.toml`` from the workspace root and, when
present, deep-merges ``config.toml`` over it. The merged result is frozen so
every stage of a pipeline observes the same values.

Usage
-----
Load the configuration for the current workspace::

    from pathlib import Path
    from extension_build.config import load_config

    config = load_config(Path.cwd())
    print(f"Fetching {config.repository.url} at {config.repository.branch}")
"""

from __future__ import annotations

import copy
import dataclasses
import typing as typ
from collections.abc import Mapping
from pathlib import Path

import tomllib

from .errors import ConfigError

__all__ = [
    "BundlerConfig",
    "Config",
    "DatabaseConfig",
    "DEFAULT_CONFIG_FILE",
    "InstallConfig",
    "LOCAL_CONFIG_FILE",
    "RepositoryConfig",
    "load_config",
    "merge_deep",
]

DEFAULT_CONFIG_FILE = "config-default.toml"
LOCAL_CONFIG_FILE = "config.toml"
DEFAULT_BUNDLER_COMMAND = ("node", "frontend-build.mjs")


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryConfig:
    """Location of the host application sources.

    Parameters
    ----------
    url : str
        Repository URL. Only GitHub URLs can be fetched.
    branch : str
        Default branch fetched when no override is supplied.
    """

    url: str
    branch: str


@dataclasses.dataclass(slots=True, frozen=True)
class DatabaseConfig:
    """Connection parameters handed to the host installer."""

    host: str
    dbname: str
    user: str
    password: str
    port: int | str | None = None
    charset: str | None = None
    platform: str = "Mysql"


@dataclasses.dataclass(slots=True, frozen=True)
class InstallConfig:
    """Identity values used when installing the host instance."""

    language: str
    site_url: str
    default_owner: str
    default_group: str
    admin_username: str
    admin_password: str


@dataclasses.dataclass(slots=True, frozen=True)
class BundlerConfig:
    """Command line used to reach the client build tools."""

    command: tuple[str, ...] = DEFAULT_BUNDLER_COMMAND


@dataclasses.dataclass(slots=True, frozen=True)
class Config:
    """Merged build configuration produced by :func:`load_config`.

    Attributes
    ----------
    workspace : Path
        Extension workspace root holding ``src/``, ``site/`` and ``build/``.
    repository : RepositoryConfig
        Host repository location and default branch.
    database : DatabaseConfig
        Database connection used by the host installer.
    install : InstallConfig
        Installation identity and filesystem ownership target.
    bundler : BundlerConfig
        Client build tools invocation.
    """

    workspace: Path
    repository: RepositoryConfig
    database: DatabaseConfig
    install: InstallConfig
    bundler: BundlerConfig = dataclasses.field(default_factory=BundlerConfig)

    @property
    def site_dir(self) -> Path:
        """Directory holding the host installation."""
        return self.workspace / "site"

    @property
    def owner(self) -> str:
        """``owner:group`` pair used to normalise site ownership."""
        return f"{self.install.default_owner}:{self.install.default_group}"


def merge_deep(
    base: dict[str, typ.Any], override: Mapping[str, typ.Any]
) -> dict[str, typ.Any]:
    """Return ``base`` with ``override`` merged in, table by table.

    Nested mappings merge key by key; every other value in ``override``
    replaces the value in ``base``. Neither argument is modified.

    Examples
    --------
    >>> merge_deep({"db": {"host": "a", "user": "u"}}, {"db": {"host": "b"}})
    {'db': {'host': 'b', 'user': 'u'}}
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            merged[key] = merge_deep(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(workspace: Path) -> Config:
    """Load the merged configuration for ``workspace``.

    Parameters
    ----------
    workspace : Path
        Extension workspace root containing ``config-default.toml``.

    Returns
    -------
    Config
        Frozen configuration with ``config.toml`` overrides applied.

    Raises
    ------
    FileNotFoundError
        Raised when ``config-default.toml`` is absent.
    ConfigError
        Raised when required keys are missing or malformed.
    """
    default_file = workspace / DEFAULT_CONFIG_FILE
    if not default_file.is_file():
        message = f"Configuration file not found at {default_file}"
        raise FileNotFoundError(message)

    data = _load_toml(default_file)
    local_file = workspace / LOCAL_CONFIG_FILE
    if local_file.is_file():
        data = merge_deep(data, _load_toml(local_file))

    repository = _section(data, "repository", default_file)
    database = _section(data, "database", default_file)
    install = _section(data, "install", default_file)
    _require_keys(repository, {"url", "branch"}, "repository", default_file)
    _require_keys(
        database, {"host", "dbname", "user", "password"}, "database", default_file
    )
    _require_keys(
        install,
        {
            "language",
            "site_url",
            "default_owner",
            "default_group",
            "admin_username",
            "admin_password",
        },
        "install",
        default_file,
    )

    return Config(
        workspace=workspace,
        repository=RepositoryConfig(
            url=str(repository["url"]), branch=str(repository["branch"])
        ),
        database=DatabaseConfig(
            host=str(database["host"]),
            dbname=str(database["dbname"]),
            user=str(database["user"]),
            password=str(database["password"]),
            port=database.get("port"),
            charset=database.get("charset"),
            platform=database.get("platform") or "Mysql",
        ),
        install=InstallConfig(
            language=str(install["language"]),
            site_url=str(install["site_url"]),
            default_owner=str(install["default_owner"]),
            default_group=str(install["default_group"]),
            admin_username=str(install["admin_username"]),
            admin_password=str(install["admin_password"]),
        ),
        bundler=BundlerConfig(
            command=_bundler_command(data.get("bundler", {}), default_file)
        ),
    )


def _load_toml(path: Path) -> dict[str, typ.Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        message = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(message) from exc


def _section(
    data: dict[str, typ.Any], name: str, config_path: Path
) -> dict[str, typ.Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        message = f"Missing [{name}] section in {config_path}"
        raise ConfigError(message)
    return section


def _require_keys(
    section: dict[str, typ.Any], keys: set[str], label: str, config_path: Path
) -> None:
    """Ensure ``section`` defines ``keys``.

    Examples
    --------
    >>> _require_keys(  # doctest: +SKIP
    ...     {'url': 1},
    ...     {'url', 'branch'},
    ...     'repository',
    ...     Path('config-default.toml'),
    ... )
    """
    if missing := sorted(key for key in keys if key not in section):
        joined = ", ".join(missing)
        message = (
            "Missing required key(s) "
            f"{joined} in [{label}] section of {config_path}"
        )
        raise ConfigError(message)


def _bundler_command(section: object, config_path: Path) -> tuple[str, ...]:
    if not isinstance(section, dict) or "command" not in section:
        return DEFAULT_BUNDLER_COMMAND
    command = section["command"]
    if (
        not isinstance(command, list)
        or not command
        or not all(isinstance(part, str) and part for part in command)
    ):
        message = (
            "[bundler] command must be a non-empty list of strings "
            f"in {config_path}"
        )
        raise ConfigError(message)
    return tuple(command)
