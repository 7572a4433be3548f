"""Stages that prepare and update the host application instance.

Each stage takes a :class:`~extension_build.context.BuildContext` and works
on ``<workspace>/site``. Stages clear the state they are about to recreate, so
re-running a pipeline after a partial failure starts each stage afresh.
"""

from __future__ import annotations

import sys
import typing as typ
import zipfile
from pathlib import Path
from urllib.parse import quote

import httpx

from .bundler import TRANSPILED_PATH
from .dependencies import install_dependencies
from .errors import BuildError, ToolError
from .fs_utils import copy_tree, remove_path, safe_source_path
from .migrate import move_dir_contents
from .packager import BACKEND_MODULES_DIR, CLIENT_MODULES_DIR, transpile_module

if typ.TYPE_CHECKING:
    from .config import DatabaseConfig
    from .context import BuildContext

__all__ = [
    "INSTALLER_ACTIONS",
    "after_install",
    "archive_url",
    "composer_install",
    "copy_extension",
    "download_archive",
    "fetch_host",
    "install_extensions",
    "install_host",
    "rebuild",
    "render_database_config",
    "set_owner",
]

GITHUB_PREFIX = "https://github.com"
ARCHIVE_FILE = "archive.zip"
EXTENSIONS_DIR = "extensions"
PHP_SCRIPTS_DIR = "php_scripts"
INSTALLER_SCRIPT = "install/cli.php"
INSTALLER_ACTIONS = (
    "step1",
    "setupConfirmation",
    "checkPermission",
    "saveSettings",
    "buildDatabase",
    "createUser",
    "finish",
)
DOWNLOAD_TIMEOUT = 120.0
TEST_MODULES_DIR = "Espo/Modules"


def archive_url(repository: str, branch: str) -> str:
    """Return the GitHub archive URL of ``branch`` in ``repository``.

    Raises
    ------
    BuildError
        If ``repository`` is not hosted on GitHub.

    Examples
    --------
    >>> archive_url("https://github.com/espocrm/espocrm.git", "master")
    'https://github.com/espocrm/espocrm/archive/master.zip'
    """
    if not repository.startswith(GITHUB_PREFIX):
        message = f"Only GitHub repositories can be fetched: {repository}"
        raise BuildError(message)
    base = repository.removesuffix(".git").rstrip("/")
    return f"{base}/archive/{quote(branch)}.zip"


def _extracted_dir_name(repository: str, branch: str) -> str:
    name = repository.removesuffix(".git").rstrip("/").rsplit("/", 1)[-1]
    return f"{name}-{branch.replace('/', '-')}"


def download_archive(
    url: str, destination: Path, *, client: httpx.Client | None = None
) -> None:
    """Stream ``url`` into ``destination``.

    Raises
    ------
    BuildError
        If the request fails or the server answers with an error status.
    """
    owned = client is None
    http = client or httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        with http.stream("GET", url) as response:
            if response.is_error:
                message = (
                    f"Unexpected response {response.status_code} "
                    f"{response.reason_phrase} from {url}"
                )
                raise BuildError(message)
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes():
                    handle.write(chunk)
    except httpx.HTTPError as exc:
        message = f"Failed to download {url}: {exc}"
        raise BuildError(message) from exc
    finally:
        if owned:
            http.close()


def fetch_host(context: BuildContext, *, client: httpx.Client | None = None) -> None:
    """Replace ``site/`` with a fresh copy of the configured host branch."""
    print("Fetching host repository...")
    site_dir = context.site_dir
    repository = context.config.repository.url
    branch = context.effective_branch
    url = archive_url(repository, branch)

    remove_path(site_dir)
    site_dir.mkdir(parents=True)

    print("  Downloading archive from GitHub...")
    archive_path = site_dir / ARCHIVE_FILE
    download_archive(url, archive_path, client=client)

    print("  Unzipping...")
    try:
        with zipfile.ZipFile(archive_path) as archive:
            archive.extractall(site_dir)
    except zipfile.BadZipFile as exc:
        message = f"Downloaded archive is not a zip file: {url}"
        raise BuildError(message) from exc
    archive_path.unlink()

    extracted = site_dir / _extracted_dir_name(repository, branch)
    if not extracted.is_dir():
        message = f"Expected release directory missing after extraction: {extracted}"
        raise BuildError(message)
    move_dir_contents(extracted, site_dir)


def render_database_config(database: DatabaseConfig) -> str:
    """Return the PHP configuration stub written before installation."""
    port = database.port if database.port not in (None, "") else "null"
    charset = f"'{database.charset}'" if database.charset else "null"
    return f"""<?php
return [
    'database' => [
        'host' => '{database.host}',
        'port' => {port},
        'charset' => {charset},
        'dbname' => '{database.dbname}',
        'user' => '{database.user}',
        'password' => '{database.password}',
    ],
    'isDeveloperMode' => true,
    'useCache' => true,
];
"""


def _installer_data(context: BuildContext) -> dict[str, str]:
    database = context.config.database
    install = context.config.install
    return {
        "step1": f"user-lang={install.language}",
        "setupConfirmation": (
            f"host-name={database.host}"
            f"&db-name={database.dbname}"
            f"&db-platform={database.platform}"
            f"&db-user-name={database.user}"
            f"&db-user-password={database.password}"
        ),
        "saveSettings": (
            f"site-url={install.site_url}"
            f"&default-permissions-user={install.default_owner}"
            f"&default-permissions-group={install.default_group}"
        ),
        "createUser": (
            f"user-name={install.admin_username}"
            f"&user-pass={install.admin_password}"
        ),
    }


def install_host(context: BuildContext) -> None:
    """Build the host client and run its installer actions in order."""
    print("Installing host instance...")
    site_dir = context.site_dir
    gateway = context.gateway

    print("  Creating config...")
    config_file = site_dir / "data" / "config.php"
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(
        render_database_config(context.config.database), encoding="utf-8"
    )

    print("  Npm install...")
    gateway.run("npm", ["ci"], cwd=site_dir)
    print("  Building...")
    gateway.run("grunt", [], cwd=site_dir)

    remove_path(site_dir / "install" / "config.php")

    data = _installer_data(context)
    for action in INSTALLER_ACTIONS:
        print(f"  Install: {action}...")
        args = [INSTALLER_SCRIPT, "-a", action]
        if action in data:
            args.extend(["-d", data[action]])
        gateway.run("php", args, cwd=site_dir)

    print("  Merge configs...")
    gateway.run("php", ["merge_configs.php"], cwd=context.workspace / PHP_SCRIPTS_DIR)


def install_extensions(context: BuildContext) -> None:
    """Install every zip package dropped into ``extensions/``."""
    extensions_dir = context.workspace / EXTENSIONS_DIR
    if not extensions_dir.is_dir():
        return

    print(f"Installing extensions from '{EXTENSIONS_DIR}' directory...")
    packages = sorted(
        path
        for path in extensions_dir.iterdir()
        if path.is_file() and path.suffix.lower() == ".zip"
    )
    for package in packages:
        print(f"  Install: {package.name}")
        context.gateway.run(
            "php",
            ["command.php", "extension", f"--file=../{EXTENSIONS_DIR}/{package.name}"],
            cwd=context.site_dir,
        )


def copy_extension(context: BuildContext) -> None:
    """Copy the extension sources into the host instance.

    With ``context.file`` set only that path below ``src/files`` is copied and
    previously installed files are left in place.
    """
    files_dir = context.workspace / "src" / "files"
    site_dir = context.site_dir

    if context.file:
        source = safe_source_path(files_dir, context.file)
        if not source.exists():
            message = f"File not found in extension sources: {context.file}"
            raise BuildError(message)
        print(f"Copying {context.file} to host instance...")
        copy_tree(source, site_dir / source.relative_to(files_dir.resolve()))
        return

    transpile_module(context)

    print("Copying extension to host instance...")
    module = context.extension.module
    mod = context.extension.module_hyphen
    stale = (
        ("backend files", site_dir / BACKEND_MODULES_DIR / module),
        ("frontend files", site_dir / CLIENT_MODULES_DIR / mod),
        ("unit test files", site_dir / "tests" / "unit" / TEST_MODULES_DIR / module),
        (
            "integration test files",
            site_dir / "tests" / "integration" / TEST_MODULES_DIR / module,
        ),
    )
    for label, path in stale:
        if path.exists():
            print(f"  Removing {label}...")
            remove_path(path)

    transpiled = context.workspace / TRANSPILED_PATH / "modules" / mod / "src"
    if context.extension.bundled and transpiled.is_dir():
        target = site_dir / CLIENT_MODULES_DIR / mod / "lib" / "transpiled" / "src"
        copy_tree(transpiled, target)

    print("  Copying files...")
    copy_tree(files_dir, site_dir)
    tests_dir = context.workspace / "tests"
    if tests_dir.is_dir():
        copy_tree(tests_dir, site_dir / "tests")


def composer_install(context: BuildContext) -> None:
    """Install the installed module's dependencies, development ones included."""
    module_dir = context.site_dir / BACKEND_MODULES_DIR / context.extension.module
    install_dependencies(context.gateway, module_dir, include_dev=True)


def rebuild(context: BuildContext) -> None:
    print("Rebuilding host instance...")
    context.gateway.run("php", ["rebuild.php"], cwd=context.site_dir)


def after_install(context: BuildContext) -> None:
    print("Running after-install script...")
    context.gateway.run(
        "php", ["after_install.php"], cwd=context.workspace / PHP_SCRIPTS_DIR
    )


def set_owner(context: BuildContext) -> None:
    """Hand ``site/`` to the configured owner and group.

    Ownership changes commonly need elevated privileges; a failure is
    reported as a warning and the pipeline carries on.
    """
    try:
        context.gateway.run(
            "chown", ["-R", context.config.owner, "."], cwd=context.site_dir
        )
    except ToolError as exc:
        message = f"warning: could not change ownership of {context.site_dir}: {exc}"
        print(message, file=sys.stderr)
