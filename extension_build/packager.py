"""Assemble the distributable extension package.

The packager copies the extension sources into a disposable staging tree,
applies compiled client assets and resolved dependencies, strips dependency
metadata, writes ``manifest.json``, and zips the result into
``build/<package-name>-<version>.zip``.

Usage
-----
Build the package for the current workspace::

    from pathlib import Path
    from extension_build import build_package, create_context

    result = build_package(create_context(Path.cwd()))
    print(result.archive_path)
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import json
import os
import typing as typ
import zipfile
from pathlib import Path

from .bundler import (
    TRANSPILED_PATH,
    module_bundle_config,
    module_transpile_request,
    write_bundle,
)
from .dependencies import DEPENDENCY_METADATA_FILES, install_dependencies
from .errors import PackagingError
from .fs_utils import copy_tree, remove_path
from .metadata import read_package_version

if typ.TYPE_CHECKING:
    from .context import BuildContext
    from .metadata import ExtensionParams

__all__ = [
    "ExtensionManifest",
    "MANIFEST_FILE",
    "PackageResult",
    "build_manifest",
    "build_package",
    "package_file_name",
    "transpile_module",
    "write_archive",
]

BUILD_DIR = "build"
STAGING_DIR = "build/tmp"
LIB_DIR = "build/assets/lib"
BACKEND_MODULES_DIR = "custom/Espo/Modules"
CLIENT_MODULES_DIR = "client/custom/modules"
MANIFEST_FILE = "manifest.json"
PARTIAL_SUFFIX = ".part"


@dataclasses.dataclass(slots=True, frozen=True)
class ExtensionManifest:
    """Metadata document written to the package root."""

    name: str
    description: str
    author: str
    php: typ.Any
    acceptable_versions: typ.Any
    version: str
    release_date: str
    skip_backup: bool = True

    def as_dict(self) -> dict[str, typ.Any]:
        """Return the manifest with the host's key names and order."""
        return {
            "name": self.name,
            "description": self.description,
            "author": self.author,
            "php": self.php,
            "acceptableVersions": self.acceptable_versions,
            "version": self.version,
            "skipBackup": self.skip_backup,
            "releaseDate": self.release_date,
        }

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), indent=4, ensure_ascii=False)


@dataclasses.dataclass(slots=True, frozen=True)
class PackageResult:
    """Outcome of :func:`build_package`."""

    archive_path: Path
    manifest: ExtensionManifest


def package_file_name(extension: ExtensionParams, version: str) -> str:
    """Return the archive file name for ``extension`` at ``version``.

    Examples
    --------
    >>> from extension_build.metadata import ExtensionParams
    >>> package_file_name(ExtensionParams(module="CustomModule", name="x"), "1.2.0")
    'custom-module-1.2.0.zip'
    """
    return f"{extension.package_name_hyphen}-{version}.zip"


def build_manifest(
    extension: ExtensionParams,
    version: str,
    *,
    release_date: dt.date | None = None,
) -> ExtensionManifest:
    """Return the manifest for ``extension`` released today at ``version``."""
    day = release_date or dt.date.today()
    return ExtensionManifest(
        name=extension.name,
        description=extension.description,
        author=extension.author,
        php=extension.php,
        acceptable_versions=extension.acceptable_versions,
        version=version,
        release_date=day.isoformat(),
    )


def transpile_module(context: BuildContext) -> None:
    """Transpile the client module of a bundled extension.

    Previous output under ``build/assets/transpiled/custom`` is removed first.
    Non-bundled extensions are left untouched.
    """
    if not context.extension.bundled:
        return
    remove_path(context.workspace / TRANSPILED_PATH)
    print("Transpiling...")
    context.bundler.transpile(module_transpile_request(context.extension))


def build_package(
    context: BuildContext, *, release_date: dt.date | None = None
) -> PackageResult:
    """Build the extension package archive.

    Parameters
    ----------
    context : BuildContext
        Stage inputs for the current workspace.
    release_date : datetime.date, optional
        Date recorded in the manifest. Defaults to today.

    Returns
    -------
    PackageResult
        Path of the finished archive and the manifest it contains.

    Raises
    ------
    BuildError
        Raised when a build script, the bundler, or the dependency manager
        fails. The staging directory is removed and no archive is left under
        the target name.
    """
    print("Building extension package...")
    workspace = context.workspace
    extension = context.extension
    source_dir = workspace / "src"
    staging_dir = workspace / STAGING_DIR
    remove_path(staging_dir)
    if not source_dir.is_dir():
        message = f"Extension sources not found at {source_dir}"
        raise PackagingError(message)

    try:
        lib_dir = workspace / LIB_DIR
        remove_path(lib_dir)
        if extension.bundled:
            transpile_module(context)
            print("Bundling...")
            output = context.bundler.bundle(module_bundle_config(extension))
            write_bundle(output, lib_dir)
        _run_build_scripts(context)

        version = read_package_version(workspace)
        manifest = build_manifest(extension, version, release_date=release_date)

        build_dir = workspace / BUILD_DIR
        build_dir.mkdir(parents=True, exist_ok=True)
        archive_path = build_dir / package_file_name(extension, version)
        remove_path(archive_path)

        staging_dir.mkdir(parents=True)
        copy_tree(source_dir, staging_dir)
        if extension.bundled:
            _apply_bundle(staging_dir, lib_dir, extension)
        _install_staged_dependencies(context, staging_dir)
        if context.package_hook is not None:
            context.package_hook(staging_dir)
        (staging_dir / MANIFEST_FILE).write_text(
            manifest.to_json(), encoding="utf-8"
        )
        write_archive(staging_dir, archive_path)
    finally:
        remove_path(staging_dir)

    print("Package has been built.")
    return PackageResult(archive_path=archive_path, manifest=manifest)


def write_archive(source_dir: Path, archive_path: Path) -> list[str]:
    """Zip the tree below ``source_dir`` into ``archive_path``.

    Entries use POSIX paths relative to ``source_dir`` without an enclosing
    folder, in sorted order. Directories get their own ``name/`` entry so
    empty ones survive extraction. The archive is written beside the target
    with a ``.part`` suffix and only renamed once the zip file has been
    closed, so a file under ``archive_path`` is always complete.

    Returns
    -------
    list[str]
        Archive entry names in the order written.
    """
    partial = archive_path.with_name(archive_path.name + PARTIAL_SUFFIX)
    paths = sorted(source_dir.rglob("*"))
    names = [_entry_name(path, source_dir) for path in paths]
    try:
        with zipfile.ZipFile(
            partial, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
        ) as archive:
            for path, name in zip(paths, names, strict=True):
                archive.write(path, name)
    except Exception:
        partial.unlink(missing_ok=True)
        raise
    os.replace(partial, archive_path)
    return names


def _entry_name(path: Path, root: Path) -> str:
    name = path.relative_to(root).as_posix()
    return f"{name}/" if path.is_dir() else name


def _run_build_scripts(context: BuildContext) -> None:
    for executable, *args in context.extension.build_scripts:
        context.gateway.run(executable, args, cwd=context.workspace)


def _apply_bundle(
    staging_dir: Path, lib_dir: Path, extension: ExtensionParams
) -> None:
    """Swap the staged raw client sources for the compiled library."""
    module_dir = staging_dir / "files" / CLIENT_MODULES_DIR / extension.module_hyphen
    copy_tree(lib_dir, module_dir / "lib")
    remove_path(module_dir / "src")


def _install_staged_dependencies(context: BuildContext, staging_dir: Path) -> None:
    module_dir = staging_dir / "files" / BACKEND_MODULES_DIR / context.extension.module
    if not install_dependencies(context.gateway, module_dir, include_dev=False):
        return
    for name in DEPENDENCY_METADATA_FILES:
        (module_dir / name).unlink(missing_ok=True)
