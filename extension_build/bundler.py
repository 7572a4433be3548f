"""Boundary to the client asset transpiler and bundler.

The build tools that turn client module sources into shippable script chunks
and a template blob are an opaque collaborator. This module defines the
configuration handed to them, the blobs they return, and a default
implementation that reaches them through the tool gateway.
"""

from __future__ import annotations

import dataclasses
import json
import typing as typ
from pathlib import Path

from .errors import BuildError

if typ.TYPE_CHECKING:
    from .gateway import ToolGateway
    from .metadata import ExtensionParams

__all__ = [
    "AssetBundler",
    "BundleConfig",
    "BundleOutput",
    "CommandBundler",
    "TEMPLATES_FILE",
    "TranspileRequest",
    "module_bundle_config",
    "module_transpile_request",
    "write_bundle",
]

CLIENT_SOURCE_PATH = "src/files/client"
TRANSPILED_PATH = "build/assets/transpiled/custom"
TEMPLATES_FILE = "templates.tpl"


@dataclasses.dataclass(slots=True, frozen=True)
class TranspileRequest:
    """Transpile one client module into ``destination_path``."""

    source_path: str
    module_id: str
    destination_path: str


@dataclasses.dataclass(slots=True, frozen=True)
class BundleConfig:
    """Describe the chunks the bundler should emit.

    Parameters
    ----------
    source_path : str
        Client sources root, relative to the workspace.
    module_id : str
        Hyphenated client module identifier.
    destination_path : str
        Path template the compiled chunks are served from.
    chunk_order : tuple[str, ...]
        Chunk names in load order.
    chunk_patterns : dict[str, tuple[str, ...]]
        Glob patterns selecting the sources of each chunk.
    single_file : str | None
        Restrict bundling to one source file when set.
    """

    source_path: str
    module_id: str
    destination_path: str
    chunk_order: tuple[str, ...]
    chunk_patterns: dict[str, tuple[str, ...]]
    single_file: str | None = None

    def as_payload(self) -> dict[str, typ.Any]:
        """Return the JSON payload understood by the build tools."""
        return {
            "sourcePath": self.source_path,
            "moduleId": self.module_id,
            "destinationPath": self.destination_path,
            "chunkOrder": list(self.chunk_order),
            "chunkPatterns": {
                name: list(patterns) for name, patterns in self.chunk_patterns.items()
            },
            "singleFile": self.single_file,
        }


@dataclasses.dataclass(slots=True, frozen=True)
class BundleOutput:
    """Compiled chunks keyed by chunk name plus the template blob."""

    chunks: dict[str, str]
    templates: str


class AssetBundler(typ.Protocol):
    """Client build tools used by the copy and packaging stages."""

    def transpile(self, request: TranspileRequest) -> None:
        """Write transpiled module sources to ``request.destination_path``."""
        ...

    def bundle(self, config: BundleConfig) -> BundleOutput:
        """Return the compiled chunks and templates described by ``config``."""
        ...


class CommandBundler:
    """Reach the build tools through an external command.

    The command receives ``transpile <json>`` or ``bundle <json>``. For
    ``bundle`` it prints a JSON document ``{"chunks": {...}, "templates": ""}``
    on standard output.
    """

    def __init__(
        self, command: typ.Sequence[str], gateway: ToolGateway, cwd: Path
    ) -> None:
        if not command:
            message = "Bundler command must not be empty"
            raise BuildError(message)
        self._command = tuple(command)
        self._gateway = gateway
        self._cwd = cwd

    def transpile(self, request: TranspileRequest) -> None:
        payload = {
            "sourcePath": request.source_path,
            "moduleId": request.module_id,
            "destinationPath": request.destination_path,
        }
        self._invoke("transpile", payload)

    def bundle(self, config: BundleConfig) -> BundleOutput:
        stdout = self._invoke("bundle", config.as_payload())
        try:
            data = json.loads(stdout)
            chunks = {str(name): str(blob) for name, blob in data["chunks"].items()}
            templates = str(data.get("templates", ""))
        except (json.JSONDecodeError, KeyError, AttributeError, TypeError) as exc:
            message = f"Bundler returned malformed output: {exc}"
            raise BuildError(message) from exc
        if missing := [name for name in config.chunk_order if name not in chunks]:
            message = f"Bundler output is missing chunk(s): {', '.join(missing)}"
            raise BuildError(message)
        return BundleOutput(chunks=chunks, templates=templates)

    def _invoke(self, action: str, payload: dict[str, typ.Any]) -> str:
        executable, *args = self._command
        return self._gateway.run(
            executable, [*args, action, json.dumps(payload)], cwd=self._cwd
        )


def module_transpile_request(extension: ExtensionParams) -> TranspileRequest:
    """Return the transpile request for ``extension``'s client module."""
    mod = extension.module_hyphen
    return TranspileRequest(
        source_path=f"{CLIENT_SOURCE_PATH}/custom/modules/{mod}",
        module_id=mod,
        destination_path=TRANSPILED_PATH,
    )


def module_bundle_config(
    extension: ExtensionParams, single_file: str | None = None
) -> BundleConfig:
    """Return the chunk layout used to ship ``extension``'s client module.

    Examples
    --------
    >>> from extension_build.metadata import ExtensionParams
    >>> config = module_bundle_config(ExtensionParams(module="CustomModule", name="x"))
    >>> config.chunk_order
    ('init', 'module-custom-module')
    """
    mod = extension.module_hyphen
    chunk_name = f"module-{mod}"
    return BundleConfig(
        source_path=CLIENT_SOURCE_PATH,
        module_id=mod,
        destination_path=f"client/custom/modules/{mod}/lib/{{*}}.js",
        chunk_order=("init", chunk_name),
        chunk_patterns={
            "init": (),
            chunk_name: (f"custom/modules/{mod}/src/**/*.js",),
        },
        single_file=single_file,
    )


def write_bundle(output: BundleOutput, lib_dir: Path) -> list[Path]:
    """Write ``output`` into ``lib_dir`` and return the files written."""
    lib_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for name, blob in output.chunks.items():
        path = lib_dir / f"{name}.js"
        path.write_text(blob, encoding="utf-8")
        written.append(path)
    templates = lib_dir / TEMPLATES_FILE
    templates.write_text(output.templates, encoding="utf-8")
    written.append(templates)
    return written
