"""Shared fakes and workspace builders for the build test suites."""

from __future__ import annotations

import dataclasses
import json
import typing as typ
from pathlib import Path

from extension_build.bundler import (
    TRANSPILED_PATH,
    BundleConfig,
    BundleOutput,
    TranspileRequest,
)
from extension_build.errors import ToolError
from extension_build.gateway import render_command

__all__ = [
    "CONFIG_DEFAULT",
    "FakeBundler",
    "RecordingGateway",
    "ToolCall",
    "write_extension_workspace",
]

CONFIG_DEFAULT = """\
[repository]
url = "https://github.com/espocrm/espocrm.git"
branch = "master"

[database]
host = "localhost"
dbname = "espo"
user = "root"
password = "secret"

[install]
language = "en_US"
site_url = "http://localhost/site"
default_owner = "www-data"
default_group = "www-data"
admin_username = "admin"
admin_password = "1"
"""

Handler = typ.Callable[[list[str], Path], str | None]


@dataclasses.dataclass(frozen=True)
class ToolCall:
    """External command invocation captured by :class:`RecordingGateway`."""

    command: str
    args: tuple[str, ...]
    cwd: Path

    @property
    def line(self) -> str:
        return render_command(self.command, self.args)


class RecordingGateway:
    """Tool gateway that records invocations instead of spawning processes.

    ``handlers`` maps an executable name to a callable receiving the argument
    list and working directory. A handler may create files, return stdout, or
    raise :class:`ToolError` to simulate a failing tool.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None) -> None:
        self.calls: list[ToolCall] = []
        self.handlers: dict[str, Handler] = dict(handlers or {})

    def run(
        self, command: str, args: typ.Sequence[str] = (), *, cwd: Path
    ) -> str:
        self.calls.append(ToolCall(command, tuple(args), cwd))
        handler = self.handlers.get(command)
        if handler is None:
            return ""
        return handler(list(args), cwd) or ""

    def fail(self, command: str, output: str = "boom") -> None:
        """Make every later ``command`` invocation raise :class:`ToolError`."""

        def _raise(args: list[str], _cwd: Path) -> None:
            raise ToolError(render_command(command, args), 1, output)

        self.handlers[command] = _raise

    @property
    def lines(self) -> list[str]:
        return [call.line for call in self.calls]


class FakeBundler:
    """In-process stand-in for the client build tools."""

    def __init__(self, workspace: Path) -> None:
        self.workspace = workspace
        self.transpiled: list[TranspileRequest] = []
        self.bundled: list[BundleConfig] = []

    def transpile(self, request: TranspileRequest) -> None:
        self.transpiled.append(request)
        target = (
            self.workspace
            / TRANSPILED_PATH
            / "modules"
            / request.module_id
            / "src"
            / "views"
            / "record.js"
        )
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("define('transpiled');", encoding="utf-8")

    def bundle(self, config: BundleConfig) -> BundleOutput:
        self.bundled.append(config)
        return BundleOutput(
            chunks={name: f"/* {name} */" for name in config.chunk_order},
            templates="<div>{{name}}</div>",
        )


def write_extension_workspace(
    root: Path,
    *,
    bundled: bool = False,
    version: str = "1.2.0",
    extra_params: dict[str, object] | None = None,
) -> Path:
    """Populate ``root`` with a minimal ``CustomModule`` extension workspace.

    Parameters
    ----------
    root : Path
        Workspace directory to populate.
    bundled : bool
        Value written to ``extension.json``'s ``bundled`` key.
    version : str
        Version written to ``package.json``.
    extra_params : dict[str, object], optional
        Additional ``extension.json`` keys.
    """
    (root / "config-default.toml").write_text(CONFIG_DEFAULT, encoding="utf-8")
    params: dict[str, object] = {
        "name": "Custom Module",
        "module": "CustomModule",
        "description": "Adds custom entities.",
        "author": "Example Ltd",
        "php": [">=8.1"],
        "acceptableVersions": [">=8.0.0"],
        "bundled": bundled,
    }
    params |= extra_params or {}
    (root / "extension.json").write_text(json.dumps(params), encoding="utf-8")
    (root / "package.json").write_text(
        json.dumps({"name": "custom-module", "version": version}), encoding="utf-8"
    )

    files = root / "src" / "files"
    backend = files / "custom" / "Espo" / "Modules" / "CustomModule"
    (backend / "Resources").mkdir(parents=True)
    (backend / "Resources" / "module.json").write_text(
        '{"order": 20}', encoding="utf-8"
    )
    client = files / "client" / "custom" / "modules" / "custom-module"
    (client / "src" / "views").mkdir(parents=True)
    (client / "src" / "views" / "record.js").write_text(
        "define('record');", encoding="utf-8"
    )
    (client / "res" / "templates").mkdir(parents=True)
    (client / "res" / "templates" / "record.tpl").write_text(
        "<div></div>", encoding="utf-8"
    )
    scripts = root / "src" / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "AfterInstall.php").write_text("<?php\n", encoding="utf-8")
    return root
