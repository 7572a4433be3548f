"""Blocking external command execution for build stages.

Every stage that needs the host installer, the dependency manager, or the
client build tools goes through a :class:`ToolGateway`. The gateway runs one
command at a time in the requested working directory and either returns the
command's standard output or raises :class:`~extension_build.errors.ToolError`
carrying its diagnostic output.
"""

from __future__ import annotations

import re
import shlex
import typing as typ
from pathlib import Path

from plumbum import local
from plumbum.commands import CommandNotFound, ProcessExecutionError

from .errors import ToolError

__all__ = ["LocalToolGateway", "ToolGateway", "redact", "render_command"]


class ToolGateway(typ.Protocol):
    """Run a single blocking external command."""

    def run(
        self, command: str, args: typ.Sequence[str] = (), *, cwd: Path
    ) -> str:
        """Execute ``command`` with ``args`` inside ``cwd`` and return stdout."""
        ...


_SECRET_FIELD = re.compile(
    r"(?P<key>[\w.-]*(?:pass(?:word)?|secret|token)[\w.-]*)=[^&\s]*", re.IGNORECASE
)
REDACTED = "***"


def redact(argument: str) -> str:
    """Mask the values of credential fields in ``argument``.

    Examples
    --------
    >>> redact("user-name=admin&user-pass=1")
    'user-name=admin&user-pass=***'
    """
    return _SECRET_FIELD.sub(rf"\g<key>={REDACTED}", argument)


def render_command(command: str, args: typ.Sequence[str]) -> str:
    """Return a shell-quoted rendering of ``command`` and ``args``.

    Credential values passed as ``key=value`` fields are masked, so the
    result is safe to echo and to embed in error messages.

    Examples
    --------
    >>> render_command("php", ["install/cli.php", "-a", "step1"])
    'php install/cli.php -a step1'
    """
    return shlex.join([command, *map(redact, args)])


class LocalToolGateway:
    """Execute commands on the local machine through :mod:`plumbum`."""

    def run(
        self, command: str, args: typ.Sequence[str] = (), *, cwd: Path
    ) -> str:
        """Run ``command`` and return its standard output.

        Parameters
        ----------
        command : str
            Executable name resolved on ``PATH``, or an absolute path.
        args : Sequence[str]
            Arguments passed verbatim, without shell interpretation.
        cwd : Path
            Working directory for the process.

        Raises
        ------
        ToolError
            If the executable cannot be found or exits with a non-zero status.
        """
        rendered = render_command(command, args)
        print(f"→ {rendered}")
        try:
            executable = local[command]
        except CommandNotFound as exc:
            raise ToolError(rendered, None, f"{command}: command not found") from exc

        with local.cwd(cwd):
            try:
                return executable[list(args)]()
            except ProcessExecutionError as exc:
                output = exc.stderr or exc.stdout or ""
                raise ToolError(rendered, int(exc.retcode or 1), output) from exc
