"""Error types shared across the extension build package."""

from __future__ import annotations

__all__ = [
    "BuildError",
    "ConfigError",
    "PackagingError",
    "ToolError",
    "UsageError",
]


class BuildError(RuntimeError):
    """Raised when a build stage cannot continue."""


class ConfigError(BuildError):
    """Raised when configuration or extension metadata is invalid."""


class PackagingError(BuildError):
    """Raised when the extension package cannot be assembled."""


class UsageError(BuildError):
    """Raised when the requested command cannot be resolved."""


class ToolError(BuildError):
    """Raised when an external command fails or cannot be found.

    Parameters
    ----------
    command : str
        Rendered command line that was executed.
    returncode : int | None
        Exit status reported by the process, ``None`` when it never started.
    output : str
        Diagnostic output captured from the process.
    """

    def __init__(self, command: str, returncode: int | None, output: str) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        status = "not found" if returncode is None else f"exit {returncode}"
        message = f"Command '{command}' failed ({status})"
        if detail := output.strip():
            message = f"{message}:\n{detail}"
        super().__init__(message)
