"""Command-line entry point for the extension build.

Examples
--------
Fetch and install a host instance, then copy the extension into it::

    extension-build all --branch stable

Build the distributable package::

    extension-build extension
"""

from __future__ import annotations

import sys
import typing as typ

from cyclopts import App, Parameter

from .context import create_context
from .environment import resolve_workspace
from .errors import BuildError, UsageError
from .pipelines import Command, run_pipeline

__all__ = ["app", "main"]

app = App(
    name="extension-build",
    help="Build, install, and package the extension against its host application.",
)

BranchOption = typ.Annotated[
    str | None, Parameter(help="Host branch to fetch instead of the configured one.")
]
FileOption = typ.Annotated[
    str | None, Parameter(help="Copy only this path, relative to src/files.")
]


def _execute(
    command: Command, *, branch: str | None = None, file: str | None = None
) -> None:
    """Run ``command`` against the workspace and exit non-zero on failure."""
    try:
        context = create_context(resolve_workspace(), branch=branch, file=file)
        run_pipeline(command, context)
    except UsageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    except (BuildError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    print("Done")


@app.default
def usage() -> None:
    """Show the available commands."""
    app.help_print()
    raise SystemExit(2)


@app.command(name="all")
def full(*, branch: BranchOption = None) -> None:
    """Fetch, install, and configure a host instance with the extension."""
    _execute(Command.ALL, branch=branch)


@app.command(name="install")
def install() -> None:
    """Install the fetched host instance and the dropped-in extensions."""
    _execute(Command.INSTALL)


@app.command(name="fetch")
def fetch(*, branch: BranchOption = None) -> None:
    """Download the host release into site/."""
    _execute(Command.FETCH, branch=branch)


@app.command(name="copy")
def copy(*, file: FileOption = None) -> None:
    """Copy the extension sources into the host instance."""
    _execute(Command.COPY, file=file)


@app.command(name="extension")
def extension() -> None:
    """Build the distributable extension package."""
    _execute(Command.EXTENSION)


@app.command(name="after-install")
def after_install() -> None:
    """Run the after-install script against the host instance."""
    _execute(Command.AFTER_INSTALL)


@app.command(name="rebuild")
def rebuild() -> None:
    """Rebuild the host instance."""
    _execute(Command.REBUILD)


@app.command(name="composer-install")
def composer_install() -> None:
    """Install the installed module's dependencies."""
    _execute(Command.COMPOSER_INSTALL)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
