"""Named build pipelines and their fail-fast runner.

A pipeline is a fixed, ordered tuple of stages selected by one
:class:`Command`. Stages run strictly one after another; the first stage that
raises stops the pipeline and the exception reaches the caller unchanged.
Work done by earlier stages is left in place.

Usage
-----
Run the package pipeline for the current workspace::

    from pathlib import Path
    from extension_build import Command, create_context, run_pipeline

    run_pipeline(Command.EXTENSION, create_context(Path.cwd()))
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ
from types import MappingProxyType

from . import host
from .errors import UsageError
from .packager import build_package

if typ.TYPE_CHECKING:
    from .context import BuildContext

__all__ = [
    "Command",
    "PIPELINES",
    "PipelineResult",
    "Stage",
    "run_pipeline",
]


class Command(enum.StrEnum):
    """Closed set of pipelines selectable from the command line."""

    ALL = "all"
    INSTALL = "install"
    FETCH = "fetch"
    COPY = "copy"
    EXTENSION = "extension"
    AFTER_INSTALL = "after-install"
    REBUILD = "rebuild"
    COMPOSER_INSTALL = "composer-install"


@dataclasses.dataclass(slots=True, frozen=True)
class Stage:
    """One named unit of work within a pipeline."""

    name: str
    run: typ.Callable[[BuildContext], object]


@dataclasses.dataclass(slots=True, frozen=True)
class PipelineResult:
    """Outcome of a pipeline that ran to completion."""

    command: Command
    completed: tuple[str, ...]


FETCH_HOST = Stage("fetch-host", host.fetch_host)
INSTALL_HOST = Stage("install-host", host.install_host)
INSTALL_EXTENSIONS = Stage("install-extensions", host.install_extensions)
COPY_EXTENSION = Stage("copy-extension", host.copy_extension)
COMPOSER_INSTALL = Stage("composer-install", host.composer_install)
REBUILD = Stage("rebuild", host.rebuild)
AFTER_INSTALL = Stage("after-install", host.after_install)
SET_OWNER = Stage("set-owner", host.set_owner)
BUILD_PACKAGE = Stage("build-package", build_package)

PIPELINES: typ.Mapping[Command, tuple[Stage, ...]] = MappingProxyType(
    {
        Command.ALL: (
            FETCH_HOST,
            INSTALL_HOST,
            INSTALL_EXTENSIONS,
            COPY_EXTENSION,
            COMPOSER_INSTALL,
            REBUILD,
            AFTER_INSTALL,
            SET_OWNER,
        ),
        Command.INSTALL: (INSTALL_HOST, INSTALL_EXTENSIONS, SET_OWNER),
        Command.FETCH: (FETCH_HOST,),
        Command.COPY: (COPY_EXTENSION, SET_OWNER),
        Command.EXTENSION: (BUILD_PACKAGE,),
        Command.AFTER_INSTALL: (AFTER_INSTALL,),
        Command.REBUILD: (REBUILD,),
        Command.COMPOSER_INSTALL: (COMPOSER_INSTALL,),
    }
)


def run_pipeline(
    command: Command | str,
    context: BuildContext,
    *,
    pipelines: typ.Mapping[Command, tuple[Stage, ...]] = PIPELINES,
) -> PipelineResult:
    """Run the pipeline selected by ``command``.

    Parameters
    ----------
    command : Command | str
        Pipeline name.
    context : BuildContext
        Inputs shared by every stage.
    pipelines : Mapping[Command, tuple[Stage, ...]], optional
        Pipeline table. Defaults to :data:`PIPELINES`.

    Returns
    -------
    PipelineResult
        The command and the names of the stages that ran.

    Raises
    ------
    UsageError
        If ``command`` names no pipeline.
    Exception
        Whatever the first failing stage raised; later stages do not run.
    """
    try:
        selected = Command(command)
        stages = pipelines[selected]
    except (ValueError, KeyError) as exc:
        message = f"Unknown command: {command}"
        raise UsageError(message) from exc

    completed: list[str] = []
    for stage in stages:
        stage.run(context)
        completed.append(stage.name)
    return PipelineResult(command=selected, completed=tuple(completed))
