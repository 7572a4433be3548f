"""Tests for pipeline selection and the fail-fast stage runner."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import pytest
from build_test_helpers import RecordingGateway

from extension_build.context import BuildContext
from extension_build.errors import BuildError, UsageError
from extension_build.pipelines import PIPELINES, Command, Stage, run_pipeline


def _names(command: Command) -> list[str]:
    return [stage.name for stage in PIPELINES[command]]


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        (
            Command.ALL,
            [
                "fetch-host",
                "install-host",
                "install-extensions",
                "copy-extension",
                "composer-install",
                "rebuild",
                "after-install",
                "set-owner",
            ],
        ),
        (Command.INSTALL, ["install-host", "install-extensions", "set-owner"]),
        (Command.FETCH, ["fetch-host"]),
        (Command.COPY, ["copy-extension", "set-owner"]),
        (Command.EXTENSION, ["build-package"]),
        (Command.AFTER_INSTALL, ["after-install"]),
        (Command.REBUILD, ["rebuild"]),
        (Command.COMPOSER_INSTALL, ["composer-install"]),
    ],
)
def test_pipeline_stage_order(command: Command, expected: list[str]) -> None:
    """Each command maps to a fixed, ordered list of stages."""

    assert _names(command) == expected


def test_every_command_has_a_pipeline() -> None:
    """The pipeline table covers the full command set."""

    assert set(PIPELINES) == set(Command)


def test_pipeline_table_is_read_only() -> None:
    """The pipeline table cannot be changed at runtime."""

    with pytest.raises(TypeError):
        PIPELINES[Command.FETCH] = ()  # type: ignore[index]


class _Recorder:
    """Build stages that log their execution order."""

    def __init__(self) -> None:
        self.ran: list[str] = []

    def stage(self, name: str, *, error: Exception | None = None) -> Stage:
        def _run(_context: BuildContext) -> None:
            self.ran.append(name)
            if error is not None:
                raise error

        return Stage(name, _run)


def _context(make_context: typ.Callable[..., BuildContext], root: Path) -> BuildContext:
    return make_context(root)


def test_runs_stages_in_order(
    extension_workspace: Path, make_context: typ.Callable[..., BuildContext]
) -> None:
    """Stages run sequentially and the result lists them in order."""

    recorder = _Recorder()
    table = {Command.COPY: (recorder.stage("one"), recorder.stage("two"))}

    result = run_pipeline(
        Command.COPY, _context(make_context, extension_workspace), pipelines=table
    )

    assert recorder.ran == ["one", "two"]
    assert result.completed == ("one", "two")
    assert result.command is Command.COPY


def test_stops_at_first_failure(
    extension_workspace: Path, make_context: typ.Callable[..., BuildContext]
) -> None:
    """A failing stage aborts the pipeline and its error reaches the caller."""

    recorder = _Recorder()
    failure = BuildError("stage exploded")
    table = {
        Command.ALL: (
            recorder.stage("first"),
            recorder.stage("second", error=failure),
            recorder.stage("third"),
        )
    }

    with pytest.raises(BuildError) as exc:
        run_pipeline(
            Command.ALL, _context(make_context, extension_workspace), pipelines=table
        )

    assert exc.value is failure, "The stage's own exception should propagate"
    assert recorder.ran == ["first", "second"], "Later stages must not run"


def test_accepts_command_names(
    extension_workspace: Path, make_context: typ.Callable[..., BuildContext]
) -> None:
    """Command names given as plain strings select the same pipeline."""

    recorder = _Recorder()
    table = {Command.AFTER_INSTALL: (recorder.stage("after"),)}

    result = run_pipeline(
        "after-install", _context(make_context, extension_workspace), pipelines=table
    )

    assert result.command is Command.AFTER_INSTALL
    assert recorder.ran == ["after"]


@pytest.mark.parametrize("command", ["deploy", "", "ALL"])
def test_unknown_command_is_a_usage_error(
    command: str,
    extension_workspace: Path,
    make_context: typ.Callable[..., BuildContext],
) -> None:
    """Names outside the command set are rejected before any stage runs."""

    with pytest.raises(UsageError, match="Unknown command"):
        run_pipeline(command, _context(make_context, extension_workspace))


def test_missing_table_entry_is_a_usage_error(
    extension_workspace: Path, make_context: typ.Callable[..., BuildContext]
) -> None:
    """A custom table without the requested command is rejected."""

    with pytest.raises(UsageError):
        run_pipeline(
            Command.FETCH, _context(make_context, extension_workspace), pipelines={}
        )


def test_rebuild_pipeline_invokes_host_rebuild(
    extension_workspace: Path,
    make_context: typ.Callable[..., BuildContext],
    gateway: RecordingGateway,
) -> None:
    """The real rebuild pipeline reaches the host through the gateway."""

    result = run_pipeline(Command.REBUILD, _context(make_context, extension_workspace))

    assert result.completed == ("rebuild",)
    assert gateway.lines == ["php rebuild.php"]
    assert gateway.calls[0].cwd == extension_workspace / "site"
