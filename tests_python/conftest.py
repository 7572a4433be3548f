"""Shared fixtures for the extension build test suite."""

from __future__ import annotations

import dataclasses
import typing as typ
from pathlib import Path

import pytest
from build_test_helpers import FakeBundler, RecordingGateway, write_extension_workspace

from extension_build.context import BuildContext, create_context
from extension_build.environment import WORKSPACE_ENV


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated workspace and point ``EXTENSION_BUILD_WORKSPACE`` at it."""
    root = tmp_path / "workspace"
    root.mkdir()
    monkeypatch.setenv(WORKSPACE_ENV, str(root))
    return root


@pytest.fixture
def extension_workspace(workspace: Path) -> Path:
    """Populate ``workspace`` with a non-bundled ``CustomModule`` extension."""

    return write_extension_workspace(workspace)


@pytest.fixture
def gateway() -> RecordingGateway:
    """Provide a tool gateway that records commands instead of running them."""

    return RecordingGateway()


@pytest.fixture
def make_context(
    gateway: RecordingGateway,
) -> typ.Callable[..., BuildContext]:
    """Return a factory building contexts wired to the recording fakes."""

    def _make(workspace: Path, **overrides: object) -> BuildContext:
        context = create_context(workspace, gateway=gateway)
        context = dataclasses.replace(context, bundler=FakeBundler(workspace))
        return dataclasses.replace(context, **overrides)

    return _make
