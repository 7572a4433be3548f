"""Tests for reading ``extension.json`` and the package version."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from extension_build.errors import ConfigError
from extension_build.fs_utils import camel_to_hyphen
from extension_build.metadata import (
    ExtensionParams,
    load_extension_params,
    read_package_version,
)


def _write(path: Path, data: object) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def test_reads_extension_parameters(extension_workspace: Path) -> None:
    params = load_extension_params(extension_workspace)

    assert params.module == "CustomModule"
    assert params.name == "Custom Module"
    assert params.module_hyphen == "custom-module"
    assert params.php == [">=8.1"]
    assert params.acceptable_versions == [">=8.0.0"]
    assert params.bundled is False
    assert params.build_scripts == ()


def test_optional_keys_default(workspace: Path) -> None:
    _write(workspace / "extension.json", {"module": "Sales"})

    params = load_extension_params(workspace)

    assert params.name == "Sales", "The module doubles as the display name"
    assert params.package_name is None
    assert params.package_name_hyphen == "sales"


def test_build_scripts_accept_strings_and_lists(workspace: Path) -> None:
    _write(
        workspace / "extension.json",
        {
            "module": "Sales",
            "packageName": "SalesPack",
            "buildScripts": ["npm run 'build docs'", ["php", "gen.php"]],
        },
    )

    params = load_extension_params(workspace)

    assert params.build_scripts == (
        ("npm", "run", "build docs"),
        ("php", "gen.php"),
    )
    assert params.package_name_hyphen == "sales-pack"


@pytest.mark.parametrize(
    "data",
    [{"name": "No module"}, {"module": ""}, {"module": "X", "buildScripts": "npm"}],
)
def test_invalid_extension_file(workspace: Path, data: dict[str, object]) -> None:
    _write(workspace / "extension.json", data)

    with pytest.raises(ConfigError):
        load_extension_params(workspace)


def test_missing_extension_file(workspace: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_extension_params(workspace)


def test_malformed_json(workspace: Path) -> None:
    (workspace / "extension.json").write_text("{", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_extension_params(workspace)


class TestPackageVersion:
    """Version lookup in the package metadata files."""

    def test_reads_package_json(self, workspace: Path) -> None:
        _write(workspace / "package.json", {"version": "1.2.0"})

        assert read_package_version(workspace) == "1.2.0"

    def test_test_package_takes_precedence(self, workspace: Path) -> None:
        _write(workspace / "package.json", {"version": "1.2.0"})
        _write(workspace / "test-package.json", {"version": "0.0.1-test"})

        assert read_package_version(workspace) == "0.0.1-test"

    def test_missing_version_key(self, workspace: Path) -> None:
        _write(workspace / "package.json", {"name": "custom-module"})

        with pytest.raises(ConfigError, match="'version'"):
            read_package_version(workspace)

    def test_missing_files(self, workspace: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Package metadata not found"):
            read_package_version(workspace)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("CustomModule", "custom-module"),
        ("Sales", "sales"),
        ("MyCRMTools", "my-crmtools"),
        ("already-hyphen", "already-hyphen"),
    ],
)
def test_camel_to_hyphen(name: str, expected: str) -> None:
    assert camel_to_hyphen(name) == expected


def test_extension_params_are_frozen() -> None:
    params = ExtensionParams(module="Sales", name="Sales")

    with pytest.raises(AttributeError):
        params.module = "Other"  # type: ignore[misc]


@pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
def test_bundled_flag_must_be_boolean(workspace: Path, value: object) -> None:
    """String or numeric flags are rejected instead of coerced."""

    _write(workspace / "extension.json", {"module": "Sales", "bundled": value})

    with pytest.raises(ConfigError, match="bundled must be true or false"):
        load_extension_params(workspace)
