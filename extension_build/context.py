"""Inputs shared by every stage of a pipeline run."""

from __future__ import annotations

import dataclasses
import typing as typ
from pathlib import Path

from .bundler import CommandBundler
from .config import load_config
from .gateway import LocalToolGateway
from .metadata import load_extension_params

if typ.TYPE_CHECKING:
    from .bundler import AssetBundler
    from .config import Config
    from .gateway import ToolGateway
    from .metadata import ExtensionParams

__all__ = ["BuildContext", "PackageHook", "create_context"]

PackageHook = typ.Callable[[Path], None]


@dataclasses.dataclass(slots=True, frozen=True)
class BuildContext:
    """Everything a stage may read while it runs.

    Stages never pass values to each other; they communicate through the
    filesystem under :attr:`workspace`.

    Attributes
    ----------
    config : Config
        Merged configuration.
    extension : ExtensionParams
        Parsed ``extension.json``.
    gateway : ToolGateway
        Runner for external commands.
    bundler : AssetBundler
        Client build tools.
    branch : str | None
        Overrides the configured host branch for fetch stages.
    file : str | None
        Restricts the copy stage to one path below ``src/files``.
    package_hook : PackageHook | None
        Called with the staging directory before the manifest is written.
    """

    config: Config
    extension: ExtensionParams
    gateway: ToolGateway
    bundler: AssetBundler
    branch: str | None = None
    file: str | None = None
    package_hook: PackageHook | None = None

    @property
    def workspace(self) -> Path:
        """Extension workspace root."""
        return self.config.workspace

    @property
    def site_dir(self) -> Path:
        """Host installation directory."""
        return self.config.site_dir

    @property
    def effective_branch(self) -> str:
        """Branch to fetch: the override when given, else the configured one."""
        return self.branch or self.config.repository.branch


def create_context(
    workspace: Path,
    *,
    branch: str | None = None,
    file: str | None = None,
    gateway: ToolGateway | None = None,
) -> BuildContext:
    """Load configuration and metadata from ``workspace`` into a context."""
    config = load_config(workspace)
    tools = gateway or LocalToolGateway()
    return BuildContext(
        config=config,
        extension=load_extension_params(workspace),
        gateway=tools,
        bundler=CommandBundler(config.bundler.command, tools, workspace),
        branch=branch,
        file=file,
    )
