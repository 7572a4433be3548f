"""Public interface for the extension build package."""

from .bundler import AssetBundler, BundleConfig, BundleOutput, CommandBundler
from .config import Config, load_config
from .context import BuildContext, create_context
from .environment import resolve_workspace
from .errors import BuildError, ConfigError, PackagingError, ToolError, UsageError
from .gateway import LocalToolGateway, ToolGateway
from .metadata import ExtensionParams, load_extension_params, read_package_version
from .migrate import MoveRecord, move_dir_contents
from .packager import ExtensionManifest, PackageResult, build_package
from .pipelines import PIPELINES, Command, Stage, run_pipeline

__all__ = [
    "AssetBundler",
    "BuildContext",
    "BuildError",
    "BundleConfig",
    "BundleOutput",
    "Command",
    "CommandBundler",
    "Config",
    "ConfigError",
    "ExtensionManifest",
    "ExtensionParams",
    "LocalToolGateway",
    "MoveRecord",
    "PIPELINES",
    "PackageResult",
    "PackagingError",
    "Stage",
    "ToolError",
    "ToolGateway",
    "UsageError",
    "build_package",
    "create_context",
    "load_config",
    "load_extension_params",
    "move_dir_contents",
    "read_package_version",
    "resolve_workspace",
    "run_pipeline",
]
