"""
sitedeploy.core - Foundation layer for the sitedeploy CLI.

Exports logging, configuration, errors, process execution and git operations.
"""

# Utils
from sitedeploy.core.utils import (
    log,
    Logger,
    slugify,
)

# Configuration
from sitedeploy.core.config import (
    DeployConfig,
    ProjectEntry,
    StackConfig,
    config_from_dict,
    load_config,
)

# Errors
from sitedeploy.core.errors import (
    BuildExecutorFailed,
    ConfigurationError,
    DataSyncFailed,
    DeployError,
    FetchFailed,
    HookFailed,
    ManifestUnavailable,
    RepositoryUpdateFailed,
    SearchIndexError,
    SymlinkApplyError,
)

# External processes
from sitedeploy.core.process import ProcessResult, ProcessRunner
from sitedeploy.core.git_ops import GitClient
from sitedeploy.core.timing import PhaseTimings, TimingContext, format_duration

__all__ = [
    # Utils
    "log",
    "Logger",
    "slugify",
    # Configuration
    "DeployConfig",
    "ProjectEntry",
    "StackConfig",
    "config_from_dict",
    "load_config",
    # Errors
    "BuildExecutorFailed",
    "ConfigurationError",
    "DataSyncFailed",
    "DeployError",
    "FetchFailed",
    "HookFailed",
    "ManifestUnavailable",
    "RepositoryUpdateFailed",
    "SearchIndexError",
    "SymlinkApplyError",
    # Processes
    "ProcessResult",
    "ProcessRunner",
    "GitClient",
    "PhaseTimings",
    "TimingContext",
    "format_duration",
]
