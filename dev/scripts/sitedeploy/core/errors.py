"""
Exception taxonomy for local deployments.

Every fatal condition of a deployment run is a ``DeployError``. The
orchestrator stamps ``step`` with the phase that was running so the CLI can
report which step failed and why.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class DeployError(Exception):
    """Base class for all deployment failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.step: Optional[str] = None

    def describe(self) -> str:
        if self.step:
            return f"{self.step} failed: {self}"
        return str(self)


class ConfigurationError(DeployError):
    """Bad or missing configuration, raised before any I/O happens."""


class FetchFailed(DeployError):
    """First-time clone of a site or profile failed."""


class RepositoryUpdateFailed(DeployError):
    """Pulling an existing checkout failed."""


class ManifestUnavailable(DeployError):
    """The make file could not be read while a profile was expected."""


class BuildExecutorFailed(DeployError):
    """The build executor reported failure."""


class SymlinkApplyError(DeployError):
    """A profile symlink could not be created."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Could not link {path}: {reason}")
        self.path = path


class HookFailed(DeployError):
    """A deploy hook exited non-zero."""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"Deploy hook '{command}' exited with code {exit_code}")
        self.command = command
        self.exit_code = exit_code


class DataSyncFailed(DeployError):
    """Database download, import or sanitization failed."""


class SearchIndexError(DeployError):
    """Unexpected response from the search server."""


class FilesystemError(DeployError):
    """A file or directory operation of a step failed."""
