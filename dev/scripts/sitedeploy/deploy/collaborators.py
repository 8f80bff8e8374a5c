"""
Interfaces of the services a deployment delegates to, plus the default
implementations backed by the local configuration and external commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from sitedeploy.core.config import DeployConfig
from sitedeploy.core.errors import ConfigurationError
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.models import AppInfo, Environment, Project


# =============================================================================
# Interfaces
# =============================================================================


class ApiClient(Protocol):
    def get_project(self, project_id: str) -> Project: ...

    def get_environment(self, project: Project, environment_id: str) -> Optional[Environment]: ...


@dataclass(frozen=True)
class BuildOptions:
    archive: bool = True


class BuildExecutor(Protocol):
    def build(self, source_dir: Path, dest_dir: Path, options: BuildOptions) -> bool: ...


class DataSync(Protocol):
    def sync(
        self, project: Project, environment: Environment, app: AppInfo, no_sanitize: bool
    ) -> None: ...

    def sanitize(self, project: Project, app: AppInfo) -> None: ...


class SearchIndex(Protocol):
    def index_exists(self, base_url: str, index_name: str) -> bool: ...

    def create_index(self, base_url: str, index_name: str) -> None: ...


# =============================================================================
# Default Implementations
# =============================================================================


class ConfigApiClient:
    """Project metadata from the ``projects`` section of the config file."""

    def __init__(self, config: DeployConfig):
        self.config = config

    def get_project(self, project_id: str) -> Project:
        entry = self.config.projects.get(project_id)
        if entry is None:
            raise ConfigurationError(
                f"Unknown project '{project_id}'. Add it under 'projects' in the config file."
            )
        return Project(
            id=entry.id,
            title=entry.title,
            region=entry.region,
            site_code=entry.site_code,
            git_url=entry.git_url,
            github_url=entry.github_url,
        )

    def get_environment(self, project: Project, environment_id: str) -> Optional[Environment]:
        entry = self.config.projects.get(project.id)
        known = entry.environments if entry else ()
        if environment_id in known or environment_id == self.config.git_default_branch:
            return Environment(id=environment_id)
        return None


class CommandBuildExecutor:
    """Runs the configured build command (``platform local:build`` by default)."""

    def __init__(self, runner: ProcessRunner, command: tuple[str, ...]):
        self.runner = runner
        self.command = command

    def build(self, source_dir: Path, dest_dir: Path, options: BuildOptions) -> bool:
        cmd = list(self.command) + ["--source", str(source_dir), "--destination", str(dest_dir)]
        if not options.archive:
            cmd.append("--no-archive")
        log.info(f"Building {source_dir} into {dest_dir}...")
        return self.runner.run(cmd, cwd=source_dir).ok
