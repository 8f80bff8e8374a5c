"""
Configuration for sitedeploy.

Loads the YAML configuration file into immutable dataclasses that are
passed explicitly to every component that needs them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from sitedeploy.core.errors import ConfigurationError

# =============================================================================
# Constants
# =============================================================================

DEFAULT_CONFIG_PATH = Path.home() / ".sitedeploy" / "config.yaml"
CONFIG_ENV_VAR = "SITEDEPLOY_CONFIG"

DEFAULT_BUILD_COMMAND = ("platform", "local:build", "--yes")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class StackConfig:
    """Local hosting stack parameters (database and search servers)."""

    mysql_host: str = "127.0.0.1"
    mysql_port: int = 3306
    mysql_user: str = "drupal"
    mysql_password: str = "drupal"
    mysql_root_user: str = "root"
    mysql_root_password: str = "root"
    mysql_db_prefix: str = ""
    elasticsearch_host: str = "127.0.0.1"
    elasticsearch_port: int = 9200

    @property
    def elasticsearch_url(self) -> str:
        return f"http://{self.elasticsearch_host}:{self.elasticsearch_port}/"


@dataclass(frozen=True)
class ProjectEntry:
    """A project known to the local configuration."""

    id: str
    title: str = ""
    region: str = ""
    site_code: str = ""
    git_url: Optional[str] = None
    github_url: Optional[str] = None
    environments: tuple[str, ...] = ()


@dataclass(frozen=True)
class DeployConfig:
    """Configuration for deployment runs."""

    profiles_root: Path = field(default_factory=lambda: Path.home() / "profiles")
    sites_root: Path = field(default_factory=lambda: Path.home() / "sites")
    local_domain: str = ".local.dev"
    git_default_branch: str = "master"
    db_backup_local_cache: Path = field(
        default_factory=lambda: Path.home() / ".sitedeploy" / "backups"
    )
    external_process_timeout: float = 3600
    git_url_template: str = "{id}@git.{region}.platform.sh:{id}.git"
    ssh_host_template: str = "ssh.{region}.platform.sh"
    build_command: tuple[str, ...] = DEFAULT_BUILD_COMMAND
    mount_command: Optional[str] = None
    settings_template: Optional[Path] = None
    stack: StackConfig = field(default_factory=StackConfig)
    projects: dict[str, ProjectEntry] = field(default_factory=dict)


# =============================================================================
# Loading
# =============================================================================


def _expand(value: Optional[str]) -> Optional[Path]:
    if value is None:
        return None
    return Path(os.path.expanduser(str(value)))


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Configuration section '{key}' must be a mapping")
    return value


def _parse_projects(raw: dict[str, Any]) -> dict[str, ProjectEntry]:
    projects = {}
    for project_id, info in raw.items():
        info = info or {}
        project_id = str(project_id)
        projects[project_id] = ProjectEntry(
            id=project_id,
            title=str(info.get("title") or ""),
            region=str(info.get("region") or ""),
            site_code=str(info.get("site_code") or project_id),
            git_url=info.get("git_url"),
            github_url=info.get("github_url"),
            environments=tuple(str(e) for e in info.get("environments") or ()),
        )
    return projects


def config_from_dict(data: dict[str, Any]) -> DeployConfig:
    """Build a DeployConfig from a parsed configuration mapping."""
    local = _section(data, "local")
    deploy = _section(local, "deploy")
    stack = _section(local, "stack")

    defaults = DeployConfig()
    stack_fields = StackConfig.__dataclass_fields__
    unknown = set(stack) - set(stack_fields)
    if unknown:
        raise ConfigurationError(f"Unknown stack settings: {', '.join(sorted(unknown))}")

    try:
        stack_config = StackConfig(**stack)
        timeout = float(deploy.get("external_process_timeout", defaults.external_process_timeout))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    build_command = deploy.get("build_command", defaults.build_command)
    if isinstance(build_command, str):
        build_command = build_command.split()

    return DeployConfig(
        profiles_root=_expand(deploy.get("profiles_root")) or defaults.profiles_root,
        sites_root=_expand(deploy.get("sites_root")) or defaults.sites_root,
        local_domain=deploy.get("local_domain", defaults.local_domain),
        git_default_branch=deploy.get("git_default_branch", defaults.git_default_branch),
        db_backup_local_cache=(
            _expand(deploy.get("db_backup_local_cache")) or defaults.db_backup_local_cache
        ),
        external_process_timeout=timeout,
        git_url_template=deploy.get("git_url_template", defaults.git_url_template),
        ssh_host_template=deploy.get("ssh_host_template", defaults.ssh_host_template),
        build_command=tuple(build_command),
        mount_command=deploy.get("mount_command"),
        settings_template=_expand(deploy.get("settings_template")),
        stack=stack_config,
        projects=_parse_projects(_section(data, "projects")),
    )


def load_config(path: Optional[Path] = None) -> DeployConfig:
    """Load configuration from YAML.

    An explicit path (argument or SITEDEPLOY_CONFIG) must exist. The default
    path is optional; when it is missing all defaults apply.
    """
    explicit = path is not None or bool(os.environ.get(CONFIG_ENV_VAR))
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Configuration file not found: {path}")
        return DeployConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")

    return config_from_dict(data)


def fill_template(setting: str, template: str, **values: str) -> str:
    """Fill a ``{name}`` template from the config, reporting bad placeholders."""
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(f"Invalid {setting} '{template}': {e!r}") from e
