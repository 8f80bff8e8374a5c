"""
Run settings and the generated local settings file.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sitedeploy.core.config import DeployConfig
from sitedeploy.core.errors import ConfigurationError
from sitedeploy.deploy.models import Project

DEFAULT_SETTINGS_TEMPLATE = """<?php
// Generated by sitedeploy on every deployment. Local changes are overwritten.
$databases['default']['default'] = array(
  'driver' => 'mysql',
  'database' => '{database}',
  'username' => '{username}',
  'password' => '{password}',
  'host' => '{host}',
  'port' => '{port}',
  'prefix' => '',
);
"""


@dataclass(frozen=True)
class BuildSettings:
    """Flags controlling one deployment run, resolved once at startup."""

    db_sync: bool = False
    sanitize: bool = True
    archive: bool = True
    git_pull: bool = True
    reindex: bool = True
    deploy_hooks: bool = True
    unclean_features: bool = True
    core_branch: Optional[str] = None
    environment: Optional[str] = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "BuildSettings":
        return cls(
            db_sync=bool(getattr(args, "db_sync", False)),
            sanitize=not getattr(args, "no_sanitize", False),
            archive=not getattr(args, "no_archive", False),
            git_pull=not getattr(args, "no_git_pull", False),
            reindex=not getattr(args, "no_reindex", False),
            deploy_hooks=not getattr(args, "no_deploy_hooks", False),
            unclean_features=not getattr(args, "no_unclean_features", False),
            core_branch=getattr(args, "core_branch", None) or None,
            environment=getattr(args, "environment", None) or None,
        )


# =============================================================================
# Local Settings File
# =============================================================================


def database_name(config: DeployConfig, project: Project) -> str:
    return config.stack.mysql_db_prefix + project.db_slug()


def render_local_settings(config: DeployConfig, project: Project) -> str:
    if config.settings_template is not None:
        try:
            template = config.settings_template.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Could not read settings template {config.settings_template}: {e}"
            ) from e
    else:
        template = DEFAULT_SETTINGS_TEMPLATE

    stack = config.stack
    values = {
        "{database}": database_name(config, project),
        "{username}": stack.mysql_user,
        "{password}": stack.mysql_password,
        "{host}": stack.mysql_host,
        "{port}": str(stack.mysql_port),
    }
    # Plain replacement: PHP templates are full of literal braces.
    for placeholder, value in values.items():
        template = template.replace(placeholder, value)
    return template


def write_local_settings(path: Path, config: DeployConfig, project: Project) -> Path:
    """Overwrite the settings file with the current database credentials."""
    content = render_local_settings(config, project)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
