"""
Deploy hooks declared by the application configuration.

The hook list is the ``hooks.deploy`` block of ``.platform.app.yaml``: a
newline-delimited string of commands run in the web root.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional

import yaml

from sitedeploy.core.errors import ConfigurationError, HookFailed
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.layout import APP_CONFIG_NAME

# Hooks containing this token run through the shell so pipes and redirects work.
DB_UPDATE_MARKER = "updb"

DEFAULT_FLAVOR = "drupal"

# Hooks already run in the web root; bare directory changes are dropped.
_CD_LINE = re.compile(r"^cd\s+\S+$")


# =============================================================================
# Application Config
# =============================================================================


def load_app_config(path: Path) -> dict[str, Any]:
    """Parse the application's YAML config; missing file means empty config."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    return data


def deploy_hooks(app_config: dict[str, Any]) -> str:
    hooks = app_config.get("hooks") or {}
    return str(hooks.get("deploy") or "")


def app_name(app_config: dict[str, Any], default: str = "app") -> str:
    return str(app_config.get("name") or default)


def app_flavor(app_config: dict[str, Any]) -> str:
    """Build flavor of the application; PHP apps without one build as drupal."""
    build = app_config.get("build") or {}
    return str(build.get("flavor") or DEFAULT_FLAVOR)


def find_applications(repository_dir: Path) -> list[tuple[str, dict[str, Any]]]:
    """Name and config of every application in a checkout.

    A config at the repository root is the only application. Otherwise each
    direct subdirectory holding one is an application named after its
    directory unless the config names it.
    """
    root_config = repository_dir / APP_CONFIG_NAME
    if root_config.exists():
        config = load_app_config(root_config)
        return [(app_name(config), config)]

    apps = []
    for path in sorted(repository_dir.glob(f"*/{APP_CONFIG_NAME}")):
        config = load_app_config(path)
        apps.append((app_name(config, default=path.parent.name), config))
    return apps


# =============================================================================
# Hook Runner
# =============================================================================


def is_skipped(line: str) -> bool:
    return not line or bool(_CD_LINE.match(line))


def uses_shell(line: str) -> bool:
    return DB_UPDATE_MARKER in line.lower()


class HookRunner:
    """Runs a hook list line by line, stopping at the first failure."""

    def __init__(self, runner: ProcessRunner, timeout: Optional[float] = None):
        self.runner = runner
        self.timeout = timeout

    def run(self, hooks: str, cwd: Path) -> list[str]:
        """Run every meaningful line of ``hooks`` in ``cwd``.

        Returns the commands that ran. Raises HookFailed naming the first
        command that exits non-zero; later commands do not run.
        """
        executed = []
        for raw_line in hooks.split("\n"):
            line = raw_line.strip()
            if is_skipped(line):
                continue

            log.info(f"Running {line}")
            if uses_shell(line):
                result = self.runner.run_shell(line, cwd=cwd, timeout=self.timeout)
            else:
                result = self.runner.run(line.split(), cwd=cwd, timeout=self.timeout)

            if not result.ok:
                raise HookFailed(line, result.exit_code)
            executed.append(line)

        return executed
