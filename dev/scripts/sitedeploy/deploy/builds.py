"""
Post-build housekeeping: old build retirement, file share mount and the
report of overridden features.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.layout import ProjectLayout
from sitedeploy.deploy.symlinks import remove_path

UNCLEAN_FEATURE_STATES = ("Overridden", "Needs review")


def _newest_first(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    entries = [p for p in directory.iterdir() if not p.name.startswith(".")]
    return sorted(entries, key=lambda p: p.lstat().st_mtime, reverse=True)


def retire_old_builds(layout: ProjectLayout, keep: int = 1) -> list[Path]:
    """Delete all but the ``keep`` newest builds and build archives.

    Returns the removed paths.
    """
    if keep < 0:
        raise ValueError("keep must not be negative")

    removed = []
    for directory in (layout.builds_dir, layout.archives_dir):
        for stale in _newest_first(directory)[keep:]:
            remove_path(stale)
            removed.append(stale)

    if removed:
        log.info(f"Deleted {len(removed)} old build(s)")
    else:
        log.info("No old builds to delete")
    return removed


def mount_file_share(runner: ProcessRunner, command: Optional[str], root_dir: Path) -> bool:
    """Run the configured mount command, if any. Returns whether it ran."""
    if not command:
        log.dim("No file share mount configured")
        return False
    result = runner.run_shell(command.replace("{root_dir}", str(root_dir)), cwd=root_dir)
    if result.ok:
        log.success("Remote file share mounted")
    else:
        log.warning("Mounting the remote file share failed")
    return True


def unclean_features(runner: ProcessRunner, www_dir: Path) -> list[str]:
    """Features whose state differs from code, as listed by drush."""
    result = runner.run(["drush", "features-list"], cwd=www_dir)
    if not result.ok:
        log.warning("Could not list features")
        return []
    return [
        line.strip() for line in result.stdout.splitlines()
        if any(state in line for state in UNCLEAN_FEATURE_STATES)
    ]
