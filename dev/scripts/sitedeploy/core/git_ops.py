"""
Git operations for sitedeploy.

A thin SCM client over the git executable. Mutating operations return the
``ProcessResult`` so callers decide what a failure means for the run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sitedeploy.core.process import ProcessResult, ProcessRunner


class GitClient:
    """Clone, checkout, pull and query local checkouts."""

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    def clone(self, url: str, dest: Path, ref: Optional[str] = None) -> ProcessResult:
        """Clone ``url`` into ``dest``, checking out branch or tag ``ref``."""
        cmd = ["git", "clone"]
        if ref:
            cmd += ["--branch", ref]
        cmd += [url, str(dest)]
        return self.runner.run(cmd)

    def checkout(self, ref: str, path: Path, force: bool = False) -> ProcessResult:
        cmd = ["git", "checkout"]
        if force:
            cmd.append("--force")
        cmd.append(ref)
        return self.runner.run(cmd, cwd=path)

    def pull(self, path: Path, remote: Optional[str] = None, ref: Optional[str] = None) -> ProcessResult:
        """Pull into ``path``; without a remote the configured upstream is used."""
        cmd = ["git", "pull"]
        if remote:
            cmd.append(remote)
            if ref:
                cmd.append(ref)
        return self.runner.run(cmd, cwd=path)

    def current_branch(self, path: Path) -> str:
        """Get current git branch name."""
        result = self.runner.run(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
        return result.stdout.strip() if result.ok else "unknown"

    def remote_url(self, path: Path, remote: str = "origin") -> str:
        result = self.runner.run(["git", "config", "--get", f"remote.{remote}.url"], cwd=path)
        return result.stdout.strip() if result.ok else ""

    def add_remote(self, path: Path, name: str, url: str) -> ProcessResult:
        return self.runner.run(["git", "remote", "add", name, url], cwd=path)

    def set_remote_url(self, path: Path, name: str, url: str) -> ProcessResult:
        return self.runner.run(["git", "remote", "set-url", name, url], cwd=path)
