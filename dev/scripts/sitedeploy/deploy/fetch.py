"""
First-time fetches and updates of site and profile checkouts.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sitedeploy.core.config import DeployConfig, fill_template
from sitedeploy.core.errors import FetchFailed, RepositoryUpdateFailed
from sitedeploy.core.git_ops import GitClient
from sitedeploy.core.utils import log
from sitedeploy.deploy.layout import is_deployed
from sitedeploy.deploy.models import Profile, Project


# =============================================================================
# First-time Fetch
# =============================================================================


class FetchCoordinator:
    """Clones a site or profile only when it is not on disk yet.

    ``ensure_site`` and ``ensure_profile`` return True when they cloned, so
    the caller can apply its first-deploy policy.
    """

    def __init__(self, git: GitClient, config: DeployConfig):
        self.git = git
        self.config = config

    def site_git_url(self, project: Project) -> str:
        if project.git_url:
            return project.git_url
        return fill_template(
            "git_url_template", self.config.git_url_template, id=project.id, region=project.region
        )

    def ensure_site(self, project: Project, root_dir: Path) -> bool:
        if is_deployed(root_dir):
            return False

        log.info(f"Fetching {project.label} for the first time...")
        branch = self.config.git_default_branch
        result = self.git.clone(self.site_git_url(project), root_dir, branch)
        if not result.ok:
            raise FetchFailed(
                f"Could not clone {project.label} (branch {branch}): "
                f"{result.stderr.strip() or f'exit code {result.exit_code}'}"
            )
        log.success(f"Fetched {project.label}")
        return True

    def profile_checkout(self, profile: Profile) -> Path:
        return self.config.profiles_root / profile.name

    def ensure_profile(self, profile: Profile) -> bool:
        checkout = self.profile_checkout(profile)
        if checkout.is_dir():
            return False

        log.info(f"Checking out {profile.name} for the first time...")
        branch = profile.branch or self.config.git_default_branch
        result = self.git.clone(profile.url, checkout, branch)
        if not result.ok:
            raise FetchFailed(
                f"Could not clone profile {profile.name} from {profile.url}: "
                f"{result.stderr.strip() or f'exit code {result.exit_code}'}"
            )

        if profile.tag:
            result = self.git.checkout(profile.tag, checkout, force=True)
            if not result.ok:
                raise FetchFailed(f"Could not check out tag {profile.tag} of {profile.name}")

        log.success(f"Checked out {profile.name}")
        return True


# =============================================================================
# Updates
# =============================================================================


def repository_label(remote_url: str, branch: str) -> str:
    """``git@host:org/repo.git`` on ``main`` -> ``repo/main``."""
    name = os.path.basename(remote_url.replace(":", "/").rstrip("/"))
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return f"{name or 'repository'}/{branch}"


class RepositoryUpdater:
    """Pulls the tracking branch and then the default branch of a checkout."""

    def __init__(self, git: GitClient, default_branch: str):
        self.git = git
        self.default_branch = default_branch

    def update(self, path: Path) -> None:
        label = repository_label(self.git.remote_url(path), self.git.current_branch(path))
        log.info(f"Updating {label}...")

        for remote, ref in ((None, None), ("origin", self.default_branch)):
            result = self.git.pull(path, remote, ref)
            if not result.ok:
                target = f"{remote} {ref}" if remote else "upstream"
                raise RepositoryUpdateFailed(
                    f"git pull {target} failed in {path}: "
                    f"{result.stderr.strip() or f'exit code {result.exit_code}'}"
                )

        log.success(f"Updated {label}")


# =============================================================================
# GitHub Integration
# =============================================================================

HOSTING_REMOTE = "platform"


def enable_github_integration(git: GitClient, path: Path, github_url: Optional[str]) -> bool:
    """Point ``origin`` at the GitHub mirror, keeping the hosting remote.

    The previous ``origin`` URL is kept as the ``platform`` remote. Returns
    True when the remotes were changed; a checkout whose ``origin`` already
    is the GitHub URL is left alone.
    """
    if not github_url:
        return False
    origin = git.remote_url(path)
    if origin == github_url:
        return False

    log.info("Found GitHub integration: the remote origin will now be pointed at GitHub")
    if origin and not git.remote_url(path, HOSTING_REMOTE):
        log.info(f"The remote {HOSTING_REMOTE} will continue to point at {origin}")
        result = git.add_remote(path, HOSTING_REMOTE, origin)
        if not result.ok:
            raise RepositoryUpdateFailed(f"Could not add remote {HOSTING_REMOTE} in {path}")

    if origin:
        result = git.set_remote_url(path, "origin", github_url)
    else:
        result = git.add_remote(path, "origin", github_url)
    if not result.ok:
        raise RepositoryUpdateFailed(f"Could not point origin at {github_url} in {path}")
    return True
