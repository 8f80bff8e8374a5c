"""
Canonical directory layout of a locally deployed project.

Two generations of layout exist on disk:

    legacy:  <sites_root>/<code>/repository   checkout
             <sites_root>/<code>/www          web root
    modern:  <sites_root>/<code>              checkout
             <sites_root>/<code>/_www         web root
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sitedeploy.core.errors import ConfigurationError

LEGACY_REPOSITORY_DIR = "repository"
LEGACY_WEB_ROOT = "www"
WEB_ROOT = "_www"
LEGACY_PROJECT_MARKER = ".platform-project"

MANIFEST_NAME = "project.make"
APP_CONFIG_NAME = ".platform.app.yaml"
SETTINGS_FILE_NAME = "settings.local.php"


@dataclass(frozen=True)
class ProjectLayout:
    """Resolved paths for one project."""

    root_dir: Path
    repository_dir: Path
    www_dir: Path
    legacy: bool

    @property
    def manifest_path(self) -> Path:
        return self.repository_dir / MANIFEST_NAME

    @property
    def app_config_path(self) -> Path:
        return self.repository_dir / APP_CONFIG_NAME

    @property
    def local_dir(self) -> Path:
        """Directory holding tool-managed state (shared files, builds)."""
        if self.legacy:
            return self.root_dir
        return self.root_dir / ".platform" / "local"

    @property
    def settings_path(self) -> Path:
        return self.local_dir / "shared" / SETTINGS_FILE_NAME

    @property
    def builds_dir(self) -> Path:
        return self.local_dir / "builds"

    @property
    def archives_dir(self) -> Path:
        if self.legacy:
            return self.root_dir / ".build-archives"
        return self.local_dir / "build-archives"

    def profile_dir(self, profile_name: str) -> Path:
        """The profile's copy inside the built web root."""
        return self.www_dir / "profiles" / profile_name


def project_root(sites_root: Path, code: str) -> Path:
    if not code or not code.strip():
        raise ConfigurationError("Project site code must not be empty")
    if "/" in code or code in (".", ".."):
        raise ConfigurationError(f"Invalid project site code: {code!r}")
    return sites_root / code


def resolve_layout(sites_root: Path, code: str, legacy: bool) -> ProjectLayout:
    """Derive root, repository and web root directories. No I/O."""
    root = project_root(sites_root, code)
    if legacy:
        return ProjectLayout(root, root / LEGACY_REPOSITORY_DIR, root / LEGACY_WEB_ROOT, True)
    return ProjectLayout(root, root, root / WEB_ROOT, False)


def is_deployed(root_dir: Path) -> bool:
    """True once a web root exists under either layout name."""
    return (root_dir / LEGACY_WEB_ROOT).is_dir() or (root_dir / WEB_ROOT).is_dir()


def detect_legacy(root_dir: Path) -> bool:
    """Legacy projects keep their checkout in ``repository/``."""
    return (root_dir / LEGACY_PROJECT_MARKER).exists() or (
        root_dir / LEGACY_REPOSITORY_DIR
    ).is_dir()
