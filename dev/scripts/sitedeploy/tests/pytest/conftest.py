"""
Shared pytest fixtures for sitedeploy tests.

Provides fakes for every external process and service a deployment talks to,
so tests run against a temporary directory tree and never spawn git, drush,
mysql or the build command.

Test Tier Markers:
  @pytest.mark.evergreen - Tests that always run, never skip (production tests)
  @pytest.mark.dev       - Development/WIP tests, toggle-able
  @pytest.mark.temporary - Tests with explicit discard flag
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from sitedeploy.core.config import DeployConfig, StackConfig
from sitedeploy.core.git_ops import GitClient
from sitedeploy.core.process import ProcessResult, ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.collaborators import BuildOptions
from sitedeploy.deploy.models import AppInfo, Environment, Project


# =============================================================================
# Test Data Constants
# =============================================================================

PROFILE_NAME = "corp"
PROFILE_URL = "git@git.example.com:platform/corp.git"
SITE_URL = "abc123@git.eu.platform.sh:abc123.git"

MAKE_FILE_TEMPLATE = """core = 7.x
api = 2

; Distribution
projects[corp][type] = profile
projects[corp][download][type] = git
projects[corp][download][url] = {url}
projects[corp][download][branch] = {branch}

projects[drupal][version] = 7.59
"""


def make_file(branch: str = "feature-x", url: str = PROFILE_URL) -> str:
    return MAKE_FILE_TEMPLATE.format(url=url, branch=branch)


APP_CONFIG = """name: drupal
type: php:7.0
hooks:
  deploy: |
    cd public
    drush -y updb
    drush cc all
"""


def populate_site(checkout: Path) -> None:
    """Contents of a freshly cloned site repository."""
    (checkout / "project.make").write_text(make_file(), encoding="utf-8")
    (checkout / ".platform.app.yaml").write_text(APP_CONFIG, encoding="utf-8")


# =============================================================================
# Process Fakes
# =============================================================================


class FakeRunner(ProcessRunner):
    """ProcessRunner that records commands instead of executing them.

    ``failures`` maps a substring of the command line to an exit code;
    ``outputs`` maps a substring to the stdout returned for it.
    """

    def __init__(self) -> None:
        super().__init__(timeout=30)
        self.calls: list[tuple[str, Union[list[str], str], Optional[Path]]] = []
        self.failures: dict[str, int] = {}
        self.outputs: dict[str, str] = {}

    def _execute(self, args, cwd, timeout, shell) -> ProcessResult:
        self.calls.append(("shell" if shell else "argv", args, cwd))
        line = args if isinstance(args, str) else " ".join(args)
        for needle, code in self.failures.items():
            if needle in line:
                return ProcessResult(args, code, stderr=f"{needle} failed")
        stdout = next((out for needle, out in self.outputs.items() if needle in line), "")
        return ProcessResult(args, 0, stdout=stdout)

    @property
    def command_lines(self) -> list[str]:
        return [a if isinstance(a, str) else " ".join(a) for _, a, _ in self.calls]

    def ran(self, needle: str) -> bool:
        return any(needle in line for line in self.command_lines)


class FakeGit(GitClient):
    """GitClient whose clones create the destination directory.

    ``populate`` maps a clone URL to a callback that fills the new checkout.
    """

    def __init__(self, runner: FakeRunner, populate: Optional[dict[str, Callable[[Path], None]]] = None):
        super().__init__(runner)
        self.populate = populate or {}

    def clone(self, url: str, dest: Path, ref: Optional[str] = None) -> ProcessResult:
        result = super().clone(url, dest, ref)
        if result.ok:
            dest.mkdir(parents=True, exist_ok=True)
            fill = self.populate.get(url)
            if fill is not None:
                fill(dest)
        return result


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeBuildExecutor:
    """Builds by copying the profile checkout into the web root.

    Records the make file content seen at build time, which is where the
    patched manifest is observable.
    """

    def __init__(self, profiles_root: Path, succeed: bool = True) -> None:
        self.profiles_root = profiles_root
        self.succeed = succeed
        self.calls: list[tuple[Path, Path, BuildOptions]] = []
        self.manifests_seen: list[str] = []
        self.on_build: Optional[Callable[[Path, Path], None]] = None

    def build(self, source_dir: Path, dest_dir: Path, options: BuildOptions) -> bool:
        self.calls.append((source_dir, dest_dir, options))
        manifest = source_dir / "project.make"
        if manifest.exists():
            self.manifests_seen.append(manifest.read_text(encoding="utf-8"))
        if not self.succeed:
            return False

        dest_dir.mkdir(parents=True, exist_ok=True)
        checkout = self.profiles_root / PROFILE_NAME
        if checkout.is_dir():
            target = dest_dir / "profiles" / PROFILE_NAME
            if target.exists():
                shutil.rmtree(target)
            shutil.copytree(checkout, target, symlinks=True)
        if self.on_build is not None:
            self.on_build(source_dir, dest_dir)
        return True


class FakeDataSync:
    def __init__(self) -> None:
        self.synced: list[tuple[str, str, str, bool]] = []
        self.sanitized: list[str] = []

    def sync(self, project: Project, environment: Environment, app: AppInfo, no_sanitize: bool) -> None:
        self.synced.append((project.id, environment.id, app.name, no_sanitize))

    def sanitize(self, project: Project, app: AppInfo) -> None:
        self.sanitized.append(project.id)


class FakeSearchIndex:
    def __init__(self, existing: Optional[set[str]] = None) -> None:
        self.existing = set(existing or ())
        self.created: list[str] = []

    def index_exists(self, base_url: str, index_name: str) -> bool:
        return index_name in self.existing

    def create_index(self, base_url: str, index_name: str) -> None:
        self.existing.add(index_name)
        self.created.append(index_name)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def plain_logger() -> None:
    """Deterministic, uncolored, non-verbose log output for every test."""
    log.set_color(False)
    log.set_verbose(False)


@pytest.fixture
def deploy_config(tmp_path: Path) -> DeployConfig:
    """Configuration rooted in the test's temporary directory."""
    return DeployConfig(
        profiles_root=tmp_path / "profiles",
        sites_root=tmp_path / "sites",
        db_backup_local_cache=tmp_path / "backups",
        stack=StackConfig(mysql_db_prefix="local_"),
    )


@pytest.fixture
def project() -> Project:
    return Project(id="abc123", title="Corporate Site", region="eu", site_code="corpsite", git_url=SITE_URL)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_git(runner: FakeRunner) -> FakeGit:
    """Git client whose site clone yields a make file and app config."""
    return FakeGit(runner, populate={SITE_URL: populate_site})


@pytest.fixture
def site_files() -> Callable[[Path], None]:
    """Writes the files of a freshly cloned site into a directory."""
    return populate_site


@pytest.fixture
def build_executor(deploy_config: DeployConfig) -> FakeBuildExecutor:
    return FakeBuildExecutor(deploy_config.profiles_root)


@pytest.fixture
def data_sync() -> FakeDataSync:
    return FakeDataSync()


@pytest.fixture
def search_index() -> FakeSearchIndex:
    return FakeSearchIndex()


@pytest.fixture
def profile_checkout(deploy_config: DeployConfig) -> Path:
    """A local profile checkout with modules, themes and resources."""
    checkout = deploy_config.profiles_root / PROFILE_NAME
    for ext in (".info", ".profile", ".install", ".make"):
        path = checkout / f"{PROFILE_NAME}{ext}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"; {PROFILE_NAME}{ext}\n")
    for sub in ("modules/custom", "modules/features", "modules/contrib", "themes/corporate"):
        (checkout / sub).mkdir(parents=True)
    (checkout / "settings").mkdir()
    (checkout / "sureroute-test-object.html").write_text("<html></html>\n")
    (checkout / "humans.txt").write_text("/* TEAM */\n")
    (checkout / ".git").mkdir()
    return checkout


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test tiers."""
    config.addinivalue_line(
        "markers",
        "evergreen: tests that always run, never skip (production tests)"
    )
    config.addinivalue_line(
        "markers",
        "dev: development/WIP tests, toggle-able for active development"
    )
    config.addinivalue_line(
        "markers",
        "temporary: tests with explicit discard flag"
    )
