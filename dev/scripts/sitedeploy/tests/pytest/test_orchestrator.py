"""
End-to-end tests of the deployment sequence against fake collaborators.

Each test deploys the "corpsite" project into a temporary sites root. The site
clone yields a make file declaring the ``corp`` profile on branch feature-x;
the profile checkout already exists under the profiles root.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Optional

import pytest

from sitedeploy.core.config import DeployConfig
from sitedeploy.core.errors import BuildExecutorFailed, FilesystemError, HookFailed
from sitedeploy.deploy.models import Project
from sitedeploy.deploy.orchestrator import DeployOrchestrator
from sitedeploy.deploy.settings import BuildSettings


@pytest.fixture
def deploy(deploy_config, project, runner, fake_git, build_executor, data_sync, search_index):
    """Factory running one deployment with the given settings."""

    def run(
        settings: BuildSettings = BuildSettings(),
        config: Optional[DeployConfig] = None,
        site: Optional[Project] = None,
    ) -> DeployOrchestrator:
        orchestrator = DeployOrchestrator(
            config=config or deploy_config,
            settings=settings,
            project=site or project,
            runner=runner,
            build_executor=build_executor,
            data_sync=data_sync,
            search_index=search_index,
            git=fake_git,
        )
        orchestrator.run()
        return orchestrator

    return run


def _site_root(config: DeployConfig) -> Path:
    return config.sites_root / "corpsite"


# =============================================================================
# First Deployment
# =============================================================================


@pytest.mark.evergreen
class TestFirstDeployment:
    """An empty project root is cloned, built and linked to the local profile."""

    def test_profile_info_is_relative_symlink(self, deploy, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        """The built profile's .info file links into the profiles-root checkout."""
        deploy()

        info = _site_root(deploy_config) / "_www" / "profiles" / "corp" / "corp.info"
        assert info.is_symlink()
        assert not os.path.isabs(os.readlink(info))
        assert info.resolve() == (profile_checkout / "corp.info").resolve()

    def test_manifest_unchanged_on_disk(self, deploy, deploy_config: DeployConfig, build_executor, profile_checkout: Path) -> None:
        """The build saw a copy download; the file on disk is the original."""
        manifest = _site_root(deploy_config) / "project.make"

        deploy()

        assert "projects[corp][download][type] = copy" in build_executor.manifests_seen[0]
        assert f"projects[corp][download][url] = {profile_checkout}" in build_executor.manifests_seen[0]
        assert "projects[corp][download][branch] = feature-x" in manifest.read_text()
        assert "[type] = copy" not in manifest.read_text()

    def test_git_dir_removed_from_built_profile(self, deploy, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        deploy()
        assert not (_site_root(deploy_config) / "_www" / "profiles" / "corp" / ".git").exists()
        assert (profile_checkout / ".git").is_dir()

    def test_data_sync_forced(self, deploy, data_sync, profile_checkout: Path) -> None:
        """A first fetch syncs the database even without --db-sync."""
        orchestrator = deploy(BuildSettings(db_sync=False))

        assert orchestrator.context.site_just_fetched
        assert data_sync.synced == [("abc123", "master", "drupal", True)]
        assert data_sync.sanitized == ["abc123"]

    def test_no_sanitize(self, deploy, data_sync, profile_checkout: Path) -> None:
        deploy(BuildSettings(sanitize=False))
        assert len(data_sync.synced) == 1
        assert data_sync.sanitized == []

    def test_local_settings_written(self, deploy, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        deploy()
        settings = _site_root(deploy_config) / ".platform" / "local" / "shared" / "settings.local.php"
        assert "'database' => 'local_corporate_site'" in settings.read_text()

    def test_deploy_hooks(self, deploy, runner, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        """Hooks run in the web root; updb through the shell."""
        deploy()

        www = _site_root(deploy_config) / "_www"
        assert ("shell", "drush -y updb", www) in runner.calls
        assert ("argv", ["drush", "cc", "all"], www) in runner.calls
        assert not runner.ran("cd public")

    def test_no_repository_updates_after_clone(self, deploy, runner, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        """Only the existing profile checkout is pulled, never the fresh clone."""
        deploy()

        pull_dirs = {cwd for kind, args, cwd in runner.calls if args[:2] == ["git", "pull"]}
        assert pull_dirs == {profile_checkout}

    def test_profile_cloned_when_missing(self, deploy, runner, deploy_config: DeployConfig) -> None:
        """Without a checkout, the profile is cloned on its declared branch."""
        orchestrator = deploy()

        checkout = deploy_config.profiles_root / "corp"
        assert orchestrator.context.profile_just_fetched
        assert runner.ran(f"git clone --branch feature-x git@git.example.com:platform/corp.git {checkout}")


# =============================================================================
# Core Branch Override
# =============================================================================


@pytest.mark.evergreen
class TestCoreBranchOverride:
    """--core-branch builds against a remote branch without any symlinks."""

    def test_only_branch_rewritten(self, deploy, build_executor, profile_checkout: Path) -> None:
        deploy(BuildSettings(core_branch="release-2.0"))

        seen = build_executor.manifests_seen[0]
        assert "projects[corp][download][branch] = release-2.0" in seen
        assert "projects[corp][download][type] = git" in seen
        assert "projects[corp][download][url] = git@git.example.com:platform/corp.git" in seen

    def test_symlinks_and_git_removal_skipped(self, deploy, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        deploy(BuildSettings(core_branch="release-2.0"))

        in_tree = _site_root(deploy_config) / "_www" / "profiles" / "corp"
        assert not (in_tree / "corp.info").is_symlink()
        assert (in_tree / ".git").is_dir()

    def test_local_profile_not_updated(self, deploy, runner, profile_checkout: Path) -> None:
        deploy(BuildSettings(core_branch="release-2.0"))
        assert not runner.ran("git pull")

    def test_manifest_restored(self, deploy, deploy_config: DeployConfig, profile_checkout: Path) -> None:
        deploy(BuildSettings(core_branch="release-2.0"))
        manifest = _site_root(deploy_config) / "project.make"
        assert "projects[corp][download][branch] = feature-x" in manifest.read_text()


# =============================================================================
# Failures
# =============================================================================


@pytest.mark.evergreen
class TestFailures:
    """Fatal errors stop the run, name the step and leave the manifest intact."""

    def test_build_failure(self, deploy, deploy_config: DeployConfig, build_executor, data_sync, profile_checkout: Path) -> None:
        build_executor.succeed = False

        with pytest.raises(BuildExecutorFailed) as exc_info:
            deploy()

        assert exc_info.value.step == "build"
        assert exc_info.value.describe().startswith("build failed: ")
        manifest = _site_root(deploy_config) / "project.make"
        assert "projects[corp][download][branch] = feature-x" in manifest.read_text()
        assert "[type] = copy" not in manifest.read_text()
        assert data_sync.sanitized == []

    def test_hook_failure(self, deploy, runner, profile_checkout: Path) -> None:
        runner.failures["updb"] = 1

        with pytest.raises(HookFailed) as exc_info:
            deploy()

        assert exc_info.value.step == "deploy_hooks"
        assert exc_info.value.command == "drush -y updb"
        assert not runner.ran("drush cc all")
        assert not runner.ran("features-list")

    def test_hooks_disabled(self, deploy, runner, profile_checkout: Path) -> None:
        deploy(BuildSettings(deploy_hooks=False))
        assert not runner.ran("updb")

    def test_filesystem_failure_names_step(self, deploy, deploy_config: DeployConfig, build_executor, profile_checkout: Path) -> None:
        """An OSError inside a step is reported as that step's failure."""
        settings_path = _site_root(deploy_config) / ".platform" / "local" / "shared" / "settings.local.php"

        def block_settings(source: Path, dest: Path) -> None:
            settings_path.mkdir(parents=True)

        build_executor.on_build = block_settings

        with pytest.raises(FilesystemError) as exc_info:
            deploy()

        assert exc_info.value.step == "build"
        assert isinstance(exc_info.value.__cause__, IsADirectoryError)
        assert exc_info.value.describe().startswith("build failed: ")

    def test_mount_command_with_shell_variables(self, deploy, deploy_config: DeployConfig, runner, profile_checkout: Path) -> None:
        """Braces of shell syntax in the mount command do not break the run."""
        config = dataclasses.replace(deploy_config, mount_command="sshfs host:/files ${HOME}/mnt/{root_dir}")

        deploy(config=config)

        assert runner.ran(f"sshfs host:/files ${{HOME}}/mnt/{_site_root(deploy_config)}")


# =============================================================================
# Existing Deployments
# =============================================================================


@pytest.fixture
def deployed_site(deploy_config: DeployConfig, site_files) -> Path:
    """A modern-layout site that has been built before."""
    root = _site_root(deploy_config)
    (root / "_www").mkdir(parents=True)
    site_files(root)
    return root


@pytest.mark.evergreen
class TestExistingDeployment:
    """Redeploying an existing site."""

    def test_no_clone_and_no_forced_sync(self, deploy, runner, data_sync, deployed_site: Path, profile_checkout: Path) -> None:
        orchestrator = deploy()

        assert not orchestrator.context.site_just_fetched
        assert not runner.ran("git clone")
        assert data_sync.synced == []

    def test_both_repositories_updated(self, deploy, runner, deployed_site: Path, profile_checkout: Path) -> None:
        deploy()

        pulls = [(args, cwd) for kind, args, cwd in runner.calls if args[:2] == ["git", "pull"]]
        assert pulls == [
            (["git", "pull"], profile_checkout),
            (["git", "pull", "origin", "master"], profile_checkout),
            (["git", "pull"], deployed_site),
            (["git", "pull", "origin", "master"], deployed_site),
        ]

    def test_github_integration_before_site_update(self, deploy, runner, project: Project, deployed_site: Path, profile_checkout: Path) -> None:
        """origin moves to GitHub before the site checkout is pulled."""
        runner.outputs["remote.origin.url"] = "abc123@git.eu.platform.sh:abc123.git\n"
        github_url = "git@github.com:corp/corpsite.git"

        deploy(site=dataclasses.replace(project, github_url=github_url))

        site_calls = [" ".join(args) for kind, args, cwd in runner.calls if cwd == deployed_site]
        set_url = site_calls.index(f"git remote set-url origin {github_url}")
        assert set_url < site_calls.index("git pull")
        assert "git remote add platform abc123@git.eu.platform.sh:abc123.git" in site_calls

    def test_no_github_integration_on_first_fetch(self, deploy, runner, project: Project, profile_checkout: Path) -> None:
        deploy(site=dataclasses.replace(project, github_url="git@github.com:corp/corpsite.git"))
        assert not runner.ran("git remote")

    def test_no_git_pull(self, deploy, runner, deployed_site: Path, profile_checkout: Path) -> None:
        deploy(BuildSettings(git_pull=False))
        assert not runner.ran("git pull")

    def test_environment_option(self, deploy, data_sync, deployed_site: Path, profile_checkout: Path) -> None:
        deploy(BuildSettings(db_sync=True, environment="staging"))
        assert data_sync.synced[0][1] == "staging"

    def test_one_build_remains(self, deploy, deploy_config: DeployConfig, build_executor, deployed_site: Path, profile_checkout: Path) -> None:
        """Cleanup keeps exactly the build made by this run."""
        builds_dir = deployed_site / ".platform" / "local" / "builds"
        builds_dir.mkdir(parents=True)
        for i in range(3):
            old = builds_dir / f"old-{i}"
            old.mkdir()
            os.utime(old, (1_500_000_000 + i, 1_500_000_000 + i))

        def new_build(source: Path, dest: Path) -> None:
            (builds_dir / "current").mkdir()

        build_executor.on_build = new_build
        deploy()

        assert [p.name for p in builds_dir.iterdir()] == ["current"]

    def test_legacy_layout(self, deploy, deploy_config: DeployConfig, build_executor, site_files, profile_checkout: Path) -> None:
        """Legacy projects build repository/ into www/."""
        root = _site_root(deploy_config)
        (root / "www").mkdir(parents=True)
        (root / "repository").mkdir()
        site_files(root / "repository")

        deploy()

        source, dest, _ = build_executor.calls[0]
        assert source == root / "repository"
        assert dest == root / "www"
        assert (root / "www" / "profiles" / "corp" / "corp.info").is_symlink()


# =============================================================================
# Search Indices
# =============================================================================


@pytest.mark.evergreen
class TestSearchIndices:
    """Elasticsearch indices are created for sites using the search module."""

    @pytest.fixture
    def search_profile(self, profile_checkout: Path) -> Path:
        (profile_checkout / "modules" / "contrib" / "search_api_elasticsearch").mkdir()
        return profile_checkout

    def test_creates_and_reindexes(self, deploy, runner, search_index, search_profile: Path) -> None:
        runner.outputs["search_api_index"] = "content\n"

        orchestrator = deploy()

        assert search_index.created == ["elasticsearch_index_local_corporate_site_content"]
        assert orchestrator.context.indices_created == search_index.created
        assert runner.ran("drush -y search-api-index")

    def test_no_reindex(self, deploy, runner, search_profile: Path) -> None:
        runner.outputs["search_api_index"] = "content\n"
        deploy(BuildSettings(reindex=False))
        assert not runner.ran("search-api-index")

    def test_search_server_down_is_not_fatal(self, deploy, runner, search_index, search_profile: Path) -> None:
        runner.failures["search_api_index"] = 1
        deploy()
        assert search_index.created == []

    def test_without_search_module(self, deploy, runner, profile_checkout: Path) -> None:
        deploy()
        assert not runner.ran("search_api_index")
