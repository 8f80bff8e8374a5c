"""
Deploy orchestrator for sitedeploy.

Takes a project from "never deployed" or "stale" to freshly built and
servable: fetch, update, database sync, build against the local profile,
profile symlinks, search indices, sanitization, deploy hooks and cleanup.
"""

from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sitedeploy.core.config import DeployConfig
from sitedeploy.core.errors import (
    BuildExecutorFailed,
    DeployError,
    FilesystemError,
    SearchIndexError,
)
from sitedeploy.core.git_ops import GitClient
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.timing import PhaseTimings
from sitedeploy.core.utils import log
from sitedeploy.deploy.builds import mount_file_share, retire_old_builds, unclean_features
from sitedeploy.deploy.collaborators import (
    BuildExecutor,
    BuildOptions,
    DataSync,
    SearchIndex,
)
from sitedeploy.deploy.fetch import FetchCoordinator, RepositoryUpdater, enable_github_integration
from sitedeploy.deploy.hooks import HookRunner, app_name, deploy_hooks, load_app_config
from sitedeploy.deploy.layout import ProjectLayout, detect_legacy, project_root, resolve_layout
from sitedeploy.deploy.manifest import BranchOverride, LocalCopy, PatchMode, patched_manifest, read_profile
from sitedeploy.deploy.models import AppInfo, DeploymentContext, Environment, Project
from sitedeploy.deploy.search import ensure_indices, search_index_machine_names, uses_elasticsearch
from sitedeploy.deploy.settings import BuildSettings, database_name, write_local_settings
from sitedeploy.deploy.symlinks import apply_symlinks, plan_profile_symlinks, remove_path

KEEP_BUILDS = 1


# =============================================================================
# Deploy Orchestrator
# =============================================================================


class DeployOrchestrator:
    """Runs the ordered deployment sequence for one project."""

    def __init__(
        self,
        config: DeployConfig,
        settings: BuildSettings,
        project: Project,
        runner: ProcessRunner,
        build_executor: BuildExecutor,
        data_sync: DataSync,
        search_index: SearchIndex,
        git: Optional[GitClient] = None,
    ):
        self.config = config
        self.settings = settings
        self.project = project
        self.runner = runner
        self.build_executor = build_executor
        self.data_sync = data_sync
        self.search_index = search_index
        self.git = git or GitClient(runner)

        self.fetcher = FetchCoordinator(self.git, config)
        self.updater = RepositoryUpdater(self.git, config.git_default_branch)
        self.hook_runner = HookRunner(runner, config.external_process_timeout)

        self.timings = PhaseTimings()
        self.context = DeploymentContext(project=project, root_dir=Path())
        self.layout: Optional[ProjectLayout] = None

    @contextmanager
    def _phase(self, name: str) -> Iterator[None]:
        """Time a phase and tag any failure with the phase name."""
        with self.timings.measure(name):
            try:
                yield
            except DeployError as e:
                if e.step is None:
                    e.step = name
                raise
            except OSError as e:
                error = FilesystemError(str(e))
                error.step = name
                raise error from e

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def resolve_paths(self) -> None:
        """Compute the project root and create the shared root directories."""
        root = project_root(self.config.sites_root, self.project.code)
        self.config.profiles_root.mkdir(parents=True, exist_ok=True)
        self.config.sites_root.mkdir(parents=True, exist_ok=True)
        self.context.root_dir = root

    def fetch_site(self) -> None:
        if self.fetcher.ensure_site(self.project, self.context.root_dir):
            self.context.site_just_fetched = True
            # A fresh checkout has no usable local database.
            if not self.settings.db_sync:
                log.info("First deployment: database sync enabled")
            self.settings = dataclasses.replace(self.settings, db_sync=True)

        legacy = detect_legacy(self.context.root_dir)
        self.layout = resolve_layout(self.config.sites_root, self.project.code, legacy)
        self.context.legacy = legacy
        self.context.repository_dir = self.layout.repository_dir
        self.context.www_dir = self.layout.www_dir

    def discover_profile(self) -> None:
        profile = read_profile(self.layout.manifest_path)
        self.context.profile = profile
        if profile is None:
            log.info("No distribution profile declared")
            return
        log.info(f"Profile: {profile.name} ({profile.download_type})")
        if self.fetcher.ensure_profile(profile):
            self.context.profile_just_fetched = True

    def update_repositories(self) -> None:
        profile = self.context.profile
        if profile is not None:
            if self.settings.core_branch:
                log.info(
                    f"Ignoring local profile repository. "
                    f"Using remote with branch {self.settings.core_branch}"
                )
            elif not self.context.profile_just_fetched:
                self.updater.update(self.fetcher.profile_checkout(profile))

        if not self.context.site_just_fetched:
            # The GitHub mirror can be switched on at any time.
            enable_github_integration(self.git, self.layout.repository_dir, self.project.github_url)
            self.updater.update(self.layout.repository_dir)

    def app_info(self) -> AppInfo:
        app_config = load_app_config(self.layout.app_config_path)
        return AppInfo(
            name=app_name(app_config),
            repository_dir=self.layout.repository_dir,
            www_dir=self.layout.www_dir,
        )

    def environment(self) -> Environment:
        return Environment(id=self.settings.environment or self.config.git_default_branch)

    def sync_database(self) -> None:
        # Sanitized separately, after the build.
        self.data_sync.sync(self.project, self.environment(), self.app_info(), no_sanitize=True)

    def patch_mode(self) -> PatchMode:
        if self.settings.core_branch:
            return BranchOverride(self.settings.core_branch)
        return LocalCopy(self.fetcher.profile_checkout(self.context.profile))

    def _run_build_executor(self) -> None:
        options = BuildOptions(archive=self.settings.archive)
        if not self.build_executor.build(self.layout.repository_dir, self.layout.www_dir, options):
            raise BuildExecutorFailed(f"Build of {self.project.label} failed")

    def build(self) -> None:
        profile = self.context.profile
        log.info(f"Building {self.project.label}...")

        if profile is None:
            self._run_build_executor()
        else:
            mode = self.patch_mode()
            with patched_manifest(self.layout.manifest_path, profile, mode):
                self._run_build_executor()

            if isinstance(mode, LocalCopy):
                self.link_profile()

        settings_path = write_local_settings(self.layout.settings_path, self.config, self.project)
        log.info(f"Wrote {settings_path}")
        log.success("Build complete")

    def link_profile(self) -> None:
        profile = self.context.profile
        # The "copy" download brings the checkout's .git along.
        remove_path(self.layout.profile_dir(profile.name) / ".git")
        link_map = plan_profile_symlinks(profile.name, self.config.profiles_root, self.layout.www_dir)
        count = apply_symlinks(link_map)
        log.info(f"Linked {count} profile path(s) to {self.fetcher.profile_checkout(profile)}")

    def create_search_indices(self) -> None:
        profile = self.context.profile
        if profile is None or not uses_elasticsearch(self.layout.www_dir, profile.name):
            log.dim("No search integration found")
            return

        db_name = database_name(self.config, self.project)
        try:
            machine_names = search_index_machine_names(self.config, self.runner, db_name)
            created = ensure_indices(
                self.search_index, self.config.stack.elasticsearch_url, db_name, machine_names
            )
        except SearchIndexError as e:
            log.warning(f"Skipping search indices: {e}")
            return

        self.context.indices_created = created
        if created and self.settings.reindex:
            log.info("Indexing content...")
            result = self.runner.run(["drush", "-y", "search-api-index"], cwd=self.layout.www_dir)
            if not result.ok:
                log.warning("Reindexing failed; run 'drush search-api-index' manually")

    def sanitize_database(self) -> None:
        self.data_sync.sanitize(self.project, self.app_info())

    def run_deploy_hooks(self) -> None:
        hooks = deploy_hooks(load_app_config(self.layout.app_config_path))
        if not hooks.strip():
            log.dim("No deploy hooks declared")
            return
        log.info(f"Executing deployment hooks for {self.project.label}...")
        self.hook_runner.run(hooks, self.layout.www_dir)

    def finish(self) -> None:
        mount_file_share(self.runner, self.config.mount_command, self.layout.root_dir)

        if self.settings.unclean_features:
            log.info("Checking the status of features...")
            for feature in unclean_features(self.runner, self.layout.www_dir):
                log.warning(feature)

        log.info("Deleting old builds...")
        retire_old_builds(self.layout, keep=KEEP_BUILDS)

    # -------------------------------------------------------------------------
    # Sequence
    # -------------------------------------------------------------------------

    def run(self) -> DeploymentContext:
        """Run the full deployment. Stops at the first fatal error."""
        log.header(f"Deployment started for {self.project.label}")

        with self._phase("layout"):
            self.resolve_paths()

        with self._phase("fetch"):
            self.fetch_site()
            self.discover_profile()

        if self.settings.git_pull:
            log.header("Updating repositories")
            with self._phase("update"):
                self.update_repositories()
        else:
            log.info("Skipping repository updates (--no-git-pull)")

        if self.settings.db_sync:
            log.header("Synchronizing database")
            with self._phase("db_sync"):
                self.sync_database()

        log.header(f"Building {self.project.label}")
        with self._phase("build"):
            self.build()

        with self._phase("search_indices"):
            self.create_search_indices()

        if self.settings.db_sync and self.settings.sanitize:
            log.header("Sanitizing database")
            with self._phase("sanitize"):
                self.sanitize_database()

        if self.settings.deploy_hooks:
            log.header("Running deploy hooks")
            with self._phase("deploy_hooks"):
                self.run_deploy_hooks()
        else:
            log.info("Skipping deploy hooks (--no-deploy-hooks)")

        log.header("Finishing")
        with self._phase("finish"):
            self.finish()

        log.header("Deployment finished")
        log.info(f"Go to http://{self.project.code}{self.config.local_domain} to view the site.")
        log.info("The password for all users is 'password'.")
        if log.verbose:
            log.dim(self.timings.summary())

        return self.context
