"""
Main CLI for the sitedeploy tool.

Deploys remote-hosted Drupal projects locally: fetch, build against a local
profile checkout, database sync and cleanup.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from sitedeploy.core.config import DeployConfig, load_config
from sitedeploy.core.errors import DeployError
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log

if TYPE_CHECKING:
    from sitedeploy.deploy.collaborators import ApiClient

__version__ = "0.1.0"


# =============================================================================
# Argument Parsing
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="sitedeploy",
        description="Local deployment of remote-hosted Drupal projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  deploy      Deploy a site locally
  db-sync     Synchronize the local database with the daily backup
  clean       Delete old builds of a project

Examples:
  sitedeploy deploy -p myproject123           # Deploy a project
  sitedeploy deploy -d -p myproject123        # Deploy, refreshing the database
  sitedeploy deploy -d -S -p myproject123     # ... without sanitizing it
  sitedeploy deploy -c release-2.0 -p abc123  # Build against a remote profile branch
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file (default: $SITEDEPLOY_CONFIG or ~/.sitedeploy/config.yaml)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show commands and timings")

    subparsers = parser.add_subparsers(dest="command", title="commands", metavar="<command>")

    # --- deploy ---
    deploy_parser = subparsers.add_parser(
        "deploy",
        help="Deploy a site locally",
        description="Fetch or update, build and configure a project for local development.",
    )
    deploy_parser.add_argument("-p", "--project", required=True, help="Project ID")
    deploy_parser.add_argument(
        "-d", "--db-sync", action="store_true",
        help="Sync the project's database with the daily live backup",
    )
    deploy_parser.add_argument(
        "-c", "--core-branch",
        help="The core profile's branch to use during deployment",
    )
    deploy_parser.add_argument(
        "-e", "--environment",
        help="Environment to take the database backup from (default: the default branch)",
    )
    deploy_parser.add_argument(
        "-A", "--no-archive", action="store_true",
        help="Do not create or use a build archive",
    )
    deploy_parser.add_argument(
        "-D", "--no-deploy-hooks", action="store_true",
        help="Do not run deployment hooks (drush commands)",
    )
    deploy_parser.add_argument(
        "-G", "--no-git-pull", action="store_true",
        help="Do not fetch updates for Git repositories",
    )
    deploy_parser.add_argument(
        "-I", "--no-reindex", action="store_true",
        help="Do not reindex content after creating search indices for the first time",
    )
    deploy_parser.add_argument(
        "-S", "--no-sanitize", action="store_true",
        help="Do not perform database sanitization",
    )
    deploy_parser.add_argument(
        "-U", "--no-unclean-features", action="store_true",
        help="Do not list unclean features at the end of the deployment",
    )

    # --- db-sync ---
    sync_parser = subparsers.add_parser(
        "db-sync",
        help="Synchronize the local database with the daily backup",
        description="Import the remote environment's daily backup into the local database.",
    )
    sync_parser.add_argument("-p", "--project", required=True, help="Project ID")
    sync_parser.add_argument("-e", "--environment", help="Environment ID (default: the default branch)")
    sync_parser.add_argument(
        "--app", action="append", metavar="APP",
        help="Application to import the database for (repeatable; default: every drupal app)",
    )
    sync_parser.add_argument(
        "-S", "--no-sanitize", action="store_true",
        help="Do not perform database sanitization",
    )

    # --- clean ---
    clean_parser = subparsers.add_parser(
        "clean",
        help="Delete old builds of a project",
        description="Remove old builds and build archives, keeping the newest ones.",
    )
    clean_parser.add_argument("-p", "--project", required=True, help="Project ID")
    clean_parser.add_argument(
        "--keep", type=int, default=1,
        help="Number of builds to keep (default: 1)",
    )

    return parser


# =============================================================================
# Command Handlers
# =============================================================================


def _api_client(config: DeployConfig) -> ApiClient:
    from sitedeploy.deploy.collaborators import ConfigApiClient

    return ConfigApiClient(config)


def cmd_deploy(args: argparse.Namespace, config: DeployConfig) -> int:
    from sitedeploy.deploy.collaborators import CommandBuildExecutor
    from sitedeploy.deploy.datasync import DrushDataSync
    from sitedeploy.deploy.orchestrator import DeployOrchestrator
    from sitedeploy.deploy.search import ElasticsearchClient
    from sitedeploy.deploy.settings import BuildSettings

    project = _api_client(config).get_project(args.project)
    runner = ProcessRunner(timeout=config.external_process_timeout)
    orchestrator = DeployOrchestrator(
        config=config,
        settings=BuildSettings.from_args(args),
        project=project,
        runner=runner,
        build_executor=CommandBuildExecutor(runner, config.build_command),
        data_sync=DrushDataSync(config, runner),
        search_index=ElasticsearchClient(),
    )
    orchestrator.run()
    return 0


def _resolve_project_layout(api: ApiClient, config: DeployConfig, project_id: str):
    from sitedeploy.deploy.layout import detect_legacy, project_root, resolve_layout

    project = api.get_project(project_id)
    root = project_root(config.sites_root, project.code)
    if not root.is_dir():
        raise DeployError(f"{project.label} has not been deployed yet ({root} not found)")
    return project, resolve_layout(config.sites_root, project.code, detect_legacy(root))


def cmd_db_sync(args: argparse.Namespace, config: DeployConfig) -> int:
    from sitedeploy.deploy.datasync import DrushDataSync
    from sitedeploy.deploy.hooks import DEFAULT_FLAVOR, app_flavor, find_applications
    from sitedeploy.deploy.models import AppInfo

    api = _api_client(config)
    project, layout = _resolve_project_layout(api, config, args.project)
    environment_id = args.environment or config.git_default_branch
    environment = api.get_environment(project, environment_id)
    if environment is None:
        log.error(f"Environment not found: {environment_id}")
        return 1

    apps = [
        AppInfo(name=name, repository_dir=layout.repository_dir, www_dir=layout.www_dir)
        for name, app_config in find_applications(layout.repository_dir)
        if (not args.app or name in args.app) and app_flavor(app_config) == DEFAULT_FLAVOR
    ]
    if not apps:
        log.error(f"No {DEFAULT_FLAVOR} application to synchronize in {layout.repository_dir}")
        return 1

    runner = ProcessRunner(timeout=config.external_process_timeout)
    data_sync = DrushDataSync(config, runner)
    for app in apps:
        log.header(f"Database sync for {project.label}: {app.name}")
        data_sync.sync(project, environment, app, no_sanitize=args.no_sanitize)
    log.success("Database synchronized")
    return 0


def cmd_clean(args: argparse.Namespace, config: DeployConfig) -> int:
    from sitedeploy.deploy.builds import retire_old_builds

    if args.keep < 0:
        log.error("--keep must not be negative")
        return 1
    project, layout = _resolve_project_layout(_api_client(config), config, args.project)
    log.header(f"Deleting old builds of {project.label}")
    retire_old_builds(layout, keep=args.keep)
    return 0


# =============================================================================
# Command Dispatch
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        log.set_color(False)
    log.set_verbose(args.verbose)

    if not args.command:
        parser.print_help()
        return 0

    handlers = {
        "deploy": cmd_deploy,
        "db-sync": cmd_db_sync,
        "clean": cmd_clean,
    }

    try:
        config = load_config(args.config)
        handler = handlers.get(args.command)
        if handler is None:
            log.error(f"Unknown command: {args.command}")
            return 1
        return handler(args, config)

    except KeyboardInterrupt:
        log.warning("\nInterrupted")
        return 130
    except DeployError as e:
        log.error(e.describe())
        return 1
    except Exception as e:
        log.error(str(e))
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
