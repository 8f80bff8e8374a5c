"""
Database synchronization from the nightly backup of a remote environment.

Download order: cached dump for today, then the gzipped backup over scp,
then ``platform db:dump``. The dump is imported into a freshly recreated
local database with the mysql client.
"""

from __future__ import annotations

import shlex
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from sitedeploy.core.config import DeployConfig, fill_template
from sitedeploy.core.errors import DataSyncFailed
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.models import AppInfo, Environment, Project
from sitedeploy.deploy.settings import database_name

SANITIZE_PASSWORD = "password"


class DrushDataSync:
    """Data-sync backed by scp, gunzip, the mysql client and drush."""

    def __init__(
        self,
        config: DeployConfig,
        runner: ProcessRunner,
        today: Callable[[], date] = date.today,
    ):
        self.config = config
        self.runner = runner
        self.today = today

    # -------------------------------------------------------------------------
    # Backup retrieval
    # -------------------------------------------------------------------------

    def backup_path(self, project: Project) -> Path:
        stamp = self.today().strftime("%Y-%m-%d")
        return self.config.db_backup_local_cache / f"{stamp}_{project.db_slug()}.sql"

    def remote_backup(self, project: Project, environment: Environment, app: AppInfo) -> str:
        host = fill_template(
            "ssh_host_template", self.config.ssh_host_template, id=project.id, region=project.region
        )
        return f"{project.id}-{environment.id}--{app.name}@{host}:~/private/{project.id}.sql.gz"

    def fetch_backup(self, project: Project, environment: Environment, app: AppInfo) -> Path:
        path = self.backup_path(project)
        if path.exists():
            log.info(f"Retrieving backup from the cache: {path}")
            return path

        path.parent.mkdir(parents=True, exist_ok=True)
        log.info(f"Downloading backup to: {path}")
        gz_path = path.with_name(path.name + ".gz")
        copied = self.runner.run(["scp", self.remote_backup(project, environment, app), str(gz_path)])
        if copied.ok:
            self.runner.run(["gunzip", "-f", str(gz_path)])

        if not path.exists():
            log.warning("Nightly backup unavailable, dumping the database directly")
            self.runner.run([
                "platform", "db:dump",
                "--yes",
                "--project", project.id,
                "--environment", environment.id,
                "--app", app.name,
                "--file", str(path),
            ])
        return path

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def _mysql_root_args(self, database: Optional[str] = None) -> list[str]:
        stack = self.config.stack
        args = [
            "mysql",
            f"-h{stack.mysql_host}",
            f"-P{stack.mysql_port}",
            f"-u{stack.mysql_root_user}",
            f"-p{stack.mysql_root_password}",
        ]
        if database:
            args += ["--database", database]
        return args

    def recreate_database(self, db_name: str) -> None:
        stack = self.config.stack
        queries = "; ".join([
            f"DROP DATABASE IF EXISTS `{db_name}`",
            f"CREATE DATABASE IF NOT EXISTS `{db_name}`",
            f"GRANT SELECT, INSERT, UPDATE, DELETE, CREATE, DROP, INDEX, ALTER "
            f"ON `{db_name}`.* TO '{stack.mysql_user}'@'{stack.mysql_host}' "
            f"IDENTIFIED BY '{stack.mysql_password}'",
        ])
        result = self.runner.run(self._mysql_root_args() + ["-e", queries])
        if not result.ok:
            raise DataSyncFailed(f"Could not recreate database {db_name}. Is MySQL running?")

    def import_dump(self, dump: Path, db_name: str) -> None:
        command = "cat {} | {}".format(
            shlex.quote(str(dump)),
            " ".join(shlex.quote(a) for a in self._mysql_root_args(db_name)),
        )
        result = self.runner.run_shell(command, timeout=self.config.external_process_timeout)
        if not result.ok:
            raise DataSyncFailed(f"Importing {dump} into {db_name} failed")

    # -------------------------------------------------------------------------
    # Data-sync interface
    # -------------------------------------------------------------------------

    def sync(
        self, project: Project, environment: Environment, app: AppInfo, no_sanitize: bool
    ) -> None:
        log.info(f"Importing live database backup for {project.id}-{app.name}")
        dump = self.fetch_backup(project, environment, app)
        if not dump.exists() or dump.stat().st_size == 0:
            raise DataSyncFailed("Backup could not be downloaded. Try again later.")

        db_name = database_name(self.config, project)
        self.recreate_database(db_name)
        self.import_dump(dump, db_name)
        log.success(f"Imported {dump.name} into {db_name}")

        if not no_sanitize:
            self.sanitize(project, app)

    def sanitize(self, project: Project, app: AppInfo) -> None:
        log.info(f"Sanitizing database of {project.label}...")
        result = self.runner.run(
            ["drush", "-y", "sql-sanitize", f"--sanitize-password={SANITIZE_PASSWORD}"],
            cwd=app.www_dir,
        )
        if not result.ok:
            raise DataSyncFailed(f"Sanitizing the database of {project.label} failed")
        log.success("Database sanitized")
