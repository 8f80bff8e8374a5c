"""
External process execution.

Every external command a deployment runs (git, the build executor, drush,
mysql, scp) goes through ``ProcessRunner`` so timeouts and failure output are
handled in one place.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from sitedeploy.core.utils import log

TIMEOUT_EXIT_CODE = 124


@dataclass
class ProcessResult:
    """Outcome of one external command."""

    args: Union[list[str], str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        if isinstance(self.args, str):
            return self.args
        return " ".join(self.args)


class ProcessRunner:
    """Runs commands synchronously with a bounded timeout.

    A timeout is reported as a failed ``ProcessResult`` rather than raised, so
    callers treat it exactly like a non-zero exit.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        argv: list[str],
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run an argument vector without shell interpretation."""
        return self._execute(list(argv), cwd, timeout, shell=False)

    def run_shell(
        self,
        command: str,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run a command string through the shell (pipes, redirects)."""
        return self._execute(command, cwd, timeout, shell=True)

    def _execute(
        self,
        args: Union[list[str], str],
        cwd: Optional[Path],
        timeout: Optional[float],
        shell: bool,
    ) -> ProcessResult:
        display = args if isinstance(args, str) else " ".join(args)
        log.debug(f"$ {display}" + (f"  (in {cwd})" if cwd else ""))
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                shell=shell,
                capture_output=True,
                text=True,
                timeout=timeout if timeout is not None else self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            log.error(f"Command timed out after {e.timeout}s: {display}")
            return ProcessResult(
                args,
                TIMEOUT_EXIT_CODE,
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
                timed_out=True,
            )
        except OSError as e:
            # Missing executable or unusable cwd: same contract as a failed exit.
            log.error(f"Could not run {display}: {e}")
            return ProcessResult(args, 127, stderr=str(e))

        result = ProcessResult(args, completed.returncode, completed.stdout, completed.stderr)
        if not result.ok:
            log.error(f"Command failed ({result.exit_code}): {result.command_line}")
            if result.stdout.strip():
                log.error(f"stdout: {result.stdout.strip()}")
            if result.stderr.strip():
                log.error(f"stderr: {result.stderr.strip()}")
        return result


def _as_text(value: Union[bytes, str, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value
