"""
Installer client — the external package installer, judged only by exit code.

Subcommands:
    install [--cache <dir>] [--tmp <dir>]   retried per policy
    prune                                    retried per policy
    shrinkwrap                               single attempt
    cache clean <dir>                        single attempt

Every invocation runs in the common folder.
"""

from __future__ import annotations

import logging
from pathlib import Path

from monoinstall.core.errors import MonoinstallError
from monoinstall.core.execution.process_runner import ProcessRunner
from monoinstall.core.reliability.retry import RetryPolicy

logger = logging.getLogger(__name__)


class InstallerFailure(MonoinstallError):
    """The installer exited nonzero on its final allowed attempt."""

    def __init__(self, command: list[str], attempts: int, returncode: int, detail: str = ""):
        message = f'"{" ".join(command)}" failed after {attempts} attempt(s) (exit {returncode})'
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.command = command
        self.attempts = attempts
        self.returncode = returncode


class Installer:
    def __init__(
        self,
        executable: Path | str,
        cwd: Path,
        runner: ProcessRunner,
        policy: RetryPolicy | None = None,
    ):
        self.executable = str(executable)
        self.cwd = cwd
        self.runner = runner
        self.policy = policy or RetryPolicy()

    def install(self, cache_folder: Path | None = None, tmp_folder: Path | None = None) -> int:
        """Run ``install``; returns the number of attempts it took."""
        args = ["install"]
        if cache_folder is not None:
            args += ["--cache", str(cache_folder)]
        if tmp_folder is not None:
            args += ["--tmp", str(tmp_folder)]
        return self._invoke(args, retry=True)

    def prune(self) -> int:
        return self._invoke(["prune"], retry=True)

    def shrinkwrap(self) -> int:
        return self._invoke(["shrinkwrap"], retry=False)

    def cache_clean(self, cache_folder: Path) -> int:
        return self._invoke(["cache", "clean", str(cache_folder)], retry=False)

    def _invoke(self, args: list[str], *, retry: bool) -> int:
        cmd = [self.executable, *args]
        label = f'"{Path(self.executable).name} {" ".join(args)}"'
        policy = self.policy if retry else RetryPolicy(max_attempts=1)

        outcome = policy.run(lambda _attempt: self.runner.run(cmd, cwd=self.cwd), label=label)
        if not outcome.ok:
            raise InstallerFailure(
                cmd,
                outcome.attempts,
                outcome.result.returncode,
                outcome.result.error,
            )
        return outcome.attempts
