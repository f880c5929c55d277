"""
Process runner — the single place where installer subprocesses are started.

Workflows never call ``subprocess`` directly; they receive a
``ProcessRunner`` so tests can substitute a scripted fake.  Invocations
block until the child exits and have no timeout: a hung installer hangs
the workflow.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Exit code reported when the executable could not be started at all
EXIT_NOT_STARTED = 127


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one subprocess invocation."""

    returncode: int
    elapsed_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def to_dict(self) -> dict:
        data: dict = {"ok": self.ok, "returncode": self.returncode, "elapsed_ms": self.elapsed_ms}
        if self.error:
            data["error"] = self.error
        return data


class ProcessRunner(Protocol):
    def run(self, cmd: list[str], *, cwd: Path) -> ProcessResult: ...


class SubprocessRunner:
    """Runs commands with inherited stdio so installer output reaches the terminal."""

    def __init__(self, env_overrides: dict[str, str] | None = None):
        self._env_overrides = dict(env_overrides or {})

    def run(self, cmd: list[str], *, cwd: Path) -> ProcessResult:
        env = None
        if self._env_overrides:
            env = os.environ.copy()
            for key, value in self._env_overrides.items():
                env[key] = os.path.expandvars(value)

        logger.info("Running %s in %s", " ".join(cmd), cwd)
        start = time.monotonic()
        try:
            completed = subprocess.run(cmd, cwd=str(cwd), env=env, check=False)
        except OSError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("Could not start %s: %s", cmd[0], e)
            return ProcessResult(EXIT_NOT_STARTED, elapsed_ms, error=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if completed.returncode != 0:
            logger.debug("%s exited with %d after %dms", cmd[0], completed.returncode, elapsed_ms)
            return ProcessResult(
                completed.returncode,
                elapsed_ms,
                error=f"Command failed (exit {completed.returncode})",
            )
        return ProcessResult(0, elapsed_ms)
