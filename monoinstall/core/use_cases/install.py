"""
Install use case — bring the common installed folder up to date after
pulling changes.

Sequence:
    1. Enforce the git policy (unless bypassed).
    2. Verify the temp modules on disk match the configured projects.
    3. Provision the pinned installer tool.
    4. Run the marker-file install protocol.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from monoinstall.core.config.loader import load_config
from monoinstall.core.errors import MonoinstallError
from monoinstall.core.execution.disposal import AsyncDisposer
from monoinstall.core.execution.installer import Installer
from monoinstall.core.execution.process_runner import ProcessRunner, SubprocessRunner
from monoinstall.core.models.project import RepoConfig
from monoinstall.core.reliability.retry import RetryPolicy
from monoinstall.core.services.consistency import (
    ConsistencyChecker,
    find_temp_module_files,
    read_temp_modules,
)
from monoinstall.core.services.git_policy import check_git_policy
from monoinstall.core.services.install_state import InstallOutcome, InstallStateMachine
from monoinstall.core.services.temp_modules import generate_temp_modules
from monoinstall.core.services.tool_provision import ToolProvisioner

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    outcome: InstallOutcome | None = None
    temp_module_files: list[Path] = field(default_factory=list)
    clean: bool = False
    full_clean: bool = False
    elapsed_ms: int = 0
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
            return result

        result["clean"] = self.clean
        result["full_clean"] = self.full_clean
        result["temp_modules"] = [str(p) for p in self.temp_module_files]
        result["elapsed_ms"] = self.elapsed_ms
        if self.outcome:
            result.update(self.outcome.to_dict())
        return result


class InstallOrchestrator:
    def __init__(
        self,
        config: RepoConfig,
        runner: ProcessRunner | None = None,
        provisioner: ToolProvisioner | None = None,
        disposer: AsyncDisposer | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.config = config
        self.runner = runner or SubprocessRunner()
        self.policy = policy or RetryPolicy.from_settings(config.installer)
        self.provisioner = provisioner or ToolProvisioner(config, self.runner, self.policy)
        self.disposer = disposer or AsyncDisposer(config.recycler_folder)

    def run(
        self,
        clean: bool = False,
        full_clean: bool = False,
        bypass_policy: bool = False,
    ) -> InstallResult:
        """Verify temp modules and install.

        Args:
            clean: Delete the installed folder (and a per-repo cache) first.
            full_clean: Like ``clean``, but also reprovision the installer tool.
            bypass_policy: Skip git policy enforcement.

        Raises:
            MonoinstallError: On any fatal condition.
        """
        self.disposer.sweep()
        try:
            return self._run(clean, full_clean, bypass_policy)
        finally:
            self.disposer.wait_all()

    def _run(self, clean: bool, full_clean: bool, bypass_policy: bool) -> InstallResult:
        start = time.monotonic()
        config = self.config
        result = InstallResult(clean=clean, full_clean=full_clean)

        if not bypass_policy:
            check_git_policy(config)

        files = find_temp_module_files(config)
        result.temp_module_files = files
        ConsistencyChecker(config.projects, generate_temp_modules(config)).check(
            read_temp_modules(files)
        )

        executable = self.provisioner.ensure(clean=full_clean)
        installer = Installer(executable, config.common_folder, self.runner, self.policy)

        machine = InstallStateMachine(config, installer, self.disposer, files)
        result.outcome = machine.run(clean=clean, full_clean=full_clean)

        result.elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Install finished (%s) in %dms", result.outcome.decision.value, result.elapsed_ms
        )
        return result


def run_install(
    config_path: Path | None = None,
    clean: bool = False,
    full_clean: bool = False,
    bypass_policy: bool = False,
    runner: ProcessRunner | None = None,
) -> InstallResult:
    """Load configuration and run the install workflow.

    Fatal errors are captured in the result instead of raised.
    """
    try:
        config = load_config(config_path)
        return InstallOrchestrator(config, runner=runner).run(
            clean=clean, full_clean=full_clean, bypass_policy=bypass_policy
        )
    except MonoinstallError as e:
        logger.debug("Install aborted", exc_info=True)
        return InstallResult(
            clean=clean,
            full_clean=full_clean,
            error=str(e),
            error_type=type(e).__name__,
        )
