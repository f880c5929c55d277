"""
Generate use case — rebuild temp modules and the common install after
any project's package.json changed.

Sequence:
    1. Update the package review file (if configured).
    2. Replace the temp_modules folder and the common manifest.
    3. Decide from the lock file whether the existing tree still fits.
    4. Wipe the installed folder (full reinstall) or strip only the temp
       project entries (fast path / lazy).
    5. Drop the stale lock file when it will be rebuilt.
    6. Provision the installer tool, install, and regenerate the lock file.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from monoinstall.core.config.loader import load_config
from monoinstall.core.errors import MonoinstallError
from monoinstall.core.execution.disposal import AsyncDisposer
from monoinstall.core.execution.installer import Installer
from monoinstall.core.execution.process_runner import ProcessRunner, SubprocessRunner
from monoinstall.core.models.install import InstallDecision
from monoinstall.core.models.project import RepoConfig
from monoinstall.core.persistence.manifest_file import load_lock_file
from monoinstall.core.persistence.marker import MarkerFile
from monoinstall.core.reliability.retry import RetryPolicy
from monoinstall.core.services.package_review import save_package_review
from monoinstall.core.services.satisfaction import SatisfactionAnalyzer, SatisfactionReport
from monoinstall.core.services.temp_modules import generate_temp_modules, write_temp_modules
from monoinstall.core.services.tool_provision import ToolProvisioner

logger = logging.getLogger(__name__)


@dataclass
class GenerateResult:
    """Result of a generate run."""

    decision: InstallDecision | None = None
    report: SatisfactionReport | None = None
    lazy: bool = False
    forced: bool = False
    temp_module_files: list[Path] = field(default_factory=list)
    lock_file_deleted: bool = False
    shrinkwrapped: bool = False
    install_attempts: int = 0
    elapsed_ms: int = 0
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
            return result

        result["decision"] = self.decision.value if self.decision else None
        result["lazy"] = self.lazy
        result["forced"] = self.forced
        result["temp_modules"] = [str(p) for p in self.temp_module_files]
        result["lock_file_deleted"] = self.lock_file_deleted
        result["shrinkwrapped"] = self.shrinkwrapped
        result["install_attempts"] = self.install_attempts
        result["elapsed_ms"] = self.elapsed_ms
        if self.report:
            result["satisfaction"] = self.report.to_dict()
        return result


class GenerateOrchestrator:
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

    def _delete_temp_modules(self) -> None:
        folder = self.config.temp_modules_folder
        if folder.exists():
            logger.info("Deleting %s", folder)
            shutil.rmtree(folder)

    def _delete_installed(self, full: bool) -> None:
        installed = self.config.installed_folder
        if full:
            if installed.exists():
                logger.info("Deleting the %s folder...", installed)
                self.disposer.dispose(installed)
            return

        # Keep the installed tree; the temp project copies are always stale.
        prefix = self.config.temp_project_prefix
        logger.info("Deleting %s/%s*", installed, prefix)
        if installed.is_dir():
            for entry in sorted(installed.glob(f"{prefix}*")):
                self.disposer.dispose(entry)

    def _delete_lock_file(self) -> bool:
        path = self.config.lock_file_path
        if not path.exists():
            return False
        logger.info("Deleting %s", path)
        path.unlink()
        return True

    def run(self, lazy: bool = False, force: bool = False) -> GenerateResult:
        """Regenerate temp modules and bring the installed folder up to date.

        Args:
            lazy: Keep the installed folder and skip lock file regeneration.
                Faster but less correct; meant for debugging.
            force: Rebuild the installed folder and lock file even if the
                lock file satisfies every range (removes dropped dependencies).

        Raises:
            MonoinstallError: On any fatal condition.
        """
        self.disposer.sweep()
        try:
            return self._run(lazy, force)
        finally:
            self.disposer.wait_all()

    def _run(self, lazy: bool, force: bool) -> GenerateResult:
        start = time.monotonic()
        result = GenerateResult(lazy=lazy, forced=force)
        config = self.config

        save_package_review(config)

        # 1. Temp modules + common manifest
        self._delete_temp_modules()
        generated = generate_temp_modules(config)
        result.temp_module_files = write_temp_modules(config, generated)

        # 2. Does the existing lock file still cover every range?
        lock_file = load_lock_file(config.lock_file_path)
        report = SatisfactionAnalyzer(lock_file).analyze(generated.temp_modules.values(), force=force)
        result.report = report
        result.decision = report.decision
        full = report.decision is InstallDecision.FULL_REINSTALL

        # 3. Installed folder is about to change: invalidate the marker first
        marker = MarkerFile(config.marker_path)
        marker.delete()
        self._delete_installed(full=full and not lazy)

        if full or lazy:
            result.lock_file_deleted = self._delete_lock_file()

        # 4. Tool, install, lock file
        executable = self.provisioner.ensure(clean=False)
        installer = Installer(executable, config.common_folder, self.runner, self.policy)
        result.install_attempts = installer.install(config.cache_folder, config.tmp_folder)

        if full:
            if lazy:
                logger.warning("Skipping lock file regeneration in lazy mode")
            else:
                installer.shrinkwrap()
                result.shrinkwrapped = True

        marker.create()

        result.elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("Generate finished (%s) in %dms", report.decision.value, result.elapsed_ms)
        return result


def run_generate(
    config_path: Path | None = None,
    lazy: bool = False,
    force: bool = False,
    runner: ProcessRunner | None = None,
) -> GenerateResult:
    """Load configuration and run the generate workflow.

    Fatal errors are captured in the result instead of raised.
    """
    try:
        config = load_config(config_path)
        return GenerateOrchestrator(config, runner=runner).run(lazy=lazy, force=force)
    except MonoinstallError as e:
        logger.debug("Generate aborted", exc_info=True)
        return GenerateResult(
            lazy=lazy,
            forced=force,
            error=str(e),
            error_type=type(e).__name__,
        )
