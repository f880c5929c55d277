"""
Install state machine — the marker-file protocol around the installer.

The installer is not transactional: a killed install can leave the
installed folder half-written.  The protocol below keeps that detectable:

    1. The marker is deleted before anything destructive happens.
    2. The marker is created only after ``install`` exits 0.

So a present marker means the folder can be trusted, and an absent marker
with an existing folder means a previous run was interrupted and the
folder must be thrown away.

States: CLEAN (marker present) → DIRTY (marker removed) → INSTALLING →
INSTALLED.  A failed install stays DIRTY on disk, which is safe: the next
run recovers automatically.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from monoinstall.core.execution.disposal import AsyncDisposer, DisposalHandle
from monoinstall.core.execution.installer import Installer
from monoinstall.core.models.install import InstallDecision, InstallState
from monoinstall.core.models.project import RepoConfig
from monoinstall.core.persistence.marker import MarkerFile

logger = logging.getLogger(__name__)


@dataclass
class InstallOutcome:
    decision: InstallDecision
    state: InstallState
    pruned: bool = False
    install_attempts: int = 0
    stale_inputs: list[Path] = field(default_factory=list)
    disposals: list[DisposalHandle] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "state": self.state.value,
            "pruned": self.pruned,
            "install_attempts": self.install_attempts,
            "stale_inputs": [str(p) for p in self.stale_inputs],
            "disposed": [str(h.source) for h in self.disposals],
        }


def remove_temp_project_entries(installed_folder: Path, prefix: str) -> list[Path]:
    """Delete the temp module copies from the installed folder.

    The installer only notices that such an entry exists, not that its
    contents changed, so they must be removed before every incremental install.
    """
    removed: list[Path] = []
    if not installed_folder.is_dir():
        return removed
    for entry in sorted(installed_folder.glob(f"{prefix}*")):
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed.append(entry)
    logger.debug("Removed %d temp project entries from %s", len(removed), installed_folder)
    return removed


class InstallStateMachine:
    def __init__(
        self,
        config: RepoConfig,
        installer: Installer,
        disposer: AsyncDisposer,
        temp_module_files: Sequence[Path] = (),
    ):
        self.config = config
        self.installer = installer
        self.disposer = disposer
        self.temp_module_files = list(temp_module_files)
        self.marker = MarkerFile(config.marker_path)
        self.state = InstallState.CLEAN if self.marker.exists() else InstallState.DIRTY

    def _timestamp_inputs(self) -> list[Path]:
        return [
            self.config.common_manifest_path,
            self.config.installed_folder,
            *self.temp_module_files,
        ]

    def _clean(self) -> None:
        installed = self.config.installed_folder
        self.marker.delete()
        self.state = InstallState.DIRTY

        if installed.exists():
            logger.info("Deleting old files from %s", installed)
            shutil.rmtree(installed)
            installed.mkdir(parents=True)

        if self.config.cache_folder is not None:
            self.installer.cache_clean(self.config.cache_folder)
        else:
            # A global cache may be in use by other installs running on this machine.
            logger.warning("Skipping cache clean because the cache is global")

    def run(self, clean: bool = False, full_clean: bool = False) -> InstallOutcome:
        installed = self.config.installed_folder
        outcome = InstallOutcome(decision=InstallDecision.SKIP, state=self.state)
        need_install = False
        skip_prune = False

        if clean or full_clean:
            self._clean()
            need_install = True
            skip_prune = True
            outcome.decision = InstallDecision.FULL_REINSTALL
        elif not self.marker.exists():
            if installed.exists():
                logger.warning(
                    'Deleting the "%s" folder because the previous install did not '
                    "complete successfully",
                    installed.name,
                )
                outcome.disposals.append(self.disposer.dispose(installed))
            need_install = True
            skip_prune = True
            outcome.decision = InstallDecision.FULL_REINSTALL
        else:
            outcome.stale_inputs = self.marker.stale_inputs(self._timestamp_inputs())
            if outcome.stale_inputs:
                logger.info(
                    "Install is outdated: %s",
                    ", ".join(str(p) for p in outcome.stale_inputs),
                )
                need_install = True
                outcome.decision = InstallDecision.FAST_INSTALL

        if not need_install:
            logger.info("The installed folder is up to date")
            outcome.state = self.state
            return outcome

        # Enter DIRTY before touching anything
        self.marker.delete()
        self.state = InstallState.INSTALLING
        outcome.state = self.state

        try:
            if not skip_prune:
                self.installer.prune()
                outcome.pruned = True
                remove_temp_project_entries(installed, self.config.temp_project_prefix)

            outcome.install_attempts = self.installer.install(
                self.config.cache_folder, self.config.tmp_folder
            )
        except Exception:
            self.state = InstallState.DIRTY
            raise

        self.marker.create()
        self.state = InstallState.INSTALLED
        outcome.state = self.state
        return outcome
