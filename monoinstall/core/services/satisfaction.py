"""
Lock file satisfaction analysis.

Decides whether the existing lock file already resolves every range that
every temp module asks for.  If it does, the installer can run against the
existing tree (fast path); otherwise the installed folder and the lock file
must be rebuilt.

Only additions and changed ranges are detected.  A dependency removed from
a manifest still sits in the lock file and is never a reason to rebuild;
cleaning those up takes an explicit ``force``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from semantic_version import NpmSpec, Version

from monoinstall.core.models.install import InstallDecision
from monoinstall.core.models.lockfile import LockFile
from monoinstall.core.models.manifest import Manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnsatisfiedDependency:
    consumer: str
    dependency: str
    required: str
    locked: str | None = None  # resolved version, None when not in the lock file

    def describe(self) -> str:
        found = f"locked at {self.locked}" if self.locked else "not in the lock file"
        return f'"{self.consumer}" needs "{self.dependency}@{self.required}" ({found})'


@dataclass
class SatisfactionReport:
    decision: InstallDecision
    lock_file_found: bool = False
    forced: bool = False
    checked: int = 0
    unsatisfied: list[UnsatisfiedDependency] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "lock_file_found": self.lock_file_found,
            "forced": self.forced,
            "checked": self.checked,
            "unsatisfied": [
                {
                    "consumer": u.consumer,
                    "dependency": u.dependency,
                    "required": u.required,
                    "locked": u.locked,
                }
                for u in self.unsatisfied
            ],
        }


def version_satisfies(version: str, version_range: str) -> bool:
    """npm range semantics; anything unparseable does not satisfy."""
    expression = version_range.strip() or "*"
    try:
        return NpmSpec(expression).match(Version(version))
    except ValueError:
        return False


def is_local_reference(version_range: str) -> bool:
    return version_range.startswith("file:")


class SatisfactionAnalyzer:
    def __init__(self, lock_file: LockFile | None):
        self.lock_file = lock_file

    def analyze(self, temp_modules: Iterable[Manifest], force: bool = False) -> SatisfactionReport:
        if force:
            logger.warning("Forced regeneration: the installed folder and lock file will be rebuilt")
            return SatisfactionReport(
                InstallDecision.FULL_REINSTALL,
                lock_file_found=self.lock_file is not None,
                forced=True,
            )

        if self.lock_file is None:
            logger.warning(
                "Could not find a previous lock file. It must be regenerated; "
                "this may take some time..."
            )
            return SatisfactionReport(InstallDecision.FULL_REINSTALL, lock_file_found=False)

        report = SatisfactionReport(InstallDecision.FAST_INSTALL, lock_file_found=True)
        for manifest in temp_modules:
            for dependency, required in manifest.dependencies.items():
                report.checked += 1
                entry = self.lock_file.lookup(manifest.name, dependency)

                if entry is None:
                    missing = UnsatisfiedDependency(manifest.name, dependency, required)
                elif is_local_reference(required) or version_satisfies(entry.version, required):
                    continue
                else:
                    missing = UnsatisfiedDependency(
                        manifest.name, dependency, required, entry.version or None
                    )

                logger.warning("Could not satisfy %s", missing.describe())
                report.unsatisfied.append(missing)

        if report.unsatisfied:
            report.decision = InstallDecision.FULL_REINSTALL
            logger.warning(
                "The lock file is missing %d required dependencies. The installed folder "
                "must be deleted and replaced; this may take some time...",
                len(report.unsatisfied),
            )
        else:
            logger.info("All %d dependencies found in the lock file: using the fast path", report.checked)
        return report
