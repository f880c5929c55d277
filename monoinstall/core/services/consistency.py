"""
Consistency check — persisted temp modules vs. a fresh generation.

Validation runs in both directions: every file on disk must belong to a
configured project, and every configured project must have a file that
is structurally identical to what generation would produce now.  Nothing
is repaired; every failure tells the operator to regenerate.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from monoinstall.core.errors import MonoinstallError
from monoinstall.core.models.manifest import Manifest, ManifestDifference, diff_documents
from monoinstall.core.models.project import MANIFEST_FILE_NAME, Project, RepoConfig
from monoinstall.core.persistence.manifest_file import ManifestReadError, load_manifest_document
from monoinstall.core.services.temp_modules import GeneratedModules

logger = logging.getLogger(__name__)

RERUN_HINT = "Did you forget to run 'monoinstall generate'?"


class ConsistencyError(MonoinstallError):
    """Persisted temp modules do not match the configured projects."""


class OrphanedTempModuleError(ConsistencyError):
    def __init__(self, path: Path, detail: str = "we could not find a matching project for it"):
        super().__init__(
            f'The file "{path}" exists in the temp_modules folder but {detail}. '
            f"This file may need to be deleted.\n\n{RERUN_HINT}"
        )
        self.path = path


class MissingTempModuleError(ConsistencyError):
    def __init__(self, package_name: str):
        super().__init__(
            f"The project {package_name} is missing a corresponding file in the "
            f"temp_modules folder.\n\n{RERUN_HINT}"
        )
        self.package_name = package_name


class UnreadableTempModuleError(ConsistencyError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f'The file "{path}" cannot be read: {reason}\n\n{RERUN_HINT}')
        self.path = path


class DriftError(ConsistencyError):
    """A persisted temp module differs from the freshly generated one."""

    def __init__(
        self,
        package_name: str,
        expected: Manifest,
        actual: dict[str, Any],
        differences: list[ManifestDifference],
    ):
        self.package_name = package_name
        self.expected = expected
        self.actual = actual
        self.differences = differences
        super().__init__(self.render())

    def render(self) -> str:
        lines = [f"The project {self.package_name}'s temp module is outdated:"]
        lines += [f"  - {d.describe()}" for d in self.differences]
        lines += ["", "EXPECTED:", self.expected.to_json(), "ACTUAL:", _render_document(self.actual), RERUN_HINT]
        return "\n".join(lines)


def _render_document(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


@dataclass(frozen=True)
class PersistedTempModule:
    path: Path
    manifest: Manifest
    # JSON object as found on disk, without model defaults or coercion
    document: dict[str, Any]


def find_temp_module_files(config: RepoConfig) -> list[Path]:
    """``<temp_modules>/<prefix>*/package.json``, sorted."""
    folder = config.temp_modules_folder
    if not folder.is_dir():
        return []
    return sorted(
        p for p in folder.glob(f"{config.temp_project_prefix}*/{MANIFEST_FILE_NAME}") if p.is_file()
    )


def read_temp_modules(paths: Sequence[Path]) -> list[PersistedTempModule]:
    persisted: list[PersistedTempModule] = []
    for path in paths:
        try:
            manifest, document = load_manifest_document(path)
        except ManifestReadError as e:
            raise UnreadableTempModuleError(path, e.reason) from e
        persisted.append(PersistedTempModule(path=path, manifest=manifest, document=document))
    return persisted


class ConsistencyChecker:
    def __init__(self, projects: Sequence[Project], expected: GeneratedModules):
        self.projects = list(projects)
        self.expected = expected

    def check(self, persisted: Sequence[PersistedTempModule]) -> None:
        """Raise the first inconsistency found; return quietly when consistent."""
        known = {p.temp_project_name for p in self.projects}

        # 1. Every temp module on disk has a project
        by_name: dict[str, PersistedTempModule] = {}
        for item in persisted:
            name = item.manifest.name
            if name not in known:
                raise OrphanedTempModuleError(item.path)
            if name in by_name:
                raise OrphanedTempModuleError(
                    item.path, f'it duplicates "{by_name[name].path}" for the same project'
                )
            by_name[name] = item

        # 2. Every project has a temp module that matches generation
        for project in self.projects:
            item = by_name.get(project.temp_project_name)
            if item is None:
                raise MissingTempModuleError(project.package_name)

            expected = self.expected.temp_modules[project.package_name]
            if not expected.matches(item.document):
                differences = diff_documents(expected.to_dict(), item.document)
                logger.debug(
                    "Drift in %s: %s",
                    project.package_name,
                    "; ".join(d.describe() for d in differences),
                )
                raise DriftError(project.package_name, expected, item.document, differences)

        logger.info("All %d temp modules are up to date", len(self.projects))
