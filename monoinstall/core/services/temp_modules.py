"""
Temp module generation.

Each project gets a synthesized manifest (a "temp module") that the
installer can consume from the common folder: external ranges are kept
verbatim, references to other projects in the repo are rewritten to point
at that project's temp module on disk.  The common manifest depends on
every temp module plus the pinned versions.

Generation is a pure function of the project list and the pinned
versions; the same inputs always serialize to the same bytes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from monoinstall.core.config.loader import ConfigError
from monoinstall.core.models.manifest import Manifest
from monoinstall.core.models.project import COMMON_MANIFEST_NAME, Project, RepoConfig
from monoinstall.core.persistence.manifest_file import save_manifest

logger = logging.getLogger(__name__)

TEMP_MODULE_VERSION = "0.0.0"
GENERATED_DESCRIPTION = "Temporary file generated by monoinstall"


@dataclass(frozen=True)
class GeneratedModules:
    """Output of one generation: temp modules keyed by package name, plus the common manifest."""

    temp_modules: dict[str, Manifest]
    common: Manifest


def local_reference(temp_project_name: str) -> str:
    """Reference from one temp module folder to a sibling temp module."""
    return f"file:../{temp_project_name}"


def common_reference(temp_project_name: str) -> str:
    """Reference from the common manifest to a temp module folder."""
    return f"file:./temp_modules/{temp_project_name}"


class TempModuleGenerator:
    def __init__(self, projects: Sequence[Project], pinned_versions: Mapping[str, str]):
        self.projects = list(projects)
        self.pinned_versions = dict(pinned_versions)

    def _check_names(self) -> dict[str, Project]:
        by_temp_name: dict[str, Project] = {}
        for project in self.projects:
            other = by_temp_name.get(project.temp_project_name)
            if other is not None:
                raise ConfigError(
                    f"Projects '{other.package_name}' and '{project.package_name}' both use "
                    f"the temp project name '{project.temp_project_name}'"
                )
            by_temp_name[project.temp_project_name] = project

        clashes = sorted(set(self.pinned_versions) & set(by_temp_name))
        if clashes:
            raise ConfigError(
                f"Pinned versions collide with temp project names: {', '.join(clashes)}"
            )
        return by_temp_name

    def temp_module_for(self, project: Project) -> Manifest:
        local_names = {p.package_name: p.temp_project_name for p in self.projects}

        dependencies: dict[str, str] = {}
        for dep, version_range in project.declared_dependencies.items():
            if dep in local_names and dep != project.package_name:
                dependencies[dep] = local_reference(local_names[dep])
            else:
                dependencies[dep] = version_range

        return Manifest(
            name=project.temp_project_name,
            version=TEMP_MODULE_VERSION,
            private=True,
            dependencies=dependencies,
        )

    def generate(self) -> GeneratedModules:
        by_temp_name = self._check_names()

        temp_modules: dict[str, Manifest] = {}
        for project in self.projects:
            temp_modules[project.package_name] = self.temp_module_for(project)

        common_deps = dict(self.pinned_versions)
        for temp_name in sorted(by_temp_name):
            common_deps[temp_name] = common_reference(temp_name)

        common = Manifest(
            name=COMMON_MANIFEST_NAME,
            version=TEMP_MODULE_VERSION,
            private=True,
            description=GENERATED_DESCRIPTION,
            dependencies=common_deps,
        )

        logger.debug("Generated %d temp modules", len(temp_modules))
        return GeneratedModules(temp_modules=temp_modules, common=common)


def generate_temp_modules(config: RepoConfig) -> GeneratedModules:
    return TempModuleGenerator(config.projects, config.pinned_versions).generate()


def write_temp_modules(config: RepoConfig, generated: GeneratedModules) -> list[Path]:
    """Persist every temp module and the common manifest.

    Returns:
        Paths of the written temp module files, sorted by temp project name.
    """
    written: list[Path] = []
    for project in sorted(config.projects, key=lambda p: p.temp_project_name):
        path = config.temp_module_path(project)
        save_manifest(generated.temp_modules[project.package_name], path)
        written.append(path)

    save_manifest(generated.common, config.common_manifest_path)
    logger.info("Wrote %d temp modules and %s", len(written), config.common_manifest_path)
    return written
