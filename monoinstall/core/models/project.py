"""
Project and repository configuration models.

``RepoConfig`` is the single immutable configuration value for one run.
It is built by the config loader and passed explicitly to every service
and orchestrator; nothing reads configuration from global state.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

MARKER_FILE_NAME = "last-install.flag"
LOCK_FILE_NAME = "npm-shrinkwrap.json"
MANIFEST_FILE_NAME = "package.json"
COMMON_MANIFEST_NAME = "monoinstall-common"


class Project(BaseModel):
    """One monorepo project, as declared in monorepo.yml plus its package.json."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    folder: str
    temp_project_name: str
    declared_dependencies: dict[str, str] = Field(default_factory=dict)


class InstallerSettings(BaseModel):
    """The pinned installer tool and how hard to retry it."""

    model_config = ConfigDict(frozen=True)

    tool: str = "npm"
    version: str
    max_attempts: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=0.0, ge=0)
    backoff_factor: float = Field(default=1.0, ge=1)


class GitPolicySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed_email_regex: str | None = None

    @field_validator("allowed_email_regex")
    @classmethod
    def _compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"not a valid regular expression: {e}") from e
        return value


class RepoConfig(BaseModel):
    """Root configuration — everything a workflow needs to know."""

    model_config = ConfigDict(frozen=True)

    root: Path
    common_folder: Path
    tool_home: Path
    installer: InstallerSettings
    cache_folder: Path | None = None
    tmp_folder: Path | None = None
    pinned_versions: dict[str, str] = Field(default_factory=dict)
    temp_project_prefix: str = "mono-"
    package_review_file: Path | None = None
    git_policy: GitPolicySettings = Field(default_factory=GitPolicySettings)
    projects: tuple[Project, ...] = ()

    # ── Derived paths ────────────────────────────────────────────

    @property
    def temp_modules_folder(self) -> Path:
        return self.common_folder / "temp_modules"

    @property
    def common_manifest_path(self) -> Path:
        return self.common_folder / MANIFEST_FILE_NAME

    @property
    def installed_folder(self) -> Path:
        return self.common_folder / "node_modules"

    @property
    def marker_path(self) -> Path:
        return self.common_folder / MARKER_FILE_NAME

    @property
    def lock_file_path(self) -> Path:
        return self.common_folder / LOCK_FILE_NAME

    @property
    def recycler_folder(self) -> Path:
        return self.common_folder / "monoinstall-recycler"

    @property
    def local_tool_folder(self) -> Path:
        """Symlink in the common folder pointing at the provisioned tool."""
        return self.common_folder / f"{self.installer.tool}-local"

    @property
    def tool_folder(self) -> Path:
        return self.tool_home / f"{self.installer.tool}-{self.installer.version}"

    @property
    def installer_executable(self) -> Path:
        name = self.installer.tool
        if os.name == "nt":
            name += ".cmd"
        return self.local_tool_folder / "node_modules" / ".bin" / name

    # ── Lookups ──────────────────────────────────────────────────

    def get_project(self, package_name: str) -> Project | None:
        """Look up a project by package name."""
        for project in self.projects:
            if project.package_name == package_name:
                return project
        return None

    def temp_module_path(self, project: Project) -> Path:
        return self.temp_modules_folder / project.temp_project_name / MANIFEST_FILE_NAME
