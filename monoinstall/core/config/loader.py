"""
Configuration loader — reads monorepo.yml into a RepoConfig.

This is the primary entry point for loading repository configuration.
It reads YAML, reads every declared project's package.json, validates
everything against Pydantic schemas, and returns one immutable
``RepoConfig`` that the caller passes to the workflows.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from monoinstall.core.errors import MonoinstallError
from monoinstall.core.models.project import (
    MANIFEST_FILE_NAME,
    GitPolicySettings,
    InstallerSettings,
    Project,
    RepoConfig,
)

logger = logging.getLogger(__name__)

# Default config filename
REPO_CONFIG_FILE = "monorepo.yml"

# Where provisioned installer tools live unless monorepo.yml says otherwise
DEFAULT_TOOL_HOME = "~/.monoinstall"


class ConfigError(MonoinstallError):
    """Raised when repository configuration is invalid or missing."""


class _ProjectEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    package_name: str
    folder: str
    temp_project_name: str | None = None


class _RawConfig(BaseModel):
    """The monorepo.yml document as written by humans."""

    model_config = ConfigDict(extra="forbid")

    common_folder: str = "common"
    tool_home: str | None = None
    cache_folder: str | None = None
    tmp_folder: str | None = None
    installer: InstallerSettings
    pinned_versions: dict[str, str] = Field(default_factory=dict)
    temp_project_prefix: str = Field(default="mono-", min_length=1)
    package_review_file: str | None = None
    git_policy: GitPolicySettings = Field(default_factory=GitPolicySettings)
    projects: list[_ProjectEntry] = Field(default_factory=list)


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for monorepo.yml starting from the given directory, walking up.

    This allows running commands from inside a project folder and still
    finding the repository root.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to monorepo.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / REPO_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def default_temp_project_name(package_name: str, prefix: str) -> str:
    """``@scope/my-lib`` → ``<prefix>my-lib``."""
    unscoped = package_name.rsplit("/", 1)[-1]
    return prefix + unscoped


def read_declared_dependencies(package_json_path: Path) -> tuple[str, dict[str, str]]:
    """Read a project's package.json.

    Returns:
        ``(name, dependencies)`` where dependencies merges ``dependencies``
        and ``devDependencies``; a name in both keeps the ``dependencies`` range.
    """
    try:
        data = json.loads(package_json_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Missing {MANIFEST_FILE_NAME}: {package_json_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read {package_json_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {package_json_path}")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Missing/invalid \"name\" in {package_json_path}")

    merged: dict[str, str] = {}
    for section in ("devDependencies", "dependencies"):
        deps = data.get(section) or {}
        if not isinstance(deps, dict):
            raise ConfigError(f"Invalid \"{section}\" (expected object) in {package_json_path}")
        for dep, version_range in deps.items():
            if not isinstance(version_range, str):
                raise ConfigError(
                    f"Invalid range for \"{dep}\" in {section} of {package_json_path}"
                )
            merged[dep] = version_range

    return name, merged


def _resolve(root: Path, value: str | None) -> Path | None:
    if value is None:
        return None
    path = Path(os.path.expanduser(value))
    return path if path.is_absolute() else (root / path).resolve()


def load_config(path: Path | None = None) -> RepoConfig:
    """Load and validate repository configuration.

    Args:
        path: Explicit path to monorepo.yml. If None, searches upward.

    Returns:
        Validated RepoConfig.

    Raises:
        ConfigError: If the file or any project's package.json is missing
            or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {REPO_CONFIG_FILE} found. "
            "Create one at the repository root, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading repository config from %s", path)

    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        raw = _RawConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid repository configuration: {e}") from e

    root = path.parent.resolve()
    projects: list[Project] = []
    seen_names: set[str] = set()

    for entry in raw.projects:
        if entry.package_name in seen_names:
            raise ConfigError(f"Duplicate project package name: {entry.package_name}")
        seen_names.add(entry.package_name)

        package_json = root / entry.folder / MANIFEST_FILE_NAME
        declared_name, dependencies = read_declared_dependencies(package_json)
        if declared_name != entry.package_name:
            raise ConfigError(
                f"Project '{entry.package_name}' does not match the name "
                f"'{declared_name}' in {package_json}"
            )

        temp_name = entry.temp_project_name or default_temp_project_name(
            entry.package_name, raw.temp_project_prefix
        )
        if not temp_name.startswith(raw.temp_project_prefix):
            raise ConfigError(
                f"temp_project_name '{temp_name}' for '{entry.package_name}' must start "
                f"with the temp_project_prefix '{raw.temp_project_prefix}'"
            )

        projects.append(
            Project(
                package_name=entry.package_name,
                folder=entry.folder,
                temp_project_name=temp_name,
                declared_dependencies=dependencies,
            )
        )

    config = RepoConfig(
        root=root,
        common_folder=_resolve(root, raw.common_folder),
        tool_home=_resolve(root, raw.tool_home or DEFAULT_TOOL_HOME),
        installer=raw.installer,
        cache_folder=_resolve(root, raw.cache_folder),
        tmp_folder=_resolve(root, raw.tmp_folder),
        pinned_versions=raw.pinned_versions,
        temp_project_prefix=raw.temp_project_prefix,
        package_review_file=_resolve(root, raw.package_review_file),
        git_policy=raw.git_policy,
        projects=tuple(projects),
    )

    logger.info("Loaded repository config with %d projects from %s", len(projects), path)
    return config
