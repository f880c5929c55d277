"""
Config check use case — validate monorepo.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from monoinstall.core.config.loader import ConfigError, find_config_file, load_config
from monoinstall.core.models.project import RepoConfig
from monoinstall.core.services.temp_modules import TempModuleGenerator


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: RepoConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "common_folder": str(self.config.common_folder) if self.config else None,
            "project_count": len(self.config.projects) if self.config else 0,
            "pinned_count": len(self.config.pinned_versions) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate repository configuration and report issues.

    Args:
        config_path: Optional explicit path to monorepo.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()

    if config_path is None:
        result.errors.append("No monorepo.yml found.")
        return result

    result.config_path = config_path

    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Naming collisions surface at generation time; report them now
    try:
        TempModuleGenerator(config.projects, config.pinned_versions).generate()
    except ConfigError as e:
        result.errors.append(str(e))

    if not config.projects:
        result.warnings.append("No projects defined. There is nothing to install.")

    if config.cache_folder is None:
        result.warnings.append(
            "No cache_folder configured: clean installs will not clear the shared cache."
        )

    local = {p.package_name for p in config.projects}
    for name in sorted(set(config.pinned_versions) & local):
        result.warnings.append(f"Pinned version for '{name}' shadows a project in this repo.")

    result.valid = len(result.errors) == 0
    return result
