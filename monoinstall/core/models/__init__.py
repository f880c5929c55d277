"""
Domain models — Pydantic types for monoinstall.

All models are re-exported here for convenient access:

    from monoinstall.core.models import Manifest, Project, RepoConfig, LockFile
"""

from monoinstall.core.models.install import InstallDecision, InstallState
from monoinstall.core.models.lockfile import LockEntry, LockFile
from monoinstall.core.models.manifest import Manifest, ManifestDifference
from monoinstall.core.models.project import (
    GitPolicySettings,
    InstallerSettings,
    Project,
    RepoConfig,
)

__all__ = [
    # project.py
    "GitPolicySettings",
    # install.py
    "InstallDecision",
    "InstallState",
    "InstallerSettings",
    # lockfile.py
    "LockEntry",
    "LockFile",
    # manifest.py
    "Manifest",
    "ManifestDifference",
    "Project",
    "RepoConfig",
]
