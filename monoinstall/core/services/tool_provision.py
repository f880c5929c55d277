"""
Installer tool provisioning.

The repository pins the version of its installer tool.  That version is
installed once per machine under the tool home (``<tool_home>/<tool>-<version>``)
using whatever copy of the tool is on PATH, and the common folder gets a
``<tool>-local`` symlink pointing at it.  The tool folder has its own
marker file; its timestamp is never compared since nothing edits the
generated manifest there.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from monoinstall.core.errors import MonoinstallError
from monoinstall.core.execution.installer import Installer, InstallerFailure
from monoinstall.core.execution.process_runner import ProcessRunner
from monoinstall.core.models.manifest import Manifest
from monoinstall.core.models.project import MANIFEST_FILE_NAME, MARKER_FILE_NAME, RepoConfig
from monoinstall.core.persistence.manifest_file import save_manifest
from monoinstall.core.persistence.marker import MarkerFile
from monoinstall.core.reliability.retry import RetryPolicy
from monoinstall.core.services.temp_modules import GENERATED_DESCRIPTION, TEMP_MODULE_VERSION

logger = logging.getLogger(__name__)


class ToolProvisioningError(MonoinstallError):
    """The pinned installer tool could not be materialized."""


class ToolProvisioner:
    def __init__(self, config: RepoConfig, runner: ProcessRunner, policy: RetryPolicy | None = None):
        self.config = config
        self.runner = runner
        self.policy = policy or RetryPolicy.from_settings(config.installer)

    def ensure(self, clean: bool = False) -> Path:
        """Make sure the pinned tool is installed and linked.

        Args:
            clean: Reinstall the tool even if it looks installed.

        Returns:
            Path of the installer executable to use in the common folder.

        Raises:
            ToolProvisioningError: If installing or linking fails.
        """
        settings = self.config.installer
        tool_folder = self.config.tool_folder
        marker = MarkerFile(tool_folder / MARKER_FILE_NAME)

        if clean or not marker.exists():
            logger.info("Installing %s version %s", settings.tool, settings.version)
            self._install_tool(tool_folder, marker)
        else:
            logger.info("Found %s version %s in %s", settings.tool, settings.version, tool_folder)

        self._link(tool_folder)

        executable = self.config.installer_executable
        if not executable.exists():
            raise ToolProvisioningError(
                f'Failed to create "{executable}". '
                "Try again with a full clean install to reprovision the tool."
            )
        return executable

    def _install_tool(self, tool_folder: Path, marker: MarkerFile) -> None:
        settings = self.config.installer
        try:
            if tool_folder.exists():
                logger.info("Deleting old files from %s", tool_folder)
                shutil.rmtree(tool_folder)
            tool_folder.mkdir(parents=True, exist_ok=True)

            manifest = Manifest(
                name=f"{settings.tool}-local-install",
                version=TEMP_MODULE_VERSION,
                private=True,
                description=GENERATED_DESCRIPTION,
                dependencies={settings.tool: settings.version},
            )
            save_manifest(manifest, tool_folder / MANIFEST_FILE_NAME)
        except OSError as e:
            raise ToolProvisioningError(f"Cannot prepare {tool_folder}: {e}") from e

        # The tool installs itself with whatever version is on PATH
        installer = Installer(settings.tool, tool_folder, self.runner, self.policy)
        try:
            installer.install()
        except InstallerFailure as e:
            raise ToolProvisioningError(
                f"Cannot install {settings.tool} {settings.version}: {e}"
            ) from e

        marker.create()
        logger.info("Successfully installed %s %s", settings.tool, settings.version)

    def _link(self, tool_folder: Path) -> None:
        link = self.config.local_tool_folder
        try:
            if link.is_symlink() or link.is_file():
                link.unlink()
            elif link.is_dir():
                shutil.rmtree(link)
            link.parent.mkdir(parents=True, exist_ok=True)
            logger.info('Symlinking "%s" --> "%s"', link, tool_folder)
            os.symlink(tool_folder, link, target_is_directory=True)
        except OSError as e:
            raise ToolProvisioningError(f"Cannot link {link} to {tool_folder}: {e}") from e
