"""
Marker file — the crash-detection sentinel for the installed folder.

An install is not transactional: if the installer is killed, the
installed folder may be left half-written.  The marker is deleted before
any install starts and created again only after the install succeeds, so
its presence guarantees the folder is in a good state.  Its content is
never read; only existence and mtime matter.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class MarkerFile:
    """Zero-byte sentinel at a fixed path."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def create(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(b"")
        logger.debug("Created marker %s", self.path)

    def delete(self) -> bool:
        """Remove the marker. Returns True if it existed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted marker %s", self.path)
        return True

    def stale_inputs(self, inputs: Iterable[Path]) -> list[Path]:
        """Inputs that invalidate the marker.

        An input is stale when it is newer than the marker or does not
        exist at all (a deleted folder must trigger a reinstall too).
        Everything is stale when the marker itself is missing.
        """
        inputs = list(inputs)
        try:
            marker_mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return inputs

        stale: list[Path] = []
        for path in inputs:
            try:
                if path.stat().st_mtime > marker_mtime:
                    stale.append(path)
            except FileNotFoundError:
                stale.append(path)
        return stale

    def is_current(self, inputs: Iterable[Path]) -> bool:
        return self.exists() and not self.stale_inputs(inputs)
