"""
Manifest and lock file persistence.

Manifests are written atomically (write to temp file, then rename) so a
crash mid-write never leaves a half-written temp module that could later
be mistaken for drift.  The lock file is only ever read.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from monoinstall.core.models.lockfile import LockFile
from monoinstall.core.models.manifest import Manifest

logger = logging.getLogger(__name__)


class ManifestReadError(Exception):
    """A persisted manifest exists but cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot read manifest {path}: {reason}")
        self.path = path
        self.reason = reason


def write_text_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".monoinstall_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to write %s", path)
        raise


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Save a manifest in its canonical serialized form."""
    write_text_atomic(path, manifest.to_json())
    logger.debug("Wrote manifest %s to %s", manifest.name, path)


def load_manifest(path: Path) -> Manifest:
    """Load a persisted manifest.

    Raises:
        ManifestReadError: If the file is unreadable, not JSON, or not a
            manifest.
    """
    manifest, _document = load_manifest_document(path)
    return manifest


def load_manifest_document(path: Path) -> tuple[Manifest, dict[str, Any]]:
    """Load a persisted manifest along with the JSON object it was parsed from.

    The model fills in defaults and coerces values; callers that must tell
    a tampered file from a generated one compare the raw document instead.

    Raises:
        ManifestReadError: Same conditions as :func:`load_manifest`.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestReadError(path, str(e)) from e

    try:
        document = json.loads(raw)
        return Manifest.model_validate(document), document
    except json.JSONDecodeError as e:
        raise ManifestReadError(path, f"invalid JSON: {e}") from e
    except ValidationError as e:
        raise ManifestReadError(path, f"not a manifest: {e}") from e

def load_lock_file(path: Path) -> LockFile | None:
    """Load the installer's lock file.

    Returns:
        The parsed LockFile, or None if it is missing or cannot be parsed.
        An unusable lock file is indistinguishable from an absent one: both
        force a full reinstall.
    """
    if not path.is_file():
        logger.info("No lock file at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        lock = LockFile.model_validate(data)
        logger.debug("Loaded lock file %s (%d root entries)", path, len(lock.dependencies))
        return lock
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Corrupt lock file %s (%s), treating it as absent", path, e)
        return None
