"""
Install decision and state enums.

Both are derived at runtime and never persisted: the only durable install
state is the presence (and mtime) of the marker file.
"""

from __future__ import annotations

from enum import Enum


class InstallDecision(str, Enum):
    """What a workflow decided to do with the installed folder."""

    SKIP = "skip"
    FAST_INSTALL = "fast_install"
    FULL_REINSTALL = "full_reinstall"


class InstallState(str, Enum):
    CLEAN = "clean"  # marker present, folder trusted
    DIRTY = "dirty"  # marker absent or just invalidated
    INSTALLING = "installing"
    INSTALLED = "installed"
