"""
Error taxonomy shared by every workflow.

Every fatal condition raised by the core derives from ``MonoinstallError``
so entry points can catch one type and report it.  Nothing here is ever
downgraded to a warning: a detected inconsistency halts the workflow.
"""

from __future__ import annotations


class MonoinstallError(Exception):
    """Base class for all fatal monoinstall errors."""
