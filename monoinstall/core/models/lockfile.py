"""
Lock file model — the installer's pinned resolution snapshot.

Read-only.  Only the fields the satisfaction analysis needs are modelled;
anything else the installer writes is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LockEntry(BaseModel):
    """A resolved package, possibly with its own nested dependencies."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = ""
    from_: str = Field(default="", alias="from")
    resolved: str = ""
    dependencies: dict[str, LockEntry] = Field(default_factory=dict)


class LockFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    version: str = ""
    dependencies: dict[str, LockEntry] = Field(default_factory=dict)

    def lookup(self, consumer: str, dependency: str) -> LockEntry | None:
        """Find the entry ``consumer`` would resolve ``dependency`` to.

        A nested entry under the consumer wins; otherwise the hoisted
        root-level entry is used.
        """
        consumer_entry = self.dependencies.get(consumer)
        if consumer_entry is not None:
            nested = consumer_entry.dependencies.get(dependency)
            if nested is not None:
                return nested
        return self.dependencies.get(dependency)
