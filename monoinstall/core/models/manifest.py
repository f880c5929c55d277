"""
Manifest model — the canonical form of a package.json-style manifest.

Temp modules and the common manifest are compared byte-for-byte and
field-by-field, so the serialized form must never depend on the order in
which dependencies were added.  Dependencies are always kept sorted and
fields are always emitted in declaration order.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MISSING = object()


@dataclass(frozen=True)
class ManifestDifference:
    """One field that differs between an expected and an actual manifest."""

    field: str
    expected: Any = None
    actual: Any = None

    def describe(self) -> str:
        if self.expected is _MISSING:
            return f"{self.field}: unexpected value {self.actual!r}"
        if self.actual is _MISSING:
            return f"{self.field}: missing (expected {self.expected!r})"
        return f"{self.field}: expected {self.expected!r}, found {self.actual!r}"


class Manifest(BaseModel):
    """A dependency manifest with a deterministic serialized form.

    Unknown top-level keys found in a persisted file are kept (as model
    extras) so that a tampered file never compares equal to a generated one.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    version: str = "0.0.0"
    private: bool = True
    description: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)

    @field_validator("dependencies")
    @classmethod
    def _sort_dependencies(cls, value: dict[str, str]) -> dict[str, str]:
        return dict(sorted(value.items()))

    # ── Serialization ────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Plain dict in canonical key order (``description`` omitted when unset)."""
        data = self.model_dump(mode="json")
        if data.get("description") is None:
            data.pop("description", None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, text: str) -> Manifest:
        return cls.model_validate(json.loads(text))

    # ── Comparison ───────────────────────────────────────────────

    def diff(self, actual: Manifest) -> list[ManifestDifference]:
        """Compare ``self`` (expected) against ``actual``, field by field."""
        return diff_documents(self.to_dict(), actual.to_dict())

    def matches(self, document: Mapping[str, Any]) -> bool:
        """True when ``document`` (a parsed file, not a model) is exactly this manifest."""
        return _canonical(self.to_dict()) == _canonical(document)


_FIELD_ORDER = ("name", "version", "private", "description", "dependencies")


def _canonical(value: Any) -> str:
    # JSON text keeps types apart: True != "true" and True != 1
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def _differs(expected: Any, actual: Any) -> bool:
    if expected is _MISSING or actual is _MISSING:
        return expected is not actual
    return _canonical(expected) != _canonical(actual)


def diff_documents(
    expected: Mapping[str, Any], actual: Mapping[str, Any]
) -> list[ManifestDifference]:
    """Compare two manifest documents key by key, without filling in defaults.

    A key present on only one side is reported as missing or unexpected.
    Dependencies are compared per entry, so a single changed range is
    reported as ``dependencies.<name>`` rather than as a whole-map mismatch.
    """
    differences: list[ManifestDifference] = []
    extras = sorted((set(expected) | set(actual)) - set(_FIELD_ORDER))

    for key in (*_FIELD_ORDER, *extras):
        expected_value = expected.get(key, _MISSING)
        actual_value = actual.get(key, _MISSING)

        if key == "dependencies" and isinstance(expected_value, dict) and isinstance(actual_value, dict):
            for dep in sorted(set(expected_value) | set(actual_value)):
                expected_range = expected_value.get(dep, _MISSING)
                actual_range = actual_value.get(dep, _MISSING)
                if _differs(expected_range, actual_range):
                    differences.append(
                        ManifestDifference(f"dependencies.{dep}", expected_range, actual_range)
                    )
        elif _differs(expected_value, actual_value):
            differences.append(ManifestDifference(key, expected_value, actual_value))

    return differences
