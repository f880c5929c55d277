"""
Package review file — which external packages the repository uses, and where.

Regenerated on every ``generate`` when ``package_review_file`` is
configured, so that new third-party dependencies show up in code review.
Existing entries are kept and their project lists merged.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from monoinstall.core.models.project import RepoConfig
from monoinstall.core.persistence.manifest_file import write_text_atomic

logger = logging.getLogger(__name__)


def collect_usage(config: RepoConfig) -> dict[str, set[str]]:
    """External dependency name → package names of the projects using it."""
    local = {p.package_name for p in config.projects}
    usage: dict[str, set[str]] = {}
    for project in config.projects:
        for dep in project.declared_dependencies:
            if dep in local:
                continue
            usage.setdefault(dep, set()).add(project.package_name)
    return usage


def _load_existing(path: Path) -> dict[str, set[str]]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable package review file %s: %s", path, e)
        return {}

    existing: dict[str, set[str]] = {}
    for item in data.get("packages", []) if isinstance(data, dict) else []:
        if isinstance(item, dict) and isinstance(item.get("name"), str):
            projects = item.get("projects")
            existing[item["name"]] = (
                {p for p in projects if isinstance(p, str)} if isinstance(projects, list) else set()
            )
    return existing


def save_package_review(config: RepoConfig) -> Path | None:
    """Update the review file. Returns its path, or None when not configured."""
    path = config.package_review_file
    if path is None:
        return None

    merged = _load_existing(path)
    for dep, projects in collect_usage(config).items():
        merged.setdefault(dep, set()).update(projects)

    document = {
        "packages": [
            {"name": name, "projects": sorted(projects)}
            for name, projects in sorted(merged.items())
        ]
    }
    write_text_atomic(path, json.dumps(document, indent=2, ensure_ascii=False) + "\n")
    logger.info("Updated package review file %s (%d packages)", path, len(merged))
    return path
