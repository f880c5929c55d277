"""
Git policy — refuse to install for committers with the wrong identity.

Only enforced when ``git_policy.allowed_email_regex`` is configured.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from monoinstall.core.errors import MonoinstallError
from monoinstall.core.models.project import RepoConfig

logger = logging.getLogger(__name__)


class GitPolicyError(MonoinstallError):
    """The git configuration violates the repository policy."""


def run_git(*args: str, cwd: Path, timeout: int = 15) -> subprocess.CompletedProcess[str]:
    """Run a git command and return the result."""
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def configured_email(cwd: Path) -> str | None:
    try:
        result = run_git("config", "user.email", cwd=cwd)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("git config user.email failed: %s", e)
        return None
    email = result.stdout.strip()
    return email if result.returncode == 0 and email else None


def check_git_policy(config: RepoConfig, email: str | None = None) -> None:
    """Raise GitPolicyError unless the git email satisfies the policy.

    Args:
        config: Repository configuration.
        email: Email to check; read from ``git config`` when None.
    """
    pattern = config.git_policy.allowed_email_regex
    if not pattern:
        return

    if email is None:
        email = configured_email(config.root)

    if email is None:
        raise GitPolicyError(
            "Your git email is not configured. Set it with:\n"
            '    git config --local user.email "you@example.com"\n'
            "(or rerun with --bypass-policy)"
        )

    if re.fullmatch(pattern, email) is None:
        raise GitPolicyError(
            f'Your git email "{email}" does not match the policy "{pattern}" for this '
            "repository. Fix it with git config --local user.email, or rerun with "
            "--bypass-policy."
        )

    logger.debug("Git email %s satisfies the policy", email)
