"""
Retry policy for installer invocations.

Every failure is retried the same way until attempts run out: there is no
distinction between transient and permanent failures.  The delay between
attempts defaults to zero; ``delay`` and ``backoff_factor`` make it
configurable (exponential, capped at ``max_delay``).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from monoinstall.core.models.project import InstallerSettings

logger = logging.getLogger(__name__)


class Attempt(Protocol):
    @property
    def ok(self) -> bool: ...


@dataclass(frozen=True)
class RetryOutcome:
    """Result of the last attempt and how many attempts it took."""

    result: Attempt
    attempts: int

    @property
    def ok(self) -> bool:
        return self.result.ok


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay: float = 0.0
    backoff_factor: float = 1.0
    max_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: InstallerSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            delay=settings.retry_delay,
            backoff_factor=settings.backoff_factor,
        )

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based; the first never waits)."""
        if attempt <= 1 or self.delay <= 0:
            return 0.0
        return min(self.delay * (self.backoff_factor ** (attempt - 2)), self.max_delay)

    def run(
        self,
        operation: Callable[[int], Attempt],
        *,
        label: str = "operation",
        sleep: Callable[[float], None] = time.sleep,
    ) -> RetryOutcome:
        """Call ``operation(attempt)`` until it succeeds or attempts run out."""
        result: Attempt | None = None
        for attempt in range(1, self.max_attempts + 1):
            wait = self.delay_before(attempt)
            if wait:
                logger.debug("Waiting %.1fs before retrying %s", wait, label)
                sleep(wait)

            result = operation(attempt)
            if result.ok:
                if attempt > 1:
                    logger.info("%s succeeded on attempt %d/%d", label, attempt, self.max_attempts)
                return RetryOutcome(result=result, attempts=attempt)

            if attempt < self.max_attempts:
                logger.warning(
                    "%s failed (attempt %d/%d), retrying", label, attempt, self.max_attempts
                )

        logger.error("%s failed after %d attempts", label, self.max_attempts)
        assert result is not None
        return RetryOutcome(result=result, attempts=self.max_attempts)
