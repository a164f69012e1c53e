"""Reconnect attempt budget: bounded by attempt count and by a wall-clock window."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

LOGGER = logging.getLogger(__name__)


@dataclass
class ReconnectBudget:
    """Counts reconnect attempts and decides whether another one is allowed.

    ``attempts`` counts attempts since the last success and is nonzero exactly
    when ``first_disconnect_at`` is set. ``total_attempts`` never resets.
    """

    max_attempts: int
    max_window: float
    delay: float
    attempts: int = field(default=0, init=False)
    total_attempts: int = field(default=0, init=False)
    first_disconnect_at: Optional[float] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.max_window <= 0:
            raise ValueError("max_window must be > 0")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    def can_retry(self, now: float) -> bool:
        if self.attempts >= self.max_attempts:
            return False
        if self.first_disconnect_at is not None and now - self.first_disconnect_at >= self.max_window:
            return False
        return True

    def begin_attempt(self, now: float) -> int:
        """Record one permitted attempt and return its number within the current sequence."""

        if self.attempts == 0:
            self.first_disconnect_at = now
        self.attempts += 1
        self.total_attempts += 1
        return self.attempts

    def elapsed(self, now: float) -> float:
        if self.first_disconnect_at is None:
            return 0.0
        return now - self.first_disconnect_at

    def reset(self) -> None:
        if self.attempts:
            LOGGER.debug("Reconnect budget reset after %s attempt(s)", self.attempts)
        self.attempts = 0
        self.first_disconnect_at = None
