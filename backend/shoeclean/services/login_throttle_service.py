"""
Login Throttling Service

Blocks further login attempts for LOCKOUT_DURATION once MAX_FAILED_ATTEMPTS
failures have accumulated. The counter is per dashboard instance, not per
username, and clears on a successful login or when the lockout expires.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..time_utils import utcnow


MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=5)


class LoginThrottle:
    def __init__(
        self,
        max_attempts: int = MAX_FAILED_ATTEMPTS,
        lockout: timedelta = LOCKOUT_DURATION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_attempts = max_attempts
        self.lockout = lockout
        self._clock = clock
        self.failed_attempts = 0
        self.locked_until: Optional[datetime] = None

    def _expire(self) -> None:
        if self.locked_until is not None and self.locked_until <= self._clock():
            self.failed_attempts = 0
            self.locked_until = None

    def is_locked(self) -> tuple[bool, int | None]:
        """
        Returns:
        - (True, seconds_remaining) if locked
        - (False, None) if not locked
        """
        self._expire()
        if self.locked_until is None:
            return False, None
        remaining = (self.locked_until - self._clock()).total_seconds()
        return True, max(1, math.ceil(remaining))

    def record_failed_attempt(self) -> None:
        self._expire()
        self.failed_attempts += 1
        if self.failed_attempts >= self.max_attempts:
            self.locked_until = self._clock() + self.lockout

    def reset(self) -> None:
        self.failed_attempts = 0
        self.locked_until = None

    @property
    def remaining_attempts(self) -> int:
        self._expire()
        return max(0, self.max_attempts - self.failed_attempts)


def format_remaining(seconds: int) -> str:
    """m:ss, as shown on the login form."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"
