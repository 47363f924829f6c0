# Overview: Persisted login pointer and the inactivity timeout for dashboard sessions.

"""
Session Service

The session file holds only a pointer to the logged-in user (id, username,
saved_at); the account itself is re-read from the store on resume.

InactivityTimer is clock-driven: callers report activity with touch() and
poll state(). After SESSION_TIMEOUT without activity the session is expired;
the last WARNING_BEFORE of that window is the warning phase.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from ..time_utils import parse_iso_datetime, to_utc_z, utcnow

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(minutes=30)
WARNING_BEFORE = timedelta(minutes=5)

STATE_ACTIVE = "active"
STATE_WARNING = "warning"
STATE_EXPIRED = "expired"


@dataclass(frozen=True)
class SessionPointer:
    user_id: str
    username: str
    saved_at: Optional[datetime] = None


class SessionFile:
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def save(self, user_id: str, username: str, now: Optional[datetime] = None) -> SessionPointer:
        pointer = SessionPointer(user_id=user_id, username=username, saved_at=now or utcnow())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "user_id": pointer.user_id,
            "username": pointer.username,
            "saved_at": to_utc_z(pointer.saved_at),
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp, self.path)
        return pointer

    def load(self) -> Optional[SessionPointer]:
        """None when there is no saved session or the file is unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return SessionPointer(
                user_id=str(data["user_id"]),
                username=str(data.get("username") or ""),
                saved_at=parse_iso_datetime(data.get("saved_at")),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class InactivityTimer:
    def __init__(
        self,
        timeout: timedelta = SESSION_TIMEOUT,
        warning_before: timedelta = WARNING_BEFORE,
        clock: Callable[[], datetime] = utcnow,
    ):
        if warning_before >= timeout:
            raise ValueError("warning_before must be shorter than timeout")
        self.timeout = timeout
        self.warning_before = warning_before
        self._clock = clock
        self.last_activity = clock()

    def touch(self) -> None:
        self.last_activity = self._clock()

    def elapsed(self) -> timedelta:
        return self._clock() - self.last_activity

    def remaining(self) -> timedelta:
        return max(timedelta(0), self.timeout - self.elapsed())

    def state(self) -> str:
        elapsed = self.elapsed()
        if elapsed >= self.timeout:
            return STATE_EXPIRED
        if elapsed >= self.timeout - self.warning_before:
            return STATE_WARNING
        return STATE_ACTIVE
