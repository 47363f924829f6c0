from datetime import datetime, timedelta

import pytest

from shoeclean.services.session_service import (
    STATE_ACTIVE,
    STATE_EXPIRED,
    STATE_WARNING,
    InactivityTimer,
    SessionFile,
)


class TestSessionFile:
    def test_save_load_clear(self, tmp_path):
        session = SessionFile(tmp_path / "nested" / "session.json")
        session.save("user-1", "owner", now=datetime(2026, 10, 14, 9, 0))

        pointer = session.load()
        assert pointer.user_id == "user-1"
        assert pointer.username == "owner"
        assert pointer.saved_at == datetime(2026, 10, 14, 9, 0)

        session.clear()
        assert session.load() is None
        session.clear()

    def test_unreadable_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")
        assert SessionFile(path).load() is None

    def test_missing_user_id_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text('{"username": "owner"}', encoding="utf-8")
        assert SessionFile(path).load() is None


class TestInactivityTimer:
    def test_states(self):
        now = [datetime(2026, 10, 14, 9, 0)]
        timer = InactivityTimer(clock=lambda: now[0])
        assert timer.state() == STATE_ACTIVE

        now[0] += timedelta(minutes=25)
        assert timer.state() == STATE_WARNING
        assert timer.remaining() == timedelta(minutes=5)

        timer.touch()
        assert timer.state() == STATE_ACTIVE

        now[0] += timedelta(minutes=30)
        assert timer.state() == STATE_EXPIRED
        assert timer.remaining() == timedelta(0)

    def test_warning_must_be_shorter(self):
        with pytest.raises(ValueError):
            InactivityTimer(timeout=timedelta(minutes=5), warning_before=timedelta(minutes=5))
