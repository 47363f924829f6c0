from datetime import datetime, timedelta

from shoeclean.services.login_throttle_service import LoginThrottle, format_remaining


class Clock:
    def __init__(self):
        self.now = datetime(2026, 10, 14, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def test_locks_after_five_failures():
    clock = Clock()
    throttle = LoginThrottle(clock=clock)

    for _ in range(4):
        throttle.record_failed_attempt()
    assert throttle.is_locked() == (False, None)
    assert throttle.remaining_attempts == 1

    throttle.record_failed_attempt()
    locked, seconds = throttle.is_locked()
    assert locked
    assert seconds == 300


def test_lockout_expires():
    clock = Clock()
    throttle = LoginThrottle(clock=clock)
    for _ in range(5):
        throttle.record_failed_attempt()

    clock.advance(minutes=4, seconds=59, microseconds=500000)
    assert throttle.is_locked() == (True, 1)

    clock.advance(seconds=1)
    assert throttle.is_locked() == (False, None)
    assert throttle.remaining_attempts == 5


def test_reset_clears_counter():
    throttle = LoginThrottle(clock=Clock())
    throttle.record_failed_attempt()
    throttle.record_failed_attempt()
    throttle.reset()
    assert throttle.remaining_attempts == 5


def test_format_remaining():
    assert format_remaining(300) == "5:00"
    assert format_remaining(61) == "1:01"
    assert format_remaining(-3) == "0:00"
