"""Tests for the countdown timer and clock helpers."""
import threading

import pytest

from examhall.timer import CountdownTimer, clock_level, format_clock


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.mark.parametrize("seconds, text", [(0, "00:00"), (59, "00:59"), (61, "01:01"), (2400, "40:00"), (-5, "00:00")])
def test_format_clock(seconds, text):
    assert format_clock(seconds) == text


@pytest.mark.parametrize("seconds, level", [(601, "safe"), (600, "warning"), (301, "warning"), (300, "danger"), (0, "danger")])
def test_clock_level(seconds, level):
    assert clock_level(seconds) == level


def test_expiry_fires_once(session):
    fired = []
    timer = CountdownTimer(session, on_expire=lambda: fired.append(True))
    session.time_remaining = 2
    assert timer.tick() is False
    assert timer.tick() is True
    assert timer.tick() is False
    assert fired == [True]
    assert session.time_remaining == 0


def test_no_expiry_after_submit(session):
    fired = []
    timer = CountdownTimer(session, on_expire=lambda: fired.append(True))
    session.time_remaining = 1
    session.submit()
    assert timer.tick() is False
    assert fired == []
    assert session.time_remaining == 1


class TestCatchUp:
    def test_applies_whole_elapsed_periods(self, session):
        clock = FakeClock()
        timer = CountdownTimer(session, clock=clock)
        clock.now += 3.5
        assert timer.catch_up() == 3
        assert session.time_remaining == 57
        clock.now += 0.6
        assert timer.catch_up() == 1
        assert session.time_remaining == 56

    def test_stops_at_zero(self, session):
        clock = FakeClock()
        fired = []
        timer = CountdownTimer(session, on_expire=lambda: fired.append(True), clock=clock)
        assert timer.catch_up(now=clock.now + 500) == 60
        assert session.time_remaining == 0
        assert fired == [True]
        assert timer.catch_up(now=clock.now + 600) == 0

    def test_nothing_after_submit(self, session):
        clock = FakeClock()
        timer = CountdownTimer(session, clock=clock)
        session.submit()
        assert timer.catch_up(now=clock.now + 10) == 0
        assert session.time_remaining == 60


def test_thread_counts_down_to_expiry(session):
    expired = threading.Event()
    session.time_remaining = 3
    with CountdownTimer(session, on_expire=expired.set, period=0.01) as timer:
        assert expired.wait(timeout=5)
    assert not timer.running
    assert session.time_remaining == 0


def test_cancel_stops_thread(session):
    timer = CountdownTimer(session, period=0.01)
    timer.start()
    assert timer.running
    timer.cancel(timeout=2)
    assert not timer.running
    remaining = session.time_remaining
    assert remaining > 0
