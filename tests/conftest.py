"""Shared test fixtures for PMX tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure the repo root (pmx package + pmx_server) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pmx.clock import FixedClock
from pmx.store import ProjectStore


class FakeTimer:
    """Stand-in for threading.Timer; fires only when the test says so."""

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled and not self.fired:
            self.fired = True
            self.fn()


class FakeTimerFactory:
    """Records every timer the scheduler creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]

    def fire_all(self):
        for timer in list(self.live):
            timer.fire()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "pmx.db")


@pytest.fixture
def store(db_path, clock):
    return ProjectStore(db_path, clock=clock)


@pytest.fixture
def timers():
    return FakeTimerFactory()
