"""
Clock collaborator.

Everything that needs "now" (today highlighting, id generation, row
timestamps) takes a Clock so tests can pin time.
"""
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock:
    """Wall clock. Subclass or swap for FixedClock in tests."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    def millis(self) -> int:
        return int(self.utc_now().timestamp() * 1000)


class FixedClock(Clock):
    """Clock frozen at a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def utc_now(self) -> datetime:
        return self.instant.astimezone(timezone.utc)

    def advance(self, **delta) -> None:
        self.instant = self.instant + timedelta(**delta)


SYSTEM_CLOCK = Clock()


def make_id(prefix: str = "", clock: Optional[Clock] = None) -> str:
    """Generate a sortable unique id (ms timestamp + random suffix).

    >>> make_id("task")  # doctest: +SKIP
    'task-1718000000000-3f9a1c2e'
    """
    clock = clock or SYSTEM_CLOCK
    ts = clock.millis()
    rand = uuid.uuid4().hex[:8]
    return f"{prefix}-{ts}-{rand}" if prefix else f"{ts}-{rand}"


def make_short_id(clock: Optional[Clock] = None) -> str:
    """Timestamp id with a small random tail, for events and budget rows."""
    clock = clock or SYSTEM_CLOCK
    return f"{clock.millis()}{random.randint(0, 999):03d}"
