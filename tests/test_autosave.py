"""
Tests for the debounced save scheduler.
"""
import pytest

from pmx.autosave import SaveScheduler


class Recorder:
    def __init__(self):
        self.state = {"n": 0}
        self.saved = []
        self.fail_with = None
        self.during_save = None

    def snapshot(self):
        return dict(self.state)

    def save(self, snap):
        if self.during_save:
            hook, self.during_save = self.during_save, None
            hook()
        if self.fail_with:
            raise self.fail_with
        self.saved.append(snap)
        return len(self.saved)


@pytest.fixture
def rec():
    return Recorder()


@pytest.fixture
def scheduler(rec, timers):
    return SaveScheduler(rec.save, rec.snapshot, delay=1.5, timer_factory=timers)


def test_many_touches_coalesce_into_one_save(scheduler, rec, timers):
    for i in range(5):
        rec.state["n"] = i
        scheduler.touch()
    assert len(timers.live) == 1
    timers.fire_all()
    assert rec.saved == [{"n": 4}]
    assert scheduler.save_count == 1
    assert not scheduler.dirty


def test_touch_resets_timer(scheduler, timers):
    scheduler.touch()
    first = timers.timers[0]
    scheduler.touch()
    assert first.cancelled
    assert timers.timers[1].delay == 1.5
    assert timers.live == [timers.timers[1]]


def test_snapshot_taken_at_fire_time(scheduler, rec, timers):
    scheduler.touch()
    rec.state["n"] = 99
    timers.fire_all()
    assert rec.saved == [{"n": 99}]


def test_no_save_without_touch(scheduler, rec, timers):
    assert not scheduler.flush()
    timers.fire_all()
    assert rec.saved == []


def test_flush_saves_immediately(scheduler, rec, timers):
    scheduler.touch()
    assert scheduler.flush()
    assert rec.saved == [{"n": 0}]
    assert timers.live == []
    assert not scheduler.pending


def test_cancel_drops_pending_save(scheduler, rec, timers):
    scheduler.touch()
    scheduler.cancel()
    timers.fire_all()
    assert rec.saved == []
    assert not scheduler.dirty


def test_edit_during_save_triggers_another_save(scheduler, rec, timers):
    def edit():
        rec.state["n"] = 7
        scheduler.touch()

    rec.during_save = edit
    scheduler.touch()
    timers.fire_all()
    assert rec.saved == [{"n": 0}]
    # The edit made mid-save is scheduled, not lost
    assert scheduler.dirty
    timers.fire_all()
    assert rec.saved == [{"n": 0}, {"n": 7}]


def test_failure_is_reported_not_retried(rec, timers):
    errors = []
    scheduler = SaveScheduler(
        rec.save, rec.snapshot, timer_factory=timers, on_error=errors.append,
    )
    rec.fail_with = RuntimeError("disk full")
    scheduler.touch()
    timers.fire_all()

    assert scheduler.last_error == "Failed to save to database: disk full"
    assert errors == ["Failed to save to database: disk full"]
    assert timers.live == []
    assert scheduler.save_count == 0


def test_success_clears_error(rec, timers):
    saved = []
    scheduler = SaveScheduler(rec.save, rec.snapshot, timer_factory=timers, on_saved=saved.append)
    rec.fail_with = RuntimeError("boom")
    scheduler.touch()
    scheduler.flush()
    assert scheduler.last_error

    rec.fail_with = None
    scheduler.touch()
    scheduler.flush()
    assert scheduler.last_error is None
    assert saved == [1]
