"""
Tests for the event schedule.
"""
import pytest

from pmx.schedule import ScheduleStore
from pmx.schema import ColorTag


@pytest.fixture
def schedule(clock):
    return ScheduleStore(clock=clock)


def test_add_event(schedule):
    event = schedule.add_event("2024-06-20", " Sprint review ", "blue", "10:00", "11:00")
    assert event.title == "Sprint review"
    assert event.color == ColorTag.BLUE
    assert len(schedule) == 1


def test_add_event_blank_title_is_noop(schedule):
    assert schedule.add_event("2024-06-20", "  ") is None
    assert len(schedule) == 0


def test_unknown_color_falls_back_to_accent(schedule):
    event = schedule.add_event("2024-06-20", "Demo", "purple")
    assert event.color == ColorTag.ACCENT


def test_events_for_date_sorts_untimed_last(schedule):
    schedule.add_event("2024-06-20", "All day")
    schedule.add_event("2024-06-20", "Standup", start_time="09:00")
    schedule.add_event("2024-06-20", "Lunch", start_time="12:30")
    schedule.add_event("2024-06-21", "Other day", start_time="08:00")
    titles = [e.title for e in schedule.events_for_date("2024-06-20")]
    assert titles == ["Standup", "Lunch", "All day"]


def test_events_for_date_stable_on_ties(schedule):
    schedule.add_event("2024-06-20", "First", start_time="09:00")
    schedule.add_event("2024-06-20", "Second", start_time="09:00")
    schedule.add_event("2024-06-20", "Untimed A")
    schedule.add_event("2024-06-20", "Untimed B")
    titles = [e.title for e in schedule.events_for_date("2024-06-20")]
    assert titles == ["First", "Second", "Untimed A", "Untimed B"]


def test_delete_unknown_event_leaves_schedule_unchanged(schedule):
    schedule.add_event("2024-06-20", "Keep")
    before = schedule.to_payload()
    assert not schedule.delete_event("missing")
    assert schedule.to_payload() == before


def test_delete_event(schedule):
    event = schedule.add_event("2024-06-20", "Drop")
    assert schedule.delete_event(event.id)
    assert len(schedule) == 0


def test_events_in_month_groups_by_date(schedule):
    schedule.add_event("2024-06-01", "A")
    schedule.add_event("2024-06-01", "B")
    schedule.add_event("2024-06-30", "C")
    schedule.add_event("2024-07-01", "D")
    grouped = schedule.events_in_month(2024, 6)
    assert sorted(grouped) == ["2024-06-01", "2024-06-30"]
    assert [e.title for e in grouped["2024-06-01"]] == ["A", "B"]


def test_payload_round_trip(schedule, clock):
    schedule.add_event("2024-06-20", "Review", "red", "15:00", "16:00")
    restored = ScheduleStore.from_payload(schedule.to_payload(), clock=clock)
    assert restored.events == schedule.events
    assert restored.to_payload()[0]["startTime"] == "15:00"


def test_from_payload_tolerates_garbage():
    assert len(ScheduleStore.from_payload("nope")) == 0
    store = ScheduleStore.from_payload([{"title": "X", "date": "2024-01-01"}, 5])
    assert len(store) == 1
    assert store.events[0].color == ColorTag.ACCENT
