"""
Tests for ProjectSession: edits feed autosave, load/save round trip,
generated plans and extraction.
"""
import pytest

from pmx.prefs import LocalStateStore
from pmx.schema import Column
from pmx.session import ProjectSession, charter_title, UNTITLED


@pytest.fixture
def session(store, clock, timers):
    return ProjectSession(store, "user-1", clock=clock, state=LocalStateStore(), timer_factory=timers)


GENERATED = {
    "charter": "Intro\n# Depot Upgrade\n\n## Objectives\n- Modernise",
    "risks": [{"id": "R1", "description": "Delay", "impact": "High"}],
    "wbs": [{"id": "1", "name": "Design", "startWeek": 0, "durationWeeks": 2, "items": ["1.1 Survey"]}],
    "tasks": [{"id": 1, "title": "Book survey"}, {"id": 2, "title": "Hire crew"}],
}


def test_charter_title():
    assert charter_title("# Title\nbody") == "Title"
    assert charter_title("no heading") is None
    assert charter_title("## Sub only") is None


def test_edits_are_debounced_into_one_save(session, store, timers):
    session.set_field("projectName", "Depot")
    session.board.add("Kickoff")
    session.schedule.add_event("2024-06-20", "Review")
    session.budget.add_item("Labor", "Crew", 100, 0)
    assert store.list("user-1") == []

    timers.fire_all()
    records = store.list("user-1")
    assert len(records) == 1
    assert session.project_id == records[0].id
    assert records[0].project_name == "Depot"
    assert len(records[0].kanban["todo"]) == 1
    assert len(records[0].schedule) == 1
    assert len(records[0].budget_items) == 1
    assert session.scheduler.save_count == 1


def test_blank_name_saved_as_untitled(session, store):
    session.board.add("Task")
    session.save_now()
    assert store.get("user-1", session.project_id).project_name == UNTITLED


def test_second_save_updates_same_row(session, store):
    session.board.add("One")
    session.save_now()
    first_id = session.project_id
    session.board.add("Two")
    session.save_now()
    assert session.project_id == first_id
    assert len(store.list("user-1")) == 1
    assert len(store.get("user-1", first_id).kanban["todo"]) == 2


def test_budget_field_is_formatted(session):
    assert session.set_field("budget", "$1500000")
    assert session.form["budget"] == "1,500,000"
    assert session.total_budget == 1500000
    assert not session.set_field("nonsense", "x")


def test_load_round_trip(session, store, clock, timers):
    session.set_field("project_name", "Depot")
    task = session.board.add("Kickoff")
    session.board.move(task.id, Column.TODO, Column.INPROGRESS)
    session.schedule.add_event("2024-06-20", "Review", "red", "09:00")
    session.budget.add_item("Equipment", "Crane", 5000, 5200)
    session.save_now()

    reopened = ProjectSession.open(store, "user-1", session.project_id, clock=clock, timer_factory=timers)
    assert reopened.form["project_name"] == "Depot"
    assert reopened.board.tasks(Column.INPROGRESS) == session.board.tasks(Column.INPROGRESS)
    assert reopened.schedule.events == session.schedule.events
    assert reopened.budget.items == session.budget.items
    # Loading does not schedule a save
    assert not reopened.scheduler.dirty


def test_open_missing_project(store):
    assert ProjectSession.open(store, "user-1", "missing") is None


def test_apply_generated_saves_immediately(session, store):
    session.board.add("Old task")
    session.wbs_added.add("9.9 Old")
    session.apply_generated(GENERATED)

    record = store.get("user-1", session.project_id)
    assert record.project_name == "Depot Upgrade"
    assert [t["title"] for t in record.kanban["todo"]] == ["Book survey", "Hire crew"]
    assert record.wbs[0]["name"] == "Design"
    assert record.risks[0]["impact"] == "High"
    assert "9.9 Old" not in session.wbs_added


def test_apply_generated_keeps_existing_name(session, store):
    session.set_field("project_name", "My Project")
    session.apply_generated(GENERATED)
    assert store.get("user-1", session.project_id).project_name == "My Project"


def test_generated_board_edits_still_autosave(session, store, timers):
    session.apply_generated(GENERATED)
    session.board.move(1, Column.TODO, Column.DONE)
    assert session.scheduler.dirty
    timers.fire_all()
    assert store.get("user-1", session.project_id).kanban["done"][0]["title"] == "Book survey"


def test_send_wbs_item_to_board_once(session):
    assert session.send_wbs_item_to_board("1.1 Survey")
    assert not session.send_wbs_item_to_board("1.1 Survey")
    assert [t.title for t in session.board.tasks(Column.TODO)] == ["1.1 Survey"]


def test_apply_extraction_only_overwrites_non_empty(session):
    session.set_field("objective", "Keep me")
    session.apply_extraction({"projectName": "Depot", "budget": "2,000,000", "objective": ""})
    assert session.form["project_name"] == "Depot"
    assert session.form["budget"] == "2,000,000"
    assert session.form["objective"] == "Keep me"


def test_save_failure_surfaces_error(session, store, monkeypatch):
    session.board.add("Task")
    session.save_now()

    def broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(store, "save", broken)
    session.board.add("Another")
    session.save_now()
    assert session.error == "Failed to save to database: connection reset"
    # In-memory state is kept
    assert session.board.counts()["todo"] == 2


def test_wbs_items_sent_are_tracked_per_project(store, clock, timers):
    state = LocalStateStore()
    first = ProjectSession(store, "user-1", clock=clock, state=state, timer_factory=timers)
    first.save_now()
    second = ProjectSession(store, "user-1", clock=clock, state=state, timer_factory=timers)
    second.save_now()
    other_owner = ProjectSession(store, "user-2", clock=clock, state=state, timer_factory=timers)
    other_owner.save_now()

    assert first.send_wbs_item_to_board("1.1 Survey")
    assert second.send_wbs_item_to_board("1.1 Survey")
    assert other_owner.send_wbs_item_to_board("1.1 Survey")

    reopened = ProjectSession.open(store, "user-1", first.project_id, clock=clock, state=state, timer_factory=timers)
    assert not reopened.send_wbs_item_to_board("1.1 Survey")
