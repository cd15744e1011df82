"""
Tests for the task board: add, move, remove, import, payload round trip.
"""
import pytest

from pmx.board import BoardStore
from pmx.schema import Column, Task


@pytest.fixture
def board(clock):
    return BoardStore(clock=clock)


def _ids(board, col):
    return [str(t.id) for t in board.tasks(col)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Add
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_add_appends_to_todo(board):
    task = board.add("  Draft charter  ", "pm@example.com")
    assert task is not None
    assert task.title == "Draft charter"
    assert task.owner_email == "pm@example.com"
    assert task.id.startswith("task-")
    assert board.find(task.id) == Column.TODO


def test_add_blank_title_is_noop(board):
    assert board.add("   ") is None
    assert board.add("") is None
    assert board.counts()["total"] == 0


def test_add_ids_are_unique(board):
    a = board.add("One")
    b = board.add("Two")
    assert a.id != b.id


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Move
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestMove:
    def test_move_between_columns(self, board):
        a = board.add("A")
        board.add("B")
        assert board.move(a.id, Column.TODO, Column.DONE)
        assert str(a.id) not in _ids(board, Column.TODO)
        assert _ids(board, Column.DONE).count(str(a.id)) == 1
        assert board.counts()["total"] == 2

    def test_move_appends_to_end(self, board):
        a = board.add("A")
        b = board.add("B")
        board.move(a.id, Column.TODO, Column.INPROGRESS)
        board.move(b.id, Column.TODO, Column.INPROGRESS)
        assert _ids(board, Column.INPROGRESS) == [str(a.id), str(b.id)]

    def test_same_column_move_leaves_state_unchanged(self, board):
        a = board.add("A")
        board.add("B")
        before = board.to_payload()
        assert not board.move(a.id, Column.TODO, Column.TODO)
        assert board.to_payload() == before

    def test_unknown_id_is_noop(self, board):
        board.add("A")
        before = board.to_payload()
        assert not board.move("missing", Column.TODO, Column.DONE)
        assert board.to_payload() == before

    def test_id_not_in_source_column_is_noop(self, board):
        a = board.add("A")
        assert not board.move(a.id, Column.DONE, Column.INPROGRESS)
        assert board.find(a.id) == Column.TODO

    def test_numeric_and_string_ids_match(self, board):
        board.import_tasks([Task(7, "Generated")])
        assert board.move("7", Column.TODO, Column.INPROGRESS)
        assert board.find(7) == Column.INPROGRESS

    def test_every_pair_preserves_count(self, board):
        for title in ("A", "B", "C"):
            board.add(title)
        for src in Column.ordered():
            for dst in Column.ordered():
                if src == dst or not board.tasks(src):
                    continue
                task = board.tasks(src)[0]
                board.move(task.id, src, dst)
                assert board.counts()["total"] == 3
                assert board.find(task.id) == dst


class TestMoveStep:
    def test_step_right(self, board):
        a = board.add("A")
        assert board.move_step(a.id, Column.TODO, 1)
        assert board.find(a.id) == Column.INPROGRESS

    def test_step_left(self, board):
        a = board.add("A")
        board.move(a.id, Column.TODO, Column.DONE)
        assert board.move_step(a.id, Column.DONE, -1)
        assert board.find(a.id) == Column.INPROGRESS

    def test_off_edge_is_noop(self, board):
        a = board.add("A")
        assert not board.move_step(a.id, Column.TODO, -1)
        board.move(a.id, Column.TODO, Column.DONE)
        assert not board.move_step(a.id, Column.DONE, 1)
        assert board.find(a.id) == Column.DONE


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Remove / import / clear
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_remove(board):
    a = board.add("A")
    assert board.remove(a.id, Column.TODO)
    assert board.find(a.id) is None


def test_remove_missing_leaves_board_unchanged(board):
    board.add("A")
    before = board.to_payload()
    assert not board.remove("nope", Column.TODO)
    assert board.to_payload() == before


def test_import_skips_existing_ids_and_blank_titles(board):
    added = board.import_tasks([Task(1, "One"), Task(2, "  "), Task(1, "Dup"), Task(3, "Three")])
    assert added == 2
    assert [t.title for t in board.tasks(Column.TODO)] == ["One", "Three"]


def test_clear(board):
    board.add("A")
    board.clear()
    assert board.counts() == {"todo": 0, "inprogress": 0, "done": 0, "total": 0}


def test_mutations_notify_on_change(clock):
    calls = []
    board = BoardStore(clock=clock, on_change=lambda: calls.append(1))
    a = board.add("A")
    board.move(a.id, Column.TODO, Column.DONE)
    board.move(a.id, Column.DONE, Column.DONE)
    board.remove("missing", Column.TODO)
    assert len(calls) == 2


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Payload
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_payload_round_trip_preserves_order(board, clock):
    a = board.add("A", "a@example.com")
    b = board.add("B")
    c = board.add("C")
    board.move(b.id, Column.TODO, Column.INPROGRESS)
    board.move(c.id, Column.TODO, Column.DONE)
    board.move(a.id, Column.TODO, Column.DONE)

    restored = BoardStore.from_payload(board.to_payload(), clock=clock)
    for col in Column.ordered():
        assert restored.tasks(col) == board.tasks(col)
    assert _ids(restored, Column.DONE) == [str(c.id), str(a.id)]


def test_from_payload_defaults_missing_columns():
    board = BoardStore.from_payload({"todo": [{"id": 1, "title": "X"}]})
    assert board.counts() == {"todo": 1, "inprogress": 0, "done": 0, "total": 1}
    assert BoardStore.from_payload(None).counts()["total"] == 0
    assert BoardStore.from_payload({"todo": "garbage"}).counts()["total"] == 0


def test_from_payload_drops_duplicate_ids():
    payload = {
        "todo": [{"id": "x", "title": "First"}],
        "done": [{"id": "x", "title": "Second"}, {"id": "y", "title": "Y"}],
    }
    board = BoardStore.from_payload(payload)
    assert board.find("x") == Column.TODO
    assert board.counts()["total"] == 2


def test_from_payload_gives_idless_tasks_fresh_ids(clock):
    payload = {
        "todo": [{"title": "No id"}, {"id": "", "title": "Blank id"}],
        "done": [{"id": None, "title": "Null id"}],
    }
    board = BoardStore.from_payload(payload, clock=clock)
    assert board.counts()["total"] == 3
    ids = _ids(board, Column.TODO) + _ids(board, Column.DONE)
    assert len(set(ids)) == 3
    assert all(i.startswith("task-") for i in ids)
    assert board.move(ids[0], Column.TODO, Column.INPROGRESS)


def test_owner_email_serialized_camel_case():
    data = Task("t1", "Title", "o@example.com").to_dict()
    assert data == {"id": "t1", "title": "Title", "ownerEmail": "o@example.com"}
    assert "ownerEmail" not in Task("t2", "No owner").to_dict()
