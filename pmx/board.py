"""
Three-column task board.

Board layout:
  todo → inprogress → done

Column membership is the task's status. A task id lives in at most one
column; every operation on an unknown id is a silent no-op.
"""
import logging
from typing import Optional, List, Dict, Any, Callable, Iterable

from .clock import Clock, SYSTEM_CLOCK, make_id
from .schema import Task, Column, TaskId, same_id

logger = logging.getLogger(__name__)


class BoardStore:
    """In-memory kanban board. Mutations notify on_change (autosave hook)."""

    def __init__(
        self,
        columns: Optional[Dict[Column, List[Task]]] = None,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.clock = clock or SYSTEM_CLOCK
        self.on_change = on_change
        self._columns: Dict[Column, List[Task]] = {col: [] for col in Column.ordered()}
        for col, tasks in (columns or {}).items():
            self._columns[col] = list(tasks)

    # ── Reads ────────────────────────────────────────────────────────────────

    def tasks(self, col: Column) -> List[Task]:
        """Copy of one column, in board order."""
        return list(self._columns[col])

    def all_tasks(self) -> List[Task]:
        return [t for col in Column.ordered() for t in self._columns[col]]

    def find(self, task_id: TaskId) -> Optional[Column]:
        """Column currently holding task_id, or None."""
        for col in Column.ordered():
            if any(same_id(t.id, task_id) for t in self._columns[col]):
                return col
        return None

    def counts(self) -> Dict[str, int]:
        counts = {col.value: len(self._columns[col]) for col in Column.ordered()}
        counts["total"] = sum(counts.values())
        return counts

    # ── Mutations ────────────────────────────────────────────────────────────

    def add(self, title: str, owner_email: Optional[str] = None) -> Optional[Task]:
        """Append a new task to todo. Blank titles are ignored."""
        title = (title or "").strip()
        if not title:
            return None
        task = Task(id=make_id("task", self.clock), title=title, owner_email=owner_email or None)
        self._columns[Column.TODO].append(task)
        self._changed()
        return task

    def move(self, task_id: TaskId, from_col: Column, to_col: Column) -> bool:
        """Move task_id from one column to the end of another.

        Returns True if the board changed. Same-column moves and ids not
        present in from_col leave the board untouched.
        """
        if from_col == to_col:
            return False
        source = self._columns[from_col]
        idx = _index_of(source, task_id)
        if idx is None:
            logger.debug(f"move: task {task_id} not in {from_col.value}")
            return False
        task = source.pop(idx)
        self._columns[to_col].append(task)
        self._changed()
        return True

    def move_step(self, task_id: TaskId, from_col: Column, direction: int) -> bool:
        """Move one column left (-1) or right (+1). Off the edge is a no-op."""
        order = Column.ordered()
        idx = order.index(from_col) + direction
        if idx < 0 or idx >= len(order):
            return False
        return self.move(task_id, from_col, order[idx])

    def remove(self, task_id: TaskId, col: Column) -> bool:
        """Delete task_id from col. Absent ids are ignored."""
        tasks = self._columns[col]
        idx = _index_of(tasks, task_id)
        if idx is None:
            return False
        del tasks[idx]
        self._changed()
        return True

    def import_tasks(self, tasks: Iterable[Task]) -> int:
        """Bulk-append generated tasks to todo, skipping ids already on the board."""
        added = 0
        for task in tasks:
            if not str(task.title).strip() or self.find(task.id) is not None:
                continue
            self._columns[Column.TODO].append(task)
            added += 1
        if added:
            self._changed()
        return added

    def clear(self) -> None:
        for col in Column.ordered():
            self._columns[col] = []
        self._changed()

    # ── Persistence shape ────────────────────────────────────────────────────

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        """The `kanban` sub-field handed to the project store."""
        return {col.value: [t.to_dict() for t in self._columns[col]] for col in Column.ordered()}

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> "BoardStore":
        """Rebuild a board from a stored payload. Missing columns are empty.

        If the same id shows up twice, the first occurrence (in column order)
        wins so each id stays in a single column. Tasks stored without an id
        get a fresh one.
        """
        if not isinstance(payload, dict):
            payload = {}
        seen = set()
        columns: Dict[Column, List[Task]] = {}
        for col in Column.ordered():
            raw = payload.get(col.value)
            tasks = []
            for entry in raw if isinstance(raw, list) else []:
                if not isinstance(entry, dict):
                    continue
                task = Task.from_dict(entry)
                if task.id is None or str(task.id) == "":
                    task.id = make_id("task", clock)
                key = str(task.id)
                if key in seen:
                    logger.warning(f"Dropping duplicate task id {key} in {col.value}")
                    continue
                seen.add(key)
                tasks.append(task)
            columns[col] = tasks
        return cls(columns=columns, clock=clock, on_change=on_change)

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()


def _index_of(tasks: List[Task], task_id: TaskId) -> Optional[int]:
    for i, t in enumerate(tasks):
        if same_id(t.id, task_id):
            return i
    return None
