"""
One open project.

A ProjectSession owns the in-memory stores for a project (setup form,
charter, risks, WBS, board, schedule, budget) and wires every mutation to
a SaveScheduler that pushes the whole snapshot to the ProjectStore after
a quiet period. In-memory state is updated first; persistence follows.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from .autosave import SaveScheduler, DEFAULT_DELAY_SECS
from .board import BoardStore
from .budget import BudgetLedger, parse_amount, format_budget_input
from .clock import Clock, SYSTEM_CLOCK
from .decoder import decode_generated, decode_phases, decode_risk_list
from .prefs import LocalStateStore
from .schedule import ScheduleStore
from .schema import ProjectRecord, Risk, WbsPhase
from .store import ProjectStore
from .wbs import WbsAddedTracker, wbs_added_key

logger = logging.getLogger(__name__)

FORM_FIELDS = ("project_name", "budget", "duration", "project_type", "objective", "constraints")

# Extraction / API payload keys -> form fields
CAMEL_FORM_KEYS = {
    "projectName": "project_name",
    "budget": "budget",
    "duration": "duration",
    "projectType": "project_type",
    "objective": "objective",
    "constraints": "constraints",
}

UNTITLED = "Untitled Project"


def empty_form() -> Dict[str, str]:
    return {key: "" for key in FORM_FIELDS}


def charter_title(charter: str) -> Optional[str]:
    """First '# Heading' line of a markdown charter."""
    match = re.search(r"^# (.*)", charter or "", re.M)
    return match.group(1).strip() if match else None


class ProjectSession:
    """Editable project state with debounced persistence."""

    def __init__(
        self,
        store: ProjectStore,
        owner_id: str,
        project_id: Optional[str] = None,
        clock: Optional[Clock] = None,
        state: Optional[LocalStateStore] = None,
        autosave_delay: float = DEFAULT_DELAY_SECS,
        timer_factory=None,
    ):
        self.store = store
        self.owner_id = owner_id
        self.project_id = project_id
        self.clock = clock or SYSTEM_CLOCK
        self.state = state or LocalStateStore()

        self.form: Dict[str, str] = empty_form()
        self.charter = ""
        self.risks: List[Risk] = []
        self.wbs: List[WbsPhase] = []
        self.board = BoardStore(clock=self.clock, on_change=self.touch)
        self.schedule = ScheduleStore(clock=self.clock, on_change=self.touch)
        self.budget = BudgetLedger(clock=self.clock, on_change=self.touch)
        self.wbs_added = WbsAddedTracker(self.state, wbs_added_key(owner_id, project_id))

        scheduler_kwargs = {}
        if timer_factory is not None:
            scheduler_kwargs["timer_factory"] = timer_factory
        self.scheduler = SaveScheduler(
            save=self._save_snapshot,
            snapshot=self.snapshot,
            delay=autosave_delay,
            **scheduler_kwargs,
        )

    # ── Reads ────────────────────────────────────────────────────────────────

    @property
    def total_budget(self) -> float:
        return parse_amount(self.form.get("budget"))

    @property
    def error(self) -> Optional[str]:
        """Last user-visible save error, None after a successful save."""
        return self.scheduler.last_error

    def budget_summary(self) -> Dict[str, Any]:
        return self.budget.summary(self.total_budget)

    def snapshot(self) -> Dict[str, Any]:
        """Whole-project fields handed to the store on every save."""
        fields: Dict[str, Any] = dict(self.form)
        fields["project_name"] = (self.form.get("project_name") or "").strip() or UNTITLED
        fields["charter"] = self.charter
        fields["risks"] = [r.to_dict() for r in self.risks]
        fields["wbs"] = [p.to_dict() for p in self.wbs]
        fields["kanban"] = self.board.to_payload()
        fields["schedule"] = self.schedule.to_payload()
        fields["budget_items"] = self.budget.to_payload()
        return fields

    # ── Edits ────────────────────────────────────────────────────────────────

    def touch(self) -> None:
        self.scheduler.touch()

    def set_field(self, name: str, value: str) -> bool:
        """Edit one setup-form field. Unknown names are ignored."""
        name = CAMEL_FORM_KEYS.get(name, name)
        if name not in FORM_FIELDS:
            return False
        value = "" if value is None else str(value)
        if name == "budget":
            value = format_budget_input(value)
        self.form[name] = value
        self.touch()
        return True

    def apply_extraction(self, extracted: Dict[str, Any]) -> None:
        """Fill the form from document extraction; blank values keep what is there."""
        changed = False
        for key, value in (extracted or {}).items():
            name = CAMEL_FORM_KEYS.get(key, key)
            if name in FORM_FIELDS and value:
                self.form[name] = format_budget_input(str(value)) if name == "budget" else str(value)
                changed = True
        if changed:
            self.touch()

    def send_wbs_item_to_board(self, item: str) -> bool:
        """Add a WBS deliverable to the board once; repeats are ignored."""
        if not self.wbs_added.add(item):
            return False
        return self.board.add(item) is not None

    def apply_generated(self, payload: Any) -> None:
        """Install a generated plan and save it right away.

        The board is replaced by the generated tasks (all in todo). A blank
        project name is taken from the charter's first heading.
        """
        result = decode_generated(payload)
        self.charter = result["charter"]
        self.risks = result["risks"]
        self.wbs = result["wbs"]
        self.board = BoardStore(clock=self.clock)
        self.board.import_tasks(result["tasks"])
        self.board.on_change = self.touch
        self.wbs_added.reset()

        if not self.form.get("project_name", "").strip():
            self.form["project_name"] = charter_title(self.charter) or UNTITLED

        self.scheduler.touch()
        self.scheduler.flush()

    # ── Persistence ──────────────────────────────────────────────────────────

    def load(self, record: ProjectRecord) -> None:
        """Replace all state with a stored project. Does not trigger a save."""
        self.scheduler.cancel()
        self.project_id = record.id or None
        self.form = {
            "project_name": record.project_name,
            "budget": record.budget,
            "duration": record.duration,
            "project_type": record.project_type,
            "objective": record.objective,
            "constraints": record.constraints,
        }
        self.charter = record.charter
        self.risks = decode_risk_list(record.risks)
        self.wbs = decode_phases(record.wbs)
        self.board = BoardStore.from_payload(record.kanban, clock=self.clock, on_change=self.touch)
        self.schedule = ScheduleStore.from_payload(record.schedule, clock=self.clock, on_change=self.touch)
        self.budget = BudgetLedger.from_payload(record.budget_items, clock=self.clock, on_change=self.touch)
        self.wbs_added = WbsAddedTracker(self.state, wbs_added_key(self.owner_id, self.project_id))

    @classmethod
    def open(cls, store: ProjectStore, owner_id: str, project_id: str, **kwargs) -> Optional["ProjectSession"]:
        record = store.get(owner_id, project_id)
        if record is None:
            return None
        session = cls(store, owner_id, **kwargs)
        session.load(record)
        return session

    def save_now(self) -> bool:
        """Bypass the debounce. False when there was nothing to save."""
        self.scheduler.touch()
        return self.scheduler.flush()

    def close(self) -> None:
        """Flush unsaved edits."""
        self.scheduler.flush()

    def _save_snapshot(self, fields: Dict[str, Any]) -> ProjectRecord:
        record = self.store.save(self.owner_id, self.project_id, fields)
        if not self.project_id:
            self.project_id = record.id
            self.wbs_added.rekey(wbs_added_key(self.owner_id, record.id))
            logger.info(f"Created project {record.id}")
        return record
