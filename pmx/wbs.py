"""
WBS and Gantt helpers.

Phases come either from the generator or from the static defaults below.
Generated start/duration values are displayed as given: nothing here
checks for overlap or for bars running past the project duration.
"""
import copy
from typing import Optional, List, Dict, Any

from .prefs import LocalStateStore
from .schema import WbsPhase

# Shown on the WBS page until a plan is generated
STATIC_WBS_PHASES: List[WbsPhase] = [
    WbsPhase("1", "Initiation", 0, 2, [
        "1.1 Gather high-level business need and pain points",
        "1.2 Define project objectives & success criteria",
        "1.3 Identify key stakeholders and sponsor",
        "1.4 Draft initial project charter outline",
    ]),
    WbsPhase("2", "Planning", 1, 3, [
        "2.1 Refine scope and assumptions",
        "2.2 Break down work into phases & tasks (WBS)",
        "2.3 Define schedule milestones & dependencies",
        "2.4 Identify risks and draft risk responses",
    ]),
    WbsPhase("3", "Execution", 3, 6, [
        "3.1 Configure features & integrations",
        "3.2 Develop project templates (charter, WBS, risks)",
        "3.3 Run pilot with selected users",
        "3.4 Collect feedback and prioritise improvements",
    ]),
    WbsPhase("4", "Monitoring & Control", 3, 6, [
        "4.1 Track progress vs. schedule & scope",
        "4.2 Monitor risks, issues, and change requests",
        "4.3 Update stakeholders with status reports",
    ]),
    WbsPhase("5", "Closure", 9, 2, [
        "5.1 Formal handover & acceptance",
        "5.2 Capture lessons learned",
        "5.3 Archive project artefacts",
    ]),
]

# Gantt defaults (start_week 0 = week 1)
BASE_GANTT_PHASES: List[WbsPhase] = [
    WbsPhase("1", "Prerequisite Gathering", 0, 2),
    WbsPhase("2", "Design Workshops", 2, 2),
    WbsPhase("3", "Initiation", 4, 1),
    WbsPhase("4", "Planning", 5, 2),
    WbsPhase("5", "Execution", 7, 4),
    WbsPhase("6", "Closure", 11, 1),
]

INFRA_LEAD_PHASE = WbsPhase("infra-lead", "Equipment Lead Time", 2, 4)

DEFAULT_TOTAL_WEEKS = 12
PHASE_COLOR_COUNT = 8


def active_wbs(phases: Optional[List[WbsPhase]]) -> List[WbsPhase]:
    """Generated phases if there are any, else the static defaults."""
    if phases:
        return list(phases)
    return copy.deepcopy(STATIC_WBS_PHASES)


def static_gantt_phases(project_type: str = "") -> List[WbsPhase]:
    """Default Gantt phases; infrastructure projects get an equipment lead-time bar."""
    phases = copy.deepcopy(BASE_GANTT_PHASES)
    if "infra" not in (project_type or "").lower():
        return phases
    shifted = [
        WbsPhase(str(int(p.id) + 1), p.name, p.start_week + 2, p.duration_weeks, p.items)
        for p in phases[2:]
    ]
    return phases[:2] + [copy.deepcopy(INFRA_LEAD_PHASE)] + shifted


def gantt_layout(
    phases: Optional[List[WbsPhase]],
    total_weeks: Optional[int] = None,
    project_type: str = "",
) -> Dict[str, Any]:
    """Bar geometry for a Gantt chart.

    Returns:
        {"total_weeks": N, "weeks": [1..N], "bars": [{id, name, left_pct,
         width_pct, duration_weeks, color_index}, ...]}
    """
    active = list(phases) if phases else static_gantt_phases(project_type)
    max_week = max((p.start_week + p.duration_weeks for p in active), default=0)
    if total_weeks:
        total = max(total_weeks, max_week)
    else:
        total = max_week or DEFAULT_TOTAL_WEEKS

    bars = []
    for i, phase in enumerate(active):
        bars.append({
            "id": phase.id,
            "name": phase.name,
            "left_pct": phase.start_week / total * 100,
            "width_pct": phase.duration_weeks / total * 100,
            "duration_weeks": phase.duration_weeks,
            "color_index": i % PHASE_COLOR_COUNT,
        })
    return {"total_weeks": total, "weeks": list(range(1, total + 1)), "bars": bars}


def wbs_added_key(owner_id: Optional[str] = None, project_id: Optional[str] = None) -> str:
    """State key for one project's sent-items list. Unsaved projects share "new"."""
    if not owner_id:
        return WbsAddedTracker.STATE_KEY
    return f"{WbsAddedTracker.STATE_KEY}:{owner_id}:{project_id or 'new'}"


class WbsAddedTracker:
    """Remembers which WBS items have already been sent to a project's board."""

    STATE_KEY = "wbs_added"

    def __init__(self, state: LocalStateStore, key: str = STATE_KEY):
        self.state = state
        self.key = key
        saved = state.get(key) or []
        self._added = set(saved) if isinstance(saved, list) else set()

    def __contains__(self, item: str) -> bool:
        return item in self._added

    def add(self, item: str) -> bool:
        """Mark item as sent. False if it already was."""
        if item in self._added:
            return False
        self._added.add(item)
        self.state.set(self.key, sorted(self._added))
        return True

    def rekey(self, key: str) -> None:
        """Move the record to a new key (a new project got its id)."""
        if key == self.key:
            return
        self.state.remove(self.key)
        self.key = key
        if self._added:
            self.state.set(key, sorted(self._added))

    def reset(self) -> None:
        """Called when a new plan is generated."""
        self._added = set()
        self.state.remove(self.key)
