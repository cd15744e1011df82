"""
Portfolio statistics for the dashboard.

Computed from saved project records only; an open session's unsaved
edits show up after its next autosave.
"""
from typing import Any, Dict, Iterable, Optional

from .budget import round_half_up
from .schema import ProjectRecord


def _done_percent(done: int, total: int) -> Optional[int]:
    if not total:
        return None
    return round_half_up(done / total * 100)


def project_progress(record: ProjectRecord) -> Dict[str, Any]:
    """Task totals for one project card."""
    kanban = record.kanban or {}
    todo = len(kanban.get("todo") or [])
    in_progress = len(kanban.get("inprogress") or [])
    done = len(kanban.get("done") or [])
    total = todo + in_progress + done
    return {
        "id": record.id,
        "project_name": record.project_name or "Untitled Project",
        "project_type": record.project_type,
        "tasks": total,
        "in_progress": in_progress,
        "done": done,
        "percent_done": _done_percent(done, total) or 0,
        "updated_at": record.updated_at,
    }


def portfolio_stats(records: Iterable[ProjectRecord]) -> Dict[str, Any]:
    """Aggregate counts across all of an owner's projects."""
    records = list(records)
    total_tasks = done_tasks = in_progress_tasks = high_risks = 0
    for record in records:
        progress = project_progress(record)
        total_tasks += progress["tasks"]
        done_tasks += progress["done"]
        in_progress_tasks += progress["in_progress"]
        high_risks += sum(
            1 for r in record.risks or [] if isinstance(r, dict) and r.get("impact") == "High"
        )
    return {
        "projects": len(records),
        "total_tasks": total_tasks,
        "done_tasks": done_tasks,
        "in_progress_tasks": in_progress_tasks,
        "percent_done": _done_percent(done_tasks, total_tasks),
        "high_risks": high_risks,
    }
