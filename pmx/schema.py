"""
PMX value objects.

Board column membership IS task status: a Task has no status field, it
lives in exactly one Column list. Everything here round-trips through
plain dicts (the persisted JSON shape) via to_dict()/from_dict(), which
tolerate missing keys and unknown enum values.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union


TaskId = Union[str, int]


def same_id(a: Any, b: Any) -> bool:
    """Compare ids by value so 7 and "7" match after a JSON round trip."""
    return str(a) == str(b)


class Column(Enum):
    """Board columns, left to right."""
    TODO = "todo"
    INPROGRESS = "inprogress"
    DONE = "done"

    @classmethod
    def from_str(cls, value: Any) -> Optional["Column"]:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        try:
            return cls(text.lower())
        except ValueError:
            pass
        try:
            return cls[text.upper()]
        except KeyError:
            return None

    @classmethod
    def ordered(cls) -> List["Column"]:
        return [cls.TODO, cls.INPROGRESS, cls.DONE]


class ColorTag(Enum):
    """Event colour tags offered by the calendar."""
    ACCENT = "accent"
    BLUE = "blue"
    YELLOW = "yellow"
    RED = "red"

    @classmethod
    def from_str(cls, value: Any) -> "ColorTag":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.ACCENT


class BudgetCategory(Enum):
    """Fixed budget line categories."""
    LABOR = "Labor"
    MATERIALS = "Materials"
    EQUIPMENT = "Equipment"
    SOFTWARE = "Software"
    CONSULTING = "Consulting"
    TRAVEL = "Travel"
    TRAINING = "Training"
    CONTINGENCY = "Contingency"
    OTHER = "Other"

    @classmethod
    def from_str(cls, value: Any) -> "BudgetCategory":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return cls.OTHER


@dataclass
class Task:
    """A board task. Where it sits on the board is its status."""
    id: TaskId
    title: str
    owner_email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "title": self.title}
        if self.owner_email:
            data["ownerEmail"] = self.owner_email
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=data.get("id", ""),
            title=str(data.get("title", "")),
            owner_email=data.get("ownerEmail") or data.get("owner_email") or None,
        )


@dataclass
class CalendarEvent:
    """A single-day event. Many events may share a date."""
    id: str
    title: str
    date: str                   # YYYY-MM-DD
    start_time: str = ""        # HH:MM or ""
    end_time: str = ""          # HH:MM or ""
    color: ColorTag = ColorTag.ACCENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "color": self.color.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarEvent":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            date=str(data.get("date", "")),
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime") or "",
            color=ColorTag.from_str(data.get("color", "accent")),
        )


@dataclass
class BudgetItem:
    """One planned/actual budget line."""
    id: str
    category: BudgetCategory
    description: str
    planned: float = 0.0
    actual: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "description": self.description,
            "planned": self.planned,
            "actual": self.actual,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BudgetItem":
        return cls(
            id=str(data.get("id", "")),
            category=BudgetCategory.from_str(data.get("category")),
            description=str(data.get("description", "")),
            planned=_number(data.get("planned")),
            actual=_number(data.get("actual")),
        )


@dataclass
class WbsPhase:
    """A WBS phase. start/duration are trusted as given (no scheduling)."""
    id: str
    name: str
    start_week: int = 0
    duration_weeks: int = 1
    items: List[str] = field(default_factory=list)

    @property
    def end_week(self) -> int:
        return self.start_week + self.duration_weeks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startWeek": self.start_week,
            "durationWeeks": self.duration_weeks,
            "items": list(self.items),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WbsPhase":
        items = data.get("items")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            start_week=_int(data.get("startWeek"), 0),
            duration_weeks=_int(data.get("durationWeeks"), 1),
            items=[str(i) for i in items] if isinstance(items, list) else [],
        )


@dataclass
class Risk:
    """Risk register entry (impact/probability are Low | Medium | High)."""
    id: str
    description: str
    category: str = "Other"
    impact: str = "Medium"
    probability: str = "Medium"
    response: str = ""
    owner: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "impact": self.impact,
            "probability": self.probability,
            "response": self.response,
            "owner": self.owner,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Risk":
        return cls(
            id=str(data.get("id", "")),
            description=str(data.get("description", "")),
            category=str(data.get("category", "Other")),
            impact=str(data.get("impact", "Medium")),
            probability=str(data.get("probability", "Medium")),
            response=str(data.get("response", "")),
            owner=str(data.get("owner", "")),
        )


# Columns persisted as JSON text in the projects table
JSON_FIELDS = ("wbs", "risks", "kanban", "schedule", "budget_items")

# Fields a caller may write through ProjectStore.save()
PROJECT_FIELDS = (
    "project_name", "budget", "duration", "project_type",
    "objective", "constraints", "charter",
) + JSON_FIELDS


@dataclass
class ProjectRecord:
    """A saved project row. Sub-fields are opaque snapshots of the stores."""
    id: str
    user_id: str
    project_name: str = ""
    budget: str = ""
    duration: str = ""
    project_type: str = ""
    objective: str = ""
    constraints: str = ""
    charter: str = ""
    wbs: List[Dict[str, Any]] = field(default_factory=list)
    risks: List[Dict[str, Any]] = field(default_factory=list)
    kanban: Dict[str, List[Dict[str, Any]]] = field(
        default_factory=lambda: {"todo": [], "inprogress": [], "done": []}
    )
    schedule: List[Dict[str, Any]] = field(default_factory=list)
    budget_items: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_name": self.project_name,
            "budget": self.budget,
            "duration": self.duration,
            "project_type": self.project_type,
            "objective": self.objective,
            "constraints": self.constraints,
            "charter": self.charter,
            "wbs": self.wbs,
            "risks": self.risks,
            "kanban": self.kanban,
            "schedule": self.schedule,
            "budget_items": self.budget_items,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectRecord":
        kanban = data.get("kanban")
        if not isinstance(kanban, dict):
            kanban = {}
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("user_id", "")),
            project_name=data.get("project_name") or "",
            budget=data.get("budget") or "",
            duration=data.get("duration") or "",
            project_type=data.get("project_type") or "",
            objective=data.get("objective") or "",
            constraints=data.get("constraints") or "",
            charter=data.get("charter") or "",
            wbs=_list(data.get("wbs")),
            risks=_list(data.get("risks")),
            kanban={col.value: _list(kanban.get(col.value)) for col in Column.ordered()},
            schedule=_list(data.get("schedule")),
            budget_items=_list(data.get("budget_items")),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
