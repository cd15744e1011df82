"""
Budget ledger: planned vs actual line items.

Totals, variance and per-category sums are recomputed on every read.
The overall project budget is passed in by the caller; the ledger never
stores it and never enforces it (overage is a display value only).
"""
import math
import re
from typing import Optional, List, Dict, Any, Callable

from .clock import Clock, SYSTEM_CLOCK, make_short_id
from .schema import BudgetItem, BudgetCategory

STATUS_OVER = "Over"
STATUS_ON_BUDGET = "On Budget"
STATUS_UNDER = "Under"

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_amount(value: Any) -> float:
    """Lenient amount parsing: '1,250.50' -> 1250.5, junk -> 0, negatives -> 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value or "").replace(",", ""))
        if not match:
            return 0.0
        number = float(match.group(0))
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_of_budget(part: float, total_budget: float) -> int:
    """Share of the total budget as a whole percent, capped at 100."""
    if not total_budget:
        return 0
    return min(round_half_up(part / total_budget * 100), 100)


def item_status(item: BudgetItem) -> str:
    diff = item.planned - item.actual
    if diff < 0:
        return STATUS_OVER
    if diff == 0:
        return STATUS_ON_BUDGET
    return STATUS_UNDER


def format_currency(amount: float) -> str:
    """12345.6 -> '12,346'. Halves round away from zero (-0.5 -> '-1')."""
    rounded = round_half_up(abs(amount))
    return f"{-rounded if amount < 0 else rounded:,}"


def format_budget_input(text: str) -> str:
    """Form field behaviour: keep digits only, group thousands. '$1500000' -> '1,500,000'"""
    digits = re.sub(r"\D", "", text or "")
    if not digits:
        return ""
    return re.sub(r"\B(?=(\d{3})+(?!\d))", ",", digits)


class BudgetLedger:
    """Flat list of budget lines keyed by id."""

    def __init__(
        self,
        items: Optional[List[BudgetItem]] = None,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.clock = clock or SYSTEM_CLOCK
        self.on_change = on_change
        self._items: List[BudgetItem] = list(items or [])

    @property
    def items(self) -> List[BudgetItem]:
        return list(self._items)

    def get(self, item_id: str) -> Optional[BudgetItem]:
        for item in self._items:
            if str(item.id) == str(item_id):
                return item
        return None

    def add_item(
        self,
        category: Any,
        description: str,
        planned: Any = 0,
        actual: Any = 0,
    ) -> Optional[BudgetItem]:
        """Append a line. Blank descriptions are ignored."""
        description = (description or "").strip()
        if not description:
            return None
        item = BudgetItem(
            id=make_short_id(self.clock),
            category=BudgetCategory.from_str(category),
            description=description,
            planned=parse_amount(planned),
            actual=parse_amount(actual),
        )
        self._items.append(item)
        self._changed()
        return item

    def update_item(self, item_id: str, **fields) -> bool:
        """Edit category/description/planned/actual in place.

        Unknown ids and blank descriptions leave the ledger unchanged.
        """
        item = self.get(item_id)
        if item is None:
            return False
        if "description" in fields:
            description = str(fields["description"] or "").strip()
            if not description:
                return False
            item.description = description
        if "category" in fields:
            item.category = BudgetCategory.from_str(fields["category"])
        if "planned" in fields:
            item.planned = parse_amount(fields["planned"])
        if "actual" in fields:
            item.actual = parse_amount(fields["actual"])
        self._changed()
        return True

    def delete_item(self, item_id: str) -> bool:
        before = len(self._items)
        self._items = [i for i in self._items if str(i.id) != str(item_id)]
        if len(self._items) == before:
            return False
        self._changed()
        return True

    # ── Derived values ───────────────────────────────────────────────────────

    @property
    def total_planned(self) -> float:
        return sum(i.planned for i in self._items)

    @property
    def total_actual(self) -> float:
        return sum(i.actual for i in self._items)

    @property
    def variance(self) -> float:
        return self.total_planned - self.total_actual

    def remaining(self, total_budget: float) -> float:
        return total_budget - self.total_actual

    def by_category(self) -> Dict[str, Dict[str, float]]:
        """Category -> planned/actual sums, in first-seen order."""
        totals: Dict[str, Dict[str, float]] = {}
        for item in self._items:
            bucket = totals.setdefault(item.category.value, {"planned": 0.0, "actual": 0.0})
            bucket["planned"] += item.planned
            bucket["actual"] += item.actual
        return totals

    def summary(self, total_budget: float) -> Dict[str, Any]:
        total_actual = self.total_actual
        return {
            "total_budget": total_budget,
            "total_planned": self.total_planned,
            "total_actual": total_actual,
            "remaining": self.remaining(total_budget),
            "variance": self.variance,
            "percent_spent": percent_of_budget(total_actual, total_budget),
            "by_category": self.by_category(),
            "items": [
                dict(item.to_dict(), status=item_status(item)) for item in self._items
            ],
        }

    def to_payload(self) -> List[Dict[str, Any]]:
        """The `budget_items` sub-field handed to the project store."""
        return [i.to_dict() for i in self._items]

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> "BudgetLedger":
        entries = payload if isinstance(payload, list) else []
        items = [BudgetItem.from_dict(e) for e in entries if isinstance(e, dict)]
        return cls(items=items, clock=clock, on_change=on_change)

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()
