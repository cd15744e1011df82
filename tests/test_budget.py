"""
Tests for the budget ledger and amount helpers.
"""
import pytest

from pmx.budget import (
    BudgetLedger, parse_amount, percent_of_budget, item_status, format_currency,
    format_budget_input, STATUS_OVER, STATUS_ON_BUDGET, STATUS_UNDER,
)
from pmx.schema import BudgetCategory, BudgetItem


@pytest.fixture
def ledger(clock):
    return BudgetLedger(clock=clock)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.parametrize("value,expected", [
    ("1,250.50", 1250.5),
    ("500", 500.0),
    (75, 75.0),
    ("abc", 0.0),
    ("", 0.0),
    (None, 0.0),
    ("-40", 0.0),
    (-3, 0.0),
    ("12abc", 12.0),
    (True, 0.0),
])
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


def test_percent_of_budget_zero_total():
    assert percent_of_budget(500, 0) == 0
    assert percent_of_budget(0, 0) == 0


def test_percent_of_budget_clamps():
    assert percent_of_budget(150, 100) == 100
    assert percent_of_budget(50, 200) == 25


def test_percent_rounds_half_up():
    assert percent_of_budget(1, 8) == 13      # 12.5
    assert percent_of_budget(5, 200) == 3     # 2.5


def test_item_status():
    assert item_status(BudgetItem("1", BudgetCategory.LABOR, "x", 100, 120)) == STATUS_OVER
    assert item_status(BudgetItem("2", BudgetCategory.LABOR, "x", 100, 100)) == STATUS_ON_BUDGET
    assert item_status(BudgetItem("3", BudgetCategory.LABOR, "x", 100, 80)) == STATUS_UNDER


def test_format_helpers():
    assert format_currency(1234567.4) == "1,234,567"
    assert format_budget_input("$1500000") == "1,500,000"
    assert format_budget_input("abc") == ""


def test_format_currency_negative_halves_round_away_from_zero():
    assert format_currency(-1234.5) == "-1,235"
    assert format_currency(1234.5) == "1,235"
    assert format_currency(-1234.4) == "-1,234"
    assert format_currency(-0.4) == "0"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Ledger
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_single_over_budget_item(ledger):
    item = ledger.add_item("Labor", "Contractors", 100, 120)
    assert ledger.by_category() == {"Labor": {"planned": 100.0, "actual": 120.0}}
    assert item_status(item) == STATUS_OVER


def test_add_item_parses_amount_strings(ledger):
    item = ledger.add_item("software", "Licences", "1,200", "300.5")
    assert item.category == BudgetCategory.SOFTWARE
    assert item.planned == 1200.0
    assert item.actual == 300.5


def test_add_item_blank_description_is_noop(ledger):
    assert ledger.add_item("Labor", "   ", 10, 10) is None
    assert ledger.items == []


def test_unknown_category_is_other(ledger):
    assert ledger.add_item("Snacks", "Pizza", 10).category == BudgetCategory.OTHER


def test_totals_and_remaining(ledger):
    ledger.add_item("Labor", "Team", 1000, 400)
    ledger.add_item("Labor", "Overtime", 200, 300)
    ledger.add_item("Travel", "Site visits", 500, 0)
    assert ledger.total_planned == 1700
    assert ledger.total_actual == 700
    assert ledger.variance == 1000
    assert ledger.remaining(2000) == 1300
    assert ledger.by_category()["Labor"] == {"planned": 1200.0, "actual": 700.0}


def test_update_item(ledger):
    item = ledger.add_item("Labor", "Team", 1000, 0)
    assert ledger.update_item(item.id, actual="1,100", category="Consulting")
    updated = ledger.get(item.id)
    assert updated.actual == 1100
    assert updated.category == BudgetCategory.CONSULTING


def test_update_rejects_blank_description(ledger):
    item = ledger.add_item("Labor", "Team", 1000, 0)
    assert not ledger.update_item(item.id, description="  ")
    assert ledger.get(item.id).description == "Team"


def test_update_and_delete_unknown_are_noops(ledger):
    ledger.add_item("Labor", "Team", 1, 1)
    before = ledger.to_payload()
    assert not ledger.update_item("missing", actual=5)
    assert not ledger.delete_item("missing")
    assert ledger.to_payload() == before


def test_summary(ledger):
    ledger.add_item("Labor", "Team", 600, 750)
    summary = ledger.summary(1000)
    assert summary["percent_spent"] == 75
    assert summary["remaining"] == 250
    assert summary["items"][0]["status"] == STATUS_OVER


def test_payload_round_trip(ledger, clock):
    ledger.add_item("Equipment", "Servers", 5000, 4800)
    restored = BudgetLedger.from_payload(ledger.to_payload(), clock=clock)
    assert restored.items == ledger.items
