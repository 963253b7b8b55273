"""Expense ledger keeps register aggregates in step with expense rows."""

from datetime import date
from decimal import Decimal

import pytest

from hallops.errors import NotFoundError, ValidationError
from hallops.models import CashExpense
from hallops.models.cash import register_field_for
from hallops.services import expenses
from hallops.services.registers import find_register

D1 = date(2025, 1, 10)


def assert_aggregates_match(d=D1, shift="day"):
    reg = find_register(d, shift)
    sums = {"purchases": Decimal("0"), "salaries": Decimal("0"), "other_expenses": Decimal("0")}
    for e in CashExpense.query.filter_by(cash_register_id=reg.id).all():
        sums[register_field_for(e.category)] += e.amount
    assert reg.purchases == sums["purchases"]
    assert reg.salaries == sums["salaries"]
    assert reg.other_expenses == sums["other_expenses"]


class TestCategoryMapping:
    def test_single_table(self):
        assert register_field_for("purchases") == "purchases"
        assert register_field_for("salaries") == "salaries"
        for cat in ("other", "employee_food", "food_hunters", "advance", "equipment", "inventory"):
            assert register_field_for(cat) == "other_expenses"


class TestExpenseLedger:
    def test_add_then_delete_restores_field(self, app):
        expenses.add_expense(D1, "day", "purchases", 50)
        before = find_register(D1, "day").purchases
        e = expenses.add_expense(D1, "day", "purchases", 200, description="chalk")
        assert find_register(D1, "day").purchases == before + 200
        expenses.delete_expense(e.id)
        assert find_register(D1, "day").purchases == before

    def test_register_created_lazily(self, app):
        assert find_register(D1, "night") is None
        e = expenses.add_expense(D1, "night", "employee_food", 75, payment_source="gcash")
        reg = find_register(D1, "night")
        assert e.cash_register_id == reg.id
        assert reg.other_expenses == Decimal("75")
        assert e.approved is False

    def test_move_between_categories(self, app):
        e = expenses.add_expense(D1, "day", "purchases", 100)
        expenses.update_expense(e.id, category="equipment")
        reg = find_register(D1, "day")
        assert reg.purchases == Decimal("0")
        assert reg.other_expenses == Decimal("100")
        expenses.update_expense(e.id, amount=40, category="salaries")
        reg = find_register(D1, "day")
        assert reg.other_expenses == Decimal("0")
        assert reg.salaries == Decimal("40")
        assert_aggregates_match()

    def test_mixed_sequence_keeps_invariant(self, app):
        a = expenses.add_expense(D1, "day", "purchases", 10)
        b = expenses.add_expense(D1, "day", "other", 20)
        c = expenses.add_expense(D1, "day", "salaries", 30)
        expenses.update_expense(a.id, amount=15)
        expenses.delete_expense(b.id)
        expenses.update_expense(c.id, category="advance")
        assert_aggregates_match()
        assert find_register(D1, "day").total_expenses == Decimal("45")

    @pytest.mark.parametrize("kwargs", [
        {"category": "casino"},
        {"shift": "evening"},
        {"payment_source": "card"},
        {"amount": 0},
        {"amount": -10},
    ])
    def test_validation_before_write(self, app, kwargs):
        args = {"shift": "day", "category": "other", "amount": 10, "payment_source": "cash"}
        args.update(kwargs)
        with pytest.raises(ValidationError):
            expenses.add_expense(D1, args["shift"], args["category"], args["amount"],
                                 payment_source=args["payment_source"])
        assert CashExpense.query.count() == 0

    def test_unknown_expense(self, app):
        with pytest.raises(NotFoundError):
            expenses.delete_expense(404)

    def test_list_filters(self, app):
        expenses.add_expense(D1, "day", "purchases", 10, description="Cue tips")
        expenses.add_expense(date(2025, 1, 11), "day", "other", 20, description="Water")
        assert len(expenses.list_expenses()) == 2
        assert [e.description for e in expenses.list_expenses(search="cue")] == ["Cue tips"]
        assert [e.category for e in expenses.list_expenses(start=date(2025, 1, 11))] == ["other"]
        assert len(expenses.list_expenses(category="purchases")) == 1
        assert len(expenses.list_expenses(approved=True)) == 0
