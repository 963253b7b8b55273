"""Shift lifecycle: start, end with cash handover, bonuses."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from hallops.errors import ConflictError, NotFoundError, StateError, ValidationError
from hallops.extensions import db
from hallops.models import Shift
from hallops.services import expenses, registers, shifts
from hallops.services.registers import find_register

from .conftest import local


class TestStartShift:
    def test_creates_open_shift(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        assert s.status == "open"
        assert s.date == date(2025, 1, 10)
        assert s.shift_type == "day"
        assert s.shift_start == datetime(2025, 1, 10, 1, 0)  # UTC
        assert s.base_salary == Decimal("500")

    def test_second_open_shift_conflicts(self, employees):
        first = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        with pytest.raises(ConflictError) as exc:
            shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 10, 0))
        assert exc.value.extra["shift_id"] == first.id
        assert Shift.query.filter_by(employee_id=employees[0].id, status="open").count() == 1

    def test_other_employee_may_start(self, employees):
        shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        shifts.start_shift(employees[1].id, now=local(2025, 1, 10, 9, 5))
        assert len(shifts.list_open_shifts()) == 2

    def test_unknown_and_inactive_employee(self, employees):
        with pytest.raises(NotFoundError):
            shifts.start_shift(999)
        employees[1].active = False
        db.session.commit()
        with pytest.raises(StateError):
            shifts.start_shift(employees[1].id)

    def test_restart_after_close(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        shifts.end_shift(s.id, 100, 0, now=local(2025, 1, 10, 17, 0))
        again = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 18, 0))
        assert again.id != s.id
        assert shifts.get_open_shift(employees[0].id).id == again.id

    def test_resume_payload_has_elapsed(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        data = shifts.shift_to_dict(s, now=local(2025, 1, 10, 10, 30))
        assert data["elapsed"] == "01:30:00"


class TestEndShift:
    def test_reconciles_against_register(self, employees):
        registers.update_register(date(2025, 1, 10), "day", cash_expected=1000, gcash_expected=500)
        expenses.add_expense(date(2025, 1, 10), "day", "purchases", 200)

        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        s = shifts.end_shift(s.id, 1000, 300, now=local(2025, 1, 10, 17, 30))

        assert s.status == "closed"
        assert s.total_hours == Decimal("8.50")
        assert s.cash_date == date(2025, 1, 10)
        assert s.expected_cash == Decimal("1300")
        assert s.cash_difference == Decimal("0")

        reg = find_register(date(2025, 1, 10), "day")
        assert reg.reported_cash == Decimal("1000")
        assert reg.reported_gcash == Decimal("300")
        assert reg.discrepancy == Decimal("0")

    def test_missing_register_is_created(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        s = shifts.end_shift(s.id, 750, 0, now=local(2025, 1, 10, 12, 0))
        assert s.expected_cash == Decimal("0")
        assert s.cash_difference == Decimal("750")
        reg = find_register(date(2025, 1, 10), "day")
        assert reg is not None
        assert reg.cash_expected == Decimal("0")

    def test_night_shift_type_and_cash_date_follow_start(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 22, 0))
        s = shifts.end_shift(s.id, 500, 0, now=local(2025, 1, 11, 6, 0))
        assert s.shift_type == "night"
        assert s.date == date(2025, 1, 10)
        assert s.cash_date == date(2025, 1, 11)
        assert s.total_hours == Decimal("8.00")
        assert find_register(date(2025, 1, 11), "night") is not None

    def test_invalid_amount_leaves_shift_open(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        for bad in (-5, "abc", None, float("nan")):
            with pytest.raises(ValidationError):
                shifts.end_shift(s.id, bad, 0)
        assert db.session.get(Shift, s.id).status == "open"

    def test_cannot_close_twice(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        shifts.end_shift(s.id, 100, 0, now=local(2025, 1, 10, 10, 0))
        with pytest.raises(StateError):
            shifts.end_shift(s.id, 100, 0, now=local(2025, 1, 10, 11, 0))

    def test_unknown_shift(self, app):
        with pytest.raises(NotFoundError):
            shifts.end_shift(12345, 0, 0)


class TestBonuses:
    def _closed(self, emp):
        s = shifts.start_shift(emp.id, now=local(2025, 1, 10, 9, 0))
        return shifts.end_shift(s.id, 0, 0, now=local(2025, 1, 10, 17, 0))

    def test_bonus_on_open_shift(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        b = shifts.add_bonus(s.id, "sold_goods", 50, quantity=2, now=local(2025, 1, 10, 12, 0))
        assert b.amount == Decimal("50")
        assert b.employee_id == employees[0].id
        assert b.date == date(2025, 1, 10)
        assert [x.id for x in shifts.bonuses_for_shift(s.id)] == [b.id]

    def test_grace_window_after_close(self, employees):
        s = self._closed(employees[0])
        shifts.add_bonus(s.id, "vip_room", 100, now=local(2025, 1, 10, 17, 30))
        with pytest.raises(StateError):
            shifts.add_bonus(s.id, "vip_room", 100, now=local(2025, 1, 10, 19, 0))

    def test_settled_shift_is_frozen(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        b = shifts.add_bonus(s.id, "hookah", 80, now=local(2025, 1, 10, 10, 0))
        s.salary_paid = True
        db.session.commit()
        with pytest.raises(StateError):
            shifts.add_bonus(s.id, "hookah", 80, now=local(2025, 1, 10, 11, 0))
        with pytest.raises(StateError):
            shifts.delete_bonus(b.id)

    def test_validation(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        with pytest.raises(ValidationError):
            shifts.add_bonus(s.id, "lottery", 10)
        with pytest.raises(ValidationError):
            shifts.add_bonus(s.id, "other", 0)
        with pytest.raises(ValidationError):
            shifts.add_bonus(s.id, "other", 10, quantity=-1)

    def test_delete_bonus(self, employees):
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        b = shifts.add_bonus(s.id, "other", 20, now=local(2025, 1, 10, 10, 0))
        shifts.delete_bonus(b.id)
        assert shifts.bonuses_for_shift(s.id) == []
