# -*- coding: utf-8 -*-
"""
Зарплата за период и журнал вложений инвесторов.

Итог по сотруднику: база + бонусы − недостачи; выплачено: сумма
salary_paid_amount по отмеченным сменам; к выплате: разница.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.cash import InvestorContribution
from ..models.employee import Employee
from ..models.shift import SHIFT_CLOSED, Bonus, Shift
from ..money import D, as_number, parse_amount
from . import shift_clock as clock
from .activity import log_activity
from .records import BonusRecord, EmployeeRecord, ShiftRecord
from .reconciliation import split_shortage
from .registers import commit

logger = logging.getLogger(__name__)

DEFAULT_BASE_SALARY = Decimal("500")
ORDERS = ("name", "shifts")
CONTRIBUTION_TYPES = ("returnable", "non_returnable")


@dataclass
class PayrollEntry:
    employee_id: int
    employee_name: str
    total_shifts: int = 0
    total_hours: Decimal = Decimal("0")
    base_salary_total: Decimal = Decimal("0")
    bonuses_total: Decimal = Decimal("0")
    cash_shortage_total: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")

    @property
    def total_salary(self) -> Decimal:
        return self.base_salary_total + self.bonuses_total - self.cash_shortage_total

    @property
    def unpaid_amount(self) -> Decimal:
        return self.total_salary - self.paid_amount

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "total_shifts": self.total_shifts,
            "total_hours": as_number(self.total_hours),
            "base_salary_total": as_number(self.base_salary_total),
            "bonuses_total": as_number(self.bonuses_total),
            "cash_shortage_total": as_number(self.cash_shortage_total),
            "total_salary": as_number(self.total_salary),
            "paid_amount": as_number(self.paid_amount),
            "unpaid_amount": as_number(self.unpaid_amount),
        }


def _base(v: Optional[Decimal], default: Decimal) -> Decimal:
    return default if v is None else D(v)


# ------------ pure ------------------------------------------------------------
def aggregate_payroll(shifts: Iterable[ShiftRecord], bonuses: Iterable[BonusRecord],
                      employees: Iterable[EmployeeRecord] = (), order: str = "name",
                      default_base=DEFAULT_BASE_SALARY) -> list[PayrollEntry]:
    if order not in ORDERS:
        raise ValidationError("Порядок сортировки: name или shifts", field="order")
    default_base = D(default_base)
    names = {e.id: e.name for e in employees}
    entries: dict[int, PayrollEntry] = {}

    for s in shifts:
        if s.status != SHIFT_CLOSED:
            continue
        entry = entries.get(s.employee_id)
        if entry is None:
            name = names.get(s.employee_id) or s.employee_name or "Unknown"
            entry = entries[s.employee_id] = PayrollEntry(employee_id=s.employee_id, employee_name=name)
        entry.total_shifts += 1
        entry.total_hours += D(s.total_hours)
        entry.base_salary_total += _base(s.base_salary, default_base)
        entry.cash_shortage_total += D(s.cash_shortage)
        if s.salary_paid:
            entry.paid_amount += D(s.salary_paid_amount)

    # бонусы только тем, у кого есть смены в периоде
    for b in bonuses:
        entry = entries.get(b.employee_id)
        if entry is not None:
            entry.bonuses_total += D(b.amount)

    result = list(entries.values())
    if order == "shifts":
        result.sort(key=lambda e: (-e.total_shifts, e.employee_name.lower(), e.employee_id))
    else:
        result.sort(key=lambda e: (e.employee_name.lower(), e.employee_id))
    return result


def shift_net(shift: ShiftRecord, bonuses: Iterable[BonusRecord], default_base=DEFAULT_BASE_SALARY) -> Decimal:
    """Заработок одной смены: база + её бонусы − её недостача."""
    own = sum((D(b.amount) for b in bonuses if b.shift_id == shift.id), Decimal("0"))
    return _base(shift.base_salary, D(default_base)) + own - D(shift.cash_shortage)


# ------------ loading ---------------------------------------------------------
def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("Конец периода раньше начала")


def _closed_shifts(start: date, end: date, employee_id: int | None = None) -> list[Shift]:
    q = Shift.query.filter(Shift.status == SHIFT_CLOSED, Shift.date >= start, Shift.date <= end)
    if employee_id is not None:
        q = q.filter(Shift.employee_id == employee_id)
    return q.order_by(Shift.date.asc(), Shift.id.asc()).all()


def _bonuses(start: date, end: date, employee_id: int | None = None) -> list[Bonus]:
    q = Bonus.query.filter(Bonus.date >= start, Bonus.date <= end)
    if employee_id is not None:
        q = q.filter(Bonus.employee_id == employee_id)
    return q.all()


def default_base_salary() -> Decimal:
    return D(current_app.config.get("DEFAULT_BASE_SALARY", DEFAULT_BASE_SALARY))


def payroll_report(start: date, end: date, employee_id: int | None = None,
                   order: str = "name") -> list[PayrollEntry]:
    _check_range(start, end)
    shifts = [ShiftRecord.from_model(s) for s in _closed_shifts(start, end, employee_id)]
    bonuses = [BonusRecord.from_model(b) for b in _bonuses(start, end, employee_id)]
    employees = [EmployeeRecord.from_model(e) for e in Employee.query.all()]
    return aggregate_payroll(shifts, bonuses, employees, order=order, default_base=default_base_salary())


def shift_entries(start: date, end: date, employee_id: int | None = None) -> list[Shift]:
    _check_range(start, end)
    return list(reversed(_closed_shifts(start, end, employee_id)))


# ------------ payments --------------------------------------------------------
def mark_paid(employee_id: int, start: date, end: date, amount=None,
              now: datetime | None = None) -> list[Shift]:
    """Отметить выплату по всем закрытым сменам сотрудника за период.

    amount=None: каждой смене её собственный заработок; иначе сумма делится
    поровну (остаток первой смене), так что «выплачено» равно amount.
    Повтор с той же суммой ничего не меняет, с другой перезаписывает.
    """
    _check_range(start, end)
    if db.session.get(Employee, employee_id) is None:
        raise NotFoundError("Сотрудник не найден", employee_id=employee_id)
    rows = _closed_shifts(start, end, employee_id)
    if not rows:
        raise ValidationError("Нет закрытых смен за период")

    now = clock.to_utc_naive(now or clock.utcnow())
    if amount is None:
        base = default_base_salary()
        bonuses = [BonusRecord.from_model(b) for b in Bonus.query.filter(
            Bonus.shift_id.in_([s.id for s in rows])).all()]
        parts = {s.id: shift_net(ShiftRecord.from_model(s), bonuses, base) for s in rows}
    else:
        total = parse_amount(amount, "amount")
        parts = split_shortage(total, [s.id for s in rows])

    for s in rows:
        s.salary_paid = True
        s.salary_paid_amount = parts[s.id]
        s.salary_paid_at = now

    paid = sum(parts.values(), Decimal("0"))
    name = rows[0].employee.name if rows[0].employee else f"#{employee_id}"
    log_activity("Payroll", "salary_paid", f"{name}: ₱{paid} ({start.isoformat()}..{end.isoformat()})",
                 entity_id=employee_id)
    commit()
    return rows


def set_shift_paid(shift_id: int, paid: bool, amount=None, now: datetime | None = None) -> Shift:
    s = db.session.get(Shift, shift_id)
    if s is None:
        raise NotFoundError("Смена не найдена", shift_id=shift_id)
    if paid:
        if amount is None:
            bonuses = [BonusRecord.from_model(b) for b in s.bonuses]
            value = shift_net(ShiftRecord.from_model(s), bonuses, default_base_salary())
        else:
            value = parse_amount(amount, "amount")
        s.salary_paid = True
        s.salary_paid_amount = value
        s.salary_paid_at = clock.to_utc_naive(now or clock.utcnow())
        name = s.employee.name if s.employee else f"#{s.employee_id}"
        log_activity("Payroll", "salary_paid", f"{name}: ₱{value}", entity_id=s.employee_id)
    else:
        s.salary_paid = False
        s.salary_paid_amount = None
        s.salary_paid_at = None
        log_activity("Payroll", "salary_unpaid", f"shift {shift_id}", entity_id=s.employee_id)
    commit()
    return s


# ------------ investor contributions ------------------------------------------
def add_contribution(d: date, contribution_type: str, category: str, amount,
                     description: str | None = None) -> InvestorContribution:
    value = parse_amount(amount, "amount", allow_zero=False)
    if contribution_type not in CONTRIBUTION_TYPES:
        raise ValidationError("Тип вложения: returnable или non_returnable", field="contribution_type")
    if not category:
        raise ValidationError("Не указана категория", field="category")
    row = InvestorContribution(date=d, contribution_type=contribution_type, category=category,
                               amount=value, description=description or None)
    db.session.add(row)
    log_activity("System", "contribution_add", f"{contribution_type} {category}: ₱{value}")
    commit()
    return row


def list_contributions(start: date | None = None, end: date | None = None) -> list[InvestorContribution]:
    q = InvestorContribution.query
    if start:
        q = q.filter(InvestorContribution.date >= start)
    if end:
        q = q.filter(InvestorContribution.date <= end)
    return q.order_by(InvestorContribution.date.desc(), InvestorContribution.id.desc()).all()


def delete_contribution(contribution_id: int) -> None:
    row = db.session.get(InvestorContribution, contribution_id)
    if row is None:
        raise NotFoundError("Вложение не найдено", contribution_id=contribution_id)
    db.session.delete(row)
    log_activity("System", "contribution_delete", f"{row.category}: ₱{row.amount}")
    commit()


def contributions_summary(rows: Iterable) -> dict:
    totals = {t: Decimal("0") for t in CONTRIBUTION_TYPES}
    by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for r in rows:
        totals[r.contribution_type] = totals.get(r.contribution_type, Decimal("0")) + D(r.amount)
        by_category[r.category] += D(r.amount)
    return {
        "returnable": as_number(totals["returnable"]),
        "non_returnable": as_number(totals["non_returnable"]),
        "total": as_number(sum(totals.values(), Decimal("0"))),
        "by_category": {k: as_number(v) for k, v in sorted(by_category.items())},
    }


def contribution_to_dict(r: InvestorContribution) -> dict:
    return {
        "id": r.id,
        "date": r.date.isoformat(),
        "contribution_type": r.contribution_type,
        "category": r.category,
        "amount": as_number(r.amount),
        "description": r.description,
    }
