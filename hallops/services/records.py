# -*- coding: utf-8 -*-
"""
Типизированные записи для чистых расчётов.

Строки БД (ORM) переводятся в неизменяемые dataclass-записи здесь, на границе;
расчёты сверки и зарплаты работают только с ними и ничего не знают о сессии.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..money import D


def _opt(v) -> Optional[Decimal]:
    return None if v is None else D(v)


@dataclass(frozen=True)
class EmployeeRecord:
    id: int
    name: str
    position: str = "staff"
    active: bool = True

    @classmethod
    def from_model(cls, e) -> "EmployeeRecord":
        return cls(id=e.id, name=e.name or f"#{e.id}", position=e.position or "staff", active=bool(e.active))


@dataclass(frozen=True)
class ShiftRecord:
    id: int
    employee_id: int
    date: date
    shift_type: str = "day"
    status: str = "closed"
    employee_name: str = ""
    shift_start: Optional[datetime] = None
    shift_end: Optional[datetime] = None
    total_hours: Decimal = Decimal("0")
    base_salary: Optional[Decimal] = None
    cash_handed_over: Optional[Decimal] = None
    gcash_handed_over: Optional[Decimal] = None
    cash_date: Optional[date] = None
    cash_approved: bool = False
    cash_shortage: Decimal = Decimal("0")
    salary_paid: bool = False
    salary_paid_amount: Optional[Decimal] = None

    @property
    def group_date(self) -> date:
        """Дата кассы, к которой относится сдача (для ночных может быть следующий день)."""
        return self.cash_date or self.date

    @property
    def has_handover(self) -> bool:
        return self.cash_handed_over is not None or self.gcash_handed_over is not None

    @classmethod
    def from_model(cls, s) -> "ShiftRecord":
        emp = getattr(s, "employee", None)
        return cls(
            id=s.id,
            employee_id=s.employee_id,
            date=s.date,
            shift_type=s.shift_type or "day",
            status=s.status or "open",
            employee_name=(emp.name if emp is not None else "") or "Unknown",
            shift_start=s.shift_start,
            shift_end=s.shift_end,
            total_hours=D(s.total_hours),
            base_salary=_opt(s.base_salary),
            cash_handed_over=_opt(s.cash_handed_over),
            gcash_handed_over=_opt(s.gcash_handed_over),
            cash_date=s.cash_date,
            cash_approved=bool(s.cash_approved),
            cash_shortage=D(s.cash_shortage),
            salary_paid=bool(s.salary_paid),
            salary_paid_amount=_opt(s.salary_paid_amount),
        )


@dataclass(frozen=True)
class BonusRecord:
    id: int
    shift_id: int
    employee_id: int
    date: date
    amount: Decimal
    bonus_type: str = "other"
    quantity: int = 1

    @classmethod
    def from_model(cls, b) -> "BonusRecord":
        return cls(
            id=b.id, shift_id=b.shift_id, employee_id=b.employee_id, date=b.date,
            amount=D(b.amount), bonus_type=b.bonus_type or "other", quantity=int(b.quantity or 1),
        )


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    date: date
    shift: str
    category: str
    amount: Decimal
    payment_source: str = "cash"
    approved: bool = False
    description: Optional[str] = None
    cash_register_id: Optional[int] = None

    @classmethod
    def from_model(cls, e) -> "ExpenseRecord":
        return cls(
            id=e.id, date=e.date, shift=e.shift, category=e.category, amount=D(e.amount),
            payment_source=e.payment_source or "cash", approved=bool(e.approved),
            description=e.description, cash_register_id=e.cash_register_id,
        )


@dataclass(frozen=True)
class RegisterRecord:
    id: Optional[int]
    date: date
    shift: str
    cash_expected: Decimal = Decimal("0")
    gcash_expected: Decimal = Decimal("0")
    cash_actual: Decimal = Decimal("0")
    gcash_actual: Decimal = Decimal("0")
    opening_balance: Decimal = Decimal("0")
    purchases: Decimal = Decimal("0")
    salaries: Decimal = Decimal("0")
    other_expenses: Decimal = Decimal("0")
    reported_cash: Decimal = Decimal("0")
    reported_gcash: Decimal = Decimal("0")
    discrepancy: Optional[Decimal] = None

    @property
    def total_expenses(self) -> Decimal:
        return self.purchases + self.salaries + self.other_expenses

    @property
    def expected_net(self) -> Decimal:
        return self.opening_balance + self.cash_expected + self.gcash_expected - self.total_expenses

    @classmethod
    def from_model(cls, r) -> "RegisterRecord":
        return cls(
            id=r.id, date=r.date, shift=r.shift,
            cash_expected=D(r.cash_expected), gcash_expected=D(r.gcash_expected),
            cash_actual=D(r.cash_actual), gcash_actual=D(r.gcash_actual),
            opening_balance=D(r.opening_balance),
            purchases=D(r.purchases), salaries=D(r.salaries), other_expenses=D(r.other_expenses),
            reported_cash=D(r.reported_cash), reported_gcash=D(r.reported_gcash),
            discrepancy=_opt(r.discrepancy),
        )
