# -*- coding: utf-8 -*-
"""
Расходы кассы.

Поле кассы (purchases / salaries / other_expenses) всегда равно сумме строк
cash_expense соответствующих категорий, поэтому каждое изменение строки
симметрично меняет агрегат: + при добавлении, − при удалении, перенос при
смене категории.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.cash import (
    EXPENSE_CATEGORIES, PAYMENT_SOURCES, CashExpense, CashRegisterRecord, register_field_for,
)
from ..money import D, as_number, parse_amount
from .activity import log_activity
from .shift_clock import SHIFT_TYPES
from .registers import commit, get_or_create_register

logger = logging.getLogger(__name__)


def _bump(register: CashRegisterRecord, category: str, delta) -> None:
    field = register_field_for(category)
    setattr(register, field, D(getattr(register, field)) + D(delta))


def _get_expense(expense_id: int) -> CashExpense:
    e = db.session.get(CashExpense, expense_id)
    if e is None:
        raise NotFoundError("Расход не найден", expense_id=expense_id)
    return e


def _check_category(category: str) -> str:
    if category not in EXPENSE_CATEGORIES:
        raise ValidationError("Неизвестная категория расхода", field="category")
    return category


def add_expense(d: date, shift: str, category: str, amount, payment_source: str = "cash",
                description: str | None = None, shift_id: int | None = None,
                approved: bool = False) -> CashExpense:
    value = parse_amount(amount, "amount", allow_zero=False)
    _check_category(category)
    if shift not in SHIFT_TYPES:
        raise ValidationError("Неизвестная смена", field="shift")
    if payment_source not in PAYMENT_SOURCES:
        raise ValidationError("Неизвестный источник оплаты", field="payment_source")

    register, _ = get_or_create_register(d, shift)
    expense = CashExpense(
        cash_register_id=register.id,
        shift_id=shift_id,
        date=d,
        shift=shift,
        category=category,
        amount=value,
        payment_source=payment_source,
        approved=approved,
        description=description or None,
    )
    db.session.add(expense)
    _bump(register, category, value)
    log_activity("Expense", "expense_add",
                 f"{category}: ₱{value}" + (f" - {description}" if description else ""))
    commit()
    return expense


def update_expense(expense_id: int, amount=None, category: str | None = None,
                   description: str | None = None) -> CashExpense:
    expense = _get_expense(expense_id)
    new_amount = parse_amount(amount, "amount", allow_zero=False) if amount is not None else D(expense.amount)
    new_category = _check_category(category) if category is not None else expense.category

    register = expense.register
    old_amount, old_category = D(expense.amount), expense.category
    if register is not None and (new_amount != old_amount or new_category != old_category):
        # снять со старого поля, положить в новое
        _bump(register, old_category, -old_amount)
        _bump(register, new_category, new_amount)

    expense.amount = new_amount
    expense.category = new_category
    if description is not None:
        expense.description = description or None
    log_activity("Expense", "expense_edit", f"{new_category}: ₱{new_amount}", entity_id=expense.id)
    commit()
    return expense


def delete_expense(expense_id: int, *, autocommit: bool = True) -> None:
    expense = _get_expense(expense_id)
    if expense.register is not None:
        _bump(expense.register, expense.category, -D(expense.amount))
    log_activity("Expense", "expense_delete", f"{expense.category}: ₱{expense.amount}", entity_id=expense.id)
    db.session.delete(expense)
    if autocommit:
        commit()


def list_expenses(start: date | None = None, end: date | None = None, category: str | None = None,
                  search: str | None = None, approved: bool | None = None) -> list[CashExpense]:
    q = CashExpense.query
    if start:
        q = q.filter(CashExpense.date >= start)
    if end:
        q = q.filter(CashExpense.date <= end)
    if category:
        q = q.filter(CashExpense.category == category)
    if approved is not None:
        q = q.filter(CashExpense.approved == approved)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(func.lower(CashExpense.description).like(like),
                            func.lower(CashExpense.category).like(like)))
    return q.order_by(CashExpense.created_at.desc(), CashExpense.id.desc()).all()


def expense_to_dict(e: CashExpense) -> dict:
    return {
        "id": e.id,
        "cash_register_id": e.cash_register_id,
        "shift_id": e.shift_id,
        "date": e.date.isoformat(),
        "shift": e.shift,
        "category": e.category,
        "amount": as_number(e.amount),
        "payment_source": e.payment_source,
        "approved": bool(e.approved),
        "description": e.description,
    }
