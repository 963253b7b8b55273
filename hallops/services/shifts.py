# -*- coding: utf-8 -*-
"""
Жизненный цикл смены: открытие, закрытие со сдачей кассы, бонусы.

Инвариант: у сотрудника не больше одной открытой смены.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, StateError, ValidationError
from ..extensions import db
from ..integrations import telegram
from ..models.employee import Employee
from ..models.shift import BONUS_TYPES, SHIFT_CLOSED, SHIFT_OPEN, Bonus, Shift
from ..money import D, as_number, parse_amount, round2
from . import shift_clock as clock
from .activity import log_activity
from .registers import commit, find_register, get_or_create_register, refresh_discrepancy

logger = logging.getLogger(__name__)


# ------------ helpers ---------------------------------------------------------
def get_shift(shift_id: int) -> Shift:
    s = db.session.get(Shift, shift_id)
    if s is None:
        raise NotFoundError("Смена не найдена", shift_id=shift_id)
    return s


def get_open_shift(employee_id: int) -> Shift | None:
    return Shift.query.filter_by(employee_id=employee_id, status=SHIFT_OPEN).first()


def list_open_shifts() -> list[Shift]:
    return Shift.query.filter_by(status=SHIFT_OPEN).order_by(Shift.shift_start.desc()).all()


def shift_to_dict(s: Shift, now: datetime | None = None) -> dict:
    data = {
        "id": s.id,
        "employee_id": s.employee_id,
        "employee_name": s.employee.name if s.employee else "Unknown",
        "date": s.date.isoformat(),
        "shift_type": s.shift_type,
        "status": s.status,
        "shift_start": s.shift_start.isoformat() if s.shift_start else None,
        "shift_end": s.shift_end.isoformat() if s.shift_end else None,
        "total_hours": as_number(s.total_hours),
        "base_salary": as_number(s.base_salary),
        "cash_handed_over": as_number(s.cash_handed_over),
        "gcash_handed_over": as_number(s.gcash_handed_over),
        "expected_cash": as_number(s.expected_cash),
        "cash_difference": as_number(s.cash_difference),
        "cash_date": s.cash_date.isoformat() if s.cash_date else None,
        "cash_approved": bool(s.cash_approved),
        "cash_shortage": as_number(s.cash_shortage),
        "salary_paid": bool(s.salary_paid),
        "salary_paid_amount": as_number(s.salary_paid_amount),
    }
    if s.status == SHIFT_OPEN and s.shift_start:
        data["elapsed"] = clock.format_elapsed(s.shift_start, now or clock.utcnow())
    return data


# ------------ start -----------------------------------------------------------
def start_shift(employee_id: int, now: datetime | None = None) -> Shift:
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Сотрудник не найден", employee_id=employee_id)
    if not emp.active:
        raise StateError("Сотрудник деактивирован", employee_id=employee_id)

    existing = get_open_shift(employee_id)
    if existing is not None:
        raise ConflictError("У сотрудника уже есть открытая смена", shift_id=existing.id)

    now = clock.to_utc_naive(now or clock.utcnow())
    tz = clock.hall_tz()
    day_start, night_start = clock.boundaries()
    shift = Shift(
        employee_id=employee_id,
        date=clock.local_date(now, tz),
        shift_type=clock.resolve_shift_type(now, tz, day_start, night_start),
        shift_start=now,
        status=SHIFT_OPEN,
        total_hours=0,
        base_salary=current_app.config.get("DEFAULT_BASE_SALARY", 500),
        cash_approved=False,
        cash_shortage=0,
        salary_paid=False,
    )
    db.session.add(shift)
    log_activity("Shift", "shift_start", f"{emp.name} - {shift.shift_type}", entity_id=employee_id)
    try:
        commit()
    except IntegrityError:
        raise ConflictError("У сотрудника уже есть открытая смена")

    telegram.notify("shift_start", {
        "employeeName": emp.name,
        "time": clock.to_local(now, tz).strftime("%H:%M"),
        "shiftType": shift.shift_type,
    })
    return shift


# ------------ handover --------------------------------------------------------
def book_handover(shift: Shift, cash: Decimal, gcash: Decimal) -> tuple[Decimal, Decimal]:
    """Записать сдачу в смену и добавить её к отчёту кассы (дата кассы, тип)."""
    register, _ = get_or_create_register(shift.cash_date or shift.date, shift.shift_type)
    # новая касса: «данных ещё нет», все поля нулевые, ожидание равно нулю
    expected = register.expected_net
    discrepancy = round2(cash + gcash - expected)

    shift.cash_handed_over = cash
    shift.gcash_handed_over = gcash
    shift.expected_cash = round2(expected)
    shift.cash_difference = discrepancy

    register.reported_cash = D(register.reported_cash) + cash
    register.reported_gcash = D(register.reported_gcash) + gcash
    refresh_discrepancy(register)
    return expected, discrepancy


def unbook_handover(shift: Shift) -> None:
    """Вычесть сдачу смены из отчёта кассы; поля самой смены не меняются."""
    if shift.cash_handed_over is None and shift.gcash_handed_over is None:
        return
    register = find_register(shift.cash_date or shift.date, shift.shift_type)
    if register is None:
        return
    register.reported_cash = D(register.reported_cash) - D(shift.cash_handed_over)
    register.reported_gcash = D(register.reported_gcash) - D(shift.gcash_handed_over)
    refresh_discrepancy(register)


def resubmit_handover(shift_id: int, cash_amount, gcash_amount=0) -> Shift:
    """Повторная сдача после отклонения: только закрытая, неподтверждённая смена без сдачи."""
    cash = parse_amount(cash_amount, "cash")
    gcash = parse_amount(gcash_amount if gcash_amount is not None else 0, "gcash")

    shift = get_shift(shift_id)
    if shift.status != SHIFT_CLOSED:
        raise StateError("Сдать кассу можно только по закрытой смене", shift_id=shift_id)
    if shift.cash_approved:
        raise StateError("Сдача уже подтверждена", shift_id=shift_id)
    if shift.cash_handed_over is not None or shift.gcash_handed_over is not None:
        raise StateError("Сдача уже принята, сначала отклоните её", shift_id=shift_id)

    expected, discrepancy = book_handover(shift, cash, gcash)
    emp_name = shift.employee.name if shift.employee else f"#{shift.employee_id}"
    log_activity("Cash", "cash_resubmit", f"{emp_name}: ₱{cash} + G₱{gcash}", entity_id=shift.id)
    commit()

    telegram.notify("shift_end", {
        "employeeName": emp_name,
        "totalHours": f"{float(D(shift.total_hours)):.1f}",
        "cashHandedOver": cash,
        "gcashHandedOver": gcash,
        "expectedCash": expected,
        "difference": discrepancy,
    })
    return shift


# ------------ end -------------------------------------------------------------
def end_shift(shift_id: int, cash_amount, gcash_amount=0, now: datetime | None = None) -> Shift:
    cash = parse_amount(cash_amount, "cash")
    gcash = parse_amount(gcash_amount if gcash_amount is not None else 0, "gcash")

    shift = get_shift(shift_id)
    if shift.status != SHIFT_OPEN:
        raise StateError("Смена уже закрыта", shift_id=shift_id)

    now = clock.to_utc_naive(now or clock.utcnow())
    tz = clock.hall_tz()
    day_start, night_start = clock.boundaries()

    hours = clock.compute_hours(shift.shift_start, now)
    # тип по времени начала, смена может пересечь границу
    shift_type = clock.resolve_shift_type(shift.shift_start, tz, day_start, night_start)
    cash_date = clock.resolve_cash_date(shift.shift_start, tz, day_start, night_start)

    shift.shift_end = now
    shift.total_hours = hours
    shift.shift_type = shift_type
    shift.cash_date = cash_date
    shift.status = SHIFT_CLOSED
    expected, discrepancy = book_handover(shift, cash, gcash)

    emp_name = shift.employee.name if shift.employee else f"#{shift.employee_id}"
    log_activity("Shift", "shift_end", emp_name, entity_id=shift.id)
    log_activity("Shift", "shift_close", f"{shift_type} | ₱{cash} + G₱{gcash}", entity_id=shift.id)
    commit()

    bonuses_total = sum((D(b.amount) for b in shift.bonuses), Decimal("0"))
    telegram.notify("shift_end", {
        "employeeName": emp_name,
        "totalHours": f"{float(hours):.1f}",
        "cashHandedOver": cash,
        "gcashHandedOver": gcash,
        "expectedCash": expected,
        "difference": discrepancy,
        "bonuses": bonuses_total,
        "baseSalary": D(shift.base_salary),
    })
    if discrepancy != 0:
        logger.info("смена %s закрыта с расхождением %s", shift.id, discrepancy)
    return shift


# ------------ bonuses ---------------------------------------------------------
def _bonus_window_open(shift: Shift, now: datetime) -> bool:
    if shift.status == SHIFT_OPEN:
        return True
    if shift.status != SHIFT_CLOSED or shift.shift_end is None:
        return False
    grace = timedelta(minutes=int(current_app.config.get("BONUS_GRACE_MINUTES", 60)))
    return now <= shift.shift_end + grace


def add_bonus(shift_id: int, bonus_type: str, amount, quantity=1, comment: str | None = None,
              now: datetime | None = None) -> Bonus:
    if bonus_type not in BONUS_TYPES:
        raise ValidationError("Неизвестный тип бонуса", field="bonus_type")
    value = parse_amount(amount, "amount", allow_zero=False)
    try:
        qty = int(quantity or 1)
    except (TypeError, ValueError):
        raise ValidationError("Некорректное количество", field="quantity")
    if qty <= 0:
        raise ValidationError("Некорректное количество", field="quantity")

    shift = get_shift(shift_id)
    now = clock.to_utc_naive(now or clock.utcnow())
    if shift.salary_paid:
        raise StateError("Зарплата за смену уже выплачена", shift_id=shift_id)
    if not _bonus_window_open(shift, now):
        raise StateError("Бонус можно добавить только к открытой или только что закрытой смене",
                         shift_id=shift_id)

    bonus = Bonus(
        shift_id=shift.id,
        employee_id=shift.employee_id,
        date=clock.local_date(now, clock.hall_tz()),
        bonus_type=bonus_type,
        quantity=qty,
        amount=value,
        comment=(comment or None),
    )
    db.session.add(bonus)
    emp_name = shift.employee.name if shift.employee else f"#{shift.employee_id}"
    log_activity("Payroll", "bonus_add", f"{emp_name}: {bonus_type} ₱{value}", entity_id=shift.id)
    commit()

    telegram.notify("bonus_add", {
        "employeeName": emp_name,
        "bonusType": bonus_type,
        "quantity": qty,
        "amount": value,
    })
    return bonus


def delete_bonus(bonus_id: int) -> None:
    bonus = db.session.get(Bonus, bonus_id)
    if bonus is None:
        raise NotFoundError("Бонус не найден", bonus_id=bonus_id)
    if bonus.shift is not None and bonus.shift.salary_paid:
        raise StateError("Зарплата за смену уже выплачена", shift_id=bonus.shift_id)
    db.session.delete(bonus)
    log_activity("Payroll", "bonus_delete", f"{bonus.bonus_type} ₱{bonus.amount}", entity_id=bonus.shift_id)
    commit()


def bonuses_for_shift(shift_id: int) -> list[Bonus]:
    return Bonus.query.filter_by(shift_id=shift_id).order_by(Bonus.id.asc()).all()
