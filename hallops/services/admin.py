# -*- coding: utf-8 -*-
"""
Административные операции: сброс периода, правка смены, сотрудники.

PIN здесь только подтверждение опасного действия в интерфейсе; право на
действие даёт роль admin у вошедшего пользователя.
"""
from __future__ import annotations

import hmac
import logging
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, SettlementError, StateError, ValidationError
from ..extensions import db
from ..models.cash import CashExpense
from ..models.employee import Employee
from ..models.shift import SHIFT_ARCHIVED, SHIFT_CLOSED, SHIFT_OPEN, Bonus, Shift
from ..money import parse_amount
from . import shift_clock as clock
from .activity import log_activity
from .registers import commit
from .shifts import unbook_handover

logger = logging.getLogger(__name__)


def verify_pin(pin) -> bool:
    expected = str(current_app.config.get("ADMIN_PIN", ""))
    if not expected or pin is None:
        return False
    return hmac.compare_digest(str(pin).strip(), expected)


# ------------ reset -----------------------------------------------------------
def reset_period(start: date, end: date, hard_delete: bool = False) -> dict:
    """Сброс смен за период одной транзакцией.

    Расходы отвязываются от смен (остаются в кассе), бонусы удаляются,
    смены архивируются или, с hard_delete, удаляются.
    Сдачи смен вычитаются из отчёта касс, повторный сброс их не трогает.
    """
    if end < start:
        raise ValidationError("Конец периода раньше начала")

    shifts = Shift.query.filter(Shift.date >= start, Shift.date <= end).all()
    ids = [s.id for s in shifts]
    result = {"shifts": len(ids), "bonuses": 0, "expenses_detached": 0, "hard_delete": bool(hard_delete)}
    if not ids:
        return result

    try:
        for s in shifts:
            if s.status != SHIFT_ARCHIVED:
                unbook_handover(s)
        result["expenses_detached"] = (
            CashExpense.query.filter(CashExpense.shift_id.in_(ids))
            .update({CashExpense.shift_id: None}, synchronize_session=False)
        )
        result["bonuses"] = (
            Bonus.query.filter(Bonus.shift_id.in_(ids)).delete(synchronize_session=False)
        )
        if hard_delete:
            Shift.query.filter(Shift.id.in_(ids)).delete(synchronize_session=False)
        else:
            Shift.query.filter(Shift.id.in_(ids)).update({Shift.status: SHIFT_ARCHIVED},
                                                         synchronize_session=False)
        log_activity("System", "reset_period",
                     f"{start.isoformat()}..{end.isoformat()}: {len(ids)} shifts"
                     + (" (deleted)" if hard_delete else " (archived)"))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("сброс %s..%s не прошёл: %s", start, end, e)
        raise SettlementError("Сброс не выполнен, данные не изменены")

    db.session.expire_all()
    logger.info("сброс %s..%s: %s", start, end, result)
    return result


# ------------ shift edit ------------------------------------------------------
def edit_shift(shift_id: int, start: datetime | None = None, base_salary=None) -> Shift:
    s = db.session.get(Shift, shift_id)
    if s is None:
        raise NotFoundError("Смена не найдена", shift_id=shift_id)
    if s.status == SHIFT_ARCHIVED:
        raise StateError("Смена в архиве", shift_id=shift_id)

    salary = parse_amount(base_salary, "base_salary") if base_salary is not None else None

    if start is not None:
        start = clock.to_utc_naive(start)
        if s.shift_end is not None and s.shift_end <= start:
            raise ValidationError("Конец смены должен быть позже начала", field="shift_start")
        tz = clock.hall_tz()
        day_start, night_start = clock.boundaries()
        s.shift_start = start
        s.date = clock.local_date(start, tz)
        s.shift_type = clock.resolve_shift_type(start, tz, day_start, night_start)
        if s.status == SHIFT_CLOSED:
            s.total_hours = clock.compute_hours(start, s.shift_end)
            s.cash_date = clock.resolve_cash_date(start, tz, day_start, night_start)

    if salary is not None:
        s.base_salary = salary

    log_activity("System", "shift_edit", f"shift {shift_id}", entity_id=shift_id)
    commit()
    return s


# ------------ employees -------------------------------------------------------
def _get_employee(employee_id: int) -> Employee:
    e = db.session.get(Employee, employee_id)
    if e is None:
        raise NotFoundError("Сотрудник не найден", employee_id=employee_id)
    return e


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Не указано имя", field="name")
    return name


def list_employees(include_inactive: bool = False) -> list[Employee]:
    q = Employee.query
    if not include_inactive:
        q = q.filter(Employee.active.is_(True))
    return q.order_by(Employee.name.asc()).all()


def create_employee(name: str, position: str = "staff") -> Employee:
    e = Employee(name=_clean_name(name), position=(position or "staff").strip(), active=True)
    db.session.add(e)
    log_activity("System", "employee_add", e.name)
    commit()
    return e


def update_employee(employee_id: int, name: str | None = None, position: str | None = None,
                    active: bool | None = None) -> Employee:
    e = _get_employee(employee_id)
    if name is not None:
        e.name = _clean_name(name)
    if position is not None:
        e.position = position.strip() or "staff"
    if active is not None:
        e.active = bool(active)
    log_activity("System", "employee_edit", e.name, entity_id=e.id)
    commit()
    return e


def deactivate_employee(employee_id: int) -> Employee:
    """Мягкое удаление: история смен остаётся за сотрудником."""
    e = _get_employee(employee_id)
    if Shift.query.filter_by(employee_id=e.id, status=SHIFT_OPEN).first() is not None:
        raise StateError("У сотрудника открыта смена", employee_id=employee_id)
    e.active = False
    log_activity("System", "employee_deactivate", e.name, entity_id=e.id)
    commit()
    return e


def employee_to_dict(e: Employee) -> dict:
    return {"id": e.id, "name": e.name, "position": e.position, "active": bool(e.active)}
