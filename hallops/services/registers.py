# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.cash import CashRegisterRecord
from ..money import D, as_number, parse_amount, round2
from .activity import log_activity
from .shift_clock import SHIFT_TYPES


def commit() -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def find_register(d: date, shift: str) -> CashRegisterRecord | None:
    return CashRegisterRecord.query.filter_by(date=d, shift=shift).first()


def get_or_create_register(d: date, shift: str) -> tuple[CashRegisterRecord, bool]:
    """Касса за (дата, смена); создаётся лениво при первой записи."""
    reg = find_register(d, shift)
    if reg is not None:
        return reg, False
    reg = CashRegisterRecord(
        date=d, shift=shift,
        opening_balance=0, cash_expected=0, gcash_expected=0,
        purchases=0, salaries=0, other_expenses=0,
        reported_cash=0, reported_gcash=0, cash_actual=0, gcash_actual=0,
    )
    db.session.add(reg)
    db.session.flush()
    return reg, True


def refresh_discrepancy(reg: CashRegisterRecord) -> None:
    """Сдано по сменам минус ожидание кассы."""
    reg.discrepancy = round2(D(reg.reported_cash) + D(reg.reported_gcash) - reg.expected_net)


def list_registers(start: date | None = None, end: date | None = None) -> list[CashRegisterRecord]:
    q = CashRegisterRecord.query
    if start:
        q = q.filter(CashRegisterRecord.date >= start)
    if end:
        q = q.filter(CashRegisterRecord.date <= end)
    return q.order_by(CashRegisterRecord.date.asc(), CashRegisterRecord.shift.asc()).all()


def update_register(d: date, shift: str, opening_balance=None, cash_expected=None,
                    gcash_expected=None, notes: str | None = None) -> CashRegisterRecord:
    """Ручная правка кассы: остаток на начало, ожидание POS, заметки."""
    if shift not in SHIFT_TYPES:
        raise ValidationError("Неизвестная смена", field="shift")
    upd = {}
    if opening_balance is not None:
        upd["opening_balance"] = parse_amount(opening_balance, "opening_balance")
    if cash_expected is not None:
        upd["cash_expected"] = parse_amount(cash_expected, "cash_expected")
    if gcash_expected is not None:
        upd["gcash_expected"] = parse_amount(gcash_expected, "gcash_expected")

    reg, _ = get_or_create_register(d, shift)
    for k, v in upd.items():
        setattr(reg, k, v)
    if notes is not None:
        reg.notes = notes
    log_activity("Cash", "cash_edit", f"{d.isoformat()} {shift}", entity_id=reg.id)
    commit()
    return reg


def get_register(register_id: int) -> CashRegisterRecord:
    reg = db.session.get(CashRegisterRecord, register_id)
    if reg is None:
        raise NotFoundError("Касса не найдена", register_id=register_id)
    return reg


def register_to_dict(r: CashRegisterRecord) -> dict:
    return {
        "id": r.id,
        "date": r.date.isoformat(),
        "shift": r.shift,
        "opening_balance": as_number(r.opening_balance),
        "cash_expected": as_number(r.cash_expected),
        "gcash_expected": as_number(r.gcash_expected),
        "purchases": as_number(r.purchases),
        "salaries": as_number(r.salaries),
        "other_expenses": as_number(r.other_expenses),
        "total_expenses": as_number(r.total_expenses),
        "expected_net": as_number(r.expected_net),
        "reported_cash": as_number(r.reported_cash),
        "reported_gcash": as_number(r.reported_gcash),
        "discrepancy": as_number(r.discrepancy),
        "cash_actual": as_number(r.cash_actual),
        "gcash_actual": as_number(r.gcash_actual),
        "notes": r.notes,
    }
