# -*- coding: utf-8 -*-
"""
Сверка кассы.

Закрытые, но не подтверждённые сдачи смен группируются по (дата, смена),
сравниваются с ожиданием по POS и подтверждаются или отклоняются целиком.

Расчёт (compute_pending_verifications и соседи): чистые функции над
записями из records.py; операции approve/reject работают с БД.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, SettlementError, StateError, ValidationError
from ..extensions import db
from ..integrations import telegram
from ..models.cash import CashExpense, CashRegisterRecord
from ..models.shift import SHIFT_CLOSED, Shift
from ..money import D, as_number, parse_amount, whole_floor
from .activity import log_activity
from .expenses import delete_expense
from .records import ExpenseRecord, RegisterRecord, ShiftRecord
from .registers import commit, get_or_create_register
from .shift_clock import DAY, NIGHT
from .shifts import unbook_handover

logger = logging.getLogger(__name__)

SURPLUS = "surplus"
SHORTAGE = "shortage"
MATCH = "match"

_SHIFT_ORDER = {DAY: 0, NIGHT: 1}


@dataclass
class PendingVerification:
    date: date
    shift: str
    cash_expected: Decimal = Decimal("0")
    gcash_expected: Decimal = Decimal("0")
    cash_submitted: Decimal = Decimal("0")
    gcash_submitted: Decimal = Decimal("0")
    expenses_cash: Decimal = Decimal("0")
    expenses_gcash: Decimal = Decimal("0")
    shifts: list = field(default_factory=list)
    expenses: list = field(default_factory=list)
    register_id: Optional[int] = None

    @property
    def key(self) -> tuple[date, str]:
        return self.date, self.shift

    @property
    def total_expected(self) -> Decimal:
        return self.cash_expected + self.gcash_expected

    @property
    def total_submitted(self) -> Decimal:
        return self.cash_submitted + self.gcash_submitted

    @property
    def difference(self) -> Decimal:
        return self.total_submitted - self.total_expected

    @property
    def status(self) -> str:
        return classify(self.difference)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "shift": self.shift,
            "register_id": self.register_id,
            "cash_expected": as_number(self.cash_expected),
            "gcash_expected": as_number(self.gcash_expected),
            "cash_submitted": as_number(self.cash_submitted),
            "gcash_submitted": as_number(self.gcash_submitted),
            "expenses_cash": as_number(self.expenses_cash),
            "expenses_gcash": as_number(self.expenses_gcash),
            "total_expected": as_number(self.total_expected),
            "total_submitted": as_number(self.total_submitted),
            "difference": as_number(self.difference),
            "status": self.status,
            "shifts": [
                {
                    "id": s.id,
                    "employee_id": s.employee_id,
                    "employee_name": s.employee_name,
                    "cash_handed_over": as_number(s.cash_handed_over),
                    "gcash_handed_over": as_number(s.gcash_handed_over),
                }
                for s in self.shifts
            ],
            "expenses": [
                {
                    "id": e.id,
                    "category": e.category,
                    "amount": as_number(e.amount),
                    "payment_source": e.payment_source,
                    "description": e.description,
                }
                for e in self.expenses
            ],
        }


@dataclass
class ApprovedGroup:
    date: date
    shift: str
    employees: list = field(default_factory=list)
    cash_expected: Decimal = Decimal("0")
    gcash_expected: Decimal = Decimal("0")
    cash_submitted: Decimal = Decimal("0")
    gcash_submitted: Decimal = Decimal("0")
    cash_actual: Decimal = Decimal("0")
    gcash_actual: Decimal = Decimal("0")
    shortage: Decimal = Decimal("0")

    @property
    def difference(self) -> Decimal:
        """Фактически в хранилище минус сдано."""
        return (self.cash_actual + self.gcash_actual) - (self.cash_submitted + self.gcash_submitted)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "shift": self.shift,
            "employees": list(self.employees),
            "cash_expected": as_number(self.cash_expected),
            "gcash_expected": as_number(self.gcash_expected),
            "cash_submitted": as_number(self.cash_submitted),
            "gcash_submitted": as_number(self.gcash_submitted),
            "cash_actual": as_number(self.cash_actual),
            "gcash_actual": as_number(self.gcash_actual),
            "difference": as_number(self.difference),
            "shortage": as_number(self.shortage),
        }


# ------------ pure ------------------------------------------------------------
def classify(difference) -> str:
    d = D(difference)
    if d > 0:
        return SURPLUS
    if d < 0:
        return SHORTAGE
    return MATCH


def _sort_key(key: tuple[date, str]):
    d, shift = key
    return (-d.toordinal(), _SHIFT_ORDER.get(shift, 2), shift)


def compute_pending_verifications(
    shifts: Iterable[ShiftRecord],
    expenses: Iterable[ExpenseRecord],
    registers: Iterable[RegisterRecord],
) -> list[PendingVerification]:
    """Группы на подтверждение; результат зависит только от входа."""
    regs = {(r.date, r.shift): r for r in registers}
    expenses = list(expenses)
    groups: dict[tuple[date, str], PendingVerification] = {}

    for s in sorted(shifts, key=lambda x: x.id):
        if s.status != SHIFT_CLOSED or s.cash_approved or not s.has_handover:
            continue
        key = (s.group_date, s.shift_type)
        g = groups.get(key)
        if g is None:
            reg = regs.get(key)
            g = PendingVerification(
                date=key[0],
                shift=key[1],
                cash_expected=reg.cash_expected if reg else Decimal("0"),
                gcash_expected=reg.gcash_expected if reg else Decimal("0"),
                register_id=reg.id if reg else None,
            )
            groups[key] = g
        g.shifts.append(s)
        g.cash_submitted += D(s.cash_handed_over)
        g.gcash_submitted += D(s.gcash_handed_over)

    for key, g in groups.items():
        g.expenses = sorted((e for e in expenses if (e.date, e.shift) == key), key=lambda e: e.id)
        g.expenses_cash = sum((e.amount for e in g.expenses if e.payment_source == "cash"), Decimal("0"))
        g.expenses_gcash = sum((e.amount for e in g.expenses if e.payment_source == "gcash"), Decimal("0"))

    return [groups[k] for k in sorted(groups, key=_sort_key)]


def split_shortage(amount, shift_ids: list[int]) -> dict[int, Decimal]:
    """Поровну целыми единицами (вниз); остаток первой смене.

    Сумма долей всегда равна amount, ни одна доля не отрицательна.
    """
    if not shift_ids:
        return {}
    total = abs(D(amount))
    per = whole_floor(total / len(shift_ids))
    parts = {sid: per for sid in shift_ids}
    parts[shift_ids[0]] += total - per * len(shift_ids)
    return parts


def detect_miscategorization(v: PendingVerification, threshold=50) -> tuple[bool, str]:
    """Пересортица: по наличным плюс, по GCash минус (или наоборот) сверх порога."""
    t = D(threshold)
    cash_diff = v.cash_submitted - v.cash_expected
    gcash_diff = v.gcash_submitted - v.gcash_expected
    if (cash_diff > t and gcash_diff < -t) or (cash_diff < -t and gcash_diff > t):
        swap = min(abs(cash_diff), abs(gcash_diff))
        if cash_diff > 0:
            return True, f"~₱{swap} may have been recorded as GCash in POS but was actually Cash"
        return True, f"~₱{swap} may have been recorded as Cash in POS but was actually GCash"
    return False, ""


def approved_history(shifts: Iterable[ShiftRecord], registers: Iterable[RegisterRecord],
                     limit: int = 30) -> list[ApprovedGroup]:
    regs = {(r.date, r.shift): r for r in registers}
    hist: dict[tuple[date, str], ApprovedGroup] = {}
    for s in sorted(shifts, key=lambda x: x.id):
        if not s.cash_approved:
            continue
        key = (s.group_date, s.shift_type)
        h = hist.get(key)
        if h is None:
            reg = regs.get(key)
            h = ApprovedGroup(date=key[0], shift=key[1])
            if reg is not None:
                h.cash_expected, h.gcash_expected = reg.cash_expected, reg.gcash_expected
                h.cash_actual, h.gcash_actual = reg.cash_actual, reg.gcash_actual
            hist[key] = h
        if s.employee_name and s.employee_name not in h.employees:
            h.employees.append(s.employee_name)
        h.cash_submitted += D(s.cash_handed_over)
        h.gcash_submitted += D(s.gcash_handed_over)
        h.shortage += D(s.cash_shortage)
    return [hist[k] for k in sorted(hist, key=_sort_key)][:limit]


# ------------ loading ---------------------------------------------------------
def _load_pending_inputs():
    shifts = (
        Shift.query.filter(Shift.status == SHIFT_CLOSED, Shift.cash_approved.is_(False))
        .order_by(Shift.id.asc())
        .all()
    )
    expenses = CashExpense.query.filter(CashExpense.approved.is_(False)).order_by(CashExpense.id.asc()).all()
    keys = {(s.cash_date or s.date) for s in shifts}
    registers = CashRegisterRecord.query.filter(CashRegisterRecord.date.in_(keys)).all() if keys else []
    return (
        [ShiftRecord.from_model(s) for s in shifts],
        [ExpenseRecord.from_model(e) for e in expenses],
        [RegisterRecord.from_model(r) for r in registers],
    )


def pending_verifications() -> list[PendingVerification]:
    return compute_pending_verifications(*_load_pending_inputs())


def find_pending_group(d: date, shift: str) -> PendingVerification:
    for g in pending_verifications():
        if g.key == (d, shift):
            return g
    raise NotFoundError("Нет сдач на подтверждение за эту смену", date=d.isoformat(), shift=shift)


def recent_history(limit: int = 30) -> list[ApprovedGroup]:
    shifts = Shift.query.filter(Shift.cash_approved.is_(True)).order_by(Shift.id.asc()).all()
    keys = {(s.cash_date or s.date) for s in shifts}
    registers = CashRegisterRecord.query.filter(CashRegisterRecord.date.in_(keys)).all() if keys else []
    return approved_history(
        [ShiftRecord.from_model(s) for s in shifts],
        [RegisterRecord.from_model(r) for r in registers],
        limit=limit,
    )


def miscategorization_threshold() -> Decimal:
    return D(current_app.config.get("MISCATEGORIZATION_THRESHOLD", 50))


# ------------ actions ---------------------------------------------------------
def _shortage_parts(group: PendingVerification, inputs: Mapping | None) -> dict[int, Decimal]:
    ids = [s.id for s in group.shifts]
    if not inputs:
        return split_shortage(group.difference, ids)
    parts = {}
    for sid in ids:
        raw = inputs.get(sid, inputs.get(str(sid), 0))
        parts[sid] = parse_amount(raw, f"shortage[{sid}]")
    return parts


def approve_group(d: date, shift: str, shortage_inputs: Mapping | None = None,
                  add_surplus_to_storage: bool = False) -> PendingVerification:
    """Подтверждение группы одной транзакцией.

    Либо все смены, расходы и касса обновлены, либо ничего: при ошибке
    сессия откатывается и поднимается SettlementError, повторить целиком.
    """
    group = find_pending_group(d, shift)
    status = group.status
    parts = _shortage_parts(group, shortage_inputs) if status == SHORTAGE else {}

    try:
        for rec in group.shifts:
            row = db.session.get(Shift, rec.id)
            row.cash_approved = True
            row.cash_shortage = parts.get(rec.id, Decimal("0"))

        for rec in group.expenses:
            db.session.get(CashExpense, rec.id).approved = True

        if status == SURPLUS and add_surplus_to_storage:
            reg, _ = get_or_create_register(group.date, group.shift)
            reg.cash_actual = D(reg.cash_actual) + group.cash_submitted
            reg.gcash_actual = D(reg.gcash_actual) + group.gcash_submitted
            log_activity("Cash", "cash_received",
                         f"{group.date.isoformat()} {group.shift}: ₱{group.cash_submitted} + G₱{group.gcash_submitted}",
                         entity_id=reg.id)

        if group.expenses:
            log_activity("Expense", "expense_approve", f"{len(group.expenses)} items")
        log_activity("Cash", "cash_approve", f"{group.date.isoformat()} {group.shift}")
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("подтверждение %s %s не прошло: %s", group.date, group.shift, e)
        raise SettlementError("Подтверждение не сохранено, повторите для всей смены",
                              date=group.date.isoformat(), shift=group.shift)

    telegram.notify("cash_approved", {
        "date": group.date.isoformat(),
        "shift": group.shift,
        "submitted": group.total_submitted,
        "expected": group.total_expected,
    })
    return group


def reject_shift(shift_id: int) -> Shift:
    """Сдача отклонена: сотрудник сдаёт заново; смена не удаляется."""
    s = db.session.get(Shift, shift_id)
    if s is None:
        raise NotFoundError("Смена не найдена", shift_id=shift_id)
    if s.status != SHIFT_CLOSED:
        raise StateError("Отклонить можно только сдачу закрытой смены", shift_id=shift_id)
    if s.cash_approved:
        raise ValidationError("Сдача уже подтверждена", shift_id=shift_id)
    unbook_handover(s)
    s.cash_handed_over = None
    s.gcash_handed_over = None
    s.cash_difference = None
    log_activity("Cash", "cash_reject", f"shift {shift_id}", entity_id=shift_id)
    commit()
    return s


def approve_expense(expense_id: int) -> CashExpense:
    e = db.session.get(CashExpense, expense_id)
    if e is None:
        raise NotFoundError("Расход не найден", expense_id=expense_id)
    e.approved = True
    log_activity("Expense", "expense_approve", "1 items", entity_id=expense_id)
    commit()
    return e


def reject_expense(expense_id: int) -> None:
    """Отклонённый расход удаляется вместе со своей долей в агрегате кассы."""
    delete_expense(expense_id)
