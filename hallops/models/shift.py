# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..money import D

SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"
SHIFT_ARCHIVED = "archived"

BONUS_TYPES = ("sold_goods", "vip_room", "hookah", "other")


class Shift(db.Model):
    __tablename__ = "shift"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=False, index=True)

    date = db.Column(db.Date, nullable=False, index=True)  # местная дата начала
    shift_type = db.Column(db.String(16), nullable=False, default="day")  # day|night
    shift_start = db.Column(db.DateTime, nullable=False)  # UTC
    shift_end = db.Column(db.DateTime)
    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN, index=True)  # open|closed|archived
    total_hours = db.Column(db.Numeric(6, 2), default=0)
    base_salary = db.Column(db.Numeric(12, 2))

    # сдача кассы
    cash_handed_over = db.Column(db.Numeric(12, 2))
    gcash_handed_over = db.Column(db.Numeric(12, 2))
    expected_cash = db.Column(db.Numeric(12, 2))
    cash_difference = db.Column(db.Numeric(12, 2))
    cash_date = db.Column(db.Date)  # дата кассы, к которой отнесена сдача
    cash_approved = db.Column(db.Boolean, default=False, nullable=False)
    cash_shortage = db.Column(db.Numeric(12, 2), default=0)

    # зарплата
    salary_paid = db.Column(db.Boolean, default=False, nullable=False)
    salary_paid_amount = db.Column(db.Numeric(12, 2))
    salary_paid_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    employee = db.relationship("Employee", back_populates="shifts", lazy="joined")
    bonuses = db.relationship("Bonus", back_populates="shift", lazy="select")

    # не больше одной открытой смены на сотрудника
    __table_args__ = (
        db.Index(
            "uq_shift_one_open", "employee_id", unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
    )

    @property
    def handed_total(self) -> Decimal:
        return D(self.cash_handed_over) + D(self.gcash_handed_over)


class Bonus(db.Model):
    __tablename__ = "bonus"

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shift.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    bonus_type = db.Column(db.String(16), nullable=False, default="other")  # sold_goods|vip_room|hookah|other
    quantity = db.Column(db.Integer, default=1)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    comment = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    shift = db.relationship("Shift", back_populates="bonuses")
