# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from ..money import D

# категория расхода -> поле кассы; всё, чего нет в таблице, идёт в other_expenses
EXPENSE_FIELDS = {
    "purchases": "purchases",
    "salaries": "salaries",
}
EXPENSE_FIELD_DEFAULT = "other_expenses"
EXPENSE_CATEGORIES = (
    "purchases", "salaries", "other", "employee_food",
    "food_hunters", "advance", "equipment", "inventory",
)
PAYMENT_SOURCES = ("cash", "gcash")


def register_field_for(category: str) -> str:
    return EXPENSE_FIELDS.get(category, EXPENSE_FIELD_DEFAULT)


class CashRegisterRecord(db.Model):
    __tablename__ = "cash_register"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    shift = db.Column(db.String(16), nullable=False, default="day")  # day|night

    opening_balance = db.Column(db.Numeric(12, 2), default=0)

    # ожидание по POS
    cash_expected = db.Column(db.Numeric(12, 2), default=0)
    gcash_expected = db.Column(db.Numeric(12, 2), default=0)

    # расходы по категориям (сумма строк cash_expense)
    purchases = db.Column(db.Numeric(12, 2), default=0)
    salaries = db.Column(db.Numeric(12, 2), default=0)
    other_expenses = db.Column(db.Numeric(12, 2), default=0)

    # сдано сотрудниками при закрытии смен
    reported_cash = db.Column(db.Numeric(12, 2), default=0)
    reported_gcash = db.Column(db.Numeric(12, 2), default=0)
    discrepancy = db.Column(db.Numeric(12, 2))

    # подтверждено администратором и положено в хранилище
    cash_actual = db.Column(db.Numeric(12, 2), default=0)
    gcash_actual = db.Column(db.Numeric(12, 2), default=0)

    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    expenses = db.relationship("CashExpense", back_populates="register", lazy="select")

    __table_args__ = (db.UniqueConstraint("date", "shift", name="uq_cash_register_date_shift"),)

    # --- вычисляемые поля ---

    @hybrid_property
    def total_expenses(self) -> Decimal:
        return D(self.purchases) + D(self.salaries) + D(self.other_expenses)

    @total_expenses.expression
    def total_expenses(cls):
        return (func.coalesce(cls.purchases, 0) + func.coalesce(cls.salaries, 0)
                + func.coalesce(cls.other_expenses, 0))

    @property
    def expected_total(self) -> Decimal:
        """Ожидание POS = наличные + GCash"""
        return D(self.cash_expected) + D(self.gcash_expected)

    @property
    def expected_net(self) -> Decimal:
        """Сколько должно быть сдано: остаток + продажи − расходы"""
        return D(self.opening_balance) + self.expected_total - self.total_expenses


class CashExpense(db.Model):
    __tablename__ = "cash_expense"

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_register.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shift.id"), nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    shift = db.Column(db.String(16), nullable=False, default="day")
    category = db.Column(db.String(32), nullable=False, default="other")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_source = db.Column(db.String(8), nullable=False, default="cash")  # cash|gcash
    approved = db.Column(db.Boolean, default=False, nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    register = db.relationship("CashRegisterRecord", back_populates="expenses")


class InvestorContribution(db.Model):
    __tablename__ = "investor_contribution"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    contribution_type = db.Column(db.String(16), nullable=False, default="returnable")  # returnable|non_returnable
    category = db.Column(db.String(32), nullable=False, default="purchases")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
