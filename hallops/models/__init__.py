from .user import User
from .employee import Employee
from .shift import Shift, Bonus
from .cash import CashRegisterRecord, CashExpense, InvestorContribution
from .activity import ActivityLog

__all__ = [
    "User", "Employee", "Shift", "Bonus",
    "CashRegisterRecord", "CashExpense", "InvestorContribution", "ActivityLog",
]
