from datetime import datetime
from ..extensions import db

class ActivityLog(db.Model):
    __tablename__ = "activity_log"

    id = db.Column(db.Integer, primary_key=True)
    module = db.Column(db.String(32), nullable=False, index=True)  # Shift|Expense|Cash|Payroll|System
    action = db.Column(db.String(64), nullable=False)
    details = db.Column(db.String(255), default="")
    entity_id = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
