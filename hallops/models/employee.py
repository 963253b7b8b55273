from datetime import datetime
from ..extensions import db

class Employee(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    position = db.Column(db.String(64), default="staff")
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # сотрудника не удаляем, пока на него ссылаются смены, только деактивация
    shifts = db.relationship("Shift", back_populates="employee", lazy="dynamic")
