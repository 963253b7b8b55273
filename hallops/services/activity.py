# -*- coding: utf-8 -*-
from __future__ import annotations

import logging

from ..extensions import db
from ..models.activity import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(module: str, action: str, details: str | None = None, entity_id=None) -> ActivityLog:
    """Запись в журнал действий; коммитится вместе с основной операцией."""
    row = ActivityLog(
        module=module,
        action=action,
        details=(details or "")[:255],
        entity_id=str(entity_id) if entity_id is not None else module.lower(),
    )
    db.session.add(row)
    logger.info("activity %s/%s %s", module, action, details or "")
    return row


def recent_activity(limit: int = 100, module: str | None = None) -> list[ActivityLog]:
    q = ActivityLog.query
    if module:
        q = q.filter(ActivityLog.module == module)
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
