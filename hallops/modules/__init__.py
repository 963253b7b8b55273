# -*- coding: utf-8 -*-
"""Общие помощники разбора запросов для блюпринтов."""
from __future__ import annotations

from datetime import date, datetime

from flask import request

from ..errors import ValidationError


def payload() -> dict:
    return request.get_json(silent=True) or {}


def to_date(x, field: str = "date") -> date:
    if isinstance(x, date) and not isinstance(x, datetime):
        return x
    try:
        return date.fromisoformat(str(x)[:10])
    except (TypeError, ValueError):
        raise ValidationError(f"Некорректная дата в поле {field}", field=field)


def to_datetime(x, field: str) -> datetime:
    if isinstance(x, datetime):
        return x
    try:
        return datetime.fromisoformat(str(x).replace("Z", "+00:00"))
    except (TypeError, ValueError):
        raise ValidationError(f"Некорректное время в поле {field}", field=field)


def opt_datetime(x, field: str) -> datetime | None:
    return None if x in (None, "") else to_datetime(x, field)


def to_int(x, field: str) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        raise ValidationError(f"Некорректное число в поле {field}", field=field)


def date_range(source=None) -> tuple[date, date]:
    """start/end из query-string (или словаря); оба обязательны."""
    src = source if source is not None else request.args
    if not src.get("start") or not src.get("end"):
        raise ValidationError("Нужны start и end (YYYY-MM-DD)")
    return to_date(src.get("start"), "start"), to_date(src.get("end"), "end")


def opt_date(x, field: str) -> date | None:
    return None if x in (None, "") else to_date(x, field)


def to_bool(x) -> bool | None:
    if x is None or x == "":
        return None
    if isinstance(x, bool):
        return x
    return str(x).strip().lower() in ("1", "true", "yes", "on")
