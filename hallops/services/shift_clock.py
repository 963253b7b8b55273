# -*- coding: utf-8 -*-
"""
Время смен: местная дата, тип смены (день/ночь), дата кассы, часы.

В БД время хранится в UTC без tzinfo (как datetime.utcnow()); все решения
о границах смен принимаются в местном часовом поясе зала.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from flask import current_app

from ..errors import ValidationError
from ..money import round2

DAY = "day"
NIGHT = "night"
SHIFT_TYPES = (DAY, NIGHT)


def hall_tz(name: str | None = None) -> ZoneInfo:
    if name is None:
        name = current_app.config.get("HALL_TIMEZONE", "Asia/Manila")
    return ZoneInfo(name)


def boundaries() -> tuple[int, int]:
    cfg = current_app.config
    return int(cfg.get("SHIFT_DAY_START_HOUR", 5)), int(cfg.get("SHIFT_NIGHT_START_HOUR", 17))


def to_utc_naive(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(ts: datetime, tz: ZoneInfo) -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz)


def local_date(ts: datetime, tz: ZoneInfo) -> date:
    return to_local(ts, tz).date()


def resolve_shift_type(ts: datetime, tz: ZoneInfo, day_start: int = 5, night_start: int = 17) -> str:
    """day: [day_start, night_start), иначе night."""
    hour = to_local(ts, tz).hour
    return DAY if day_start <= hour < night_start else NIGHT


def resolve_cash_date(ts: datetime, tz: ZoneInfo, day_start: int = 5, night_start: int = 17) -> date:
    """Ночная смена, начатая вечером, сдаёт кассу следующего дня."""
    local = to_local(ts, tz)
    if resolve_shift_type(ts, tz, day_start, night_start) == NIGHT and local.hour >= night_start:
        return local.date() + timedelta(days=1)
    return local.date()


def compute_hours(start: datetime, end: datetime) -> Decimal:
    start, end = to_utc_naive(start), to_utc_naive(end)
    if end < start:
        raise ValidationError("Конец смены раньше начала")
    return round2(Decimal(str((end - start).total_seconds())) / Decimal(3600))


def format_elapsed(start: datetime, now: datetime) -> str:
    secs = max(0, int((to_utc_naive(now) - to_utc_naive(start)).total_seconds()))
    h, rest = divmod(secs, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
