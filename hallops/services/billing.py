# -*- coding: utf-8 -*-
"""
Почасовая оплата столов, PlayStation и VIP-комнат по таймеру.

Начатый час оплачивается целиком. Сутки зала начинаются в SHIFT_DAY_START_HOUR
по местному времени: игра в 02:00 относится к предыдущему дню.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping
from zoneinfo import ZoneInfo

from flask import current_app

from ..errors import ValidationError
from ..money import D, as_number
from . import shift_clock as clock

DEFAULT_RATE = 100

DEFAULT_RATES = {
    "table-1": 100,
    "table-2": 100,
    "table-3": 100,
    "playstation-1": 100,
    "playstation-2": 100,
    "vip-super": 350,
    "vip-medium": 250,
    "vip-comfort": 250,
}

STATS_DAYS = 30


def table_rates() -> tuple[dict, int]:
    cfg = current_app.config
    rates = {**DEFAULT_RATES, **(cfg.get("TABLE_RATES") or {})}
    return rates, int(cfg.get("DEFAULT_TABLE_RATE", DEFAULT_RATE))


def billed_hours(elapsed: timedelta) -> int:
    secs = elapsed.total_seconds()
    if secs < 0:
        raise ValidationError("Время игры не может быть отрицательным", field="elapsed")
    return math.ceil(secs / 3600)


def calculate_price(table_id: str, elapsed: timedelta, rates: Mapping[str, int] | None = None,
                    default_rate: int = DEFAULT_RATE) -> Decimal:
    rate = (rates if rates is not None else DEFAULT_RATES).get(table_id, default_rate)
    return D(rate) * billed_hours(elapsed)


def period_key(ts: datetime, tz: ZoneInfo, day_start: int = 5) -> date:
    local = clock.to_local(ts, tz)
    if local.hour < day_start:
        return local.date() - timedelta(days=1)
    return local.date()


@dataclass(frozen=True)
class TableSession:
    table_id: str
    start: datetime
    end: datetime

    @property
    def elapsed(self) -> timedelta:
        return clock.to_utc_naive(self.end) - clock.to_utc_naive(self.start)


def daily_totals(sessions: Iterable[TableSession], tz: ZoneInfo, day_start: int = 5,
                 rates: Mapping[str, int] | None = None, default_rate: int = DEFAULT_RATE,
                 days: int = STATS_DAYS) -> list[dict]:
    """Итоги по суткам зала и столам, свежие дни первыми (не больше days)."""
    by_day: dict[date, dict[str, dict]] = {}
    for s in sessions:
        day = by_day.setdefault(period_key(s.start, tz, day_start), {})
        t = day.setdefault(s.table_id, {"sessions": 0, "seconds": 0, "amount": Decimal("0")})
        t["sessions"] += 1
        t["seconds"] += int(s.elapsed.total_seconds())
        t["amount"] += calculate_price(s.table_id, s.elapsed, rates, default_rate)

    out = []
    for d in sorted(by_day, reverse=True)[:days]:
        tables = by_day[d]
        out.append({
            "date": d.isoformat(),
            "tables": {
                tid: {
                    "sessions": t["sessions"],
                    "hours": round(t["seconds"] / 3600, 2),
                    "amount": as_number(t["amount"]),
                }
                for tid, t in sorted(tables.items())
            },
            "total": as_number(sum((t["amount"] for t in tables.values()), Decimal("0"))),
        })
    return out
