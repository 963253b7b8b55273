# -*- coding: utf-8 -*-
from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP, InvalidOperation

from .errors import ValidationError


D = lambda v: Decimal(str(v)) if v is not None else Decimal("0")

CENT = Decimal("0.01")
UNIT = Decimal("1")


def round2(v) -> Decimal:
    return D(v).quantize(CENT, rounding=ROUND_HALF_UP)


def whole_floor(v) -> Decimal:
    """Целая денежная единица, округление вниз."""
    return D(v).quantize(UNIT, rounding=ROUND_FLOOR)


def parse_amount(v, field: str = "amount", *, allow_zero: bool = True) -> Decimal:
    """Разбор суммы из формы/JSON; ошибка до любой записи в БД."""
    if v is None or (isinstance(v, str) and not v.strip()):
        raise ValidationError(f"Не указано поле {field}", field=field)
    if isinstance(v, bool):
        raise ValidationError(f"Некорректная сумма в поле {field}", field=field)
    try:
        x = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Некорректная сумма в поле {field}", field=field)
    if not x.is_finite() or x < 0 or (x == 0 and not allow_zero):
        raise ValidationError(f"Некорректная сумма в поле {field}", field=field)
    return round2(x)


def fmt_money(v) -> str:
    try:
        x = float(v)
        # без знаков после запятой, с пробелами как разделителями тысяч
        if x.is_integer():
            return f"{int(x):,}".replace(",", " ")
        return f"{x:,.2f}".replace(",", " ")
    except (TypeError, ValueError):
        return str(v)


def as_number(v):
    """Decimal -> int/float для JSON-ответов."""
    if v is None:
        return None
    x = D(v)
    if x == x.to_integral_value():
        return int(x)
    return float(x)
