# -*- coding: utf-8 -*-
"""
Loyverse POS: чеки за период, типы оплат, сводка продаж.

Сводка (summarize_receipts): чистая функция; sync_expected записывает
наличные и GCash по POS в кассу как ожидание смены.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

import httpx
from flask import current_app

from ..errors import IntegrationError
from ..money import D, as_number
from ..services.registers import update_register

logger = logging.getLogger(__name__)

PAGE_LIMIT = 250
CATEGORIES = ("billiards", "vip", "bar")


def item_category(name: str) -> str:
    n = (name or "").lower()
    if "billiard" in n or "table" in n or "bilyar" in n:
        return "billiards"
    if "vip" in n or "room" in n or "playstation" in n or re.search(r"\bps\d*\b", n):
        return "vip"
    return "bar"


def payment_method(type_name: str) -> str | None:
    """Имя типа оплаты в POS -> cash / gcash (остальные не считаем)."""
    n = (type_name or "").strip().lower()
    if n == "cash":
        return "cash"
    if "gcash" in n:
        return "gcash"
    return None


@dataclass
class SalesSummary:
    receipts: int = 0
    refunds: int = 0
    total_amount: Decimal = Decimal("0")
    refund_amount: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    cash: Decimal = Decimal("0")
    gcash: Decimal = Decimal("0")
    by_category: dict = field(default_factory=lambda: {
        c: {"sales": Decimal("0"), "refunds": Decimal("0"), "cost": Decimal("0"), "count": Decimal("0")}
        for c in CATEGORIES
    })
    by_payment_type: dict = field(default_factory=dict)

    @property
    def net_amount(self) -> Decimal:
        return self.total_amount - self.refund_amount

    @property
    def profit(self) -> Decimal:
        return self.net_amount - self.total_cost

    def to_dict(self) -> dict:
        return {
            "receipts": self.receipts,
            "refunds": self.refunds,
            "total_amount": as_number(self.total_amount),
            "refund_amount": as_number(self.refund_amount),
            "net_amount": as_number(self.net_amount),
            "total_cost": as_number(self.total_cost),
            "profit": as_number(self.profit),
            "cash": as_number(self.cash),
            "gcash": as_number(self.gcash),
            "by_category": {
                c: {k: as_number(v) for k, v in vals.items()} for c, vals in self.by_category.items()
            },
            "by_payment_type": {
                t: {k: as_number(v) for k, v in vals.items()} for t, vals in self.by_payment_type.items()
            },
        }


def summarize_receipts(receipts: Iterable[Mapping[str, Any]],
                       payment_types: Mapping[str, str] | None = None) -> SalesSummary:
    """Продажи/возвраты, разбивка по оплатам и категориям, прибыль.

    Возврат (receipt_type == REFUND) уменьшает выручку, себестоимость и
    сумму своего способа оплаты.
    """
    names = payment_types or {}
    s = SalesSummary()
    for r in receipts:
        refund = r.get("receipt_type") == "REFUND"
        sign = -1 if refund else 1
        total = abs(D(r.get("total_money") or 0))

        cost = Decimal("0")
        for item in r.get("line_items") or []:
            qty = D(item.get("quantity") or 0)
            item_cost = D(item.get("cost") or 0) * qty
            cost += item_cost
            cat = s.by_category[item_category(item.get("item_name", ""))]
            if refund:
                cat["refunds"] += abs(D(item.get("total_money") or 0))
            else:
                cat["sales"] += D(item.get("total_money") or 0)
                cat["cost"] += item_cost
                cat["count"] += qty

        if refund:
            s.refunds += 1
            s.refund_amount += total
        else:
            s.receipts += 1
            s.total_amount += total
        s.total_cost += sign * cost

        for p in r.get("payments") or []:
            type_name = names.get(p.get("payment_type_id"), p.get("name") or "Unknown")
            amount = abs(D(p.get("money_amount") or 0))
            bucket = s.by_payment_type.setdefault(
                type_name, {"count": 0, "amount": Decimal("0"), "refund_count": 0, "refund_amount": Decimal("0")})
            if refund:
                bucket["refund_count"] += 1
                bucket["refund_amount"] += amount
            else:
                bucket["count"] += 1
                bucket["amount"] += amount
            method = payment_method(type_name)
            if method == "cash":
                s.cash += sign * amount
            elif method == "gcash":
                s.gcash += sign * amount
    return s


def _iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        return ts.strftime("%Y-%m-%dT%H:%M:%S.000Z")
    return ts.isoformat()


class LoyverseClient:
    def __init__(self, token: str, store_id: str = "", base_url: str = "https://api.loyverse.com/v1.0",
                 timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.token = token
        self.store_id = store_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.token}"},
        )

    def _get(self, client: httpx.Client, path: str, params: dict) -> dict:
        try:
            resp = client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("loyverse %s: HTTP %s %s", path, e.response.status_code, e.response.text[:200])
            raise IntegrationError("Ошибка Loyverse API", status_code=e.response.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("loyverse %s: %s", path, e)
            raise IntegrationError("Loyverse недоступен")

    def fetch_receipts(self, start: datetime, end: datetime) -> list[dict]:
        if not self.configured:
            raise IntegrationError("LOYVERSE_ACCESS_TOKEN не настроен")
        params = {"created_at_min": _iso(start), "created_at_max": _iso(end), "limit": PAGE_LIMIT}
        if self.store_id:
            params["store_id"] = self.store_id
        receipts: list[dict] = []
        with self._client() as client:
            while True:
                data = self._get(client, "/receipts", params)
                receipts.extend(data.get("receipts") or [])
                cursor = data.get("cursor")
                if not cursor:
                    break
                params = {**params, "cursor": cursor}
        logger.info("loyverse: %s чеков за %s..%s", len(receipts), start, end)
        return receipts

    def fetch_payment_types(self) -> dict[str, str]:
        if not self.configured:
            raise IntegrationError("LOYVERSE_ACCESS_TOKEN не настроен")
        with self._client() as client:
            data = self._get(client, "/payment_types", {})
        return {pt["id"]: pt.get("name", "") for pt in data.get("payment_types") or [] if pt.get("id")}


def client_from_config(transport: httpx.BaseTransport | None = None) -> LoyverseClient:
    cfg = current_app.config
    return LoyverseClient(
        cfg.get("LOYVERSE_ACCESS_TOKEN", ""),
        store_id=cfg.get("LOYVERSE_STORE_ID", ""),
        base_url=cfg.get("LOYVERSE_API_URL", "https://api.loyverse.com/v1.0"),
        timeout=float(cfg.get("HTTP_TIMEOUT", 10)),
        transport=transport,
    )


def sync_expected(d: date, shift: str, start: datetime, end: datetime,
                  client: LoyverseClient | None = None) -> tuple[SalesSummary, Any]:
    """Наличные и GCash по POS за окно смены -> ожидание кассы (d, shift)."""
    client = client or client_from_config()
    summary = summarize_receipts(client.fetch_receipts(start, end), client.fetch_payment_types())
    reg = update_register(d, shift,
                          cash_expected=max(summary.cash, Decimal("0")),
                          gcash_expected=max(summary.gcash, Decimal("0")))
    return summary, reg
