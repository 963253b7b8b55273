# -*- coding: utf-8 -*-
"""
Выгрузка кассы и зарплаты в Google Sheets.

Доступ через сервисный аккаунт: подписанный RS256 JWT меняется на
OAuth-токен, затем строки пишутся методом values.update.
"""
from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Iterable, Sequence

import httpx
from flask import current_app
from jose import JWTError, jwt

from ..errors import IntegrationError
from ..money import D, as_number

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SHEETS_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPE = "https://www.googleapis.com/auth/spreadsheets"
GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"

LEDGER_HEADER = [
    "Date", "Shift", "Opening", "Cash POS", "GCash POS", "Purchases", "Salaries", "Other",
    "Total expenses", "Expected", "Reported cash", "Reported GCash", "Discrepancy",
]
PAYROLL_HEADER = [
    "Employee", "Shifts", "Hours", "Base", "Bonuses", "Shortages", "Total", "Paid", "Unpaid",
]


def ledger_rows(registers: Iterable) -> list[list]:
    """Строки кассы по датам + итоговая строка TOTAL."""
    rows = [list(LEDGER_HEADER)]
    t = {k: Decimal("0") for k in ("cash", "gcash", "purchases", "salaries", "other", "discrepancy")}
    for r in sorted(registers, key=lambda x: (x.date, x.shift)):
        total_exp = D(r.purchases) + D(r.salaries) + D(r.other_expenses)
        expected = D(r.opening_balance) + D(r.cash_expected) + D(r.gcash_expected) - total_exp
        rows.append([
            r.date.isoformat(), r.shift,
            as_number(D(r.opening_balance)), as_number(D(r.cash_expected)), as_number(D(r.gcash_expected)),
            as_number(D(r.purchases)), as_number(D(r.salaries)), as_number(D(r.other_expenses)),
            as_number(total_exp), as_number(expected),
            as_number(D(r.reported_cash)), as_number(D(r.reported_gcash)),
            "" if r.discrepancy is None else as_number(D(r.discrepancy)),
        ])
        t["cash"] += D(r.cash_expected)
        t["gcash"] += D(r.gcash_expected)
        t["purchases"] += D(r.purchases)
        t["salaries"] += D(r.salaries)
        t["other"] += D(r.other_expenses)
        t["discrepancy"] += D(r.discrepancy)
    rows.append([
        "TOTAL", "", "",
        as_number(t["cash"]), as_number(t["gcash"]),
        as_number(t["purchases"]), as_number(t["salaries"]), as_number(t["other"]),
        as_number(t["purchases"] + t["salaries"] + t["other"]),
        "", "", "",
        as_number(t["discrepancy"]),
    ])
    return rows


def payroll_rows(entries: Iterable) -> list[list]:
    rows = [list(PAYROLL_HEADER)]
    for e in entries:
        rows.append([
            e.employee_name, e.total_shifts, as_number(e.total_hours),
            as_number(e.base_salary_total), as_number(e.bonuses_total), as_number(e.cash_shortage_total),
            as_number(e.total_salary), as_number(e.paid_amount), as_number(e.unpaid_amount),
        ])
    return rows


class SheetsExporter:
    def __init__(self, service_email: str, private_key: str, spreadsheet_id: str,
                 timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.service_email = service_email
        self.private_key = private_key
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.service_email and self.private_key and self.spreadsheet_id)

    def assertion(self, now: int | None = None) -> str:
        iat = int(now if now is not None else time.time())
        claims = {"iss": self.service_email, "scope": SCOPE, "aud": TOKEN_URL, "iat": iat, "exp": iat + 3600}
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JWTError as e:
            logger.error("sheets: не удалось подписать JWT: %s", e)
            raise IntegrationError("Некорректный ключ сервисного аккаунта")

    def _request(self, client: httpx.Client, method: str, url: str, **kw) -> dict:
        try:
            resp = client.request(method, url, **kw)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("sheets %s: HTTP %s %s", url, e.response.status_code, e.response.text[:200])
            raise IntegrationError("Ошибка Google API", status_code=e.response.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("sheets %s: %s", url, e)
            raise IntegrationError("Google API недоступен")

    def access_token(self, client: httpx.Client) -> str:
        data = self._request(client, "POST", TOKEN_URL,
                             data={"grant_type": GRANT_TYPE, "assertion": self.assertion()})
        token = data.get("access_token")
        if not token:
            raise IntegrationError("Google не выдал access_token")
        return token

    def write(self, sheet_range: str, rows: Sequence[Sequence]) -> int:
        """Перезаписать диапазон; возвращает число обновлённых строк."""
        if not self.configured:
            raise IntegrationError("Google Sheets не настроен")
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            token = self.access_token(client)
            url = f"{SHEETS_URL}/{self.spreadsheet_id}/values/{sheet_range}"
            data = self._request(
                client, "PUT", url,
                params={"valueInputOption": "USER_ENTERED"},
                headers={"Authorization": f"Bearer {token}"},
                json={"range": sheet_range, "majorDimension": "ROWS", "values": [list(r) for r in rows]},
            )
        updated = int(data.get("updatedRows", len(rows)))
        logger.info("sheets: %s строк в %s", updated, sheet_range)
        return updated


def exporter_from_config(transport: httpx.BaseTransport | None = None) -> SheetsExporter:
    cfg = current_app.config
    return SheetsExporter(
        cfg.get("GOOGLE_SERVICE_ACCOUNT_EMAIL", ""),
        cfg.get("GOOGLE_PRIVATE_KEY", ""),
        cfg.get("GOOGLE_SHEETS_ID", ""),
        timeout=float(cfg.get("HTTP_TIMEOUT", 10)),
        transport=transport,
    )
