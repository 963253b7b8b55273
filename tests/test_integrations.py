"""POS summary and client, spreadsheet export, chat notifications."""

import json
import threading
import time
from datetime import date, datetime
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from hallops.errors import IntegrationError
from hallops.integrations import loyverse, sheets, telegram
from hallops.services import shifts
from hallops.services.payroll import PayrollEntry
from hallops.services.records import RegisterRecord
from hallops.services.registers import find_register

from .conftest import local

PAYMENT_TYPES = {"pt-cash": "Cash", "pt-gcash": "GCash", "pt-card": "Card"}

RECEIPTS = [
    {
        "receipt_number": "1-1001",
        "receipt_type": "SALE",
        "total_money": 500,
        "line_items": [
            {"item_name": "Table 1 - 1 hour", "quantity": 1, "total_money": 300, "cost": 0},
            {"item_name": "San Miguel", "quantity": 2, "total_money": 200, "cost": 40},
        ],
        "payments": [{"payment_type_id": "pt-cash", "money_amount": 500}],
    },
    {
        "receipt_number": "1-1002",
        "receipt_type": "SALE",
        "total_money": 700,
        "line_items": [{"item_name": "VIP Super - 1 hour", "quantity": 1, "total_money": 700, "cost": 0}],
        "payments": [
            {"payment_type_id": "pt-gcash", "money_amount": 600},
            {"payment_type_id": "pt-card", "money_amount": 100},
        ],
    },
    {
        "receipt_number": "1-1003",
        "receipt_type": "REFUND",
        "total_money": 100,
        "line_items": [{"item_name": "San Miguel", "quantity": 1, "total_money": 100, "cost": 40}],
        "payments": [{"payment_type_id": "pt-cash", "money_amount": 100}],
    },
]


class TestSummarizeReceipts:
    def test_totals(self):
        s = loyverse.summarize_receipts(RECEIPTS, PAYMENT_TYPES)
        assert s.receipts == 2
        assert s.refunds == 1
        assert s.total_amount == Decimal("1200")
        assert s.refund_amount == Decimal("100")
        assert s.net_amount == Decimal("1100")
        assert s.total_cost == Decimal("40")  # 80 продано, 40 возвращено
        assert s.profit == Decimal("1060")

    def test_cash_gcash_split(self):
        s = loyverse.summarize_receipts(RECEIPTS, PAYMENT_TYPES)
        assert s.cash == Decimal("400")
        assert s.gcash == Decimal("600")
        assert s.by_payment_type["Card"]["amount"] == Decimal("100")
        assert s.by_payment_type["Cash"]["refund_count"] == 1

    def test_categories(self):
        s = loyverse.summarize_receipts(RECEIPTS, PAYMENT_TYPES)
        assert s.by_category["billiards"]["sales"] == Decimal("300")
        assert s.by_category["vip"]["sales"] == Decimal("700")
        assert s.by_category["bar"]["sales"] == Decimal("200")
        assert s.by_category["bar"]["refunds"] == Decimal("100")

    @pytest.mark.parametrize("name,expected", [
        ("Billiard table 2", "billiards"),
        ("Bilyar", "billiards"),
        ("PS 2 - 1 hour", "vip"),
        ("PlayStation 1", "vip"),
        ("Potato chips", "bar"),
    ])
    def test_item_category(self, name, expected):
        assert loyverse.item_category(name) == expected


def _loyverse_transport(seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.headers["Authorization"] == "Bearer tok"
        if request.url.path.endswith("/payment_types"):
            return httpx.Response(200, json={"payment_types": [
                {"id": k, "name": v} for k, v in PAYMENT_TYPES.items()]})
        if request.url.params.get("cursor") == "page2":
            return httpx.Response(200, json={"receipts": RECEIPTS[1:]})
        return httpx.Response(200, json={"receipts": RECEIPTS[:1], "cursor": "page2"})
    return httpx.MockTransport(handler)


class TestLoyverseClient:
    def test_paginates_with_cursor(self):
        seen = []
        client = loyverse.LoyverseClient("tok", store_id="store-1", transport=_loyverse_transport(seen))
        receipts = client.fetch_receipts(datetime(2025, 1, 10, 1, 0), datetime(2025, 1, 10, 9, 0))
        assert [r["receipt_number"] for r in receipts] == ["1-1001", "1-1002", "1-1003"]
        assert len(seen) == 2
        assert seen[0].url.params["limit"] == "250"
        assert seen[0].url.params["store_id"] == "store-1"
        assert seen[0].url.params["created_at_min"] == "2025-01-10T01:00:00.000Z"
        assert seen[1].url.params["cursor"] == "page2"

    def test_payment_types(self):
        client = loyverse.LoyverseClient("tok", transport=_loyverse_transport([]))
        assert client.fetch_payment_types() == PAYMENT_TYPES

    def test_http_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        client = loyverse.LoyverseClient("tok", transport=transport)
        with pytest.raises(IntegrationError):
            client.fetch_receipts(datetime(2025, 1, 10), datetime(2025, 1, 11))

    def test_not_configured(self):
        with pytest.raises(IntegrationError):
            loyverse.LoyverseClient("").fetch_payment_types()

    def test_sync_expected_writes_register(self, app):
        client = loyverse.LoyverseClient("tok", transport=_loyverse_transport([]))
        summary, reg = loyverse.sync_expected(date(2025, 1, 10), "day",
                                              datetime(2025, 1, 9, 21, 0), datetime(2025, 1, 10, 9, 0),
                                              client=client)
        assert summary.cash == Decimal("400")
        reg = find_register(date(2025, 1, 10), "day")
        assert reg.cash_expected == Decimal("400")
        assert reg.gcash_expected == Decimal("600")


# ------------ sheets ----------------------------------------------------------
def _register(d, shift, **kw):
    base = {k: Decimal("0") for k in (
        "cash_expected", "gcash_expected", "opening_balance", "purchases", "salaries", "other_expenses",
        "reported_cash", "reported_gcash")}
    base.update({k: Decimal(str(v)) for k, v in kw.items()})
    return RegisterRecord(id=None, date=d, shift=shift, **base)


class TestSheetRows:
    def test_ledger_rows_with_total(self):
        rows = sheets.ledger_rows([
            _register(date(2025, 1, 11), "day", cash_expected=800, purchases=50, discrepancy=-20),
            _register(date(2025, 1, 10), "day", cash_expected=1000, gcash_expected=500, salaries=300,
                      opening_balance=100),
        ])
        assert rows[0] == sheets.LEDGER_HEADER
        assert rows[1][0] == "2025-01-10"
        assert rows[1][8] == 300  # total expenses
        assert rows[1][9] == 1300  # expected
        assert rows[1][12] == ""
        total = rows[-1]
        assert total[0] == "TOTAL"
        assert total[3] == 1800
        assert total[8] == 350
        assert total[12] == -20

    def test_payroll_rows(self):
        e = PayrollEntry(employee_id=1, employee_name="Ana", total_shifts=2, total_hours=Decimal("16"),
                         base_salary_total=Decimal("1000"), bonuses_total=Decimal("150"))
        rows = sheets.payroll_rows([e])
        assert rows[1] == ["Ana", 2, 16, 1000, 150, 0, 1150, 0, 1150]


@pytest.fixture(scope="module")
def rsa_pem():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private = key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption(),
    ).decode()
    public = key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private, public


class TestSheetsExporter:
    def test_assertion_is_signed_jwt(self, rsa_pem):
        private, public = rsa_pem
        exp = sheets.SheetsExporter("svc@example.iam.gserviceaccount.com", private, "sheet-1")
        token = exp.assertion(now=1_700_000_000)
        claims = jwt.decode(token, public, algorithms=["RS256"], audience=sheets.TOKEN_URL,
                            options={"verify_exp": False})
        assert claims["iss"] == "svc@example.iam.gserviceaccount.com"
        assert claims["scope"] == sheets.SCOPE
        assert claims["exp"] - claims["iat"] == 3600

    def test_write_exchanges_token_then_puts_values(self, rsa_pem):
        private, _ = rsa_pem
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if str(request.url) == sheets.TOKEN_URL:
                form = parse_qs(request.content.decode())
                assert form["grant_type"] == [sheets.GRANT_TYPE]
                return httpx.Response(200, json={"access_token": "ya29.token"})
            assert request.method == "PUT"
            assert request.headers["Authorization"] == "Bearer ya29.token"
            body = json.loads(request.content)
            return httpx.Response(200, json={"updatedRows": len(body["values"])})

        exp = sheets.SheetsExporter("svc@example.com", private, "sheet-1", transport=httpx.MockTransport(handler))
        assert exp.write("Cash!A1", [["a", 1], ["b", 2]]) == 2
        assert len(seen) == 2
        assert "/spreadsheets/sheet-1/values/Cash!A1" in seen[1].url.path
        assert seen[1].url.params["valueInputOption"] == "USER_ENTERED"

    def test_token_failure(self, rsa_pem):
        private, _ = rsa_pem
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "invalid_grant"}))
        exp = sheets.SheetsExporter("svc@example.com", private, "sheet-1", transport=transport)
        with pytest.raises(IntegrationError):
            exp.write("Cash!A1", [["a"]])

    def test_not_configured(self):
        with pytest.raises(IntegrationError):
            sheets.SheetsExporter("", "", "").write("Cash!A1", [])


# ------------ telegram --------------------------------------------------------
class TestTelegram:
    def test_messages(self):
        text = telegram.format_message("shift_end", {
            "employeeName": "Ana <b>", "totalHours": "8.0", "cashHandedOver": Decimal("1000"),
            "gcashHandedOver": 0, "expectedCash": 1100, "difference": Decimal("-100"), "bonuses": 150,
        })
        assert "Ana &lt;b&gt;" in text
        assert "₱1 000" in text
        assert "-100" in text
        assert "⚠️" in text
        assert "Смена началась" in telegram.format_message("shift_start", {"employeeName": "Ana"})
        assert "custom" in telegram.format_message("custom", {"x": 1})

    def test_send_ok(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        n = telegram.TelegramNotifier("123:abc", "-100", transport=httpx.MockTransport(handler))
        assert n.send("hi")
        assert seen == [{"chat_id": "-100", "text": "hi", "parse_mode": "HTML"}]

    def test_failure_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        n = telegram.TelegramNotifier("123:abc", "-100", transport=httpx.MockTransport(handler))
        assert n.send("hi") is False

    def test_api_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False}))
        assert telegram.TelegramNotifier("123:abc", "-100", transport=transport).send("hi") is False

    def test_not_configured(self, app):
        assert telegram.notify("shift_start", {"employeeName": "Ana"}) is None

    def test_notify_sends_in_background(self, app, monkeypatch):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["text"])
            return httpx.Response(200, json={"ok": True})

        monkeypatch.setattr(telegram, "notifier_from_config", lambda: telegram.TelegramNotifier(
            "123:abc", "-100", transport=httpx.MockTransport(handler)))
        future = telegram.notify("shift_start", {"employeeName": "Ana"})
        assert future.result(timeout=5) is True
        assert "Ana" in seen[0]

    def test_hanging_chat_does_not_block_shift_close(self, app, employees, monkeypatch):
        release = threading.Event()

        def handler(request):
            release.wait(5)
            return httpx.Response(200, json={"ok": True})

        monkeypatch.setattr(telegram, "notifier_from_config", lambda: telegram.TelegramNotifier(
            "123:abc", "-100", transport=httpx.MockTransport(handler)))
        try:
            s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
            t0 = time.monotonic()
            s = shifts.end_shift(s.id, 500, 0, now=local(2025, 1, 10, 17, 0))
            assert time.monotonic() - t0 < 2
            assert s.status == "closed"
        finally:
            release.set()

    def test_failing_chat_does_not_break_shift_close(self, app, employees, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        monkeypatch.setattr(telegram, "notifier_from_config", lambda: telegram.TelegramNotifier(
            "123:abc", "-100", transport=httpx.MockTransport(handler)))
        s = shifts.start_shift(employees[0].id, now=local(2025, 1, 10, 9, 0))
        s = shifts.end_shift(s.id, 500, 0, now=local(2025, 1, 10, 17, 0))
        assert s.status == "closed"
        assert s.cash_handed_over == Decimal("500")
