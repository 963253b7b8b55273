"""HTTP endpoints: JSON shapes, error mapping, auth and PIN gates."""

import pytest

from hallops import create_app
from hallops.extensions import db
from hallops.models import Employee, User

from .conftest import TestConfig


class TestShiftEndpoints:
    def test_start_conflict_end(self, client, employees):
        emp_id = employees[0].id
        r = client.post("/shifts/start", json={"employee_id": emp_id, "now": "2025-01-10T09:00:00+08:00"})
        assert r.status_code == 201
        shift = r.get_json()["shift"]
        assert shift["shift_type"] == "day"
        assert shift["date"] == "2025-01-10"

        r = client.post("/shifts/start", json={"employee_id": emp_id})
        assert r.status_code == 409
        body = r.get_json()
        assert body["ok"] is False
        assert body["error"] == "conflict"
        assert body["shift_id"] == shift["id"]

        r = client.get(f"/shifts/open/{emp_id}")
        assert r.get_json()["shift"]["id"] == shift["id"]

        r = client.post(f"/shifts/{shift['id']}/end", json={"cash": "abc"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "validation"

        r = client.post(f"/shifts/{shift['id']}/end",
                        json={"cash": 900, "gcash": 100, "now": "2025-01-10T17:00:00+08:00"})
        assert r.status_code == 200
        closed = r.get_json()["shift"]
        assert closed["status"] == "closed"
        assert closed["total_hours"] == 8
        assert closed["cash_difference"] == 1000

    def test_not_found(self, client, employees):
        r = client.post("/shifts/999/end", json={"cash": 1})
        assert r.status_code == 404
        assert r.get_json()["error"] == "not_found"

    def test_bonus(self, client, employees):
        r = client.post("/shifts/start", json={"employee_id": employees[0].id})
        sid = r.get_json()["shift"]["id"]
        r = client.post(f"/shifts/{sid}/bonuses", json={"bonus_type": "hookah", "amount": 60})
        assert r.status_code == 201
        r = client.get(f"/shifts/{sid}")
        assert [b["amount"] for b in r.get_json()["shift"]["bonuses"]] == [60]


class TestCashEndpoints:
    def test_pending_and_approve(self, client, employees):
        client.put("/cash/registers", json={"date": "2025-01-10", "shift": "day",
                                            "cash_expected": 1000, "gcash_expected": 500})
        for emp, cash, gcash in ((employees[0], 400, 300), (employees[1], 500, 150)):
            sid = client.post("/shifts/start", json={
                "employee_id": emp.id, "now": "2025-01-10T09:00:00+08:00"}).get_json()["shift"]["id"]
            client.post(f"/shifts/{sid}/end", json={
                "cash": cash, "gcash": gcash, "now": "2025-01-10T17:00:00+08:00"})

        groups = client.get("/cash/pending").get_json()["groups"]
        assert len(groups) == 1
        assert groups[0]["difference"] == -150
        assert groups[0]["status"] == "shortage"
        assert groups[0]["miscategorized"] is False

        r = client.post("/cash/pending/approve", json={"date": "2025-01-10", "shift": "day"})
        assert r.status_code == 200
        assert client.get("/cash/pending").get_json()["groups"] == []
        hist = client.get("/cash/history").get_json()["groups"]
        assert hist[0]["shortage"] == 150

    def test_reject_then_new_handover(self, client, employees):
        sid = client.post("/shifts/start", json={
            "employee_id": employees[0].id, "now": "2025-01-10T09:00:00+08:00"}).get_json()["shift"]["id"]
        client.post(f"/shifts/{sid}/end", json={"cash": 1000, "now": "2025-01-10T17:00:00+08:00"})

        r = client.post(f"/shifts/{sid}/handover", json={"cash": 10})
        assert r.status_code == 409
        assert r.get_json()["error"] == "bad_state"

        assert client.post(f"/cash/shifts/{sid}/reject").status_code == 200
        assert client.get("/cash/pending").get_json()["groups"] == []
        regs = client.get("/cash/registers").get_json()["registers"]
        assert regs[0]["reported_cash"] == 0

        r = client.post(f"/shifts/{sid}/handover", json={"cash": 800, "gcash": 200})
        assert r.status_code == 200
        assert r.get_json()["shift"]["cash_handed_over"] == 800
        groups = client.get("/cash/pending").get_json()["groups"]
        assert groups[0]["total_submitted"] == 1000

    def test_expense_roundtrip(self, client, app):
        r = client.post("/cash/expenses", json={"date": "2025-01-10", "shift": "day",
                                                "category": "purchases", "amount": 200})
        assert r.status_code == 201
        eid = r.get_json()["expense"]["id"]
        regs = client.get("/cash/registers?start=2025-01-10&end=2025-01-10").get_json()["registers"]
        assert regs[0]["purchases"] == 200
        assert client.delete(f"/cash/expenses/{eid}").status_code == 200
        regs = client.get("/cash/registers").get_json()["registers"]
        assert regs[0]["purchases"] == 0

    def test_sync_pos_not_configured(self, client, app):
        r = client.post("/cash/sync-pos", json={"date": "2025-01-10", "shift": "day",
                                                "start": "2025-01-10T05:00:00+08:00",
                                                "end": "2025-01-10T17:00:00+08:00"})
        assert r.status_code == 502
        assert r.get_json()["error"] == "integration_failed"


class TestPayrollEndpoints:
    def test_report_requires_range(self, client, app):
        assert client.get("/payroll/report").status_code == 400
        assert client.get("/payroll/report?start=2025-01-01&end=2025-01-31&order=bogus").status_code == 400

    def test_report_and_pay(self, client, employees):
        sid = client.post("/shifts/start", json={
            "employee_id": employees[0].id, "now": "2025-01-10T09:00:00+08:00"}).get_json()["shift"]["id"]
        client.post(f"/shifts/{sid}/end", json={"cash": 0, "now": "2025-01-10T17:00:00+08:00"})
        body = client.get("/payroll/report?start=2025-01-10&end=2025-01-10").get_json()
        assert body["entries"][0]["total_salary"] == 500
        r = client.post("/payroll/mark-paid", json={"employee_id": employees[0].id,
                                                   "start": "2025-01-10", "end": "2025-01-10"})
        assert r.get_json()["paid_amount"] == 500
        body = client.get("/payroll/report?start=2025-01-10&end=2025-01-10").get_json()
        assert body["totals"]["unpaid_amount"] == 0


class TestAdminEndpoints:
    def test_reset_needs_pin(self, client, employees):
        r = client.post("/admin/reset", json={"start": "2025-01-01", "end": "2025-01-31"})
        assert r.status_code == 403
        assert r.get_json()["error"] == "bad_pin"
        r = client.post("/admin/reset", json={"start": "2025-01-01", "end": "2025-01-31", "pin": "1234"})
        assert r.status_code == 200
        assert r.get_json()["shifts"] == 0

    def test_employees(self, client, app):
        r = client.post("/admin/employees", json={"name": "Lea"})
        assert r.status_code == 201
        eid = r.get_json()["employee"]["id"]
        assert client.delete(f"/admin/employees/{eid}").get_json()["employee"]["active"] is False


class AuthConfig(TestConfig):
    LOGIN_DISABLED = False


@pytest.fixture()
def auth_client():
    # без внешнего app context: у каждого запроса свой g и current_user
    app = create_app(AuthConfig)
    with app.app_context():
        db.create_all()
        admin = User(username="admin", role="admin")
        admin.set_password("secret")
        staff = User(username="cashier", role="staff")
        staff.set_password("cashier")
        db.session.add_all([admin, staff, Employee(name="Ana")])
        db.session.commit()
    yield app.test_client()
    with app.app_context():
        db.drop_all()


class TestAuth:
    def test_anonymous_rejected(self, auth_client):
        assert auth_client.get("/shifts/open").status_code == 401
        assert auth_client.get("/cash/pending").status_code == 401

    def test_bad_password(self, auth_client):
        r = auth_client.post("/login", json={"username": "admin", "password": "nope"})
        assert r.status_code == 401

    def test_staff_cannot_approve(self, auth_client):
        assert auth_client.post("/login", json={"username": "cashier", "password": "cashier"}).status_code == 200
        assert auth_client.get("/shifts/open").status_code == 200
        assert auth_client.get("/cash/pending").status_code == 403

    def test_admin_allowed(self, auth_client):
        r = auth_client.post("/login", json={"username": "admin", "password": "secret"})
        assert r.get_json()["user"]["role"] == "admin"
        assert auth_client.get("/cash/pending").status_code == 200
        assert auth_client.post("/logout").status_code == 200
        assert auth_client.get("/cash/pending").status_code == 401
