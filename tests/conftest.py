"""
hallops - Test Configuration

Pytest fixtures: application on in-memory SQLite, test client, employees.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from hallops import create_app
from hallops.config import Config
from hallops.extensions import db
from hallops.models import Employee, User

MNL = ZoneInfo("Asia/Manila")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOGIN_DISABLED = True
    HALL_TIMEZONE = "Asia/Manila"
    SHIFT_DAY_START_HOUR = 5
    SHIFT_NIGHT_START_HOUR = 17
    DEFAULT_BASE_SALARY = 500
    BONUS_GRACE_MINUTES = 60
    MISCATEGORIZATION_THRESHOLD = 50
    ADMIN_PIN = "1234"
    TELEGRAM_BOT_TOKEN = ""
    TELEGRAM_CHAT_ID = ""
    LOYVERSE_ACCESS_TOKEN = ""
    GOOGLE_SERVICE_ACCOUNT_EMAIL = ""
    GOOGLE_PRIVATE_KEY = ""
    GOOGLE_SHEETS_ID = ""


def local(y, m, d, hh=0, mm=0):
    """Время зала (Asia/Manila) как aware datetime."""
    return datetime(y, m, d, hh, mm, tzinfo=MNL)


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def employees(app):
    rows = [
        Employee(name="Ana", position="staff", active=True),
        Employee(name="Mark", position="staff", active=True),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture()
def admin_user(app):
    u = User(username="admin", role="admin", full_name="Admin")
    u.set_password("secret")
    db.session.add(u)
    db.session.commit()
    return u
