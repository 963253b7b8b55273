import os
from pathlib import Path
from dotenv import load_dotenv
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent  # <project>
INSTANCE_DIR = BASE_DIR / "instance"
INSTANCE_DIR.mkdir(parents=True, exist_ok=True)

def _default_sqlite_uri():
    return f"sqlite:///{(INSTANCE_DIR / 'hallops.db').as_posix()}"

def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default

def _rates(name: str) -> dict:
    # "table-1:100,vip-super:350"
    out = {}
    for part in os.getenv(name, "").split(","):
        key, _, value = part.partition(":")
        try:
            out[key.strip()] = int(value)
        except ValueError:
            continue
    return out

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL") or _default_sqlite_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # смены: граница день/ночь по местному времени зала
    HALL_TIMEZONE = os.getenv("HALL_TIMEZONE", "Asia/Manila")
    SHIFT_DAY_START_HOUR = _int("SHIFT_DAY_START_HOUR", 5)
    SHIFT_NIGHT_START_HOUR = _int("SHIFT_NIGHT_START_HOUR", 17)
    DEFAULT_BASE_SALARY = _int("DEFAULT_BASE_SALARY", 500)
    BONUS_GRACE_MINUTES = _int("BONUS_GRACE_MINUTES", 60)
    MISCATEGORIZATION_THRESHOLD = _int("MISCATEGORIZATION_THRESHOLD", 50)

    # почасовые тарифы столов; неизвестный стол идёт по DEFAULT_TABLE_RATE
    DEFAULT_TABLE_RATE = _int("DEFAULT_TABLE_RATE", 100)
    TABLE_RATES = _rates("TABLE_RATES")

    # подтверждение опасных действий, не авторизация
    ADMIN_PIN = os.getenv("ADMIN_PIN", "0000")

    # интеграции
    HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))
    TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
    TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID", "")
    LOYVERSE_ACCESS_TOKEN = os.getenv("LOYVERSE_ACCESS_TOKEN", "")
    LOYVERSE_STORE_ID = os.getenv("LOYVERSE_STORE_ID", "")
    LOYVERSE_API_URL = os.getenv("LOYVERSE_API_URL", "https://api.loyverse.com/v1.0")
    GOOGLE_SERVICE_ACCOUNT_EMAIL = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
    GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")
    GOOGLE_SHEETS_ID = os.getenv("GOOGLE_SHEETS_ID", "")

def ensure_instance(app):
    # Flask instance path
    os.makedirs(app.instance_path, exist_ok=True)

def logging_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
        },
        "loggers": {
            "hallops": {"handlers": ["console"], "level": level, "propagate": False},
        },
    }
