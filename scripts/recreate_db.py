# -*- coding: utf-8 -*-
"""
Полный ресет SQLite-БД и базовое наполнение: админ, кассир, сотрудники.

Запуск из корня проекта:
  python scripts/recreate_db.py
"""

from __future__ import annotations
import sys, traceback
from pathlib import Path
from typing import Optional
from sqlalchemy import func, select

from hallops import create_app
from hallops.extensions import db
from hallops.models import Employee, User

EMPLOYEES = ["Ana", "Mark", "Joy"]


def _db_path_from_uri(uri: str) -> Optional[Path]:
    if uri.startswith("sqlite:///"):
        return Path(uri.replace("sqlite:///", "")).resolve()
    return None


def _cnt(model) -> int:
    return int(db.session.execute(select(func.count()).select_from(model)).scalar() or 0)


def main() -> int:
    print("[recreate] create_app()…")
    app = create_app()
    with app.app_context():
        uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
        print(f"[recreate] SQLALCHEMY_DATABASE_URI = {uri}")

        db_path = _db_path_from_uri(uri)
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            if db_path.exists():
                print(f"[recreate] удаляю файл БД: {db_path}")
                db_path.unlink()
        else:
            print("[recreate] БД не sqlite: удаляю таблицы через drop_all()")
            db.drop_all()

        print("[recreate] создаю таблицы по моделям…")
        db.create_all()

        # --- пользователи ---
        admin = User(username="admin", full_name="Administrator", role="admin")
        admin.set_password("admin")
        cashier = User(username="cashier", full_name="Cashier", role="staff")
        cashier.set_password("cashier")
        db.session.add_all([admin, cashier])

        # --- сотрудники ---
        db.session.add_all([Employee(name=n, position="staff", active=True) for n in EMPLOYEES])
        db.session.commit()
        print(f"[recreate] user rows={_cnt(User)}  employee rows={_cnt(Employee)}")

        print("\n[recreate] Готово.")
        print("Логины:")
        print("  admin   / admin")
        print("  cashier / cashier")
        if db_path:
            print(f"\nФайл БД: {db_path}")
        return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception:
        print("\n[recreate] ОШИБКА:")
        traceback.print_exc()
        sys.exit(1)
