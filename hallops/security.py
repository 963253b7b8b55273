# -*- coding: utf-8 -*-
from functools import wraps
from flask import current_app, jsonify, request
from flask_login import current_user

from .services.admin import verify_pin


def _login_disabled() -> bool:
    return bool(current_app.config.get("LOGIN_DISABLED"))


def roles_required(*roles):
    """
    Не залогинен -> 401 {"ok": false, "error": "unauthorized"}.
    Роли нет в списке -> 403 {"ok": false, "error": "forbidden"}.
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if _login_disabled():
                return f(*args, **kwargs)
            if not current_user.is_authenticated:
                return jsonify({"ok": False, "error": "unauthorized"}), 401
            if current_user.role not in roles:
                return jsonify({"ok": False, "error": "forbidden"}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator


def pin_required(f):
    """Опасное действие: PIN в теле запроса или заголовке X-Admin-Pin."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        payload = request.get_json(silent=True) or {}
        pin = payload.get("pin") or request.headers.get("X-Admin-Pin")
        if not verify_pin(pin):
            return jsonify({"ok": False, "error": "bad_pin"}), 403
        return f(*args, **kwargs)
    return wrapper
