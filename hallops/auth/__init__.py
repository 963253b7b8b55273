# -*- coding: utf-8 -*-

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from ..models.user import User

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or request.form
    username = (payload.get("username") or "").strip()
    password = (payload.get("password") or "").strip()
    u = User.query.filter_by(username=username).first()
    if not u or not u.is_active or not u.check_password(password):
        return jsonify({"ok": False, "error": "bad_credentials", "message": "Неверный логин или пароль"}), 401
    login_user(u, remember=True)
    return jsonify({"ok": True, "user": {"id": u.id, "username": u.username, "role": u.role}})

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})

@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"ok": True, "user": {
        "id": current_user.id,
        "username": current_user.username,
        "full_name": current_user.full_name,
        "role": current_user.role,
    }})
