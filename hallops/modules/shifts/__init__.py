# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from .. import opt_datetime, payload, to_int
from ...services import admin as admin_svc
from ...services import shifts as svc
from ...money import as_number

bp = Blueprint("shifts", __name__, url_prefix="/shifts")


def _bonus_dict(b) -> dict:
    return {
        "id": b.id,
        "shift_id": b.shift_id,
        "employee_id": b.employee_id,
        "date": b.date.isoformat(),
        "bonus_type": b.bonus_type,
        "quantity": b.quantity,
        "amount": as_number(b.amount),
        "comment": b.comment,
    }


# ------------ read ------------------------------------------------------------
@bp.route("/employees", methods=["GET"])
@login_required
def employees():
    rows = admin_svc.list_employees()
    return jsonify({"ok": True, "employees": [admin_svc.employee_to_dict(e) for e in rows]})


@bp.route("/open", methods=["GET"])
@login_required
def open_shifts():
    return jsonify({"ok": True, "shifts": [svc.shift_to_dict(s) for s in svc.list_open_shifts()]})


@bp.route("/open/<int:employee_id>", methods=["GET"])
@login_required
def open_for_employee(employee_id: int):
    s = svc.get_open_shift(employee_id)
    return jsonify({"ok": True, "shift": svc.shift_to_dict(s) if s else None})


@bp.route("/<int:shift_id>", methods=["GET"])
@login_required
def detail(shift_id: int):
    s = svc.get_shift(shift_id)
    data = svc.shift_to_dict(s)
    data["bonuses"] = [_bonus_dict(b) for b in svc.bonuses_for_shift(shift_id)]
    return jsonify({"ok": True, "shift": data})


# ------------ lifecycle -------------------------------------------------------
@bp.route("/start", methods=["POST"])
@login_required
def start():
    p = payload()
    s = svc.start_shift(to_int(p.get("employee_id"), "employee_id"),
                        now=opt_datetime(p.get("now"), "now"))
    return jsonify({"ok": True, "shift": svc.shift_to_dict(s)}), 201


@bp.route("/<int:shift_id>/end", methods=["POST"])
@login_required
def end(shift_id: int):
    p = payload()
    s = svc.end_shift(shift_id, p.get("cash"), p.get("gcash", 0),
                      now=opt_datetime(p.get("now"), "now"))
    return jsonify({"ok": True, "shift": svc.shift_to_dict(s)})


@bp.route("/<int:shift_id>/handover", methods=["POST"])
@login_required
def resubmit(shift_id: int):
    p = payload()
    s = svc.resubmit_handover(shift_id, p.get("cash"), p.get("gcash", 0))
    return jsonify({"ok": True, "shift": svc.shift_to_dict(s)})


# ------------ bonuses ---------------------------------------------------------
@bp.route("/<int:shift_id>/bonuses", methods=["GET"])
@login_required
def bonuses(shift_id: int):
    return jsonify({"ok": True, "bonuses": [_bonus_dict(b) for b in svc.bonuses_for_shift(shift_id)]})


@bp.route("/<int:shift_id>/bonuses", methods=["POST"])
@login_required
def add_bonus(shift_id: int):
    p = payload()
    b = svc.add_bonus(shift_id, p.get("bonus_type", "other"), p.get("amount"),
                      quantity=p.get("quantity", 1), comment=p.get("comment"),
                      now=opt_datetime(p.get("now"), "now"))
    return jsonify({"ok": True, "bonus": _bonus_dict(b)}), 201


@bp.route("/bonuses/<int:bonus_id>", methods=["DELETE"])
@login_required
def delete_bonus(bonus_id: int):
    svc.delete_bonus(bonus_id)
    return jsonify({"ok": True})
