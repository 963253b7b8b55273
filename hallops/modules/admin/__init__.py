# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request

from .. import date_range, opt_datetime, payload, to_bool
from ...security import pin_required, roles_required
from ...services import admin as svc
from ...services.shifts import shift_to_dict

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.route("/verify-pin", methods=["POST"])
@roles_required("admin")
def verify_pin():
    return jsonify({"ok": svc.verify_pin(payload().get("pin"))})


# ------------ reset / edit ----------------------------------------------------
@bp.route("/reset", methods=["POST"])
@roles_required("admin")
@pin_required
def reset():
    p = payload()
    start, end = date_range(p)
    result = svc.reset_period(start, end, hard_delete=bool(p.get("hard_delete")))
    return jsonify({"ok": True, **result})


@bp.route("/shifts/<int:shift_id>", methods=["PUT"])
@roles_required("admin")
@pin_required
def edit_shift(shift_id: int):
    p = payload()
    s = svc.edit_shift(shift_id, start=opt_datetime(p.get("shift_start"), "shift_start"),
                       base_salary=p.get("base_salary"))
    return jsonify({"ok": True, "shift": shift_to_dict(s)})


# ------------ employees -------------------------------------------------------
@bp.route("/employees", methods=["GET"])
@roles_required("admin")
def employees():
    rows = svc.list_employees(include_inactive=bool(to_bool(request.args.get("all"))))
    return jsonify({"ok": True, "employees": [svc.employee_to_dict(e) for e in rows]})


@bp.route("/employees", methods=["POST"])
@roles_required("admin")
def create_employee():
    p = payload()
    e = svc.create_employee(p.get("name"), p.get("position") or "staff")
    return jsonify({"ok": True, "employee": svc.employee_to_dict(e)}), 201


@bp.route("/employees/<int:employee_id>", methods=["PUT"])
@roles_required("admin")
def update_employee(employee_id: int):
    p = payload()
    e = svc.update_employee(employee_id, name=p.get("name"), position=p.get("position"),
                            active=to_bool(p.get("active")))
    return jsonify({"ok": True, "employee": svc.employee_to_dict(e)})


@bp.route("/employees/<int:employee_id>", methods=["DELETE"])
@roles_required("admin")
def deactivate_employee(employee_id: int):
    e = svc.deactivate_employee(employee_id)
    return jsonify({"ok": True, "employee": svc.employee_to_dict(e)})
