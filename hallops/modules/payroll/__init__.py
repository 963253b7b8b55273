# -*- coding: utf-8 -*-
from __future__ import annotations

from decimal import Decimal

from flask import Blueprint, jsonify, request
from flask_login import login_required

from .. import date_range, opt_date, opt_datetime, payload, to_bool, to_date, to_int
from ...integrations import sheets
from ...money import as_number
from ...security import roles_required
from ...services import payroll as svc
from ...services.shifts import shift_to_dict

bp = Blueprint("payroll", __name__, url_prefix="/payroll")


def _employee_arg():
    raw = request.args.get("employee_id")
    return to_int(raw, "employee_id") if raw else None


# ------------ report ----------------------------------------------------------
@bp.route("/report", methods=["GET"])
@login_required
def report():
    start, end = date_range()
    entries = svc.payroll_report(start, end, employee_id=_employee_arg(),
                                 order=request.args.get("order", "name"))
    totals = {
        "total_salary": as_number(sum((e.total_salary for e in entries), Decimal("0"))),
        "paid_amount": as_number(sum((e.paid_amount for e in entries), Decimal("0"))),
        "unpaid_amount": as_number(sum((e.unpaid_amount for e in entries), Decimal("0"))),
    }
    return jsonify({
        "ok": True,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "entries": [e.to_dict() for e in entries],
        "totals": totals,
    })


@bp.route("/shifts", methods=["GET"])
@login_required
def shifts():
    start, end = date_range()
    rows = svc.shift_entries(start, end, employee_id=_employee_arg())
    return jsonify({"ok": True, "shifts": [shift_to_dict(s) for s in rows]})


# ------------ payments --------------------------------------------------------
@bp.route("/mark-paid", methods=["POST"])
@roles_required("admin")
def mark_paid():
    p = payload()
    start, end = date_range(p)
    rows = svc.mark_paid(to_int(p.get("employee_id"), "employee_id"), start, end,
                         amount=p.get("amount"), now=opt_datetime(p.get("now"), "now"))
    paid = sum((s.salary_paid_amount for s in rows), Decimal("0"))
    return jsonify({"ok": True, "shifts": len(rows), "paid_amount": as_number(paid)})


@bp.route("/shifts/<int:shift_id>/paid", methods=["POST"])
@roles_required("admin")
def shift_paid(shift_id: int):
    p = payload()
    paid = to_bool(p.get("paid"))
    s = svc.set_shift_paid(shift_id, True if paid is None else paid, amount=p.get("amount"),
                           now=opt_datetime(p.get("now"), "now"))
    return jsonify({"ok": True, "shift": shift_to_dict(s)})


@bp.route("/export", methods=["POST"])
@roles_required("admin")
def export():
    p = payload()
    start, end = date_range(p)
    rows = sheets.payroll_rows(svc.payroll_report(start, end))
    updated = sheets.exporter_from_config().write(p.get("range") or "Payroll!A1", rows)
    return jsonify({"ok": True, "rows": updated})


# ------------ investor contributions ------------------------------------------
@bp.route("/contributions", methods=["GET"])
@roles_required("admin")
def contributions():
    rows = svc.list_contributions(opt_date(request.args.get("start"), "start"),
                                  opt_date(request.args.get("end"), "end"))
    return jsonify({
        "ok": True,
        "contributions": [svc.contribution_to_dict(r) for r in rows],
        "summary": svc.contributions_summary(rows),
    })


@bp.route("/contributions", methods=["POST"])
@roles_required("admin")
def add_contribution():
    p = payload()
    r = svc.add_contribution(to_date(p.get("date")), p.get("contribution_type", ""),
                             p.get("category", ""), p.get("amount"), description=p.get("description"))
    return jsonify({"ok": True, "contribution": svc.contribution_to_dict(r)}), 201


@bp.route("/contributions/<int:contribution_id>", methods=["DELETE"])
@roles_required("admin")
def delete_contribution(contribution_id: int):
    svc.delete_contribution(contribution_id)
    return jsonify({"ok": True})
