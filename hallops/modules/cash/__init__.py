# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from .. import date_range, opt_date, payload, to_bool, to_date, to_datetime, to_int
from ...errors import ValidationError
from ...integrations import loyverse, sheets
from ...security import roles_required
from ...services import billing
from ...services import expenses as exp_svc
from ...services import reconciliation as rec
from ...services import registers as reg_svc
from ...services import shift_clock as clock
from ...services.activity import recent_activity
from ...services.records import RegisterRecord

bp = Blueprint("cash", __name__, url_prefix="/cash")


# ------------ registers -------------------------------------------------------
@bp.route("/registers", methods=["GET"])
@login_required
def registers():
    rows = reg_svc.list_registers(opt_date(request.args.get("start"), "start"),
                                  opt_date(request.args.get("end"), "end"))
    return jsonify({"ok": True, "registers": [reg_svc.register_to_dict(r) for r in rows]})


@bp.route("/registers/<int:register_id>", methods=["GET"])
@login_required
def register_detail(register_id: int):
    r = reg_svc.get_register(register_id)
    data = reg_svc.register_to_dict(r)
    data["expenses"] = [exp_svc.expense_to_dict(e) for e in r.expenses]
    return jsonify({"ok": True, "register": data})


@bp.route("/registers", methods=["PUT"])
@roles_required("admin")
def update_register():
    p = payload()
    r = reg_svc.update_register(
        to_date(p.get("date")), p.get("shift", ""),
        opening_balance=p.get("opening_balance"),
        cash_expected=p.get("cash_expected"),
        gcash_expected=p.get("gcash_expected"),
        notes=p.get("notes"),
    )
    return jsonify({"ok": True, "register": reg_svc.register_to_dict(r)})


# ------------ verification ----------------------------------------------------
@bp.route("/pending", methods=["GET"])
@roles_required("admin")
def pending():
    threshold = rec.miscategorization_threshold()
    out = []
    for g in rec.pending_verifications():
        data = g.to_dict()
        flagged, hint = rec.detect_miscategorization(g, threshold)
        data["miscategorized"] = flagged
        data["miscategorization_hint"] = hint
        out.append(data)
    return jsonify({"ok": True, "groups": out})


@bp.route("/pending/approve", methods=["POST"])
@roles_required("admin")
def approve():
    p = payload()
    g = rec.approve_group(
        to_date(p.get("date")), p.get("shift", ""),
        shortage_inputs=p.get("shortages") or None,
        add_surplus_to_storage=bool(p.get("add_surplus_to_storage")),
    )
    return jsonify({"ok": True, "group": g.to_dict()})


@bp.route("/shifts/<int:shift_id>/reject", methods=["POST"])
@roles_required("admin")
def reject(shift_id: int):
    rec.reject_shift(shift_id)
    return jsonify({"ok": True})


@bp.route("/history", methods=["GET"])
@roles_required("admin")
def history():
    limit = to_int(request.args.get("limit", 30), "limit")
    return jsonify({"ok": True, "groups": [h.to_dict() for h in rec.recent_history(limit)]})


# ------------ expenses --------------------------------------------------------
@bp.route("/expenses", methods=["GET"])
@login_required
def expenses():
    a = request.args
    rows = exp_svc.list_expenses(
        start=opt_date(a.get("start"), "start"),
        end=opt_date(a.get("end"), "end"),
        category=a.get("category") or None,
        search=a.get("search") or None,
        approved=to_bool(a.get("approved")),
    )
    return jsonify({"ok": True, "expenses": [exp_svc.expense_to_dict(e) for e in rows]})


@bp.route("/expenses", methods=["POST"])
@login_required
def add_expense():
    p = payload()
    e = exp_svc.add_expense(
        to_date(p.get("date")), p.get("shift", ""), p.get("category", ""), p.get("amount"),
        payment_source=p.get("payment_source", "cash"),
        description=p.get("description"),
        shift_id=to_int(p["shift_id"], "shift_id") if p.get("shift_id") else None,
    )
    return jsonify({"ok": True, "expense": exp_svc.expense_to_dict(e)}), 201


@bp.route("/expenses/<int:expense_id>", methods=["PUT"])
@roles_required("admin")
def update_expense(expense_id: int):
    p = payload()
    e = exp_svc.update_expense(expense_id, amount=p.get("amount"), category=p.get("category"),
                               description=p.get("description"))
    return jsonify({"ok": True, "expense": exp_svc.expense_to_dict(e)})


@bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@roles_required("admin")
def delete_expense(expense_id: int):
    exp_svc.delete_expense(expense_id)
    return jsonify({"ok": True})


@bp.route("/expenses/<int:expense_id>/approve", methods=["POST"])
@roles_required("admin")
def approve_expense(expense_id: int):
    e = rec.approve_expense(expense_id)
    return jsonify({"ok": True, "expense": exp_svc.expense_to_dict(e)})


@bp.route("/expenses/<int:expense_id>/reject", methods=["POST"])
@roles_required("admin")
def reject_expense(expense_id: int):
    rec.reject_expense(expense_id)
    return jsonify({"ok": True})


# ------------ table billing ---------------------------------------------------
@bp.route("/billing/rates", methods=["GET"])
@login_required
def billing_rates():
    rates, default_rate = billing.table_rates()
    return jsonify({"ok": True, "rates": rates, "default_rate": default_rate})


@bp.route("/billing/daily", methods=["POST"])
@login_required
def billing_daily():
    p = payload()
    raw = p.get("sessions")
    if not isinstance(raw, list) or not all(isinstance(s, dict) for s in raw):
        raise ValidationError("Нужен список sessions", field="sessions")
    sessions = [
        billing.TableSession(
            table_id=str(s.get("table_id") or ""),
            start=to_datetime(s.get("start"), "start"),
            end=to_datetime(s.get("end"), "end"),
        )
        for s in raw
    ]
    rates, default_rate = billing.table_rates()
    day_start, _ = clock.boundaries()
    days = billing.daily_totals(sessions, clock.hall_tz(), day_start, rates, default_rate)
    return jsonify({"ok": True, "days": days})


# ------------ integrations ----------------------------------------------------
@bp.route("/sync-pos", methods=["POST"])
@roles_required("admin")
def sync_pos():
    p = payload()
    summary, reg = loyverse.sync_expected(
        to_date(p.get("date")), p.get("shift", ""),
        to_datetime(p.get("start"), "start"), to_datetime(p.get("end"), "end"),
    )
    return jsonify({"ok": True, "summary": summary.to_dict(), "register": reg_svc.register_to_dict(reg)})


@bp.route("/export", methods=["POST"])
@roles_required("admin")
def export():
    p = payload()
    start, end = date_range(p)
    rows = sheets.ledger_rows([RegisterRecord.from_model(r) for r in reg_svc.list_registers(start, end)])
    updated = sheets.exporter_from_config().write(p.get("range") or "Cash!A1", rows)
    return jsonify({"ok": True, "rows": updated})


@bp.route("/activity", methods=["GET"])
@roles_required("admin")
def activity():
    limit = to_int(request.args.get("limit", 100), "limit")
    rows = recent_activity(limit, module=request.args.get("module") or None)
    return jsonify({"ok": True, "activity": [
        {
            "id": r.id,
            "module": r.module,
            "action": r.action,
            "details": r.details,
            "entity_id": r.entity_id,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in rows
    ]})
