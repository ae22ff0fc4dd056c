from __future__ import annotations

import io
from datetime import date

from flask import Blueprint, current_app, flash, redirect, render_template, request, send_file, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.brokerdesk.db import db_session
from app.brokerdesk.modules.customers.export import build_customer_workbook, export_filename
from app.brokerdesk.modules.customers.service import (
    INSURANCE_TYPES,
    REGISTRATION_FIELDS,
    delete_customer,
    filter_customers,
    get_customer_by_id,
    list_customers,
    register_customer,
    validate_registration_payload,
)
from app.brokerdesk.rbac import current_user, require_permission

bp = Blueprint("customers", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _render_form(values: dict, errors: dict[str, str] | None = None):
    return render_template(
        "admin/customers/new.html",
        values=values,
        errors=errors or {},
        insurance_types=INSURANCE_TYPES,
    )


# ---------- Register ----------
@bp.get("/customers/new")
@require_permission("customers.create")
def register_get():
    return _render_form({"coverage_period": "1"})


@bp.post("/customers/new")
@require_permission("customers.create")
def register_post():
    payload = {k: request.form.get(k) for k in REGISTRATION_FIELDS}

    errs = validate_registration_payload(payload)
    if errs:
        flash("Please fix the highlighted fields.", "danger")
        return _render_form(payload, {e.field: e.message for e in errs})

    s = db_session()
    try:
        c = register_customer(s, payload, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Customer registration failed (name=%s)", payload.get("name"))
        flash("Failed to register the customer. Please try again.", "danger")
        return _render_form(payload)

    current_app.logger.info("Registered customer id=%s", c.id)
    flash("Customer registered.", "success")
    return redirect(url_for("customers.register_get"))


# ---------- Directory ----------
@bp.get("/customers")
@require_permission("customers.view")
def customers_list():
    q = request.args.get("q") or ""
    try:
        customers = list_customers(db_session())
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load customers")
        flash("Failed to load the customer list.", "danger")
        customers = []

    filtered = filter_customers(customers, q)
    return render_template(
        "admin/customers/list.html",
        customers=filtered,
        total=len(customers),
        q=q,
    )


@bp.get("/customers/<int:customer_id>")
@require_permission("customers.view")
def customer_detail(customer_id: int):
    try:
        c = get_customer_by_id(db_session(), customer_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load customer id=%s", customer_id)
        flash("Failed to load the customer.", "danger")
        return redirect(url_for("customers.customers_list"))
    if not c:
        flash("Customer not found.", "danger")
        return redirect(url_for("customers.customers_list"))
    return render_template("admin/customers/detail.html", customer=c)


@bp.post("/customers/<int:customer_id>/delete")
@require_permission("customers.delete")
def customer_delete(customer_id: int):
    s = db_session()
    q = request.form.get("q") or ""
    try:
        c = get_customer_by_id(s, customer_id)
        if not c:
            flash("Customer not found.", "danger")
            return redirect(url_for("customers.customers_list", q=q or None))
        removed = delete_customer(s, c, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to delete customer id=%s", customer_id)
        flash("Failed to delete the customer.", "danger")
        return redirect(url_for("customers.customers_list", q=q or None))

    current_app.logger.info("Deleted customer id=%s with %d insurance row(s)", customer_id, removed)
    flash("Customer deleted.", "success")
    return redirect(url_for("customers.customers_list", q=q or None))


# ---------- Export ----------
@bp.get("/customers/export")
@require_permission("customers.export")
def customers_export():
    q = request.args.get("q") or ""
    try:
        customers = filter_customers(list_customers(db_session()), q)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load customers for export")
        flash("Failed to export customers.", "danger")
        return redirect(url_for("customers.customers_list", q=q or None))

    if not customers:
        flash("No data to export.", "warning")
        return redirect(url_for("customers.customers_list", q=q or None))

    data = build_customer_workbook(customers)
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=export_filename(date.today()),
        max_age=0,
    )
