from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.brokerdesk.audit import record_event
from app.brokerdesk.db import db_session
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.modules.companies.service import list_active_companies
from app.brokerdesk.modules.customers.service import list_customers
from app.brokerdesk.modules.transmissions.service import (
    STATUS_LABELS,
    build_jobs,
    company_target,
    load_selected_customers,
    recent_transmissions,
    send_transmissions,
)
from app.brokerdesk.rbac import current_user, require_permission

bp = Blueprint("transmissions", __name__)


def _parse_ids(values: list[str]) -> list[int]:
    ids: list[int] = []
    for v in values:
        try:
            ids.append(int(v))
        except (TypeError, ValueError):
            continue
    return ids


def _render_index(*, selected_ids: list[int] | None = None, selected_company_id: int | None = None):
    s = db_session()
    try:
        customers = list_customers(s)
        companies = list_active_companies(s)
        history = recent_transmissions(s, limit=current_app.config.get("TRANSMISSION_HISTORY_LIMIT", 50))
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load transmission data")
        flash("Failed to load transmission data.", "danger")
        customers, companies, history = [], [], []
    return render_template(
        "admin/transmissions/index.html",
        customers=customers,
        companies=companies,
        history=history,
        status_labels=STATUS_LABELS,
        selected_ids=set(selected_ids or []),
        selected_company_id=selected_company_id,
    )


@bp.get("/transmissions")
@require_permission("transmissions.view")
def transmissions_index():
    return _render_index()


@bp.post("/transmissions/send")
@require_permission("transmissions.send")
def transmissions_send():
    s = db_session()
    u = current_user()
    customer_ids = _parse_ids(request.form.getlist("customer_ids"))
    company_id = request.form.get("company_id", type=int)

    if not customer_ids:
        flash("Select at least one customer to send.", "danger")
        return _render_index(selected_company_id=company_id)
    if company_id is None:
        flash("Select an insurance company.", "danger")
        return _render_index(selected_ids=customer_ids)

    try:
        company = s.get(InsuranceCompany, company_id)
        customers = load_selected_customers(s, customer_ids)
        jobs = build_jobs(customers)
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to prepare transmission to company id=%s", company_id)
        flash("Failed to send customer data.", "danger")
        return _render_index(selected_ids=customer_ids, selected_company_id=company_id)

    if not company or not company.is_active:
        flash("The selected insurance company is not available.", "danger")
        return _render_index(selected_ids=customer_ids)
    if not customers:
        flash("The selected customers no longer exist.", "danger")
        return _render_index(selected_company_id=company_id)

    report = send_transmissions(
        current_app.extensions["sqlalchemy_sessionmaker"],
        jobs,
        company_target(company),
        actor_id=u.actor_id,
        simulator=current_app.extensions["delivery_simulator"],
        max_workers=current_app.config.get("TRANSMISSION_MAX_WORKERS", 4),
    )

    try:
        record_event(
            s,
            actor=u,
            action="transmission.send",
            entity_type="InsuranceCompany",
            entity_id=str(company.id),
            metadata={
                "company": company.name,
                "requested": report.total,
                "written": report.written,
                "completed": report.completed,
                "failed": report.failed,
                "errors": [o.customer_id for o in report.errors],
            },
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to record audit event for transmission to company id=%s", company.id)

    if report.errors:
        flash(
            f"Sent {report.written} of {report.total} customer(s) to {company.name}; "
            f"{len(report.errors)} could not be recorded.",
            "warning",
        )
    else:
        flash(f"Sent {report.total} customer(s) to {company.name}.", "success")
    return redirect(url_for("transmissions.transmissions_index"))
