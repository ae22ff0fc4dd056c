from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.brokerdesk.db import db_session
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.modules.companies.service import (
    create_company,
    delete_company,
    list_companies,
    parse_active_flag,
    set_company_active,
    update_company,
    validate_company_payload,
)
from app.brokerdesk.rbac import current_user, require_permission

bp = Blueprint("companies", __name__)

_NEW_COMPANY_DEFAULTS = {"name": "", "contact_email": "", "api_endpoint": "", "is_active": True}


def _form_payload() -> dict:
    return {
        "name": request.form.get("name"),
        "contact_email": request.form.get("contact_email"),
        "api_endpoint": request.form.get("api_endpoint"),
        "is_active": parse_active_flag(request.form.get("is_active")),
    }


def _render_list(*, form: dict, editing: InsuranceCompany | None = None, errors: dict[str, str] | None = None):
    try:
        companies = list_companies(db_session())
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load insurance companies")
        flash("Failed to load insurance companies.", "danger")
        companies = []
    return render_template(
        "admin/companies/list.html",
        companies=companies,
        form=form,
        editing=editing,
        errors=errors or {},
    )


@bp.get("/companies")
@require_permission("companies.view")
def companies_list():
    edit_id = request.args.get("edit", type=int)
    if edit_id is None:
        return _render_list(form=dict(_NEW_COMPANY_DEFAULTS))

    try:
        company = db_session().get(InsuranceCompany, edit_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load insurance company id=%s", edit_id)
        flash("Failed to load the insurance company.", "danger")
        return redirect(url_for("companies.companies_list"))
    if not company:
        flash("Insurance company not found.", "danger")
        return redirect(url_for("companies.companies_list"))
    form = {
        "name": company.name,
        "contact_email": company.contact_email,
        "api_endpoint": company.api_endpoint or "",
        "is_active": company.is_active,
    }
    return _render_list(form=form, editing=company)


@bp.post("/companies")
@require_permission("companies.edit")
def companies_create():
    payload = _form_payload()
    errs = validate_company_payload(payload)
    if errs:
        flash("Please fix the highlighted fields.", "danger")
        return _render_list(form=payload, errors={e.field: e.message for e in errs})

    s = db_session()
    try:
        create_company(s, payload, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to add insurance company (name=%s)", payload.get("name"))
        flash("Failed to save the insurance company.", "danger")
        return _render_list(form=payload)

    flash("Insurance company added.", "success")
    return redirect(url_for("companies.companies_list"))


@bp.post("/companies/<int:company_id>/edit")
@require_permission("companies.edit")
def companies_update(company_id: int):
    s = db_session()
    payload = _form_payload()
    company = None
    try:
        company = s.get(InsuranceCompany, company_id)
        if not company:
            flash("Insurance company not found.", "danger")
            return redirect(url_for("companies.companies_list"))

        errs = validate_company_payload(payload)
        if errs:
            flash("Please fix the highlighted fields.", "danger")
            return _render_list(form=payload, editing=company, errors={e.field: e.message for e in errs})

        update_company(s, company, payload, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to update insurance company id=%s", company_id)
        flash("Failed to save the insurance company.", "danger")
        if company is None:
            return redirect(url_for("companies.companies_list"))
        return _render_list(form=payload, editing=company)

    flash("Insurance company updated.", "success")
    return redirect(url_for("companies.companies_list"))


@bp.post("/companies/<int:company_id>/toggle")
@require_permission("companies.edit")
def companies_toggle(company_id: int):
    s = db_session()
    try:
        company = s.get(InsuranceCompany, company_id)
        if not company:
            flash("Insurance company not found.", "danger")
            return redirect(url_for("companies.companies_list"))
        target = not company.is_active
        set_company_active(s, company, target, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to change status of insurance company id=%s", company_id)
        flash("Failed to change the company status.", "danger")
        return redirect(url_for("companies.companies_list"))

    flash("Insurance company activated." if target else "Insurance company deactivated.", "success")
    return redirect(url_for("companies.companies_list"))


@bp.post("/companies/<int:company_id>/delete")
@require_permission("companies.edit")
def companies_delete(company_id: int):
    s = db_session()
    try:
        company = s.get(InsuranceCompany, company_id)
        if not company:
            flash("Insurance company not found.", "danger")
            return redirect(url_for("companies.companies_list"))
        delete_company(s, company, actor=current_user())
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Failed to delete insurance company id=%s", company_id)
        flash("Failed to delete the insurance company.", "danger")
        return redirect(url_for("companies.companies_list"))

    flash("Insurance company deleted.", "success")
    return redirect(url_for("companies.companies_list"))
