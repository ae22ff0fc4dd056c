from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.brokerdesk.audit import record_event
from app.brokerdesk.models import User
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.utils import ValidationError
from app.brokerdesk.utils import form_text as _text

_CONTACT_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")

_TRUTHY = ("1", "true", "on", "yes")


def parse_active_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUTHY


def validate_company_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not _text(payload, "name"):
        errs.append(ValidationError("name", "Company name is required."))
    email = _text(payload, "contact_email")
    if not email:
        errs.append(ValidationError("contact_email", "Contact email is required."))
    elif not _CONTACT_EMAIL_RE.match(email):
        errs.append(ValidationError("contact_email", "Enter a valid email address."))
    return errs


def list_companies(s: Session) -> list[InsuranceCompany]:
    return s.query(InsuranceCompany).order_by(InsuranceCompany.created_at.desc(), InsuranceCompany.id.desc()).all()


def list_active_companies(s: Session) -> list[InsuranceCompany]:
    return (
        s.query(InsuranceCompany)
        .filter(InsuranceCompany.is_active.is_(True))
        .order_by(InsuranceCompany.name.asc())
        .all()
    )


def create_company(s: Session, payload: dict[str, Any], *, actor: User) -> InsuranceCompany:
    now = datetime.utcnow()
    company = InsuranceCompany(
        name=_text(payload, "name"),
        contact_email=_text(payload, "contact_email"),
        api_endpoint=_text(payload, "api_endpoint") or None,
        is_active=parse_active_flag(payload.get("is_active")),
        created_at=now,
        updated_at=now,
    )
    s.add(company)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="company.create",
        entity_type="InsuranceCompany",
        entity_id=str(company.id),
        metadata={"name": company.name, "is_active": company.is_active},
    )
    return company


def update_company(s: Session, company: InsuranceCompany, payload: dict[str, Any], *, actor: User) -> InsuranceCompany:
    changes = {}
    new_values = {
        "name": _text(payload, "name"),
        "contact_email": _text(payload, "contact_email"),
        "api_endpoint": _text(payload, "api_endpoint") or None,
        "is_active": parse_active_flag(payload.get("is_active")),
    }
    for field, new in new_values.items():
        old = getattr(company, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(company, field, new)
    company.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=actor,
        action="company.update",
        entity_type="InsuranceCompany",
        entity_id=str(company.id),
        metadata={"name": company.name, "changes": changes},
    )
    return company


def set_company_active(s: Session, company: InsuranceCompany, is_active: bool, *, actor: User) -> InsuranceCompany:
    """Single-field update of the active flag, independent of the edit form."""
    company.is_active = is_active
    company.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="company.activate" if is_active else "company.deactivate",
        entity_type="InsuranceCompany",
        entity_id=str(company.id),
        metadata={"name": company.name},
    )
    return company


def delete_company(s: Session, company: InsuranceCompany, *, actor: User) -> None:
    record_event(
        s,
        actor=actor,
        action="company.delete",
        entity_type="InsuranceCompany",
        entity_id=str(company.id),
        metadata={"name": company.name},
    )
    s.delete(company)
