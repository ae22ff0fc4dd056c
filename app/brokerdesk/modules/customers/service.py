"""
Customer registration and directory operations.

Registration writes the customer and its insurance-preference row in one
transaction; deletion removes the insurance rows and the customer together.
Callers own the commit.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from app.brokerdesk.audit import record_event
from app.brokerdesk.models import User
from app.brokerdesk.modules.customers.models import GENDERS, Customer, InsuranceInfo
from app.brokerdesk.utils import ValidationError, parse_json_object
from app.brokerdesk.utils import form_text as _text

INSURANCE_TYPES = ("Life", "Health", "Auto", "Fire", "Travel")

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# Form fields in display order.
REGISTRATION_FIELDS = (
    "name",
    "birth_date",
    "gender",
    "phone",
    "email",
    "postal_code",
    "address",
    "occupation",
    "income",
    "current_insurance",
    "desired_insurance",
    "coverage_amount",
    "coverage_period",
    "notes",
)


def _decimal(raw: str) -> Decimal | None:
    try:
        d = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def _int(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def validate_registration_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []

    if len(_text(payload, "name")) < 2:
        errs.append(ValidationError("name", "Name must be at least 2 characters."))

    birth_date = _text(payload, "birth_date")
    if not birth_date:
        errs.append(ValidationError("birth_date", "Birth date is required."))
    else:
        try:
            date.fromisoformat(birth_date)
        except ValueError:
            errs.append(ValidationError("birth_date", "Birth date must be YYYY-MM-DD."))

    if _text(payload, "gender") not in GENDERS:
        errs.append(ValidationError("gender", "Select a gender."))

    if len(_text(payload, "phone")) < 10:
        errs.append(ValidationError("phone", "Enter a valid phone number (at least 10 characters)."))

    if not _EMAIL_RE.match(_text(payload, "email")):
        errs.append(ValidationError("email", "Enter a valid email address."))

    if len(_text(payload, "address")) < 5:
        errs.append(ValidationError("address", "Address must be at least 5 characters."))

    if len(_text(payload, "postal_code")) < 5:
        errs.append(ValidationError("postal_code", "Postal code must be at least 5 characters."))

    if not _text(payload, "occupation"):
        errs.append(ValidationError("occupation", "Occupation is required."))

    income = _decimal(_text(payload, "income"))
    if income is None:
        errs.append(ValidationError("income", "Income must be a number."))
    elif income < 0:
        errs.append(ValidationError("income", "Income must be 0 or greater."))

    desired_raw = _text(payload, "desired_insurance")
    if not desired_raw:
        errs.append(ValidationError("desired_insurance", "Select the desired insurance type."))
    else:
        desired, err = parse_json_object(desired_raw)
        if err:
            errs.append(ValidationError("desired_insurance", err))
        elif not str(desired.get("type") or "").strip():
            errs.append(ValidationError("desired_insurance", "Desired insurance needs a type."))

    amount = _decimal(_text(payload, "coverage_amount"))
    if amount is None:
        errs.append(ValidationError("coverage_amount", "Coverage amount must be a number."))
    elif amount < 0:
        errs.append(ValidationError("coverage_amount", "Coverage amount must be 0 or greater."))

    period = _int(_text(payload, "coverage_period"))
    if period is None:
        errs.append(ValidationError("coverage_period", "Coverage period must be a whole number of years."))
    elif period < 1:
        errs.append(ValidationError("coverage_period", "Coverage period must be at least 1 year."))

    current_raw = _text(payload, "current_insurance")
    if current_raw:
        _, err = parse_json_object(current_raw)
        if err:
            errs.append(ValidationError("current_insurance", err))

    return errs


def register_customer(s: Session, payload: dict[str, Any], *, actor: User) -> Customer:
    """
    Insert a Customer and its InsuranceInfo. Payload must already be validated.
    Both rows are added to the caller's transaction; nothing is committed here.
    """
    now = datetime.utcnow()
    c = Customer(
        name=_text(payload, "name"),
        birth_date=date.fromisoformat(_text(payload, "birth_date")),
        gender=_text(payload, "gender"),
        phone=_text(payload, "phone"),
        email=_text(payload, "email"),
        address=_text(payload, "address"),
        postal_code=_text(payload, "postal_code"),
        occupation=_text(payload, "occupation"),
        income=Decimal(_text(payload, "income")),
        created_by=actor.actor_id,
        created_at=now,
        updated_at=now,
    )
    current_raw = _text(payload, "current_insurance")
    info = InsuranceInfo(
        customer=c,
        current_insurance=json.loads(current_raw) if current_raw else None,
        desired_insurance=json.loads(_text(payload, "desired_insurance")),
        coverage_amount=Decimal(_text(payload, "coverage_amount")),
        coverage_period=int(_text(payload, "coverage_period")),
        notes=_text(payload, "notes") or None,
        created_at=now,
    )
    s.add(c)
    # One flush: customers row first, then insurance_info with the new customer id.
    s.flush()

    record_event(
        s,
        actor=actor,
        action="customer.create",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={"name": c.name, "insurance_info_id": info.id, "desired_type": info.desired_type},
    )
    return c


def list_customers(s: Session) -> list[Customer]:
    """All customers with their insurance entries, newest first."""
    return s.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer_by_id(s: Session, customer_id: int) -> Customer | None:
    return s.get(Customer, customer_id)


def customer_matches(c: Customer, term: str) -> bool:
    needle = term.lower()
    return any(needle in (value or "").lower() for value in (c.name, c.email, c.phone, c.occupation))


def filter_customers(customers: Iterable[Customer], term: str | None) -> list[Customer]:
    """
    Case-insensitive substring search over name, email, phone and occupation.
    An empty term returns everything; order is preserved.
    """
    customers = list(customers)
    if not term:
        return customers
    return [c for c in customers if customer_matches(c, term)]


def delete_customer(s: Session, c: Customer, *, actor: User) -> int:
    """
    Delete a customer's insurance rows and then the customer, in the caller's
    transaction. Returns the number of insurance rows removed.
    """
    removed = len(c.insurance_entries)
    record_event(
        s,
        actor=actor,
        action="customer.delete",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={"name": c.name, "insurance_rows": removed},
    )
    # delete-orphan cascade issues the insurance_info DELETEs before the customer's.
    s.delete(c)
    s.flush()
    return removed
