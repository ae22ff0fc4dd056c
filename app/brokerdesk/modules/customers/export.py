from __future__ import annotations

import io
from collections.abc import Sequence
from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Font

from app.brokerdesk.modules.customers.models import Customer

SHEET_NAME = "Customers"
EXPORT_LABEL = "customers"

EXPORT_COLUMNS = (
    "Name",
    "Birth Date",
    "Gender",
    "Phone",
    "Email",
    "Address",
    "Postal Code",
    "Occupation",
    "Income",
    "Registered",
    "Insurance Type",
    "Coverage Amount",
    "Coverage Period",
)


def export_filename(today: date | None = None) -> str:
    return f"{EXPORT_LABEL}_{(today or date.today()).isoformat()}.xlsx"


def customer_export_row(c: Customer) -> list:
    info = c.primary_insurance
    return [
        c.name,
        c.birth_date.isoformat() if c.birth_date else "",
        c.gender_label,
        c.phone,
        c.email,
        c.address,
        c.postal_code,
        c.occupation,
        c.income,
        c.created_at.strftime("%Y-%m-%d") if c.created_at else "",
        (info.desired_type or "") if info else "",
        info.coverage_amount if info else "",
        info.coverage_period if info else "",
    ]


def build_customer_workbook(customers: Sequence[Customer]) -> bytes:
    """Serialize customers to an .xlsx workbook: header row plus one row per customer."""
    if not customers:
        raise ValueError("Nothing to export.")

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME
    ws.append(list(EXPORT_COLUMNS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for c in customers:
        ws.append(customer_export_row(c))
    ws.freeze_panes = "A2"

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()
