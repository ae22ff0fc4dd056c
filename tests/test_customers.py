"""Tests for customer registration, directory, delete and export."""
import io
import re
from decimal import Decimal

import pytest
from openpyxl import load_workbook
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash

from app.brokerdesk import create_app
from app.brokerdesk.db import session_scope
from app.brokerdesk.models import AuditEvent, Base, Permission, Role, User
from app.brokerdesk.modules.customers.export import EXPORT_COLUMNS, SHEET_NAME, export_filename
from app.brokerdesk.modules.customers.models import Customer, InsuranceInfo
from app.brokerdesk.modules.customers.service import filter_customers, validate_registration_payload
from app.brokerdesk.rbac import PERMISSIONS

VALID = {
    "name": "Alice Moreau",
    "birth_date": "1985-04-12",
    "gender": "female",
    "phone": "010-1234-5678",
    "email": "alice@example.com",
    "postal_code": "04524",
    "address": "12 Harbour Road, Busan",
    "occupation": "Engineer",
    "income": "72000",
    "current_insurance": "",
    "desired_insurance": '{"type": "Life"}',
    "coverage_amount": "250000",
    "coverage_period": "20",
    "notes": "",
}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key, name in PERMISSIONS.items():
            r.permissions.append(Permission(key=key, name=name))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u])

    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    c.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    return c


@pytest.fixture()
def failing_store():
    """Install ORM event hooks that fail like a broken database; removed after the test."""
    installed = []

    def install(target, identifier):
        def _fail(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        event.listen(target, identifier, _fail)
        installed.append((target, identifier, _fail))

    yield install
    for target, identifier, fn in installed:
        event.remove(target, identifier, fn)


def _csrf(client):
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _register(client, **overrides):
    data = dict(VALID, **overrides)
    data["csrf_token"] = _csrf(client)
    return client.post("/admin/customers/new", data=data, follow_redirects=True)


def _counts(app):
    with session_scope(app) as s:
        return s.query(Customer).count(), s.query(InsuranceInfo).count()


def test_register_form_renders(client):
    r = client.get("/admin/customers/new")
    assert r.status_code == 200
    for t in (b"Life", b"Health", b"Auto", b"Fire", b"Travel"):
        assert t in r.data


def test_register_creates_customer_and_insurance_info(app, client):
    r = _register(client, current_insurance='{"company": "Acme Life", "policy": "P-1"}')
    assert r.status_code == 200
    assert b"Customer registered." in r.data

    with session_scope(app) as s:
        customers = s.query(Customer).all()
        infos = s.query(InsuranceInfo).all()
        assert len(customers) == 1 and len(infos) == 1
        c, info = customers[0], infos[0]
        assert info.customer_id == c.id
        assert c.name == "Alice Moreau"
        assert c.created_by == "admin@example.com"
        assert c.income == Decimal("72000")
        assert info.desired_insurance == {"type": "Life"}
        assert info.current_insurance == {"company": "Acme Life", "policy": "P-1"}
        assert info.coverage_period == 20
        assert info.notes is None
        assert s.query(AuditEvent).filter(AuditEvent.action == "customer.create").count() == 1


@pytest.mark.parametrize(
    "field,value,message",
    [
        ("income", "-1", b"Income must be 0 or greater."),
        ("name", "A", b"Name must be at least 2 characters."),
        ("phone", "12345", b"at least 10 characters"),
        ("email", "alice@example", b"Enter a valid email address."),
        ("address", "Road", b"Address must be at least 5 characters."),
        ("postal_code", "123", b"Postal code must be at least 5 characters."),
        ("birth_date", "", b"Birth date is required."),
        ("gender", "other", b"Select a gender."),
        ("occupation", "", b"Occupation is required."),
        ("desired_insurance", "", b"Select the desired insurance type."),
        ("coverage_amount", "-5", b"Coverage amount must be 0 or greater."),
        ("coverage_period", "0", b"Coverage period must be at least 1 year."),
        ("current_insurance", "[1, 2]", b"Must be a JSON object."),
    ],
)
def test_register_invalid_field_writes_nothing(app, client, field, value, message):
    r = _register(client, **{field: value})
    assert r.status_code == 200
    assert b"Please fix the highlighted fields." in r.data
    assert message in r.data
    assert _counts(app) == (0, 0)


def test_register_invalid_keeps_entered_values(client):
    r = _register(client, income="-1")
    assert b'value="Alice Moreau"' in r.data


def test_validate_registration_payload_accepts_valid():
    assert validate_registration_payload(dict(VALID)) == []


def test_validate_registration_payload_requires_desired_type():
    errs = validate_registration_payload(dict(VALID, desired_insurance='{"type": ""}'))
    assert [e.field for e in errs] == ["desired_insurance"]


def _people():
    return [
        Customer(name="Alice Moreau", email="alice@example.com", phone="010-1111-2222", occupation="Engineer"),
        Customer(name="Bob Tanaka", email="bob@corp.test", phone="010-3333-4444", occupation="Teacher"),
        Customer(name="Chloe Park", email="chloe@example.com", phone="010-5555-6666", occupation="Nurse"),
    ]


def test_filter_matches_each_field_case_insensitively():
    people = _people()
    assert [c.name for c in filter_customers(people, "ALICE")] == ["Alice Moreau"]
    assert [c.name for c in filter_customers(people, "corp.TEST")] == ["Bob Tanaka"]
    assert [c.name for c in filter_customers(people, "5555")] == ["Chloe Park"]
    assert [c.name for c in filter_customers(people, "teach")] == ["Bob Tanaka"]
    assert [c.name for c in filter_customers(people, "example.com")] == ["Alice Moreau", "Chloe Park"]


def test_filter_empty_term_returns_everything_in_order():
    people = _people()
    assert filter_customers(people, "") == people
    assert filter_customers(people, None) == people


def test_filter_no_match():
    assert filter_customers(_people(), "zzz") == []


def test_list_search(client):
    _register(client)
    _register(client, name="Bob Tanaka", email="bob@corp.test", occupation="Teacher")

    r = client.get("/admin/customers")
    assert b"Alice Moreau" in r.data and b"Bob Tanaka" in r.data

    r = client.get("/admin/customers?q=tanaka")
    assert b"Bob Tanaka" in r.data
    assert b"Alice Moreau" not in r.data
    assert b"1 of 2" in r.data


def test_detail_shows_current_insurance(app, client):
    _register(client, current_insurance='{"company": "Acme Life"}')
    with session_scope(app) as s:
        cid = s.query(Customer.id).scalar()

    r = client.get(f"/admin/customers/{cid}")
    assert r.status_code == 200
    assert b"Alice Moreau" in r.data
    assert b"Acme Life" in r.data


def test_detail_missing_customer(client):
    r = client.get("/admin/customers/999", follow_redirects=True)
    assert b"Customer not found." in r.data


def test_delete_removes_customer_and_insurance_rows(app, client):
    _register(client)
    _register(client, name="Bob Tanaka", email="bob@corp.test")
    with session_scope(app) as s:
        alice_id = s.query(Customer.id).filter(Customer.name == "Alice Moreau").scalar()

    r = client.post(
        f"/admin/customers/{alice_id}/delete", data={"csrf_token": _csrf(client)}, follow_redirects=True
    )
    assert r.status_code == 200
    assert b"Customer deleted." in r.data
    assert b"Alice Moreau" not in r.data

    with session_scope(app) as s:
        assert s.get(Customer, alice_id) is None
        assert s.query(InsuranceInfo).filter(InsuranceInfo.customer_id == alice_id).count() == 0
        assert _counts(app) == (1, 1)
        assert s.query(AuditEvent).filter(AuditEvent.action == "customer.delete").count() == 1


def test_delete_missing_customer(client):
    r = client.post("/admin/customers/999/delete", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert b"Customer not found." in r.data


def test_export_empty_shows_notice(client):
    r = client.get("/admin/customers/export", follow_redirects=True)
    assert r.status_code == 200
    assert b"No data to export." in r.data


def test_export_filtered_rows(client):
    _register(client)
    _register(client, name="Bob Tanaka", email="bob@corp.test", desired_insurance='{"type": "Auto"}')

    r = client.get("/admin/customers/export?q=bob")
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "customers_" in r.headers["Content-Disposition"]

    wb = load_workbook(io.BytesIO(r.data))
    ws = wb[SHEET_NAME]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == list(EXPORT_COLUMNS)
    assert len(rows) == 2
    assert rows[1][0] == "Bob Tanaka"
    assert rows[1][EXPORT_COLUMNS.index("Insurance Type")] == "Auto"


def test_export_all_rows(client):
    _register(client)
    _register(client, name="Bob Tanaka", email="bob@corp.test")

    r = client.get("/admin/customers/export")
    wb = load_workbook(io.BytesIO(r.data))
    assert wb[SHEET_NAME].max_row == 3


def test_export_filename():
    from datetime import date

    assert export_filename(date(2024, 3, 5)) == "customers_2024-03-05.xlsx"


def test_live_filter_keeps_fields_apart(client):
    _register(client, name="Ann Lee", email="nurse@example.com")

    r = client.get("/admin/customers")
    rows = re.findall(r'data-search="([^"]*)"', r.data.decode())
    assert len(rows) == 1
    fields = rows[0].split("\n")
    assert fields == ["ann lee", "nurse@example.com", "010-1234-5678", "engineer"]

    # A term spanning name and email matches no single field, here or on the server.
    assert not any("lee nurse" in f for f in fields)
    assert "lee nurse" not in rows[0]
    r = client.get("/admin/customers?q=lee nurse")
    assert b"0 of 1" in r.data


def test_register_store_failure_leaves_no_orphan(app, client, failing_store):
    failing_store(InsuranceInfo, "before_insert")

    r = _register(client)
    assert r.status_code == 200
    assert r.data.count(b"Failed to register the customer. Please try again.") == 1
    assert b'value="Alice Moreau"' in r.data
    assert b'value="alice@example.com"' in r.data

    assert _counts(app) == (0, 0)
    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "customer.create").count() == 0


def test_delete_store_failure_keeps_customer(app, client, failing_store):
    _register(client)
    with session_scope(app) as s:
        cid = s.query(Customer.id).scalar()

    failing_store(Customer, "before_delete")
    r = client.post(f"/admin/customers/{cid}/delete", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert r.data.count(b"Failed to delete the customer.") == 1
    assert b"Customer deleted." not in r.data

    assert _counts(app) == (1, 1)
    with session_scope(app) as s:
        assert s.query(InsuranceInfo).filter(InsuranceInfo.customer_id == cid).count() == 1
        assert s.query(AuditEvent).filter(AuditEvent.action == "customer.delete").count() == 0
