"""Tests for the insurance company registry."""
import pytest
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash

from app.brokerdesk import create_app
from app.brokerdesk.db import session_scope
from app.brokerdesk.models import AuditEvent, Base, Permission, Role, User
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.modules.companies.service import parse_active_flag, validate_company_payload
from app.brokerdesk.rbac import PERMISSIONS


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


def _csrf(client):
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _create(client, **data):
    payload = {"name": "Acme Life", "contact_email": "ops@acme.test", "api_endpoint": "", "is_active": "1"}
    payload.update(data)
    payload["csrf_token"] = _csrf(client)
    return client.post("/admin/companies", data=payload, follow_redirects=True)


def _company(app, name="Acme Life"):
    with session_scope(app) as s:
        return s.query(InsuranceCompany).filter(InsuranceCompany.name == name).one_or_none()


def test_list_empty(client):
    r = client.get("/admin/companies")
    assert r.status_code == 200
    assert b"No insurance companies registered yet." in r.data


def test_create(app, client):
    r = _create(client, api_endpoint="https://acme.test/api")
    assert b"Insurance company added." in r.data
    assert b"Acme Life" in r.data

    co = _company(app)
    assert co.contact_email == "ops@acme.test"
    assert co.api_endpoint == "https://acme.test/api"
    assert co.is_active is True
    assert co.created_at is not None


def test_create_inactive_when_unchecked(app, client):
    payload = {"name": "Quiet Mutual", "contact_email": "ops@quiet.test", "csrf_token": _csrf(client)}
    client.post("/admin/companies", data=payload, follow_redirects=True)
    assert _company(app, "Quiet Mutual").is_active is False


@pytest.mark.parametrize(
    "data,message",
    [
        ({"name": ""}, b"Company name is required."),
        ({"contact_email": ""}, b"Contact email is required."),
        ({"contact_email": "not-an-email"}, b"Enter a valid email address."),
    ],
)
def test_create_validation(app, client, data, message):
    r = _create(client, **data)
    assert b"Please fix the highlighted fields." in r.data
    assert message in r.data
    with session_scope(app) as s:
        assert s.query(InsuranceCompany).count() == 0


def test_edit_form_prefilled(app, client):
    _create(client)
    co = _company(app)
    r = client.get(f"/admin/companies?edit={co.id}")
    assert r.status_code == 200
    assert b'value="ops@acme.test"' in r.data
    assert b"Save changes" in r.data


def test_update(app, client):
    _create(client)
    co = _company(app)
    r = client.post(
        f"/admin/companies/{co.id}/edit",
        data={"name": "Acme Life & Health", "contact_email": "desk@acme.test", "is_active": "1", "csrf_token": _csrf(client)},
        follow_redirects=True,
    )
    assert b"Insurance company updated." in r.data

    updated = _company(app, "Acme Life & Health")
    assert updated.id == co.id
    assert updated.contact_email == "desk@acme.test"
    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "company.update").one()
        assert "desk@acme.test" in ev.metadata_json


def test_toggle(app, client):
    _create(client)
    co = _company(app)

    r = client.post(f"/admin/companies/{co.id}/toggle", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert b"Insurance company deactivated." in r.data
    assert _company(app).is_active is False

    r = client.post(f"/admin/companies/{co.id}/toggle", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert b"Insurance company activated." in r.data
    assert _company(app).is_active is True


def test_delete(app, client):
    _create(client)
    co = _company(app)
    r = client.post(f"/admin/companies/{co.id}/delete", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert b"Insurance company deleted." in r.data
    assert _company(app) is None


def test_missing_company(client):
    r = client.post("/admin/companies/999/toggle", data={"csrf_token": _csrf(client)}, follow_redirects=True)
    assert b"Insurance company not found." in r.data


def test_validate_company_payload():
    assert validate_company_payload({"name": "Acme", "contact_email": "a@b"}) == []
    fields = [e.field for e in validate_company_payload({"name": " ", "contact_email": "a b@c"})]
    assert fields == ["name", "contact_email"]


@pytest.mark.parametrize("raw,expected", [("1", True), ("on", True), ("true", True), ("", False), (None, False), ("0", False)])
def test_parse_active_flag(raw, expected):
    assert parse_active_flag(raw) is expected


class _UnreachableStore:
    """Stands in for the request session when the database cannot be read."""

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    def rollback(self):
        pass


@pytest.mark.parametrize(
    "method,path,message",
    [
        ("get", "/admin/companies?edit={id}", "Failed to load the insurance company."),
        ("post", "/admin/companies/{id}/edit", "Failed to save the insurance company."),
        ("post", "/admin/companies/{id}/toggle", "Failed to change the company status."),
        ("post", "/admin/companies/{id}/delete", "Failed to delete the insurance company."),
    ],
)
def test_lookup_store_failure_flashes_notice(app, client, monkeypatch, method, path, message):
    _create(client)
    co = _company(app)
    monkeypatch.setattr("app.brokerdesk.modules.companies.admin.db_session", lambda: _UnreachableStore())

    url = path.format(id=co.id)
    if method == "get":
        r = client.get(url)
    else:
        data = {"name": "Acme Life", "contact_email": "ops@acme.test", "is_active": "1", "csrf_token": _csrf(client)}
        r = client.post(url, data=data)
    assert r.status_code == 302

    with client.session_transaction() as sess:
        assert sess["_flashes"] == [("danger", message)]

    still = _company(app)
    assert still is not None and still.is_active is True
