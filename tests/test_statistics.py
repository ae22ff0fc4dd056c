"""Tests for dashboard statistics."""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash

from app.brokerdesk import create_app
from app.brokerdesk.db import session_scope
from app.brokerdesk.models import Base, Permission, Role, User
from app.brokerdesk.modules.customers.models import Customer, InsuranceInfo
from app.brokerdesk.modules.statistics.service import compute_statistics, monthly_series, success_rate
from app.brokerdesk.modules.transmissions.models import Transmission
from app.brokerdesk.rbac import PERMISSIONS

NOW = datetime(2024, 3, 15, 10, 30)


def test_monthly_series_six_chronological_points():
    created = [
        datetime(2024, 3, 1, 0, 0),
        datetime(2024, 3, 14, 9, 0),
        datetime(2024, 1, 20),
        datetime(2023, 10, 5),
        datetime(2023, 9, 30),  # before the window
        datetime(2023, 3, 10),  # same month, previous year
    ]
    series = monthly_series(created, NOW)
    assert [p.label for p in series] == ["10", "11", "12", "01", "02", "03"]
    assert [p.year for p in series] == [2023, 2023, 2023, 2024, 2024, 2024]
    assert [p.count for p in series] == [1, 0, 0, 1, 0, 2]


def test_monthly_series_wraps_year():
    series = monthly_series([datetime(2023, 8, 2), datetime(2024, 1, 1)], datetime(2024, 1, 5))
    assert [p.label for p in series] == ["08", "09", "10", "11", "12", "01"]
    assert [p.count for p in series] == [1, 0, 0, 0, 0, 1]


def test_success_rate():
    assert success_rate(0, 0) == "0"
    assert success_rate(9, 10) == "90.0"
    assert success_rate(1, 3) == "33.3"
    assert success_rate(3, 3) == "100.0"


def test_compute_statistics_transmission_counts():
    statuses = ["completed"] * 9 + ["failed"]
    stats = compute_statistics([], statuses, [], NOW)
    assert stats.total_transmissions == 10
    assert stats.successful_transmissions == 9
    assert stats.failed_transmissions == 1
    assert stats.pending_transmissions == 0
    assert stats.success_rate == "90.0"
    assert [(s.status, s.count, s.color) for s in stats.transmission_status] == [
        ("Completed", 9, "#10B981"),
        ("Failed", 1, "#EF4444"),
    ]
    assert stats.week_transmissions_estimate == 1


def test_compute_statistics_pending_includes_processing():
    stats = compute_statistics([], ["pending", "processing", "completed", "bogus"], [], NOW)
    assert stats.pending_transmissions == 2
    assert stats.total_transmissions == 3
    assert [(s.status, s.count, s.color) for s in stats.transmission_status] == [
        ("Completed", 1, "#10B981"),
        ("Pending", 2, "#F59E0B"),
    ]


def test_compute_statistics_empty():
    stats = compute_statistics([], [], [], NOW)
    assert stats.total_customers == 0
    assert stats.success_rate == "0"
    assert stats.today_registrations_estimate == 0
    assert stats.week_transmissions_estimate == 0
    assert stats.transmission_status == []
    assert stats.insurance_types == []
    assert [p.count for p in stats.monthly_registrations] == [0] * 6


def test_compute_statistics_registration_estimates():
    created = [datetime(2024, 3, d) for d in range(1, 16)] + [datetime(2024, 2, 28)]
    stats = compute_statistics(created, ["completed"] * 15, [], NOW)
    assert stats.total_customers == 16
    assert stats.this_month_customers == 15
    assert stats.today_registrations_estimate == 1
    assert stats.week_transmissions_estimate == 2

    created = [datetime(2024, 3, 1)] * 31
    assert compute_statistics(created, [], [], NOW).today_registrations_estimate == 2


def test_insurance_type_distribution_first_seen_order():
    desired = [{"type": "Life"}, {"type": "Auto"}, {"type": "Life"}, {}, None, {"type": ""}]
    stats = compute_statistics([], [], desired, NOW)
    assert [(t.type, t.count) for t in stats.insurance_types] == [("Life", 2), ("Auto", 1), ("Unspecified", 3)]


@pytest.fixture()
def client(tmp_path, monkeypatch):
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

        c = Customer(
            name="Alice Moreau",
            birth_date=date(1985, 4, 12),
            gender="female",
            phone="010-1234-5678",
            email="alice@example.com",
            address="12 Harbour Road",
            postal_code="04524",
            occupation="Engineer",
            income=Decimal("72000"),
        )
        InsuranceInfo(customer=c, desired_insurance={"type": "Health"}, coverage_amount=Decimal("1000"), coverage_period=5)
        s.add(c)
        s.flush()
        for i in range(10):
            s.add(
                Transmission(
                    customer_id=c.id,
                    company_id=None,
                    status="completed" if i < 9 else "failed",
                    transmitted_data={},
                )
            )

    c = app.test_client()
    c.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    return c


def test_dashboard_renders(client):
    r = client.get("/admin/statistics")
    assert r.status_code == 200
    assert b"90.0%" in r.data
    assert b"Health" in r.data
    assert b"#10B981" in r.data
    assert b'id="total-customers">1<' in r.data
    assert b'id="total-transmissions">10<' in r.data


def test_dashboard_store_failure_keeps_six_month_chart(client, monkeypatch):
    def _fail(s, now=None):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr("app.brokerdesk.modules.statistics.admin.load_statistics", _fail)
    r = client.get("/admin/statistics")
    assert r.status_code == 200
    assert r.data.count(b"Failed to load dashboard statistics.") == 1
    assert r.data.count(b'<div class="col"') == 6
    assert b"0%" in r.data
