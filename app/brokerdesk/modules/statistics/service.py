"""
Dashboard aggregates.

All figures are computed in Python from three narrow column reads. Two "recent
activity" figures are fixed heuristics over the monthly/total aggregates, not
date-range queries:

- today's registrations  ~= ceil(this month's registrations / 30)
- this week's transmissions ~= ceil(total transmissions * 0.1)
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.brokerdesk.modules.customers.models import Customer, InsuranceInfo
from app.brokerdesk.modules.transmissions.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    Transmission,
)

UNSPECIFIED_TYPE = "Unspecified"
MONTHS_IN_SERIES = 6

# (bucket, label, color) in display order.
STATUS_BUCKETS = (
    ("completed", "Completed", "#10B981"),
    ("failed", "Failed", "#EF4444"),
    ("pending", "Pending", "#F59E0B"),
)


@dataclass(frozen=True)
class MonthlyPoint:
    year: int
    month: int
    count: int

    @property
    def label(self) -> str:
        return f"{self.month:02d}"


@dataclass(frozen=True)
class TypeCount:
    type: str
    count: int


@dataclass(frozen=True)
class StatusSlice:
    status: str
    count: int
    color: str


@dataclass
class DashboardStats:
    total_customers: int = 0
    this_month_customers: int = 0
    total_transmissions: int = 0
    successful_transmissions: int = 0
    failed_transmissions: int = 0
    pending_transmissions: int = 0
    monthly_registrations: list[MonthlyPoint] = field(default_factory=list)
    insurance_types: list[TypeCount] = field(default_factory=list)
    transmission_status: list[StatusSlice] = field(default_factory=list)

    @property
    def success_rate(self) -> str:
        return success_rate(self.successful_transmissions, self.total_transmissions)

    @property
    def today_registrations_estimate(self) -> int:
        return math.ceil(self.this_month_customers / 30) if self.this_month_customers > 0 else 0

    @property
    def week_transmissions_estimate(self) -> int:
        return math.ceil(self.total_transmissions * 0.1)

    @property
    def monthly_max(self) -> int:
        return max((p.count for p in self.monthly_registrations), default=0)

    @property
    def insurance_type_total(self) -> int:
        return sum(t.count for t in self.insurance_types)


def success_rate(successful: int, total: int) -> str:
    """Percentage with one decimal, or "0" when there is nothing to rate."""
    if total <= 0:
        return "0"
    return f"{successful / total * 100:.1f}"


def month_start(now: datetime) -> datetime:
    return datetime(now.year, now.month, 1)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def monthly_series(created_ats: Iterable[datetime], now: datetime, months: int = MONTHS_IN_SERIES) -> list[MonthlyPoint]:
    """Counts for the current month and the ``months - 1`` before it, oldest first."""
    buckets = [_shift_month(now.year, now.month, -i) for i in range(months - 1, -1, -1)]
    counts = {b: 0 for b in buckets}
    for ts in created_ats:
        key = (ts.year, ts.month)
        if key in counts:
            counts[key] += 1
    return [MonthlyPoint(y, m, counts[(y, m)]) for y, m in buckets]


def insurance_type_distribution(desired_values: Iterable[Any]) -> list[TypeCount]:
    """(type, count) pairs in first-seen order; untyped entries go to Unspecified."""
    counts: dict[str, int] = {}
    for desired in desired_values:
        t = desired.get("type") if isinstance(desired, dict) else None
        key = str(t) if t else UNSPECIFIED_TYPE
        counts[key] = counts.get(key, 0) + 1
    return [TypeCount(t, n) for t, n in counts.items()]


def compute_statistics(
    created_ats: Iterable[datetime],
    statuses: Iterable[str],
    desired_values: Iterable[Any],
    now: datetime,
) -> DashboardStats:
    created_ats = list(created_ats)
    start = month_start(now)

    successful = failed = pending = 0
    for status in statuses:
        if status == STATUS_COMPLETED:
            successful += 1
        elif status == STATUS_FAILED:
            failed += 1
        elif status in (STATUS_PENDING, STATUS_PROCESSING):
            pending += 1

    by_bucket = {"completed": successful, "failed": failed, "pending": pending}
    slices = [StatusSlice(label, by_bucket[key], color) for key, label, color in STATUS_BUCKETS if by_bucket[key] > 0]

    return DashboardStats(
        total_customers=len(created_ats),
        this_month_customers=sum(1 for ts in created_ats if ts >= start),
        total_transmissions=successful + failed + pending,
        successful_transmissions=successful,
        failed_transmissions=failed,
        pending_transmissions=pending,
        monthly_registrations=monthly_series(created_ats, now),
        insurance_types=insurance_type_distribution(desired_values),
        transmission_status=slices,
    )


def load_statistics(s: Session, now: datetime | None = None) -> DashboardStats:
    created_ats = [row[0] for row in s.query(Customer.created_at).all()]
    statuses = [row[0] for row in s.query(Transmission.status, Transmission.transmitted_at).all()]
    desired_values = [row[0] for row in s.query(InsuranceInfo.desired_insurance).all()]
    return compute_statistics(created_ats, statuses, desired_values, now or datetime.utcnow())
