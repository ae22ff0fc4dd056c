"""
Transmission fan-out and history.

``send_transmissions`` writes one Transmission row per selected customer. Each
row is produced by an independent work item running on a thread pool with its
own session, so one failed insert never affects the others and nothing is
rolled back across items. The returned report lists every item's outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.brokerdesk.db import scoped_from
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.modules.customers.models import Customer
from app.brokerdesk.modules.transmissions.delivery import CompanyTarget, DeliverySimulator
from app.brokerdesk.modules.transmissions.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    Transmission,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_MAX_WORKERS = 4

STATUS_LABELS = {
    STATUS_PENDING: "Pending",
    STATUS_PROCESSING: "Processing",
    STATUS_COMPLETED: "Completed",
    STATUS_FAILED: "Failed",
}


@dataclass(frozen=True)
class TransmissionJob:
    customer_id: int
    customer_name: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class TransmissionOutcome:
    customer_id: int
    customer_name: str
    ok: bool  # row written
    status: str | None = None
    transmission_id: int | None = None
    error: str | None = None


@dataclass
class TransmissionReport:
    company_id: int
    outcomes: list[TransmissionOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def written(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def errors(self) -> list[TransmissionOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def completed(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.status == STATUS_COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.status == STATUS_FAILED)


def build_transmission_payload(c: Customer) -> dict[str, Any]:
    """Snapshot of the customer's personal fields and first insurance entry."""
    info = c.primary_insurance
    return {
        "personal_info": {
            "name": c.name,
            "birth_date": c.birth_date.isoformat() if c.birth_date else None,
            "gender": c.gender,
            "phone": c.phone,
            "email": c.email,
            "address": c.address,
            "occupation": c.occupation,
            "income": float(c.income) if c.income is not None else None,
        },
        "insurance_info": info.as_snapshot() if info else None,
    }


def build_jobs(customers: Sequence[Customer]) -> list[TransmissionJob]:
    return [TransmissionJob(c.id, c.name, build_transmission_payload(c)) for c in customers]


def _transmit_one(
    session_factory: Callable[[], Session],
    job: TransmissionJob,
    company: CompanyTarget,
    actor_id: str,
    simulator: DeliverySimulator,
) -> TransmissionOutcome:
    result = simulator.deliver(company, job.payload)
    status = STATUS_COMPLETED if result.success else STATUS_FAILED
    with scoped_from(session_factory) as s:
        t = Transmission(
            customer_id=job.customer_id,
            company_id=company.id,
            status=status,
            transmitted_data=job.payload,
            response_data=result.as_response(),
            transmitted_by=actor_id,
            transmitted_at=datetime.utcnow(),
        )
        s.add(t)
        s.flush()
        transmission_id = t.id
    return TransmissionOutcome(job.customer_id, job.customer_name, True, status, transmission_id)


def send_transmissions(
    session_factory: Callable[[], Session],
    jobs: Sequence[TransmissionJob],
    company: CompanyTarget,
    *,
    actor_id: str,
    simulator: DeliverySimulator,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> TransmissionReport:
    """
    Deliver every job to ``company`` concurrently and wait for all of them.
    Outcomes are reported in job order.
    """
    report = TransmissionReport(company_id=company.id)
    if not jobs:
        return report

    outcomes: dict[int, TransmissionOutcome] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs))), thread_name_prefix="transmit") as pool:
        futures = {
            pool.submit(_transmit_one, session_factory, job, company, actor_id, simulator): idx
            for idx, job in enumerate(jobs)
        }
        for fut in as_completed(futures):
            idx = futures[fut]
            job = jobs[idx]
            try:
                outcomes[idx] = fut.result()
            except Exception as e:
                logger.exception(
                    "Transmission insert failed (customer_id=%s company_id=%s)", job.customer_id, company.id
                )
                outcomes[idx] = TransmissionOutcome(job.customer_id, job.customer_name, False, error=str(e))
            else:
                logger.info(
                    "Transmission id=%s customer_id=%s company_id=%s status=%s",
                    outcomes[idx].transmission_id,
                    job.customer_id,
                    company.id,
                    outcomes[idx].status,
                )

    report.outcomes = [outcomes[i] for i in range(len(jobs))]
    return report


def company_target(company: InsuranceCompany) -> CompanyTarget:
    return CompanyTarget(id=company.id, name=company.name, api_endpoint=company.api_endpoint)


def load_selected_customers(s: Session, customer_ids: Sequence[int]) -> list[Customer]:
    """Customers for the given ids, in selection order; unknown ids are skipped."""
    if not customer_ids:
        return []
    found = {c.id: c for c in s.query(Customer).filter(Customer.id.in_(set(customer_ids))).all()}
    seen: set[int] = set()
    ordered: list[Customer] = []
    for cid in customer_ids:
        if cid in found and cid not in seen:
            seen.add(cid)
            ordered.append(found[cid])
    return ordered


def recent_transmissions(s: Session, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Transmission]:
    """Latest transmissions (customer and company eager-loaded), newest first."""
    return (
        s.query(Transmission)
        .order_by(Transmission.transmitted_at.desc(), Transmission.id.desc())
        .limit(limit)
        .all()
    )
