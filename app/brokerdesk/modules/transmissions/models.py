from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.brokerdesk.models import Base, JSONType
from app.brokerdesk.modules.companies.models import InsuranceCompany
from app.brokerdesk.modules.customers.models import Customer

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TRANSMISSION_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)


class Transmission(Base):
    """
    One send of a customer package to a company. Rows are written once, already
    in their final status; there is no state machine.
    """

    __tablename__ = "transmissions"
    __table_args__ = (
        Index("idx_transmissions_transmitted_at", "transmitted_at"),
        Index("idx_transmissions_status", "status"),
        Index("idx_transmissions_customer_id", "customer_id"),
        Index("idx_transmissions_company_id", "company_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Nullable so history survives deletion of the customer or company.
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    company_id: Mapped[int | None] = mapped_column(
        ForeignKey("insurance_companies.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    transmitted_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    response_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    transmitted_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    transmitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer: Mapped[Customer | None] = relationship(Customer, lazy="selectin")
    company: Mapped[InsuranceCompany | None] = relationship(InsuranceCompany, lazy="selectin")

    @property
    def response_message(self) -> str | None:
        if isinstance(self.response_data, dict):
            return self.response_data.get("message") or None
        return None
