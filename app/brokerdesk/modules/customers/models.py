from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.brokerdesk.models import Base, JSONType

GENDERS = ("male", "female")
GENDER_LABELS = {"male": "Male", "female": "Female"}


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_created_at", "created_at"),
        Index("idx_customers_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)  # male | female
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    postal_code: Mapped[str] = mapped_column(String(32), nullable=False)
    occupation: Mapped[str] = mapped_column(Text, nullable=False)
    income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    # Set once on insert; never written by update paths.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    insurance_entries: Mapped[list["InsuranceInfo"]] = relationship(
        "InsuranceInfo",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="InsuranceInfo.id",
        lazy="selectin",
    )

    @property
    def gender_label(self) -> str:
        return GENDER_LABELS.get(self.gender, self.gender)

    @property
    def primary_insurance(self) -> "InsuranceInfo | None":
        return self.insurance_entries[0] if self.insurance_entries else None

    @property
    def desired_insurance_type(self) -> str | None:
        info = self.primary_insurance
        return info.desired_type if info else None


class InsuranceInfo(Base):
    __tablename__ = "insurance_info"
    __table_args__ = (
        Index("idx_insurance_info_customer_id", "customer_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)

    current_insurance: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    desired_insurance: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    coverage_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    coverage_period: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # years
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer: Mapped[Customer] = relationship("Customer", back_populates="insurance_entries")

    @property
    def desired_type(self) -> str | None:
        desired = self.desired_insurance
        if isinstance(desired, dict):
            return desired.get("type") or None
        return None

    def as_snapshot(self) -> dict[str, Any]:
        """JSON-safe copy used in transmission payloads."""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "current_insurance": self.current_insurance,
            "desired_insurance": self.desired_insurance,
            "coverage_amount": float(self.coverage_amount) if self.coverage_amount is not None else None,
            "coverage_period": self.coverage_period,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
