"""
PhoneNumber ORM model: the reservation subject.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_sim.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from campus_sim.models.organization import Organization


class ReservationState(str, enum.Enum):
    UNRESERVED = "UNRESERVED"
    PENDING_REVIEW = "PENDING_REVIEW"
    RESERVED = "RESERVED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    ALIPAY = "ALIPAY"
    WECHAT = "WECHAT"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class DeliveryStatus(str, enum.Enum):
    EMPTY = "EMPTY"
    IN_TRANSIT_UNACTIVATED = "IN_TRANSIT_UNACTIVATED"
    IN_TRANSIT_ACTIVATED = "IN_TRANSIT_ACTIVATED"
    RECEIVED_UNACTIVATED = "RECEIVED_UNACTIVATED"


# Columns wiped whenever a number goes back to UNRESERVED.
CLAIM_FIELDS: tuple[str, ...] = (
    "claimed_at",
    "payment_amount",
    "payment_method",
    "transaction_id",
    "customer_name",
    "customer_contact",
    "shipping_address",
    "assigned_marketer",
    "ems_tracking_number",
    "delivery_status",
)


class PhoneNumber(Base, UUIDMixin, TimestampMixin):
    """A sellable phone number and the claim currently attached to it."""

    __tablename__ = "phone_numbers"

    number_value: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    premium_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reservation_status: Mapped[ReservationState] = mapped_column(
        Enum(ReservationState, name="reservation_state"),
        nullable=False,
        default=ReservationState.UNRESERVED,
        index=True,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Payment
    payment_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        Enum(PaymentMethod, name="payment_method"), nullable=True
    )
    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Customer
    customer_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_contact: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Delivery
    assigned_marketer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ems_tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_status: Mapped[DeliveryStatus | None] = mapped_column(
        Enum(DeliveryStatus, name="delivery_status"), nullable=True
    )

    # Organization assignment
    school_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )

    school: Mapped[Organization | None] = relationship(
        "Organization", foreign_keys=[school_id]
    )
    department: Mapped[Organization | None] = relationship(
        "Organization", foreign_keys=[department_id]
    )

    def __repr__(self) -> str:
        return (
            f"<PhoneNumber id={self.id} number={self.number_value!r} "
            f"state={self.reservation_status.value}>"
        )
