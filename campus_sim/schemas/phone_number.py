"""
Phone number schemas.

Request/response models for the public catalogue, claims and admin edits.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from campus_sim.models.phone_number import DeliveryStatus, PaymentMethod, ReservationState


class ClaimRequest(BaseModel):
    """Request body for POST /numbers/{number_id}/claim."""

    customer_name: str = Field(min_length=1, max_length=100)
    customer_contact: str = Field(min_length=1, max_length=100)
    payment_amount: float = Field(gt=0)
    shipping_address: str | None = Field(default=None, max_length=500)
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = Field(default=None, max_length=100)


class PhoneNumberPatchRequest(BaseModel):
    """
    Request body for PATCH /admin/numbers/{number_id}.

    Only these fields are editable. Anything else in the body (id,
    number_value, created_at) is ignored. Fields that are absent from the
    body are left untouched; explicit nulls clear the column.
    """

    reservation_status: ReservationState | None = None
    is_premium: bool | None = None
    premium_reason: str | None = Field(default=None, max_length=100)
    payment_amount: float | None = Field(default=None, ge=0)
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = Field(default=None, max_length=100)
    customer_name: str | None = Field(default=None, max_length=100)
    customer_contact: str | None = Field(default=None, max_length=100)
    shipping_address: str | None = Field(default=None, max_length=500)
    assigned_marketer: str | None = Field(default=None, max_length=100)
    ems_tracking_number: str | None = Field(default=None, max_length=100)
    delivery_status: DeliveryStatus | None = None
    school_id: UUID | None = None
    department_id: UUID | None = None

    model_config = {"extra": "ignore"}


class PublicPhoneNumberResponse(BaseModel):
    """Catalogue entry shown to anonymous visitors. No customer data."""

    id: UUID
    number_value: str
    is_premium: bool
    premium_reason: str | None
    reservation_status: ReservationState
    school_id: UUID | None
    department_id: UUID | None

    model_config = {"from_attributes": True}


class PhoneNumberResponse(PublicPhoneNumberResponse):
    """Full record for staff."""

    claimed_at: datetime | None
    payment_amount: float | None
    payment_method: PaymentMethod | None
    transaction_id: str | None
    customer_name: str | None
    customer_contact: str | None
    shipping_address: str | None
    assigned_marketer: str | None
    ems_tracking_number: str | None
    delivery_status: DeliveryStatus | None
    created_at: datetime
    updated_at: datetime


class PublicPhoneNumberListResponse(BaseModel):
    items: list[PublicPhoneNumberResponse]
    total: int
    skip: int
    limit: int


class PhoneNumberListResponse(BaseModel):
    """Response for GET /admin/numbers."""

    items: list[PhoneNumberResponse]
    total: int
    skip: int
    limit: int


class PendingOrderListResponse(BaseModel):
    items: list[PhoneNumberResponse]
    total: int


class SweepResponse(BaseModel):
    released_count: int


class NumberStatsResponse(BaseModel):
    total: int
    unreserved: int
    pending_review: int
    reserved: int
    premium: int
    claimed_today: int
