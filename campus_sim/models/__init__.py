"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from campus_sim.models.base import Base, TimestampMixin, UUIDMixin
from campus_sim.models.membership import Membership, OrgRole
from campus_sim.models.organization import Organization, OrgKind
from campus_sim.models.phone_number import (
    DeliveryStatus,
    PaymentMethod,
    PhoneNumber,
    ReservationState,
)
from campus_sim.models.user import GlobalRole, User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "Organization",
    "OrgKind",
    "User",
    "GlobalRole",
    "Membership",
    "OrgRole",
    "PhoneNumber",
    "ReservationState",
    "PaymentMethod",
    "DeliveryStatus",
]
