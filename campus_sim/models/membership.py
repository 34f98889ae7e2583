"""
Membership ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_sim.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from campus_sim.models.organization import Organization
    from campus_sim.models.user import User


class OrgRole(str, enum.Enum):
    """Role a user holds inside one organization."""

    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    MARKETER = "MARKETER"


class Membership(Base, UUIDMixin):
    """Join table linking users to organizations with a per-organization role."""

    __tablename__ = "user_organizations"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organizations_user_org"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    role_in_org: Mapped[OrgRole] = mapped_column(
        Enum(OrgRole, name="org_role"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="memberships"
    )
    user: Mapped[User] = relationship(
        "User", back_populates="memberships"
    )

    def __repr__(self) -> str:
        return (
            f"<Membership user_id={self.user_id} organization_id={self.organization_id} "
            f"role={self.role_in_org}>"
        )
