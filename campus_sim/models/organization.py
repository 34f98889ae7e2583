"""
Organization ORM model.

Schools are roots; departments hang off exactly one school.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_sim.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from campus_sim.models.membership import Membership


class OrgKind(str, enum.Enum):
    """Organization level."""

    SCHOOL = "SCHOOL"
    DEPARTMENT = "DEPARTMENT"


class Organization(Base, UUIDMixin, TimestampMixin):
    """A school or one of its departments."""

    __tablename__ = "organizations"
    __table_args__ = (
        CheckConstraint(
            "(kind = 'SCHOOL' AND parent_id IS NULL) "
            "OR (kind = 'DEPARTMENT' AND parent_id IS NOT NULL)",
            name="kind_matches_parent",
        ),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[OrgKind] = mapped_column(
        Enum(OrgKind, name="org_kind"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    # Relationships
    parent: Mapped[Organization | None] = relationship(
        "Organization", remote_side="Organization.id", back_populates="children"
    )
    children: Mapped[list[Organization]] = relationship(
        "Organization", back_populates="parent"
    )
    memberships: Mapped[list[Membership]] = relationship(
        "Membership", back_populates="organization"
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} kind={self.kind.value} name={self.name!r}>"
