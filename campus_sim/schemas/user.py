"""
User and scope schemas.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from campus_sim.models.membership import OrgRole
from campus_sim.models.user import GlobalRole


class UserCreateRequest(BaseModel):
    """Request body for POST /admin/users."""

    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    display_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    global_role: GlobalRole = GlobalRole.MARKETER
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)

    @field_validator("email")
    @classmethod
    def email_must_be_valid(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Invalid email address")
        return v


class UserResponse(BaseModel):
    id: UUID
    username: str
    display_name: str
    email: str | None
    phone: str | None
    global_role: GlobalRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """Response for GET /admin/users."""

    items: list[UserResponse]
    total: int
    skip: int
    limit: int


class MembershipGrantResponse(BaseModel):
    organization_id: UUID
    role_in_org: OrgRole


class ScopeResponse(BaseModel):
    """Resolved data scope of one user."""

    user_id: UUID
    global_role: GlobalRole
    unrestricted: bool
    school_ids: list[UUID]
    department_ids: list[UUID]
    organization_ids: list[UUID]
    memberships: list[MembershipGrantResponse]
    is_valid: bool
    validation_warning: str | None = None
    missing_schools: list[str] = Field(default_factory=list)
