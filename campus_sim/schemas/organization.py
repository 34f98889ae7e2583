"""
Organization schemas.

Request/response models for organization and membership management endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from campus_sim.models.membership import OrgRole
from campus_sim.models.organization import OrgKind


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(BaseModel):
    """Request body for POST /admin/organizations."""

    name: str = Field(min_length=1, max_length=100)
    kind: OrgKind
    parent_id: UUID | None = None
    description: str | None = Field(default=None, max_length=1000)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class OrganizationUpdateRequest(BaseModel):
    """Request body for PATCH /admin/organizations/{org_id}."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)


class OrganizationResponse(BaseModel):
    """Organization detail response."""

    id: UUID
    name: str
    kind: OrgKind
    parent_id: UUID | None
    description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationListResponse(BaseModel):
    items: list[OrganizationResponse]
    total: int


class OrganizationStats(BaseModel):
    member_count: int = 0
    number_count: int = 0
    available_count: int = 0
    pending_review_count: int = 0


class OrganizationNode(BaseModel):
    """One school or department in the hierarchy view."""

    id: UUID
    name: str
    kind: OrgKind
    description: str | None = None
    stats: OrganizationStats
    children: list[OrganizationNode] = Field(default_factory=list)


class HierarchyResponse(BaseModel):
    """Response for GET /admin/organizations/hierarchy."""

    schools: list[OrganizationNode]
    total_schools: int
    total_departments: int


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------

class AssignMembershipsRequest(BaseModel):
    """Request body for POST /admin/memberships."""

    user_id: UUID
    organization_ids: list[UUID] = Field(min_length=1)
    role_in_org: OrgRole


class MembershipResponse(BaseModel):
    id: UUID
    user_id: UUID
    organization_id: UUID
    organization_name: str
    organization_kind: OrgKind
    role_in_org: OrgRole
    created_at: datetime


class AssignMembershipsResponse(BaseModel):
    success: bool
    final_organization_ids: list[UUID]
    auto_added_schools: list[str]
    memberships: list[MembershipResponse]


class MembershipListResponse(BaseModel):
    items: list[MembershipResponse]
    total: int
