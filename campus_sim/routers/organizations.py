"""
Organization management endpoints.

Schools, departments and the scoped hierarchy view.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import get_auth_context, require_admin
from campus_sim.models.organization import OrgKind
from campus_sim.schemas.organization import (
    HierarchyResponse,
    OrganizationCreateRequest,
    OrganizationListResponse,
    OrganizationResponse,
    OrganizationUpdateRequest,
)
from campus_sim.services.organization_service import OrganizationService
from campus_sim.services.scope import AuthContext

router = APIRouter()


def get_org_service(db: AsyncSession = Depends(get_db)) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(db=db)


# ---------------------------------------------------------------------------
# List / Hierarchy
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=OrganizationListResponse,
    summary="List organizations in your scope",
)
async def list_organizations(
    kind: OrgKind | None = None,
    parent_id: UUID | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationListResponse:
    return await service.list_organizations(ctx, kind=kind, parent_id=parent_id)


@router.get(
    "/hierarchy",
    response_model=HierarchyResponse,
    summary="School/department tree with statistics",
)
async def get_hierarchy(
    ctx: AuthContext = Depends(get_auth_context),
    service: OrganizationService = Depends(get_org_service),
) -> HierarchyResponse:
    return await service.hierarchy(ctx)


# ---------------------------------------------------------------------------
# Create Organization
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a school or department",
)
async def create_organization(
    data: OrganizationCreateRequest,
    ctx: AuthContext = Depends(require_admin),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    """
    Create an organization.

    - Schools have no parent; departments need a school parent
    - School admins may only add departments to their own schools
    """
    return await service.create_organization(ctx, data)


# ---------------------------------------------------------------------------
# Get / Update / Delete
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}",
    response_model=OrganizationResponse,
    summary="Get organization",
)
async def get_organization(
    org_id: UUID,
    ctx: AuthContext = Depends(get_auth_context),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    return await service.get_organization(ctx, org_id)


@router.patch(
    "/{org_id}",
    response_model=OrganizationResponse,
    summary="Rename or describe an organization",
)
async def update_organization(
    org_id: UUID,
    data: OrganizationUpdateRequest,
    ctx: AuthContext = Depends(require_admin),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    return await service.update_organization(ctx, org_id, data)


@router.delete(
    "/{org_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete an empty organization",
)
async def delete_organization(
    org_id: UUID,
    ctx: AuthContext = Depends(require_admin),
    service: OrganizationService = Depends(get_org_service),
) -> dict:
    await service.delete_organization(ctx, org_id)
    return {}
