"""
Membership endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import require_admin
from campus_sim.schemas.organization import (
    AssignMembershipsRequest,
    AssignMembershipsResponse,
    MembershipListResponse,
)
from campus_sim.services.membership_service import MembershipService
from campus_sim.services.scope import AuthContext

router = APIRouter()


def get_membership_service(db: AsyncSession = Depends(get_db)) -> MembershipService:
    return MembershipService(db=db)


@router.post(
    "",
    response_model=AssignMembershipsResponse,
    status_code=status.HTTP_200_OK,
    summary="Assign a user to organizations",
)
async def assign_memberships(
    data: AssignMembershipsRequest,
    ctx: AuthContext = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
) -> AssignMembershipsResponse:
    """
    Grant role_in_org on each organization.

    Parent schools of requested departments are added automatically and
    listed in auto_added_schools.
    """
    return await service.assign_memberships(ctx, data)


@router.get(
    "",
    response_model=MembershipListResponse,
    summary="List memberships in your scope",
)
async def list_memberships(
    user_id: UUID | None = None,
    organization_id: UUID | None = None,
    ctx: AuthContext = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
) -> MembershipListResponse:
    return await service.list_memberships(ctx, user_id=user_id, organization_id=organization_id)


@router.delete(
    "/{membership_id}",
    status_code=status.HTTP_200_OK,
    summary="Remove a membership",
)
async def remove_membership(
    membership_id: UUID,
    ctx: AuthContext = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
) -> dict:
    await service.remove_membership(ctx, membership_id)
    return {}
