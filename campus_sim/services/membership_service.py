"""
Membership business logic.

Assigns users to schools and departments. A department membership always
comes with a membership on its parent school; missing schools are added
automatically and reported back.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.membership import Membership, OrgRole
from campus_sim.models.organization import Organization
from campus_sim.models.user import GlobalRole, User
from campus_sim.schemas.organization import (
    AssignMembershipsRequest,
    AssignMembershipsResponse,
    MembershipListResponse,
    MembershipResponse,
)
from campus_sim.services.org_graph import load_org_graph
from campus_sim.services.scope import AuthContext, plan_membership_repair

logger = logging.getLogger(__name__)

ROLE_RANK = {
    GlobalRole.MARKETER.value: 1,
    GlobalRole.SCHOOL_ADMIN.value: 2,
    GlobalRole.SUPER_ADMIN.value: 3,
}


class MembershipService:
    """Handles membership assignment, listing and removal."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Assign
    # -----------------------------------------------------------------------

    async def assign_memberships(
        self, ctx: AuthContext, data: AssignMembershipsRequest
    ) -> AssignMembershipsResponse:
        """
        Grant role_in_org on every requested organization.

        Checks run in this order: organizations exist (404), organizations
        are inside the caller's scope (403), target user exists (404),
        role within the user's ceiling (400). Parent schools are added
        only after all checks pass.
        """
        graph = await load_org_graph(self.db)
        requested = list(dict.fromkeys(data.organization_ids))

        unknown = [org_id for org_id in requested if not graph.exists(org_id)]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "code": "ORG_NOT_FOUND",
                    "message": f"Organization(s) not found: {', '.join(map(str, unknown))}",
                },
            )

        foreign = [org_id for org_id in requested if not ctx.data_filter.covers_organization(org_id)]
        if foreign:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "OUT_OF_SCOPE",
                    "message": "You cannot assign organizations outside your scope",
                },
            )

        user = await self.db.get(User, data.user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "USER_NOT_FOUND", "message": "User not found"},
            )

        if ROLE_RANK[data.role_in_org.value] > ROLE_RANK[user.global_role.value]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "ROLE_EXCEEDS_CEILING",
                    "message": (
                        f"{data.role_in_org.value} exceeds the user's global role "
                        f"{user.global_role.value}"
                    ),
                },
            )

        existing_result = await self.db.execute(
            select(Membership).where(Membership.user_id == user.id)
        )
        existing = {m.organization_id: m for m in existing_result.scalars().all()}

        final_ids, _ = plan_membership_repair(requested, graph)
        auto_added = [
            graph.get(org_id).name
            for org_id in final_ids[len(requested):]
            if org_id not in existing
        ]

        for org_id in final_ids:
            membership = existing.get(org_id)
            if membership is None:
                self.db.add(
                    Membership(user_id=user.id, organization_id=org_id, role_in_org=data.role_in_org)
                )
            else:
                membership.role_in_org = data.role_in_org
        await self.db.flush()

        if auto_added:
            logger.info(
                "Auto-added parent school(s) %s for user %s",
                ", ".join(auto_added),
                user.id,
            )

        memberships = await self._memberships_for(user.id, final_ids)
        return AssignMembershipsResponse(
            success=True,
            final_organization_ids=final_ids,
            auto_added_schools=auto_added,
            memberships=memberships,
        )

    # -----------------------------------------------------------------------
    # List / Remove
    # -----------------------------------------------------------------------

    async def list_memberships(
        self,
        ctx: AuthContext,
        user_id: UUID | None = None,
        organization_id: UUID | None = None,
    ) -> MembershipListResponse:
        query = select(Membership, Organization).join(
            Organization, Membership.organization_id == Organization.id
        )
        if user_id is not None:
            query = query.where(Membership.user_id == user_id)
        if organization_id is not None:
            query = query.where(Membership.organization_id == organization_id)
        result = await self.db.execute(query.order_by(Membership.created_at))

        items = [
            self._to_response(membership, org)
            for membership, org in result.all()
            if ctx.data_filter.covers_organization(org.id)
        ]
        return MembershipListResponse(items=items, total=len(items))

    async def remove_membership(self, ctx: AuthContext, membership_id: UUID) -> None:
        membership = await self.db.get(Membership, membership_id)
        if membership is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "MEMBERSHIP_NOT_FOUND", "message": "Membership not found"},
            )
        if not ctx.data_filter.covers_organization(membership.organization_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "OUT_OF_SCOPE", "message": "Membership is outside your scope"},
            )
        await self.db.delete(membership)
        await self.db.flush()
        logger.info(
            "Membership of user %s on %s removed by %s",
            membership.user_id,
            membership.organization_id,
            ctx.user_id,
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _memberships_for(
        self, user_id: UUID, org_ids: list[UUID]
    ) -> list[MembershipResponse]:
        result = await self.db.execute(
            select(Membership, Organization)
            .join(Organization, Membership.organization_id == Organization.id)
            .where(Membership.user_id == user_id, Membership.organization_id.in_(org_ids))
        )
        order = {org_id: index for index, org_id in enumerate(org_ids)}
        rows = sorted(result.all(), key=lambda row: order[row[1].id])
        return [self._to_response(membership, org) for membership, org in rows]

    @staticmethod
    def _to_response(membership: Membership, org: Organization) -> MembershipResponse:
        return MembershipResponse(
            id=membership.id,
            user_id=membership.user_id,
            organization_id=org.id,
            organization_name=org.name,
            organization_kind=org.kind,
            role_in_org=OrgRole(membership.role_in_org),
            created_at=membership.created_at,
        )
