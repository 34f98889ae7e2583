"""
Organization business logic.

Handles school/department CRUD and the hierarchy view.
A school admin may only touch organizations inside their own scope and may
only create departments, under one of their schools.
"""

from __future__ import annotations

import logging
from collections import Counter
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.membership import Membership
from campus_sim.models.organization import Organization, OrgKind
from campus_sim.models.phone_number import PhoneNumber, ReservationState
from campus_sim.schemas.organization import (
    HierarchyResponse,
    OrganizationCreateRequest,
    OrganizationListResponse,
    OrganizationNode,
    OrganizationResponse,
    OrganizationStats,
    OrganizationUpdateRequest,
)
from campus_sim.services.org_graph import OrgGraphError, OrgNode, load_org_graph
from campus_sim.services.scope import AuthContext, ensure_org_in_scope

logger = logging.getLogger(__name__)


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # List / Get
    # -----------------------------------------------------------------------

    async def list_organizations(
        self,
        ctx: AuthContext,
        kind: OrgKind | None = None,
        parent_id: UUID | None = None,
    ) -> OrganizationListResponse:
        query = select(Organization)
        if kind is not None:
            query = query.where(Organization.kind == kind)
        if parent_id is not None:
            query = query.where(Organization.parent_id == parent_id)
        result = await self.db.execute(query.order_by(Organization.kind, Organization.name))

        items = [
            OrganizationResponse.model_validate(org)
            for org in result.scalars().all()
            if ctx.data_filter.covers_organization(org.id)
        ]
        return OrganizationListResponse(items=items, total=len(items))

    async def get_organization(self, ctx: AuthContext, org_id: UUID) -> OrganizationResponse:
        org = await self._get_or_404(org_id)
        ensure_org_in_scope(ctx, org.id)
        return OrganizationResponse.model_validate(org)

    # -----------------------------------------------------------------------
    # Create Organization
    # -----------------------------------------------------------------------

    async def create_organization(
        self, ctx: AuthContext, data: OrganizationCreateRequest
    ) -> OrganizationResponse:
        """
        Create a school or department.

        - Validates the school/department shape against the current graph
        - School admins may only add departments under their own schools
        - Sibling names must be unique
        """
        graph = await load_org_graph(self.db)
        if data.parent_id is not None and not graph.exists(data.parent_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "ORG_NOT_FOUND", "message": "Parent organization not found"},
            )
        try:
            graph.validate_new(data.kind, data.parent_id)
        except OrgGraphError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_HIERARCHY", "message": str(exc)},
            )

        if not ctx.is_super_admin and (
            data.kind != OrgKind.DEPARTMENT or data.parent_id not in ctx.data_filter.school_ids
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "OUT_OF_SCOPE",
                    "message": "You may only create departments under your own schools",
                },
            )

        await self._ensure_name_free(data.name, data.parent_id)

        org = Organization(
            name=data.name,
            kind=data.kind,
            parent_id=data.parent_id,
            description=data.description,
        )
        self.db.add(org)
        await self.db.flush()
        await self.db.refresh(org)

        logger.info("Organization %s (%s) created by %s", org.name, org.kind.value, ctx.user_id)
        return OrganizationResponse.model_validate(org)

    # -----------------------------------------------------------------------
    # Update Organization
    # -----------------------------------------------------------------------

    async def update_organization(
        self, ctx: AuthContext, org_id: UUID, data: OrganizationUpdateRequest
    ) -> OrganizationResponse:
        org = await self._get_or_404(org_id)
        ensure_org_in_scope(ctx, org.id)

        if data.name is not None and data.name != org.name:
            await self._ensure_name_free(data.name, org.parent_id, exclude_id=org.id)
            org.name = data.name
        if "description" in data.model_fields_set:
            org.description = data.description

        await self.db.flush()
        await self.db.refresh(org)
        return OrganizationResponse.model_validate(org)

    # -----------------------------------------------------------------------
    # Delete Organization
    # -----------------------------------------------------------------------

    async def delete_organization(self, ctx: AuthContext, org_id: UUID) -> None:
        """Delete an empty organization. Numbers assigned to it lose the reference."""
        org = await self._get_or_404(org_id)
        ensure_org_in_scope(ctx, org.id)

        children = await self.db.execute(
            select(func.count(Organization.id)).where(Organization.parent_id == org.id)
        )
        members = await self.db.execute(
            select(func.count(Membership.id)).where(Membership.organization_id == org.id)
        )
        if children.scalar_one() or members.scalar_one():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "code": "ORG_NOT_EMPTY",
                    "message": "Remove its departments and members before deleting",
                },
            )

        await self.db.execute(
            update(PhoneNumber)
            .where(PhoneNumber.school_id == org.id)
            .values(school_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(PhoneNumber)
            .where(PhoneNumber.department_id == org.id)
            .values(department_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(org)
        await self.db.flush()
        logger.info("Organization %s deleted by %s", org.name, ctx.user_id)

    # -----------------------------------------------------------------------
    # Hierarchy
    # -----------------------------------------------------------------------

    async def hierarchy(self, ctx: AuthContext) -> HierarchyResponse:
        """Scoped school/department tree with per-node statistics."""
        graph = await load_org_graph(self.db)

        member_rows = await self.db.execute(
            select(Membership.organization_id, func.count(Membership.id)).group_by(
                Membership.organization_id
            )
        )
        member_counts = dict(member_rows.all())

        number_rows = await self.db.execute(
            select(
                PhoneNumber.school_id,
                PhoneNumber.department_id,
                PhoneNumber.reservation_status,
                func.count(PhoneNumber.id),
            ).group_by(
                PhoneNumber.school_id,
                PhoneNumber.department_id,
                PhoneNumber.reservation_status,
            )
        )
        totals: Counter[UUID] = Counter()
        available: Counter[UUID] = Counter()
        pending: Counter[UUID] = Counter()
        for school_id, department_id, state, count in number_rows.all():
            for org_id in {school_id, department_id} - {None}:
                totals[org_id] += count
                if state == ReservationState.UNRESERVED:
                    available[org_id] += count
                elif state == ReservationState.PENDING_REVIEW:
                    pending[org_id] += count

        def node(org: OrgNode, children: list[OrganizationNode]) -> OrganizationNode:
            return OrganizationNode(
                id=org.id,
                name=org.name,
                kind=org.kind,
                description=org.description,
                stats=OrganizationStats(
                    member_count=member_counts.get(org.id, 0),
                    number_count=totals[org.id],
                    available_count=available[org.id],
                    pending_review_count=pending[org.id],
                ),
                children=children,
            )

        schools: list[OrganizationNode] = []
        department_total = 0
        for school, departments in graph.hierarchy():
            visible = [d for d in departments if ctx.data_filter.covers_organization(d.id)]
            if not visible and not ctx.data_filter.covers_organization(school.id):
                continue
            department_total += len(visible)
            schools.append(node(school, [node(d, []) for d in visible]))

        return HierarchyResponse(
            schools=schools,
            total_schools=len(schools),
            total_departments=department_total,
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_or_404(self, org_id: UUID) -> Organization:
        result = await self.db.execute(select(Organization).where(Organization.id == org_id))
        org = result.scalar_one_or_none()
        if org is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "ORG_NOT_FOUND", "message": "Organization not found"},
            )
        return org

    async def _ensure_name_free(
        self, name: str, parent_id: UUID | None, exclude_id: UUID | None = None
    ) -> None:
        query = select(Organization.id).where(Organization.name == name)
        if parent_id is None:
            query = query.where(Organization.parent_id.is_(None))
        else:
            query = query.where(Organization.parent_id == parent_id)
        if exclude_id is not None:
            query = query.where(Organization.id != exclude_id)

        existing = await self.db.execute(query)
        if existing.first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "ORG_NAME_TAKEN", "message": "An organization with this name already exists here"},
            )
