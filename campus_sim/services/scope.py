"""
Authorization resolver.

Turns an identity plus its memberships into a DataFilter: the schools and
departments the caller may read or write. Nothing here is cached; a new
AuthContext is built for every request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import ColumnElement, Select, false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.membership import Membership, OrgRole
from campus_sim.models.organization import OrgKind
from campus_sim.models.phone_number import PhoneNumber
from campus_sim.models.user import GlobalRole, User
from campus_sim.services.org_graph import OrgGraph, load_org_graph

logger = logging.getLogger(__name__)

MISSING_SCHOOL_WARNING = "Department membership without matching school membership"


@dataclass(frozen=True)
class MembershipGrant:
    organization_id: UUID
    role_in_org: OrgRole


@dataclass(frozen=True)
class DataFilter:
    """
    Organizations a caller may see or mutate.

    ``unrestricted`` means no constraint at all (super admin). Otherwise a
    phone number is visible when its school is in ``school_ids`` or its
    department is in ``department_ids``.
    """

    unrestricted: bool = False
    school_ids: frozenset[UUID] = frozenset()
    department_ids: frozenset[UUID] = frozenset()
    organization_ids: frozenset[UUID] = frozenset()
    validation_warning: str | None = None
    missing_schools: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.validation_warning is None

    def covers_number(self, school_id: UUID | None, department_id: UUID | None) -> bool:
        if self.unrestricted:
            return True
        if school_id is not None and school_id in self.school_ids:
            return True
        return department_id is not None and department_id in self.department_ids

    def covers_organization(self, org_id: UUID) -> bool:
        if self.unrestricted:
            return True
        return org_id in self.organization_ids or org_id in self.department_ids


@dataclass(frozen=True)
class AuthContext:
    user_id: UUID
    global_role: GlobalRole
    memberships: tuple[MembershipGrant, ...] = field(default_factory=tuple)
    data_filter: DataFilter = field(default_factory=DataFilter)

    @property
    def is_super_admin(self) -> bool:
        return self.global_role == GlobalRole.SUPER_ADMIN

    def has_role(self, *roles: GlobalRole) -> bool:
        return self.global_role in roles


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_data_filter(
    global_role: GlobalRole,
    memberships: Iterable[MembershipGrant],
    graph: OrgGraph,
    user_id: UUID | None = None,
) -> DataFilter:
    """
    Compute the data scope for one identity.

    - Super admins are unrestricted.
    - Memberships are split into schools and departments.
    - School admins additionally see every department under their schools.
    - A department membership whose parent school is not held is reported
      as a warning, never rejected.
    """
    if global_role == GlobalRole.SUPER_ADMIN:
        return DataFilter(unrestricted=True)

    organization_ids: list[UUID] = []
    school_ids: set[UUID] = set()
    department_ids: set[UUID] = set()

    for grant in memberships:
        node = graph.get(grant.organization_id)
        if node is None:
            continue
        organization_ids.append(node.id)
        if node.kind == OrgKind.SCHOOL:
            school_ids.add(node.id)
        else:
            department_ids.add(node.id)

    missing = graph.missing_parent_schools(organization_ids)
    missing_labels = tuple(school.name for school in missing)
    warning = MISSING_SCHOOL_WARNING if missing else None
    if warning:
        logger.warning(
            "User %s has inconsistent organization assignments: %s",
            user_id,
            "; ".join(missing_labels),
        )

    if global_role == GlobalRole.SCHOOL_ADMIN and school_ids:
        department_ids |= graph.departments_under(school_ids)

    return DataFilter(
        school_ids=frozenset(school_ids),
        department_ids=frozenset(department_ids),
        organization_ids=frozenset(organization_ids),
        validation_warning=warning,
        missing_schools=missing_labels,
    )


def plan_membership_repair(
    requested_ids: Sequence[UUID], graph: OrgGraph
) -> tuple[list[UUID], list[str]]:
    """
    Add the parent school of every requested department that lacks one.

    Returns (final organization ids, names of the schools that were added).
    """
    added = graph.missing_parent_schools(requested_ids)
    final_ids = list(dict.fromkeys(requested_ids))
    final_ids.extend(school.id for school in added)
    return final_ids, [school.name for school in added]


async def load_grants(db: AsyncSession, user_id: UUID) -> tuple[MembershipGrant, ...]:
    result = await db.execute(
        select(Membership.organization_id, Membership.role_in_org).where(
            Membership.user_id == user_id
        )
    )
    return tuple(MembershipGrant(org_id, role) for org_id, role in result.all())


async def build_auth_context(
    db: AsyncSession, user: User, graph: OrgGraph | None = None
) -> AuthContext:
    """Resolve the AuthContext for an already-authenticated user."""
    grants = await load_grants(db, user.id)
    if graph is None:
        graph = await load_org_graph(db)
    data_filter = resolve_data_filter(user.global_role, grants, graph, user_id=user.id)
    return AuthContext(
        user_id=user.id,
        global_role=user.global_role,
        memberships=grants,
        data_filter=data_filter,
    )


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def number_scope_clause(data_filter: DataFilter) -> ColumnElement[bool] | None:
    """SQL predicate restricting phone numbers to the filter, None if unrestricted."""
    if data_filter.unrestricted:
        return None
    clauses: list[ColumnElement[bool]] = []
    if data_filter.school_ids:
        clauses.append(PhoneNumber.school_id.in_(list(data_filter.school_ids)))
    if data_filter.department_ids:
        clauses.append(PhoneNumber.department_id.in_(list(data_filter.department_ids)))
    if not clauses:
        return false()
    return or_(*clauses)


def apply_number_scope(stmt: Select, data_filter: DataFilter | None) -> Select:
    if data_filter is None:
        return stmt
    clause = number_scope_clause(data_filter)
    return stmt if clause is None else stmt.where(clause)


def ensure_number_in_scope(ctx: AuthContext, number: PhoneNumber) -> None:
    if not ctx.data_filter.covers_number(number.school_id, number.department_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "OUT_OF_SCOPE", "message": "You cannot access this number"},
        )


def ensure_org_in_scope(ctx: AuthContext, org_id: UUID) -> None:
    if not ctx.data_filter.covers_organization(org_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "OUT_OF_SCOPE", "message": "Organization is outside your scope"},
        )
