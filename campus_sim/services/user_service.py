"""
User business logic.

Provisioning of staff accounts and scope inspection.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.security import hash_password
from campus_sim.models.membership import Membership
from campus_sim.models.user import GlobalRole, User
from campus_sim.schemas.user import (
    MembershipGrantResponse,
    ScopeResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
)
from campus_sim.services.scope import AuthContext, build_auth_context

logger = logging.getLogger(__name__)


def scope_response(ctx: AuthContext) -> ScopeResponse:
    data_filter = ctx.data_filter
    return ScopeResponse(
        user_id=ctx.user_id,
        global_role=ctx.global_role,
        unrestricted=data_filter.unrestricted,
        school_ids=sorted(data_filter.school_ids, key=str),
        department_ids=sorted(data_filter.department_ids, key=str),
        organization_ids=sorted(data_filter.organization_ids, key=str),
        memberships=[
            MembershipGrantResponse(organization_id=g.organization_id, role_in_org=g.role_in_org)
            for g in ctx.memberships
        ],
        is_valid=data_filter.is_valid,
        validation_warning=data_filter.validation_warning,
        missing_schools=list(data_filter.missing_schools),
    )


class UserService:
    """Handles user provisioning and listing."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Create User
    # -----------------------------------------------------------------------

    async def create_user(self, ctx: AuthContext, data: UserCreateRequest) -> UserResponse:
        """
        Provision a staff account.

        School admins may only create marketers.
        """
        if not ctx.is_super_admin and data.global_role != GlobalRole.MARKETER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_ROLE",
                    "message": "You may only create marketer accounts",
                },
            )

        conditions = [User.username == data.username]
        if data.email:
            conditions.append(User.email == data.email)
        existing = await self.db.execute(select(User).where(or_(*conditions)))
        if existing.scalars().first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "USER_EXISTS", "message": "Username or email is already taken"},
            )

        user = User(
            username=data.username,
            display_name=data.display_name,
            email=data.email,
            phone=data.phone,
            password_hash=hash_password(data.password),
            global_role=data.global_role,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)

        logger.info("User %s (%s) created by %s", user.username, user.global_role.value, ctx.user_id)
        return UserResponse.model_validate(user)

    # -----------------------------------------------------------------------
    # List / Get
    # -----------------------------------------------------------------------

    def _visible_users(self, ctx: AuthContext):
        query = select(User)
        if ctx.is_super_admin:
            return query
        org_ids = list(ctx.data_filter.organization_ids | ctx.data_filter.department_ids)
        members = select(Membership.user_id).where(Membership.organization_id.in_(org_ids))
        return query.where(
            User.global_role != GlobalRole.SUPER_ADMIN,
            or_(User.id.in_(members), User.id == ctx.user_id),
        )

    async def list_users(
        self,
        ctx: AuthContext,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> UserListResponse:
        query = self._visible_users(ctx)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(User.username.ilike(pattern), User.display_name.ilike(pattern))
            )

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar_one()

        result = await self.db.execute(query.order_by(User.username).offset(skip).limit(limit))
        return UserListResponse(
            items=[UserResponse.model_validate(u) for u in result.scalars().all()],
            total=total,
            skip=skip,
            limit=limit,
        )

    async def get_user_scope(self, ctx: AuthContext, user_id: UUID) -> ScopeResponse:
        """Resolve another user's scope, as far as the caller may see them."""
        result = await self.db.execute(
            self._visible_users(ctx).where(User.id == user_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            exists = await self.db.get(User, user_id)
            if exists is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail={"code": "USER_NOT_FOUND", "message": "User not found"},
                )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "OUT_OF_SCOPE", "message": "User is outside your scope"},
            )
        return scope_response(await build_auth_context(self.db, user))
