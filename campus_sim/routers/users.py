"""
User and scope endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import get_auth_context, require_admin
from campus_sim.schemas.user import (
    ScopeResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
)
from campus_sim.services.scope import AuthContext
from campus_sim.services.user_service import UserService, scope_response

router = APIRouter()


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db=db)


# ---------------------------------------------------------------------------
# Current user scope
# ---------------------------------------------------------------------------

@router.get(
    "/me/scope",
    response_model=ScopeResponse,
    summary="Your resolved data scope",
)
async def get_my_scope(ctx: AuthContext = Depends(get_auth_context)) -> ScopeResponse:
    """Includes validation_warning when a department lacks its school membership."""
    return scope_response(ctx)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.post(
    "/admin/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a staff account",
)
async def create_user(
    data: UserCreateRequest,
    ctx: AuthContext = Depends(require_admin),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await service.create_user(ctx, data)


@router.get(
    "/admin/users",
    response_model=UserListResponse,
    summary="List staff accounts in your scope",
)
async def list_users(
    search: str | None = Query(default=None, max_length=100),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    ctx: AuthContext = Depends(require_admin),
    service: UserService = Depends(get_user_service),
) -> UserListResponse:
    return await service.list_users(ctx, search=search, skip=skip, limit=limit)


@router.get(
    "/admin/users/{user_id}/scope",
    response_model=ScopeResponse,
    summary="Resolved data scope of a user",
)
async def get_user_scope(
    user_id: UUID,
    ctx: AuthContext = Depends(require_admin),
    service: UserService = Depends(get_user_service),
) -> ScopeResponse:
    return await service.get_user_scope(ctx, user_id)
