"""
FastAPI dependency injection functions.

Provides the current user, the per-request AuthContext and role enforcement.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.security import decode_access_token
from campus_sim.models.user import GlobalRole, User
from campus_sim.services.scope import AuthContext, build_auth_context

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so we can return custom 401)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _load_user(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_access_token(token)
        user_id = UUID(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise _unauthorized("INVALID_TOKEN", "Token is invalid or expired")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise _unauthorized("USER_NOT_FOUND", "User not found or inactive")
    return user


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate Bearer JWT and return the authenticated User.

    Raises 401 if:
    - No token provided
    - Token is invalid or expired
    - User does not exist or is inactive
    """
    if credentials is None:
        raise _unauthorized("MISSING_TOKEN", "Authorization header required")
    return await _load_user(credentials.credentials, db)


async def get_auth_context(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the caller's data scope. Rebuilt on every request."""
    return await build_auth_context(db, current_user)


async def get_optional_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext | None:
    """Like get_auth_context, but anonymous callers get None instead of 401."""
    if credentials is None:
        return None
    user = await _load_user(credentials.credentials, db)
    return await build_auth_context(db, user)


# ---------------------------------------------------------------------------
# Role enforcement
# ---------------------------------------------------------------------------

def require_roles(*roles: GlobalRole):
    """
    Dependency factory that enforces one of the given global roles.

    Usage:
        @router.post("/...")
        async def endpoint(
            ctx: AuthContext = Depends(require_roles(GlobalRole.SUPER_ADMIN)),
        ):
            ...
    """
    async def role_checker(
        ctx: AuthContext = Depends(get_auth_context),
    ) -> AuthContext:
        if not ctx.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_ROLE",
                    "message": f"Required role: {[r.value for r in roles]}",
                },
            )
        return ctx

    return role_checker


require_admin = require_roles(GlobalRole.SUPER_ADMIN, GlobalRole.SCHOOL_ADMIN)
