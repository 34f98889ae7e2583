"""
Bulk actions over phone numbers.

Ban and unban are single UPDATE statements whose WHERE clause carries the
prefix, the state predicate and the caller's scope, so rows that change
between a scan and the write are re-checked by the database itself.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.phone_number import PhoneNumber, ReservationState
from campus_sim.schemas.bulk_action import BulkAction, BulkActionRequest, BulkActionResponse
from campus_sim.services.reservation_service import release_values, utcnow
from campus_sim.services.scope import AuthContext, number_scope_clause

logger = logging.getLogger(__name__)

# Written into customer_name by BAN_PREFIX; UNBAN_PREFIX only touches rows carrying it.
BANNED_SENTINEL = "SYSTEM LOCKED (BANNED)"


class BulkActionService:
    """Executes CLEAR_ALL, BAN_PREFIX and UNBAN_PREFIX."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def execute(self, ctx: AuthContext, data: BulkActionRequest) -> BulkActionResponse:
        if data.action == BulkAction.CLEAR_ALL:
            return await self.clear_all(ctx)
        if data.action == BulkAction.BAN_PREFIX:
            return await self.ban_prefix(ctx, data.prefix or "")
        return await self.unban_prefix(ctx, data.prefix or "")

    # -----------------------------------------------------------------------
    # Clear all
    # -----------------------------------------------------------------------

    async def clear_all(self, ctx: AuthContext) -> BulkActionResponse:
        """Delete every phone number. Global, so super admins only."""
        if not ctx.is_super_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_ROLE",
                    "message": "Only a super admin can clear all numbers",
                },
            )
        result = await self.db.execute(delete(PhoneNumber))
        await self.db.commit()
        count = result.rowcount or 0
        logger.warning("CLEAR_ALL by %s removed %d number(s)", ctx.user_id, count)
        return BulkActionResponse(
            action=BulkAction.CLEAR_ALL,
            affected_count=count,
            message=f"Deleted {count} number(s)",
        )

    # -----------------------------------------------------------------------
    # Ban / Unban
    # -----------------------------------------------------------------------

    def _scoped(self, stmt, ctx: AuthContext):
        clause = number_scope_clause(ctx.data_filter)
        return stmt if clause is None else stmt.where(clause)

    async def ban_prefix(self, ctx: AuthContext, prefix: str) -> BulkActionResponse:
        """Lock every available number starting with prefix."""
        stmt = update(PhoneNumber).where(
            PhoneNumber.number_value.startswith(prefix, autoescape=True),
            PhoneNumber.reservation_status == ReservationState.UNRESERVED,
        )
        result = await self.db.execute(
            self._scoped(stmt, ctx)
            .values(
                reservation_status=ReservationState.RESERVED,
                customer_name=BANNED_SENTINEL,
                claimed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount or 0
        logger.info("BAN_PREFIX %s by %s locked %d number(s)", prefix, ctx.user_id, count)
        return BulkActionResponse(
            action=BulkAction.BAN_PREFIX,
            prefix=prefix,
            affected_count=count,
            message=f"Locked {count} number(s) starting with {prefix}",
        )

    async def unban_prefix(self, ctx: AuthContext, prefix: str) -> BulkActionResponse:
        """Unlock numbers starting with prefix that were locked by BAN_PREFIX."""
        stmt = update(PhoneNumber).where(
            PhoneNumber.number_value.startswith(prefix, autoescape=True),
            PhoneNumber.customer_name == BANNED_SENTINEL,
        )
        result = await self.db.execute(
            self._scoped(stmt, ctx)
            .values(**release_values())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount or 0
        logger.info("UNBAN_PREFIX %s by %s unlocked %d number(s)", prefix, ctx.user_id, count)
        return BulkActionResponse(
            action=BulkAction.UNBAN_PREFIX,
            prefix=prefix,
            affected_count=count,
            message=f"Unlocked {count} number(s) starting with {prefix}",
        )
