"""
Reservation business logic.

Owns the phone number lifecycle:
UNRESERVED -> PENDING_REVIEW -> RESERVED, and back to UNRESERVED on release
or claim timeout. Every state change is a conditional UPDATE so that two
racing writers can never both succeed; the loser gets a 409.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.config import settings
from campus_sim.models.phone_number import CLAIM_FIELDS, PhoneNumber, ReservationState
from campus_sim.schemas.phone_number import (
    ClaimRequest,
    NumberStatsResponse,
    PendingOrderListResponse,
    PhoneNumberListResponse,
    PhoneNumberPatchRequest,
    PhoneNumberResponse,
    PublicPhoneNumberListResponse,
    PublicPhoneNumberResponse,
)
from campus_sim.services.org_graph import OrgGraphError, load_org_graph
from campus_sim.services.scope import (
    AuthContext,
    DataFilter,
    apply_number_scope,
    ensure_number_in_scope,
    number_scope_clause,
)

logger = logging.getLogger(__name__)

CLAIM_TIMEOUT = timedelta(minutes=30)


def utcnow() -> datetime:
    return datetime.now(UTC)


def release_values() -> dict[str, Any]:
    """Column values that put a number back on the shelf."""
    values: dict[str, Any] = {name: None for name in CLAIM_FIELDS}
    values["reservation_status"] = ReservationState.UNRESERVED
    return values


class ReservationService:
    """Handles claims, admin edits, releases and the expiry sweep."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------

    def _filtered_query(
        self,
        data_filter: DataFilter | None,
        search: str | None,
        school_id: UUID | None,
        department_id: UUID | None,
        reservation_status: ReservationState | None,
        hide_reserved: bool,
        search_customers: bool = False,
    ):
        query = apply_number_scope(select(PhoneNumber), data_filter)

        if search:
            pattern = f"%{search.strip()}%"
            if search_customers:
                query = query.where(
                    or_(
                        PhoneNumber.number_value.ilike(pattern),
                        PhoneNumber.customer_name.ilike(pattern),
                        PhoneNumber.customer_contact.ilike(pattern),
                    )
                )
            else:
                query = query.where(PhoneNumber.number_value.ilike(pattern))
        if school_id is not None:
            query = query.where(PhoneNumber.school_id == school_id)
        if department_id is not None:
            query = query.where(PhoneNumber.department_id == department_id)
        if reservation_status is not None:
            query = query.where(PhoneNumber.reservation_status == reservation_status)
        if hide_reserved:
            query = query.where(PhoneNumber.reservation_status == ReservationState.UNRESERVED)
        return query

    async def _paginate(self, query, skip: int, limit: int) -> tuple[list[PhoneNumber], int]:
        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.order_by(PhoneNumber.is_premium.desc(), PhoneNumber.number_value)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_public(
        self,
        ctx: AuthContext | None,
        search: str | None = None,
        school_id: UUID | None = None,
        department_id: UUID | None = None,
        hide_reserved: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> PublicPhoneNumberListResponse:
        """Catalogue listing. Anonymous callers see every organization."""
        query = self._filtered_query(
            ctx.data_filter if ctx else None,
            search,
            school_id,
            department_id,
            None,
            hide_reserved,
        )
        numbers, total = await self._paginate(query, skip, limit)
        return PublicPhoneNumberListResponse(
            items=[PublicPhoneNumberResponse.model_validate(n) for n in numbers],
            total=total,
            skip=skip,
            limit=limit,
        )

    async def list_numbers(
        self,
        ctx: AuthContext,
        search: str | None = None,
        school_id: UUID | None = None,
        department_id: UUID | None = None,
        reservation_status: ReservationState | None = None,
        hide_reserved: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> PhoneNumberListResponse:
        query = self._filtered_query(
            ctx.data_filter,
            search,
            school_id,
            department_id,
            reservation_status,
            hide_reserved,
            search_customers=True,
        )
        numbers, total = await self._paginate(query, skip, limit)
        return PhoneNumberListResponse(
            items=[PhoneNumberResponse.model_validate(n) for n in numbers],
            total=total,
            skip=skip,
            limit=limit,
        )

    async def list_pending(self, ctx: AuthContext) -> PendingOrderListResponse:
        """Claims awaiting review, oldest first."""
        query = apply_number_scope(
            select(PhoneNumber).where(
                PhoneNumber.reservation_status == ReservationState.PENDING_REVIEW
            ),
            ctx.data_filter,
        ).order_by(PhoneNumber.claimed_at)
        result = await self.db.execute(query)
        items = [PhoneNumberResponse.model_validate(n) for n in result.scalars().all()]
        return PendingOrderListResponse(items=items, total=len(items))

    async def get_number(self, ctx: AuthContext, number_id: UUID) -> PhoneNumberResponse:
        number = await self._get_scoped(ctx, number_id)
        return PhoneNumberResponse.model_validate(number)

    # -----------------------------------------------------------------------
    # Claim
    # -----------------------------------------------------------------------

    def _validate_claim(self, data: ClaimRequest) -> None:
        if data.payment_amount not in (settings.DEPOSIT_AMOUNT, settings.FULL_PAYMENT_AMOUNT):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "INVALID_PAYMENT_TIER",
                    "message": (
                        f"Payment must be {settings.DEPOSIT_AMOUNT:g} (deposit) "
                        f"or {settings.FULL_PAYMENT_AMOUNT:g} (full payment)"
                    ),
                },
            )
        if data.payment_amount == settings.FULL_PAYMENT_AMOUNT and not (
            data.shipping_address and data.shipping_address.strip()
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "SHIPPING_ADDRESS_REQUIRED",
                    "message": "Full payment requires a shipping address",
                },
            )

    async def claim(self, number_id: UUID, data: ClaimRequest) -> PhoneNumberResponse:
        """
        Move an UNRESERVED number to PENDING_REVIEW for one customer.

        The state check and the write are one UPDATE statement, so at most
        one of several concurrent claims can match the row.
        """
        self._validate_claim(data)

        result = await self.db.execute(
            update(PhoneNumber)
            .where(
                PhoneNumber.id == number_id,
                PhoneNumber.reservation_status == ReservationState.UNRESERVED,
            )
            .values(
                reservation_status=ReservationState.PENDING_REVIEW,
                claimed_at=utcnow(),
                customer_name=data.customer_name.strip(),
                customer_contact=data.customer_contact.strip(),
                shipping_address=(data.shipping_address or "").strip() or None,
                payment_amount=data.payment_amount,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.db.rollback()
            await self._get_or_404(number_id)
            logger.info("Claim conflict on number %s", number_id)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "ALREADY_CLAIMED", "message": "This number is no longer available"},
            )

        await self.db.commit()
        number = await self._get_or_404(number_id)
        logger.info("Number %s claimed (amount=%s)", number.number_value, data.payment_amount)
        return PhoneNumberResponse.model_validate(number)

    # -----------------------------------------------------------------------
    # Approve / Edit
    # -----------------------------------------------------------------------

    async def patch_number(
        self, ctx: AuthContext, number_id: UUID, data: PhoneNumberPatchRequest
    ) -> PhoneNumberResponse:
        """
        Apply an admin edit.

        Conditioned on the state read at the start: if the number was swept
        or claimed in between, the edit fails with 409 instead of landing on
        a different claim.
        """
        number = await self._get_scoped(ctx, number_id)
        observed_state = number.reservation_status
        values: dict[str, Any] = {name: getattr(data, name) for name in data.model_fields_set}

        for name in ("reservation_status", "is_premium"):
            if name in values and values[name] is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"code": "INVALID_FIELD", "message": f"{name} cannot be null"},
                )

        if "school_id" in values or "department_id" in values:
            values.update(await self._resolve_placement(ctx, number, values))

        target_state = values.get("reservation_status", observed_state)
        if target_state == ReservationState.UNRESERVED:
            values.update(release_values())
        elif number.claimed_at is None:
            values["claimed_at"] = utcnow()

        if not values:
            return PhoneNumberResponse.model_validate(number)

        result = await self.db.execute(
            update(PhoneNumber)
            .where(
                PhoneNumber.id == number_id,
                PhoneNumber.reservation_status == observed_state,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "code": "STATE_CHANGED",
                    "message": "The number changed state while you were editing it",
                },
            )

        await self.db.commit()
        if observed_state != target_state:
            logger.info(
                "Number %s moved %s -> %s by %s",
                number.number_value,
                observed_state.value,
                target_state.value,
                ctx.user_id,
            )
        return PhoneNumberResponse.model_validate(await self._get_or_404(number_id))

    async def _resolve_placement(
        self, ctx: AuthContext, number: PhoneNumber, values: dict[str, Any]
    ) -> dict[str, Any]:
        graph = await load_org_graph(self.db)

        if "department_id" in values:
            department_id = values["department_id"]
            school_id = values.get(
                "school_id", number.school_id if department_id is None else None
            )
        else:
            school_id = values["school_id"]
            department_id = number.department_id
            parent = graph.parent_of(department_id) if department_id else None
            if parent is None or parent.id != school_id:
                department_id = None

        try:
            school_id, department_id = graph.resolve_placement(school_id, department_id)
        except OrgGraphError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_ORGANIZATION", "message": str(exc)},
            )

        if not ctx.data_filter.covers_number(school_id, department_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "OUT_OF_SCOPE",
                    "message": "Target organization is outside your scope",
                },
            )
        return {"school_id": school_id, "department_id": department_id}

    # -----------------------------------------------------------------------
    # Release / Delete
    # -----------------------------------------------------------------------

    async def release_number(self, ctx: AuthContext, number_id: UUID) -> PhoneNumberResponse:
        """Clear every claim field and return the number to UNRESERVED."""
        number = await self._get_scoped(ctx, number_id)
        await self.db.execute(
            update(PhoneNumber)
            .where(PhoneNumber.id == number_id)
            .values(**release_values())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("Number %s released by %s", number.number_value, ctx.user_id)
        return PhoneNumberResponse.model_validate(await self._get_or_404(number_id))

    async def delete_number(self, ctx: AuthContext, number_id: UUID) -> None:
        number = await self._get_scoped(ctx, number_id)
        await self.db.execute(delete(PhoneNumber).where(PhoneNumber.id == number_id))
        await self.db.commit()
        logger.info("Number %s deleted by %s", number.number_value, ctx.user_id)

    # -----------------------------------------------------------------------
    # Sweep
    # -----------------------------------------------------------------------

    async def sweep_expired(
        self, data_filter: DataFilter | None = None, now: datetime | None = None
    ) -> int:
        """
        Release PENDING_REVIEW claims older than CLAIM_TIMEOUT.

        The state predicate is part of the UPDATE, so a number approved
        concurrently is never released. Safe to run repeatedly.
        """
        cutoff = (now or utcnow()) - CLAIM_TIMEOUT
        stmt = update(PhoneNumber).where(
            PhoneNumber.reservation_status == ReservationState.PENDING_REVIEW,
            PhoneNumber.claimed_at.is_not(None),
            PhoneNumber.claimed_at < cutoff,
        )
        if data_filter is not None:
            clause = number_scope_clause(data_filter)
            if clause is not None:
                stmt = stmt.where(clause)

        result = await self.db.execute(
            stmt.values(**release_values()).execution_options(synchronize_session=False)
        )
        await self.db.commit()

        released = result.rowcount or 0
        if released:
            logger.info("Released %d expired claim(s)", released)
        return released

    # -----------------------------------------------------------------------
    # Stats
    # -----------------------------------------------------------------------

    async def stats(self, ctx: AuthContext) -> NumberStatsResponse:
        by_state = await self.db.execute(
            apply_number_scope(
                select(PhoneNumber.reservation_status, func.count(PhoneNumber.id)),
                ctx.data_filter,
            ).group_by(PhoneNumber.reservation_status)
        )
        counts = {state: count for state, count in by_state.all()}

        premium_result = await self.db.execute(
            apply_number_scope(
                select(func.count(PhoneNumber.id)).where(PhoneNumber.is_premium.is_(True)),
                ctx.data_filter,
            )
        )

        start_of_day = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        today_result = await self.db.execute(
            apply_number_scope(
                select(func.count(PhoneNumber.id)).where(PhoneNumber.claimed_at >= start_of_day),
                ctx.data_filter,
            )
        )

        return NumberStatsResponse(
            total=sum(counts.values()),
            unreserved=counts.get(ReservationState.UNRESERVED, 0),
            pending_review=counts.get(ReservationState.PENDING_REVIEW, 0),
            reserved=counts.get(ReservationState.RESERVED, 0),
            premium=premium_result.scalar_one(),
            claimed_today=today_result.scalar_one(),
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_or_404(self, number_id: UUID) -> PhoneNumber:
        result = await self.db.execute(
            select(PhoneNumber)
            .where(PhoneNumber.id == number_id)
            .execution_options(populate_existing=True)
        )
        number = result.scalar_one_or_none()
        if number is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "NUMBER_NOT_FOUND", "message": "Phone number not found"},
            )
        return number

    async def _get_scoped(self, ctx: AuthContext, number_id: UUID) -> PhoneNumber:
        number = await self._get_or_404(number_id)
        ensure_number_in_scope(ctx, number)
        return number
