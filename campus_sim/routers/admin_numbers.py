"""
Admin phone number endpoints.

Scoped listing, review, edit, release and delete, plus the expiry sweep.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import get_auth_context, require_admin
from campus_sim.models.phone_number import ReservationState
from campus_sim.schemas.phone_number import (
    NumberStatsResponse,
    PendingOrderListResponse,
    PhoneNumberListResponse,
    PhoneNumberPatchRequest,
    PhoneNumberResponse,
    SweepResponse,
)
from campus_sim.services.reservation_service import ReservationService
from campus_sim.services.scope import AuthContext

router = APIRouter()


def get_reservation_service(db: AsyncSession = Depends(get_db)) -> ReservationService:
    return ReservationService(db=db)


# ---------------------------------------------------------------------------
# List / Get
# ---------------------------------------------------------------------------

@router.get(
    "/numbers",
    response_model=PhoneNumberListResponse,
    summary="List numbers in your scope",
)
async def list_numbers(
    search: str | None = Query(default=None, max_length=100),
    school_id: UUID | None = None,
    department_id: UUID | None = None,
    reservation_status: ReservationState | None = None,
    hide_reserved: bool = False,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    ctx: AuthContext = Depends(get_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> PhoneNumberListResponse:
    return await service.list_numbers(
        ctx,
        search=search,
        school_id=school_id,
        department_id=department_id,
        reservation_status=reservation_status,
        hide_reserved=hide_reserved,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/pending-orders",
    response_model=PendingOrderListResponse,
    summary="Claims awaiting review",
)
async def list_pending_orders(
    ctx: AuthContext = Depends(get_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> PendingOrderListResponse:
    return await service.list_pending(ctx)


@router.get(
    "/stats",
    response_model=NumberStatsResponse,
    summary="Reservation counters for your scope",
)
async def get_stats(
    ctx: AuthContext = Depends(get_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> NumberStatsResponse:
    return await service.stats(ctx)


@router.get(
    "/numbers/{number_id}",
    response_model=PhoneNumberResponse,
    summary="Get one number",
)
async def get_number(
    number_id: UUID,
    ctx: AuthContext = Depends(get_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> PhoneNumberResponse:
    return await service.get_number(ctx, number_id)


# ---------------------------------------------------------------------------
# Approve / Edit
# ---------------------------------------------------------------------------

@router.patch(
    "/numbers/{number_id}",
    response_model=PhoneNumberResponse,
    summary="Edit or approve a number",
)
async def patch_number(
    number_id: UUID,
    data: PhoneNumberPatchRequest,
    ctx: AuthContext = Depends(get_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> PhoneNumberResponse:
    """
    Partial update. Send reservation_status RESERVED to approve a claim.

    id, number_value and timestamps are ignored if present.
    """
    return await service.patch_number(ctx, number_id, data)


# ---------------------------------------------------------------------------
# Release / Delete
# ---------------------------------------------------------------------------

@router.post(
    "/numbers/{number_id}/release",
    response_model=PhoneNumberResponse,
    summary="Release a number back to UNRESERVED",
)
async def release_number(
    number_id: UUID,
    ctx: AuthContext = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> PhoneNumberResponse:
    return await service.release_number(ctx, number_id)


@router.delete(
    "/numbers/{number_id}",
    summary="Delete a number",
)
async def delete_number(
    number_id: UUID,
    ctx: AuthContext = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    await service.delete_number(ctx, number_id)
    return {}


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------

@router.post(
    "/release-expired",
    response_model=SweepResponse,
    summary="Release claims pending for more than 30 minutes",
)
async def release_expired(
    ctx: AuthContext = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> SweepResponse:
    """Idempotent. Only numbers inside your scope are swept."""
    released = await service.sweep_expired(ctx.data_filter)
    return SweepResponse(released_count=released)
