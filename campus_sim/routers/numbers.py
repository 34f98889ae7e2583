"""
Public catalogue endpoints.

Browsing and claiming numbers. No login required; a logged-in caller's
listing is narrowed to their scope.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import get_optional_auth_context
from campus_sim.schemas.phone_number import (
    ClaimRequest,
    PhoneNumberResponse,
    PublicPhoneNumberListResponse,
)
from campus_sim.services.reservation_service import ReservationService
from campus_sim.services.scope import AuthContext

router = APIRouter()


def get_reservation_service(db: AsyncSession = Depends(get_db)) -> ReservationService:
    return ReservationService(db=db)


# ---------------------------------------------------------------------------
# List Numbers
# ---------------------------------------------------------------------------

@router.get(
    "/numbers",
    response_model=PublicPhoneNumberListResponse,
    summary="Browse phone numbers",
)
async def list_numbers(
    search: str | None = Query(default=None, max_length=20),
    school_id: UUID | None = None,
    department_id: UUID | None = None,
    hide_reserved: bool = False,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    ctx: AuthContext | None = Depends(get_optional_auth_context),
    service: ReservationService = Depends(get_reservation_service),
) -> PublicPhoneNumberListResponse:
    return await service.list_public(
        ctx,
        search=search,
        school_id=school_id,
        department_id=department_id,
        hide_reserved=hide_reserved,
        skip=skip,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Claim Number
# ---------------------------------------------------------------------------

@router.post(
    "/numbers/{number_id}/claim",
    response_model=PhoneNumberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Claim an available number",
)
async def claim_number(
    number_id: UUID,
    data: ClaimRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> PhoneNumberResponse:
    """
    Reserve a number pending admin review.

    - 409 if someone else claimed it first
    - 400 if the amount is not a known tier, or full payment lacks an address
    """
    return await service.claim(number_id, data)
