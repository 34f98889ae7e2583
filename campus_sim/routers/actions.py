"""
Bulk action and import endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.core.database import get_db
from campus_sim.core.dependencies import require_admin
from campus_sim.schemas.bulk_action import BulkActionRequest, BulkActionResponse
from campus_sim.schemas.import_batch import ImportRequest, ImportResponse
from campus_sim.services.bulk_action_service import BulkActionService
from campus_sim.services.import_service import ImportService
from campus_sim.services.scope import AuthContext

router = APIRouter()


def get_bulk_action_service(db: AsyncSession = Depends(get_db)) -> BulkActionService:
    return BulkActionService(db=db)


def get_import_service(db: AsyncSession = Depends(get_db)) -> ImportService:
    return ImportService(db=db)


# ---------------------------------------------------------------------------
# Bulk actions
# ---------------------------------------------------------------------------

@router.post(
    "/actions",
    response_model=BulkActionResponse,
    summary="Run a bulk action",
)
async def run_bulk_action(
    data: BulkActionRequest,
    ctx: AuthContext = Depends(require_admin),
    service: BulkActionService = Depends(get_bulk_action_service),
) -> BulkActionResponse:
    """
    - CLEAR_ALL: delete every number (super admin only, not scoped)
    - BAN_PREFIX: lock available numbers with the prefix inside your scope
    - UNBAN_PREFIX: unlock numbers previously locked by BAN_PREFIX
    """
    return await service.execute(ctx, data)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

@router.post(
    "/imports",
    response_model=ImportResponse,
    summary="Import numbers from pasted text",
)
async def import_numbers(
    data: ImportRequest,
    ctx: AuthContext = Depends(require_admin),
    service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    return await service.import_batch(ctx, data)
