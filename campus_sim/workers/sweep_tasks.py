"""
Expired-claim sweep task.
Releases PENDING_REVIEW numbers whose claim is older than the timeout.
"""

from __future__ import annotations

import asyncio
import logging

from campus_sim.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="campus_sim.workers.sweep_tasks.sweep_expired_claims",
    bind=True,
    max_retries=3,
    default_retry_delay=10,
)
def sweep_expired_claims(self) -> dict[str, int]:
    """
    Run the unscoped sweep. Overlapping runs are harmless: each release is
    conditioned on the row still being PENDING_REVIEW.
    """
    try:
        # Always create a fresh event loop; forked workers inherit a closed one.
        from campus_sim.core.database import async_engine
        async_engine.sync_engine.dispose()

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            released = loop.run_until_complete(_sweep())
        finally:
            loop.close()
        return {"released": released}
    except Exception as exc:
        logger.error("sweep_expired_claims failed: %s", exc)
        raise self.retry(exc=exc)


async def _sweep() -> int:
    from campus_sim.core.database import AsyncSessionLocal
    from campus_sim.services.reservation_service import ReservationService

    async with AsyncSessionLocal() as session:
        return await ReservationService(db=session).sweep_expired()
