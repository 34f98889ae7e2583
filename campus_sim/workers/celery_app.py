"""
Celery application instance.

Configured with Redis broker and backend. Beat runs the expired-claim sweep.
"""

from celery import Celery
from celery.signals import after_setup_logger

from campus_sim.core.config import settings
from campus_sim.core.logging import configure_logging

celery_app = Celery(
    "campus_sim",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "campus_sim.workers.sweep_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Results
    result_expires=3600,
    # Retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Routing
    task_default_queue="default",
    task_queues={
        "default": {},
        "maintenance": {},
    },
    task_routes={
        "campus_sim.workers.sweep_tasks.*": {"queue": "maintenance"},
    },
    # Schedule
    beat_schedule={
        "sweep-expired-claims": {
            "task": "campus_sim.workers.sweep_tasks.sweep_expired_claims",
            "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
        },
    },
)


@after_setup_logger.connect
def setup_json_logging(**kwargs: object) -> None:
    configure_logging()
