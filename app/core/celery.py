"""
Celery configuration for background tasks
"""
from celery import Celery
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "arca",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.modules.certificates.tasks",
        "app.modules.invoices.tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Result backend settings
    result_expires=3600,  # 1 hour

    task_routes={
        "app.modules.invoices.tasks.*": {"queue": "invoices"},
        "app.modules.certificates.tasks.*": {"queue": "certificates"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "sweep-stale-pending-invoices": {
            "task": "app.modules.invoices.tasks.sweep_stale_pending_invoices",
            "schedule": 300.0,  # Every 5 minutes
        },
        "warn-expiring-certificates": {
            "task": "app.modules.certificates.tasks.warn_expiring_certificates",
            "schedule": 86400.0,  # Run daily
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
