"""Celery worker configuration.

Background jobs:
- Daily loyalty points expiry
- Daily ledger reconciliation
"""

from celery import Celery
from celery.schedules import crontab

from stayledger.config import settings

# Create Celery app
celery_app = Celery(
    "stayledger_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["stayledger.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,  # 10 minutes max
    task_soft_time_limit=540,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        "expire-loyalty-points": {
            "task": "stayledger.tasks.expire_loyalty_points",
            "schedule": crontab(hour=settings.points_expiry_hour, minute=0),
        },
        "reconcile-loyalty-ledger": {
            "task": "stayledger.tasks.run_loyalty_health_check",
            "schedule": crontab(hour=settings.reconciliation_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
