"""Celery background tasks for the loyalty ledger."""

import asyncio
import logging

from celery import shared_task

from stayledger.collaborators.notifications import build_publisher
from stayledger.core.background_tasks import run_loyalty_health_check as _run_loyalty_health_check
from stayledger.core.immutability import register_immutability_enforcement
from stayledger.database import get_db_context
from stayledger.services.loyalty_service import LoyaltyService
from stayledger.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


_loop: asyncio.AbstractEventLoop | None = None


def run_async(coro):
    """Run async function in sync context.

    One loop per worker process, so pooled connections stay on the loop
    that opened them.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


@shared_task(bind=True, max_retries=3)
def expire_loyalty_points(self):
    """Expire points whose credits are older than the expiry window.

    Runs daily; safe to re-run because each expired credit gets exactly one
    EXPIRE entry.
    """
    try:
        stats = run_async(_expire_loyalty_points())
        return {"status": "success", **stats}
    except Exception as exc:
        logger.error(f"Points expiry failed: {exc}")
        raise self.retry(exc=exc, countdown=300)


async def _expire_loyalty_points() -> dict:
    register_immutability_enforcement()
    notifications = NotificationService(build_publisher())
    try:
        async with get_db_context() as db:
            return await LoyaltyService(notifications).expire_points(db)
    finally:
        await notifications.close()


@shared_task(bind=True, max_retries=3)
def run_loyalty_health_check(self):
    """Reconcile every account projection against its ledger."""
    try:
        result = run_async(_run_loyalty_health_check(trigger="scheduled"))
        status = result["status"] if result else "ERROR"
        return {"status": getattr(status, "value", status)}
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)
