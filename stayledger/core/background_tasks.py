"""Loyalty reconciliation runs, shared by startup, Celery beat and the admin endpoint."""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.database import get_db_context
from stayledger.models.health import LoyaltyHealthRun
from stayledger.services.loyalty_health_service import loyalty_health_service

logger = logging.getLogger(__name__)


async def execute_health_check(db: AsyncSession, trigger: str) -> dict | None:
    """Run the reconciliation checks on ``db`` and persist the outcome."""
    started_at = datetime.now(UTC)
    logger.info(f"Starting loyalty health check (trigger: {trigger})")

    try:
        result = await loyalty_health_service.run_all_checks(db)

        completed_at = datetime.now(UTC)
        duration_ms = int((completed_at - started_at).total_seconds() * 1000)

        health_run = LoyaltyHealthRun(
            status=result["status"],
            checks=result["checks"],
            counts=result["counts"],
            trigger=trigger,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
        )
        db.add(health_run)
        await db.commit()

        logger.info(
            f"Loyalty health check completed: status={result['status']}, "
            f"duration={duration_ms}ms, checks={len(result['checks'])}"
        )

        for check in result["checks"]:
            if check["status"] != "OK":
                logger.warning(
                    f"Health check '{check['name']}': {check['status']} - {check['message']}"
                )

        return result

    except Exception as e:
        await db.rollback()
        completed_at = datetime.now(UTC)
        duration_ms = int((completed_at - started_at).total_seconds() * 1000)

        health_run = LoyaltyHealthRun(
            status="ERROR",
            checks=[],
            counts={},
            trigger=trigger,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
            error_message=str(e),
        )
        db.add(health_run)
        await db.commit()

        logger.error(f"Loyalty health check failed: {e}")
        return None


async def run_loyalty_health_check(trigger: str = "scheduled") -> dict | None:
    """Open a session and run one reconciliation."""
    async with get_db_context() as db:
        return await execute_health_check(db, trigger)


async def run_startup_health_check() -> None:
    """Run reconciliation once on application startup."""
    logger.info("Running startup loyalty health check")
    try:
        await run_loyalty_health_check(trigger="startup")
    except Exception as e:
        logger.error(f"Startup health check error: {e}")
