"""Admin endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import get_current_admin, get_db
from stayledger.core.background_tasks import execute_health_check
from stayledger.core.exceptions import AppException
from stayledger.domain.actors import Actor
from stayledger.models.health import LoyaltyHealthRun

router = APIRouter()


# ============ LOYALTY HEALTH ============


@router.get("/loyalty-health")
async def run_loyalty_health(
    admin: Annotated[Actor, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Reconcile every account projection against its ledger now."""
    result = await execute_health_check(db, trigger="manual")
    if result is None:
        raise AppException(detail="Loyalty health check failed; see the latest run for details")
    return result


@router.get("/loyalty-health/runs")
async def list_health_runs(
    admin: Annotated[Actor, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(10, ge=1, le=100),
) -> list[dict]:
    """Most recent reconciliation runs."""
    result = await db.execute(
        select(LoyaltyHealthRun).order_by(LoyaltyHealthRun.started_at.desc()).limit(limit)
    )
    return [
        {
            "id": str(run.id),
            "status": run.status,
            "trigger": run.trigger,
            "started_at": run.started_at.isoformat(),
            "duration_ms": run.duration_ms,
            "checks": run.checks,
            "error_message": run.error_message,
        }
        for run in result.scalars().all()
    ]
