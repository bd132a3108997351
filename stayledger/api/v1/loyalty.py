"""Loyalty account endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import (
    ensure_customer_access,
    get_current_actor,
    get_current_admin,
    get_db,
    get_loyalty_service,
)
from stayledger.domain.actors import Actor
from stayledger.domain.ledger_rules import LedgerEntryKind
from stayledger.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry
from stayledger.schemas.loyalty import (
    AccountResponse,
    AccountSummaryResponse,
    AdjustmentRequest,
    ExpiringPointsResponse,
    LedgerEntryResponse,
    LedgerPageResponse,
)
from stayledger.services.loyalty_service import LoyaltyService

router = APIRouter()


@router.get("/{customer_id}", response_model=AccountSummaryResponse)
async def get_account_summary(
    customer_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> AccountSummaryResponse:
    """Balance, tier and progress to the next tier."""
    ensure_customer_access(actor, customer_id)
    return await loyalty.get_account_summary(db, customer_id)


@router.get("/{customer_id}/ledger", response_model=LedgerPageResponse)
async def get_customer_ledger(
    customer_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
    kind: LedgerEntryKind | None = None,
    booking_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> LedgerPageResponse:
    """A customer's points history, oldest first."""
    ensure_customer_access(actor, customer_id)
    entries, total = await loyalty.get_history(
        db,
        customer_id,
        page=page,
        page_size=page_size,
        kind=kind,
        booking_id=booking_id,
        start_date=start_date,
        end_date=end_date,
    )
    return LedgerPageResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{customer_id}/expiring", response_model=ExpiringPointsResponse)
async def get_expiring_points(
    customer_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
    days: int = Query(30, ge=1, le=365),
) -> ExpiringPointsResponse:
    ensure_customer_access(actor, customer_id)
    points = await loyalty.expiring_points(db, customer_id, days=days)
    return ExpiringPointsResponse(customer_id=customer_id, days=days, points=points)


@router.post("/{customer_id}/enroll", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def enroll(
    customer_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> LoyaltyAccount:
    """Enroll a customer in the loyalty program (idempotent)."""
    ensure_customer_access(actor, customer_id)
    return await loyalty.enroll(db, customer_id)


@router.post("/{customer_id}/adjustments", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def adjust_points(
    customer_id: UUID,
    request: AdjustmentRequest,
    admin: Annotated[Actor, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> LoyaltyLedgerEntry:
    """Manual points correction."""
    return await loyalty.adjust(db, customer_id, request.points, admin, request.reason)


@router.post("/{customer_id}/close", response_model=AccountResponse)
async def close_account(
    customer_id: UUID,
    admin: Annotated[Actor, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> LoyaltyAccount:
    return await loyalty.close_account(db, customer_id, admin)
