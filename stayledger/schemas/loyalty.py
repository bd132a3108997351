"""Loyalty ledger and account schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    booking_id: UUID | None
    sequence: int
    kind: str
    points_amount: int
    previous_balance: int
    new_balance: int
    status: str
    actor_id: str
    actor_role: str
    reason: str | None
    expires_at: datetime | None
    parent_entry_id: UUID | None
    created_at: datetime


class LedgerResponse(BaseModel):
    entries: list[LedgerEntryResponse]
    total: int


class TierInfo(BaseModel):
    name: str
    threshold: int
    multiplier: float
    benefits: list[str]


class AccountSummaryResponse(BaseModel):
    """Balance, tier and progress for one customer."""

    customer_id: UUID
    current_points: int
    lifetime_points: int
    tier: TierInfo
    next_tier: TierInfo | None
    points_to_next_tier: int
    tier_progress_percent: float
    points_value: int  # redemption value of the balance, in cents
    expiring_soon: int
    is_active: bool
    enrolled_at: datetime
    closed_at: datetime | None = None


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    current_points: int
    lifetime_points: int
    tier: str
    is_active: bool
    enrolled_at: datetime
    closed_at: datetime | None = None


class AdjustmentRequest(BaseModel):
    points: int = Field(..., description="Signed amount; negative removes points")
    reason: str = Field(..., min_length=3, max_length=500)


class ExpiringPointsResponse(BaseModel):
    customer_id: UUID
    days: int
    points: int


class LedgerPageResponse(LedgerResponse):
    """One page of a customer's points history."""

    page: int
    page_size: int
