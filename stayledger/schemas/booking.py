"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stayledger.domain.booking_state import BookingStatus


class RoomLineIn(BaseModel):
    """Requested room type and quantity."""

    room_type: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(default=1, ge=1, le=20)


class BookingBase(BaseModel):
    """Base booking schema."""

    hotel_id: UUID
    check_in: date
    check_out: date
    rooms: list[RoomLineIn] = Field(..., min_length=1)

    @field_validator("check_out")
    @classmethod
    def validate_checkout(cls, v: date, info) -> date:
        check_in = info.data.get("check_in")
        if check_in and v <= check_in:
            raise ValueError("check_out must be after check_in")
        return v


class BookingDraft(BookingBase):
    """Everything needed to create a booking, customer included."""

    customer_id: UUID


class BookingCreate(BookingBase):
    """Request body for creating a booking.

    ``customer_id`` is taken from the token for customers; staff booking on
    a customer's behalf must supply it.
    """

    customer_id: UUID | None = None
    points_to_redeem: int | None = Field(default=None, ge=1)


class RedemptionRequest(BaseModel):
    points: int = Field(..., ge=1)


class TransitionRequest(BaseModel):
    """Request body for a status change."""

    target_status: BookingStatus
    reason: str | None = Field(None, max_length=1000)
    override: bool = False
    extras_amount: int = Field(default=0, ge=0)
    price_override: int | None = Field(default=None, ge=0)


class RoomLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_type: str
    quantity: int
    unit_price: int


class StatusChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    previous_status: str | None
    new_status: str
    actor_id: str
    actor_role: str
    reason: str | None
    created_at: datetime


class LoyaltyEffectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    points_used: int = 0
    discount_amount: int = 0
    redemption_transaction_id: UUID | None = None
    points_earned: int = 0
    earn_transaction_id: UUID | None = None
    completion_bonus: int = 0
    completion_transaction_id: UUID | None = None
    points_refunded: int = 0
    refund_transaction_id: UUID | None = None
    penalty_points: int = 0
    penalty_shortfall: int = 0
    penalty_transaction_id: UUID | None = None


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    customer_id: UUID
    hotel_id: UUID
    check_in: date
    check_out: date
    status: BookingStatus
    currency: str
    base_price: int
    quoted_price: int
    discount_amount: int
    total_price: int
    extras_amount: int
    demand_level: str | None = None
    room_lines: list[RoomLineResponse]
    status_history: list[StatusChangeResponse]
    effect: LoyaltyEffectResponse
    version: int
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    confirmed_at: datetime | None = None
    checked_in_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    rejected_at: datetime | None = None
    no_show_at: datetime | None = None
    created_at: datetime


class CancellationPolicyResponse(BaseModel):
    free_cancellation_hours: int
    late_cancellation_hours: int
    late_cancellation_penalty_percent: int
    description: str
