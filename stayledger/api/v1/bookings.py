"""Booking endpoints."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import (
    ensure_customer_access,
    get_current_actor,
    get_db,
    get_inventory_service,
    get_lifecycle_service,
    get_loyalty_service,
)
from stayledger.collaborators.base import DateRange, InventoryService, RoomSelection
from stayledger.config import settings
from stayledger.core.exceptions import RoomsNotAvailable, ValidationError
from stayledger.domain.actors import Actor, ActorRole
from stayledger.domain.booking_state import BookingStatus, TransitionOptions
from stayledger.domain.cancellation_policy import get_policy_description
from stayledger.models.booking import Booking
from stayledger.schemas.booking import (
    BookingCreate,
    BookingDraft,
    BookingResponse,
    CancellationPolicyResponse,
    RedemptionRequest,
    TransitionRequest,
)
from stayledger.schemas.loyalty import LedgerEntryResponse, LedgerResponse
from stayledger.services.lifecycle_service import LifecycleService
from stayledger.services.loyalty_service import LoyaltyService

logger = logging.getLogger(__name__)

router = APIRouter()

_RELEASES_INVENTORY = (BookingStatus.REJECTED.value, BookingStatus.CANCELLED.value)


def _rooms_and_dates(booking_data) -> tuple[list[RoomSelection], DateRange]:
    rooms = [RoomSelection(room_type=r.room_type, quantity=r.quantity) for r in booking_data.rooms]
    return rooms, DateRange(check_in=booking_data.check_in, check_out=booking_data.check_out)


async def _release_quietly(inventory: InventoryService, booking: Booking) -> None:
    rooms = [RoomSelection(room_type=line.room_type, quantity=line.quantity) for line in booking.room_lines]
    dates = DateRange(check_in=booking.check_in, check_out=booking.check_out)
    result = await inventory.release(booking.hotel_id, rooms, dates)
    if not result.success:
        logger.warning(f"Inventory release failed for booking {booking.booking_number}: {result.error_message}")


def _resolve_customer(actor: Actor, booking_data: BookingCreate) -> UUID:
    if actor.role == ActorRole.CUSTOMER:
        try:
            customer_id = UUID(actor.actor_id)
        except ValueError:
            raise ValidationError("Customer tokens must carry a UUID subject")
        if booking_data.customer_id and booking_data.customer_id != customer_id:
            raise ValidationError("Customers can only book for themselves")
        return customer_id
    if not booking_data.customer_id:
        raise ValidationError("customer_id is required when booking on a customer's behalf")
    return booking_data.customer_id


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    lifecycle: Annotated[LifecycleService, Depends(get_lifecycle_service)],
    inventory: Annotated[InventoryService, Depends(get_inventory_service)],
) -> Booking:
    """Reserve rooms, then create a PENDING booking (optionally redeeming points)."""
    customer_id = _resolve_customer(actor, booking_data)
    rooms, dates = _rooms_and_dates(booking_data)

    reservation = await inventory.reserve(booking_data.hotel_id, rooms, dates)
    if not reservation.success:
        raise RoomsNotAvailable(reservation.error_message or "The selected rooms are not available for these dates")

    draft = BookingDraft(
        customer_id=customer_id,
        hotel_id=booking_data.hotel_id,
        check_in=booking_data.check_in,
        check_out=booking_data.check_out,
        rooms=booking_data.rooms,
    )
    redemption = RedemptionRequest(points=booking_data.points_to_redeem) if booking_data.points_to_redeem else None

    try:
        return await lifecycle.create_booking(db, draft, redemption=redemption, actor=actor)
    except Exception:
        release = await inventory.release(booking_data.hotel_id, rooms, dates)
        if not release.success:
            logger.warning(f"Inventory release after failed create did not succeed: {release.error_message}")
        raise


@router.get("/cancellation-policy", response_model=CancellationPolicyResponse)
async def get_cancellation_policy() -> CancellationPolicyResponse:
    """Notice periods and the share of confirmation points forfeited."""
    return CancellationPolicyResponse(
        free_cancellation_hours=settings.free_cancellation_hours,
        late_cancellation_hours=settings.late_cancellation_hours,
        late_cancellation_penalty_percent=settings.late_cancellation_penalty_percent,
        description=get_policy_description(),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    lifecycle: Annotated[LifecycleService, Depends(get_lifecycle_service)],
) -> Booking:
    """Get booking details."""
    booking = await lifecycle.get_booking(db, booking_id)
    ensure_customer_access(actor, booking.customer_id)
    return booking


@router.post("/{booking_id}/transitions", response_model=BookingResponse)
async def transition_booking(
    booking_id: UUID,
    request: TransitionRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    lifecycle: Annotated[LifecycleService, Depends(get_lifecycle_service)],
    inventory: Annotated[InventoryService, Depends(get_inventory_service)],
) -> Booking:
    """Confirm, reject, check in, check out, cancel or mark a booking as no-show."""
    outcome = await lifecycle.apply_transition(
        db,
        booking_id,
        request.target_status,
        actor,
        reason=request.reason,
        options=TransitionOptions(
            override=request.override,
            extras_amount=request.extras_amount,
            price_override=request.price_override,
        ),
    )

    if outcome.changed and outcome.booking.status in _RELEASES_INVENTORY:
        await _release_quietly(inventory, outcome.booking)
    return outcome.booking


@router.get("/{booking_id}/ledger", response_model=LedgerResponse)
async def get_booking_ledger(
    booking_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    lifecycle: Annotated[LifecycleService, Depends(get_lifecycle_service)],
    loyalty: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> LedgerResponse:
    """Ledger entries caused by one booking."""
    booking = await lifecycle.get_booking(db, booking_id)
    ensure_customer_access(actor, booking.customer_id)
    entries = await loyalty.get_ledger(db, booking_id=booking_id)
    return LedgerResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
