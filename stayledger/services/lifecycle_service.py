"""Booking lifecycle coordinator.

Each operation runs in one ``AtomicScope``: the booking row is locked
first, the state machine validates the move and lists the ledger entries
it needs, the ledger appends them, and the booking records the outcome.
All of it commits together, or none of it does. Events go out afterwards.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.collaborators.base import (
    DateRange,
    EligibilityService,
    PriceQuote,
    PricingService,
    RoomSelection,
)
from stayledger.config import settings
from stayledger.core.exceptions import (
    AppException,
    CollaboratorUnavailable,
    NotFoundError,
    RedemptionNotEligible,
)
from stayledger.domain.actors import Actor, ActorRole
from stayledger.domain.booking_state import (
    BookingStatus,
    TransitionOptions,
    assert_actor_permitted,
    plan_transition,
)
from stayledger.domain.earning import redemption_discount
from stayledger.domain.events import BookingTransitioned
from stayledger.domain.ledger_rules import LedgerEntryKind
from stayledger.domain.loyalty_effect import LoyaltyEffect, LoyaltyStage
from stayledger.models.booking import Booking, BookingRoomLine, BookingStatusChange
from stayledger.schemas.booking import BookingDraft, RedemptionRequest
from stayledger.services.atomic_scope import AtomicScope
from stayledger.services.ledger_service import LedgerService
from stayledger.services.notification_service import NotificationService
from stayledger.utils.booking_number import generate_booking_number

logger = logging.getLogger(__name__)


@dataclass
class TransitionOutcome:
    """A booking after a transition request, and whether this call moved it."""

    booking: Booking
    changed: bool


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LifecycleService:
    """Creates bookings and drives them through their status transitions."""

    def __init__(
        self,
        pricing: PricingService,
        eligibility: EligibilityService,
        notifications: NotificationService,
        ledger: LedgerService | None = None,
        clock: Callable[[], datetime] | None = None,
        scope_timeout: float | None = None,
        collaborator_timeout: float | None = None,
    ) -> None:
        self.pricing = pricing
        self.eligibility = eligibility
        self.notifications = notifications
        self.ledger = ledger or LedgerService()
        self.clock = clock or _utcnow
        self.scope_timeout = settings.scope_timeout_seconds if scope_timeout is None else scope_timeout
        self.collaborator_timeout = (
            settings.collaborator_timeout_seconds if collaborator_timeout is None else collaborator_timeout
        )

    # ==================== COLLABORATORS ====================

    async def _quote(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> PriceQuote:
        """Required pricing call; any failure aborts the operation."""
        try:
            async with asyncio.timeout(self.collaborator_timeout):
                return await self.pricing.quote(hotel_id, rooms, dates)
        except TimeoutError as e:
            raise CollaboratorUnavailable("pricing", "quote timed out") from e
        except AppException:
            raise
        except Exception as e:
            raise CollaboratorUnavailable("pricing", str(e)) from e

    async def _demand_hint(self, hotel_id: UUID, dates: DateRange) -> str:
        """Non-critical read: degrade to 'normal' on any failure."""
        try:
            async with asyncio.timeout(self.collaborator_timeout):
                return await self.pricing.demand_hint(hotel_id, dates)
        except Exception as e:
            logger.warning(f"Demand hint unavailable for hotel {hotel_id}: {e}")
            return "normal"

    async def _check_eligibility(self, db: AsyncSession, customer_id: UUID, points: int, quoted_price: int) -> None:
        account = await self.ledger.get_account(db, customer_id, for_update=True)
        try:
            async with asyncio.timeout(self.collaborator_timeout):
                result = await self.eligibility.check_redemption_eligible(
                    customer_id, points, quoted_price, account=account
                )
        except TimeoutError as e:
            raise CollaboratorUnavailable("eligibility", "check timed out") from e
        except AppException:
            raise
        except Exception as e:
            raise CollaboratorUnavailable("eligibility", str(e)) from e

        if not result.eligible:
            raise RedemptionNotEligible(result.reason or "Points redemption is not available for this booking")

    # ==================== READS ====================

    async def _lock_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def _tier_multiplier(self, db: AsyncSession, customer_id: UUID) -> Decimal:
        account = await self.ledger.get_account(db, customer_id)
        if account is None:
            return self.ledger.policy.base_tier.multiplier
        return self.ledger.policy.get(account.tier).multiplier

    # ==================== CREATE ====================

    async def create_booking(
        self,
        db: AsyncSession,
        draft: BookingDraft,
        redemption: RedemptionRequest | None = None,
        actor: Actor | None = None,
    ) -> Booking:
        """Create a PENDING booking, optionally paying part of it with points.

        Inventory must already be reserved by the caller.

        Args:
            db: Database session
            draft: Customer, hotel, dates and rooms
            redemption: Points to redeem for a discount
            actor: Requesting actor (defaults to the customer)

        Returns:
            Booking: The committed booking

        Raises:
            CollaboratorUnavailable: If no price quote can be obtained
            RedemptionNotEligible: If the eligibility check refuses
            InsufficientBalance: If the balance cannot cover the redemption
        """
        actor = actor or Actor(actor_id=str(draft.customer_id), role=ActorRole.CUSTOMER)
        now = self.clock()
        rooms = [RoomSelection(room_type=r.room_type, quantity=r.quantity) for r in draft.rooms]
        dates = DateRange(check_in=draft.check_in, check_out=draft.check_out)

        quote = await self._quote(draft.hotel_id, rooms, dates)
        demand_level = await self._demand_hint(draft.hotel_id, dates)
        points = redemption.points if redemption else 0

        async with AtomicScope(db, timeout=self.scope_timeout) as scope:
            discount = 0
            if points:
                await scope.acquire(self._check_eligibility(db, draft.customer_id, points, quote.final_price))
                discount = redemption_discount(points)

            room_count = sum(r.quantity for r in rooms) or 1
            fallback_unit = quote.final_price // max(1, dates.nights * room_count)
            booking = Booking(
                booking_number=await generate_booking_number(db),
                customer_id=draft.customer_id,
                hotel_id=draft.hotel_id,
                check_in=draft.check_in,
                check_out=draft.check_out,
                currency=quote.currency,
                base_price=quote.base_price,
                quoted_price=quote.final_price,
                discount_amount=discount,
                total_price=quote.final_price - discount,
                extras_amount=0,
                demand_level=demand_level,
                status=BookingStatus.PENDING.value,
                loyalty_effect=LoyaltyEffect().model_dump(mode="json"),
                room_lines=[
                    BookingRoomLine(
                        position=index,
                        room_type=room.room_type,
                        quantity=room.quantity,
                        unit_price=quote.line_prices.get(room.room_type, fallback_unit),
                    )
                    for index, room in enumerate(rooms)
                ],
                status_history=[
                    BookingStatusChange(
                        sequence=1,
                        previous_status=None,
                        new_status=BookingStatus.PENDING.value,
                        actor_id=actor.actor_id,
                        actor_role=actor.role.value,
                        reason="Booking created",
                        created_at=now,
                    )
                ],
                created_at=now,
            )
            db.add(booking)
            await db.flush()

            if points:
                entry = await self.ledger.append(
                    db,
                    draft.customer_id,
                    LedgerEntryKind.REDEEM,
                    -points,
                    booking_id=booking.id,
                    actor=actor,
                    reason=f"Redeemed for booking {booking.booking_number}",
                    events=scope.events,
                    now=now,
                )
                booking.effect = booking.effect.record(
                    LoyaltyStage.REDEMPTION, entry.id, points, discount_amount=discount
                )
                await db.flush()

            scope.emit(
                BookingTransitioned(
                    booking_id=booking.id,
                    booking_number=booking.booking_number,
                    customer_id=booking.customer_id,
                    previous_status=None,
                    new_status=booking.status,
                    points_delta=-points,
                )
            )

        logger.info(
            f"Booking {booking.booking_number} created: total={booking.total_price} "
            f"discount={booking.discount_amount} points_used={points}"
        )
        await self.notifications.dispatch(scope.events)
        return booking

    # ==================== TRANSITION ====================

    async def transition(
        self,
        db: AsyncSession,
        booking_id: UUID,
        target: BookingStatus | str,
        actor: Actor,
        reason: str | None = None,
        options: TransitionOptions | None = None,
    ) -> Booking:
        """Move a booking to ``target`` with its loyalty effects, atomically.

        Re-requesting the status the booking already has returns it unchanged.

        Raises:
            NotFoundError: Unknown booking
            InvalidTransition: Unreachable target or failed precondition
            TransitionNotPermitted: Actor may not perform the change
            CollaboratorUnavailable: Confirmation re-quote failed
            ConcurrentModification: A competing writer committed first
            OperationTimeout: Booking or account lock not acquired in time
        """
        outcome = await self.apply_transition(db, booking_id, target, actor, reason=reason, options=options)
        return outcome.booking

    async def apply_transition(
        self,
        db: AsyncSession,
        booking_id: UUID,
        target: BookingStatus | str,
        actor: Actor,
        reason: str | None = None,
        options: TransitionOptions | None = None,
    ) -> TransitionOutcome:
        """Same as ``transition``, also reporting whether this call committed a change."""
        options = options or TransitionOptions()
        target = BookingStatus(target)
        now = self.clock()

        async with AtomicScope(db, timeout=self.scope_timeout) as scope:
            booking = await scope.acquire(self._lock_booking(db, booking_id))

            if booking.status == target.value:
                assert_actor_permitted(booking.customer_id, target, actor)
                logger.info(f"Booking {booking.booking_number} already {target.value}, nothing to do")
                return TransitionOutcome(booking=booking, changed=False)

            # Account row is locked after the booking row, never before.
            await scope.acquire(self.ledger.get_account(db, booking.customer_id, for_update=True))

            multiplier = Decimal("1.0")
            if target == BookingStatus.CONFIRMED:
                multiplier = await self._tier_multiplier(db, booking.customer_id)

            plan = plan_transition(booking, target, actor, now, tier_multiplier=multiplier, options=options)

            if target == BookingStatus.CONFIRMED:
                await self._requote_for_confirmation(booking, options)

            points_delta = 0
            for planned in plan.entries:
                effect = booking.effect
                if effect.has_stage(planned.stage):
                    continue
                entry = await self.ledger.append(
                    db,
                    booking.customer_id,
                    planned.kind,
                    planned.points_amount,
                    booking_id=booking.id,
                    actor=actor,
                    reason=reason or f"{plan.previous_status.value} -> {target.value}",
                    cap_to_balance=planned.cap_to_balance,
                    events=scope.events,
                    now=now,
                )
                extra = {}
                if planned.stage == LoyaltyStage.PENALTY:
                    extra["penalty_shortfall"] = entry.points_amount - planned.points_amount
                booking.effect = effect.record(planned.stage, entry.id, abs(entry.points_amount), **extra)
                points_delta += entry.points_amount

            booking.status = target.value
            if plan.timestamp_field:
                setattr(booking, plan.timestamp_field, now)
            if target == BookingStatus.CANCELLED:
                booking.cancelled_by = actor.role.value
                booking.cancellation_reason = reason
            if target == BookingStatus.COMPLETED and options.extras_amount:
                booking.extras_amount = options.extras_amount

            booking.status_history.append(
                BookingStatusChange(
                    sequence=len(booking.status_history) + 1,
                    previous_status=plan.previous_status.value,
                    new_status=target.value,
                    actor_id=actor.actor_id,
                    actor_role=actor.role.value,
                    reason=reason,
                    created_at=now,
                )
            )
            await db.flush()

            scope.emit(
                BookingTransitioned(
                    booking_id=booking.id,
                    booking_number=booking.booking_number,
                    customer_id=booking.customer_id,
                    previous_status=plan.previous_status.value,
                    new_status=target.value,
                    points_delta=points_delta,
                )
            )

        logger.info(
            f"Booking {booking.booking_number}: {plan.previous_status.value} -> {target.value} "
            f"by {actor.role.value}:{actor.actor_id} (points {points_delta:+d})"
        )
        await self.notifications.dispatch(scope.events)
        return TransitionOutcome(booking=booking, changed=True)

    async def _requote_for_confirmation(self, booking: Booking, options: TransitionOptions) -> None:
        """Fail the confirmation if pricing cannot quote; the new price itself is only logged.

        The creation price stays guaranteed unless an admin override is given.
        """
        rooms = [RoomSelection(room_type=line.room_type, quantity=line.quantity) for line in booking.room_lines]
        dates = DateRange(check_in=booking.check_in, check_out=booking.check_out)
        quote = await self._quote(booking.hotel_id, rooms, dates)

        if quote.final_price != booking.quoted_price:
            logger.info(
                f"Booking {booking.booking_number}: price moved {booking.quoted_price} -> "
                f"{quote.final_price} since creation, keeping guaranteed price"
            )
        if options.price_override is not None:
            logger.info(
                f"Booking {booking.booking_number}: admin price override "
                f"{booking.total_price} -> {options.price_override}"
            )
            booking.total_price = options.price_override
