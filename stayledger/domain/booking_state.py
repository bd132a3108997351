"""Booking lifecycle state machine.

PENDING -> CONFIRMED -> CHECKED_IN -> COMPLETED, with side branches
PENDING -> REJECTED, PENDING/CONFIRMED -> CANCELLED and CONFIRMED -> NO_SHOW.
``plan_transition`` validates a requested move and works out which ledger
entries it needs; it performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from stayledger.core.exceptions import InvalidTransition, TransitionNotPermitted
from stayledger.domain.actors import Actor, ActorRole
from stayledger.domain.cancellation_policy import calculate_penalty_points, hours_until_check_in
from stayledger.domain.earning import completion_bonus, confirmation_points
from stayledger.domain.ledger_rules import LedgerEntryKind
from stayledger.domain.loyalty_effect import LoyaltyEffect, LoyaltyStage


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
    BookingStatus.CHECKED_IN: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.REJECTED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in BOOKING_TRANSITIONS.items() if not targets)

_STAFF = {ActorRole.RECEPTIONIST, ActorRole.ADMIN, ActorRole.SYSTEM}

TRANSITION_ROLES: dict[BookingStatus, set[ActorRole]] = {
    BookingStatus.CONFIRMED: {ActorRole.ADMIN, ActorRole.SYSTEM},
    BookingStatus.REJECTED: {ActorRole.ADMIN, ActorRole.SYSTEM},
    BookingStatus.CHECKED_IN: _STAFF,
    BookingStatus.COMPLETED: _STAFF,
    BookingStatus.NO_SHOW: _STAFF,
    BookingStatus.CANCELLED: _STAFF | {ActorRole.CUSTOMER},
}

# Status -> booking timestamp column stamped on entry
STATUS_TIMESTAMPS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.REJECTED: "rejected_at",
    BookingStatus.CHECKED_IN: "checked_in_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
    BookingStatus.NO_SHOW: "no_show_at",
}


def assert_booking_transition(current: BookingStatus | str, target: BookingStatus | str) -> None:
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidTransition(
            f"Invalid booking transition: {current.value} -> {target.value}",
            current=current.value,
            target=target.value,
        )


def assert_actor_permitted(customer_id: Any, target: BookingStatus, actor: Actor) -> None:
    """Check the actor's role (and ownership, for customers) against the target."""
    allowed = TRANSITION_ROLES.get(target, set())
    if actor.role not in allowed:
        raise TransitionNotPermitted(
            f"Role '{actor.role.value}' cannot move a booking to {target.value}"
        )
    if actor.role == ActorRole.CUSTOMER and str(customer_id) != actor.actor_id:
        raise TransitionNotPermitted("Customers can only cancel their own bookings")


@dataclass(frozen=True)
class TransitionOptions:
    """Caller-supplied knobs for a transition."""

    override: bool = False
    extras_amount: int = 0
    price_override: int | None = None


@dataclass(frozen=True)
class PlannedEntry:
    """A ledger entry the transition needs, before balances are known."""

    stage: LoyaltyStage
    kind: LedgerEntryKind
    points_amount: int
    cap_to_balance: bool = False


@dataclass(frozen=True)
class TransitionPlan:
    previous_status: BookingStatus
    target: BookingStatus
    entries: tuple[PlannedEntry, ...] = field(default_factory=tuple)
    timestamp_field: str | None = None


def _check_preconditions(booking: Any, target: BookingStatus, now: datetime, options: TransitionOptions) -> None:
    today = now.date()
    if target == BookingStatus.CHECKED_IN and not options.override and today < booking.check_in:
        raise InvalidTransition(
            f"Check-in is not possible before {booking.check_in.isoformat()}",
            current=booking.status,
            target=target.value,
        )
    if target == BookingStatus.NO_SHOW and not options.override and today <= booking.check_in:
        raise InvalidTransition(
            "A booking can only be marked as no-show after its check-in date has passed",
            current=booking.status,
            target=target.value,
        )


def plan_transition(
    booking: Any,
    target: BookingStatus | str,
    actor: Actor,
    now: datetime,
    tier_multiplier: Decimal | float = Decimal("1.0"),
    options: TransitionOptions | None = None,
) -> TransitionPlan:
    """Validate a transition and list the ledger entries it requires.

    Args:
        booking: Booking with status, customer_id, check_in, check_out,
            total_price and effect attributes
        target: Requested status
        actor: Requesting actor
        now: Current time (timezone-aware)
        tier_multiplier: Earn multiplier of the customer's current tier
        options: Override flag, checkout extras, admin price override

    Returns:
        TransitionPlan: The validated plan

    Raises:
        InvalidTransition: If the target is unreachable or a precondition fails
        TransitionNotPermitted: If the actor may not perform it
    """
    options = options or TransitionOptions()
    current = BookingStatus(booking.status)
    target = BookingStatus(target)

    assert_booking_transition(current, target)
    assert_actor_permitted(booking.customer_id, target, actor)
    _check_preconditions(booking, target, now, options)

    effect: LoyaltyEffect = booking.effect
    entries: list[PlannedEntry] = []

    if target == BookingStatus.CONFIRMED and not effect.has_stage(LoyaltyStage.EARN):
        total_price = booking.total_price if options.price_override is None else options.price_override
        points = confirmation_points(total_price, tier_multiplier)
        if points > 0:
            entries.append(PlannedEntry(LoyaltyStage.EARN, LedgerEntryKind.EARN_CONFIRM, points))

    elif target in (BookingStatus.REJECTED, BookingStatus.CANCELLED):
        if effect.has_stage(LoyaltyStage.REDEMPTION) and not effect.has_stage(LoyaltyStage.REFUND):
            kind = (
                LedgerEntryKind.REFUND_REJECTION
                if target == BookingStatus.REJECTED
                else LedgerEntryKind.REFUND_CANCELLATION
            )
            entries.append(PlannedEntry(LoyaltyStage.REFUND, kind, effect.points_used))

        if (
            target == BookingStatus.CANCELLED
            and effect.has_stage(LoyaltyStage.EARN)
            and not effect.has_stage(LoyaltyStage.PENALTY)
        ):
            notice = hours_until_check_in(booking.check_in, now)
            penalty = calculate_penalty_points(effect.points_earned, notice)
            entries.append(
                PlannedEntry(
                    LoyaltyStage.PENALTY,
                    LedgerEntryKind.PENALTY_CANCELLATION,
                    -penalty,
                    cap_to_balance=True,
                )
            )

    elif target == BookingStatus.COMPLETED and not effect.has_stage(LoyaltyStage.COMPLETION):
        nights = (booking.check_out - booking.check_in).days
        bonus = completion_bonus(nights, booking.total_price + max(0, options.extras_amount))
        if bonus > 0:
            entries.append(PlannedEntry(LoyaltyStage.COMPLETION, LedgerEntryKind.EARN_COMPLETION, bonus))

    return TransitionPlan(
        previous_status=current,
        target=target,
        entries=tuple(entries),
        timestamp_field=STATUS_TIMESTAMPS.get(target),
    )
