"""Loyalty account operations: enrollment, summaries, admin adjustments, expiry."""

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from stayledger.domain.actors import Actor, ActorRole
from stayledger.domain.earning import redemption_discount
from stayledger.domain.events import PointsExpired
from stayledger.domain.ledger_rules import EXPIRING_KINDS, LedgerEntryKind
from stayledger.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry
from stayledger.schemas.loyalty import AccountSummaryResponse, TierInfo
from stayledger.services.atomic_scope import AtomicScope
from stayledger.services.ledger_service import LedgerService
from stayledger.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_REFUND_KINDS = (LedgerEntryKind.REFUND_REJECTION.value, LedgerEntryKind.REFUND_CANCELLATION.value)
_EXPIRING_KIND_VALUES = tuple(kind.value for kind in EXPIRING_KINDS)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _tier_info(tier) -> TierInfo:
    return TierInfo(
        name=tier.name,
        threshold=tier.threshold,
        multiplier=float(tier.multiplier),
        benefits=list(tier.benefits),
    )


class LoyaltyService:
    """Account-level operations that sit on top of the ledger."""

    def __init__(
        self,
        notifications: NotificationService,
        ledger: LedgerService | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.notifications = notifications
        self.ledger = ledger or LedgerService()
        self.clock = clock or _utcnow

    async def _require_account(self, db: AsyncSession, customer_id: UUID) -> LoyaltyAccount:
        account = await self.ledger.get_account(db, customer_id)
        if account is None:
            raise NotFoundError("Loyalty account", str(customer_id))
        return account

    # ==================== ACCOUNT ====================

    async def enroll(self, db: AsyncSession, customer_id: UUID) -> LoyaltyAccount:
        """Enroll a customer; returns the existing account if already enrolled."""
        async with AtomicScope(db):
            account, created = await self.ledger.ensure_account(db, customer_id, now=self.clock())
            if not created and not account.is_active:
                account.is_active = True
                account.closed_at = None
                logger.info(f"Reopened loyalty account for customer {customer_id}")
        return account

    async def close_account(self, db: AsyncSession, customer_id: UUID, actor: Actor) -> LoyaltyAccount:
        """Soft-close an account. History and balance are kept; redemption stops."""
        if actor.role not in (ActorRole.ADMIN, ActorRole.SYSTEM):
            raise AuthorizationError("Admin access required")
        async with AtomicScope(db) as scope:
            account = await scope.acquire(self.ledger.get_account(db, customer_id, for_update=True))
            if account is None:
                raise NotFoundError("Loyalty account", str(customer_id))
            if account.is_active:
                account.is_active = False
                account.closed_at = self.clock()
        logger.info(f"Loyalty account closed for customer {customer_id} by {actor.actor_id}")
        return account

    async def get_account_summary(self, db: AsyncSession, customer_id: UUID) -> AccountSummaryResponse:
        """Balance, tier, progress and soon-to-expire points for one customer."""
        account = await self._require_account(db, customer_id)
        progress = self.ledger.policy.progress(account.lifetime_points)
        expiring = await self.expiring_points(db, customer_id, days=30)

        return AccountSummaryResponse(
            customer_id=account.customer_id,
            current_points=account.current_points,
            lifetime_points=account.lifetime_points,
            tier=_tier_info(self.ledger.policy.get(account.tier)),
            next_tier=_tier_info(progress.next_tier) if progress.next_tier else None,
            points_to_next_tier=account.points_to_next_tier,
            tier_progress_percent=account.tier_progress_percent,
            points_value=redemption_discount(account.current_points),
            expiring_soon=expiring,
            is_active=account.is_active,
            enrolled_at=account.enrolled_at,
            closed_at=account.closed_at,
        )

    async def get_ledger(
        self,
        db: AsyncSession,
        customer_id: UUID | None = None,
        booking_id: UUID | None = None,
    ) -> list[LoyaltyLedgerEntry]:
        return await self.ledger.entries_for(db, customer_id=customer_id, booking_id=booking_id)

    async def get_history(
        self,
        db: AsyncSession,
        customer_id: UUID,
        page: int = 1,
        page_size: int = 20,
        kind: LedgerEntryKind | str | None = None,
        booking_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> tuple[list[LoyaltyLedgerEntry], int]:
        """Paginated points history; the date range is inclusive, in UTC days."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")
        created_from = datetime.combine(start_date, time.min, tzinfo=UTC) if start_date else None
        created_before = (
            datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC) if end_date else None
        )
        return await self.ledger.history_page(
            db,
            customer_id,
            page=page,
            page_size=page_size,
            kind=kind,
            booking_id=booking_id,
            created_from=created_from,
            created_before=created_before,
        )

    # ==================== ADJUSTMENTS ====================

    async def adjust(
        self,
        db: AsyncSession,
        customer_id: UUID,
        points: int,
        actor: Actor,
        reason: str,
    ) -> LoyaltyLedgerEntry:
        """Manual correction by an admin.

        Args:
            db: Database session
            customer_id: Account owner
            points: Signed amount, non-zero, within the configured limit
            actor: Must be an admin
            reason: Required justification

        Returns:
            LoyaltyLedgerEntry: The ADJUSTMENT_ADMIN entry

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If the amount is zero or over the limit
            InsufficientBalance: If a deduction exceeds the balance
        """
        if actor.role != ActorRole.ADMIN:
            raise AuthorizationError("Admin access required")
        if points == 0:
            raise ValidationError("Adjustment amount cannot be zero")
        if abs(points) > settings.max_admin_adjustment:
            raise ValidationError(f"Adjustments are limited to {settings.max_admin_adjustment} points")
        if not reason or not reason.strip():
            raise ValidationError("An adjustment reason is required")

        async with AtomicScope(db) as scope:
            entry = await scope.acquire(
                self.ledger.append(
                    db,
                    customer_id,
                    LedgerEntryKind.ADJUSTMENT_ADMIN,
                    points,
                    actor=actor,
                    reason=reason,
                    events=scope.events,
                    now=self.clock(),
                )
            )
        await self.notifications.dispatch(scope.events)
        return entry

    # ==================== EXPIRY ====================

    async def _consumed_points(self, db: AsyncSession, customer_id: UUID) -> int:
        """Points already spent, penalised or expired, net of refunds."""
        result = await db.execute(
            select(
                func.coalesce(
                    func.sum(
                        case(
                            (LoyaltyLedgerEntry.points_amount < 0, -LoyaltyLedgerEntry.points_amount),
                            else_=0,
                        )
                    ),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case(
                            (LoyaltyLedgerEntry.kind.in_(_REFUND_KINDS), LoyaltyLedgerEntry.points_amount),
                            else_=0,
                        )
                    ),
                    0,
                ),
            ).where(LoyaltyLedgerEntry.customer_id == customer_id)
        )
        debited, refunded = result.one()
        return max(0, int(debited) - int(refunded))

    async def _expiring_credit_total(self, db: AsyncSession, customer_id: UUID, horizon: datetime) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(LoyaltyLedgerEntry.points_amount), 0)).where(
                LoyaltyLedgerEntry.customer_id == customer_id,
                LoyaltyLedgerEntry.kind.in_(_EXPIRING_KIND_VALUES),
                LoyaltyLedgerEntry.points_amount > 0,
                LoyaltyLedgerEntry.expires_at <= horizon,
            )
        )
        return int(result.scalar() or 0)

    async def expiring_points(
        self,
        db: AsyncSession,
        customer_id: UUID,
        days: int = 30,
        now: datetime | None = None,
    ) -> int:
        """Points that will expire within ``days`` unless spent first.

        Spending consumes the oldest credits first.
        """
        account = await self.ledger.get_account(db, customer_id)
        if account is None:
            return 0
        horizon = (now or self.clock()) + timedelta(days=days)
        due = await self._expiring_credit_total(db, customer_id, horizon)
        consumed = await self._consumed_points(db, customer_id)
        return max(0, min(due - consumed, account.current_points))

    async def _expire_customer(
        self,
        db: AsyncSession,
        customer_id: UUID,
        now: datetime,
    ) -> int:
        """Append one EXPIRE entry per newly expired credit. Returns points expired."""
        expired = 0
        async with AtomicScope(db) as scope:
            await scope.acquire(self.ledger.get_account(db, customer_id, for_update=True))

            parent = LoyaltyLedgerEntry.__table__.alias("parent_credit")
            child = LoyaltyLedgerEntry.__table__.alias("expire_child")
            candidates = (
                await db.execute(
                    select(parent.c.id, parent.c.sequence)
                    .where(
                        parent.c.customer_id == customer_id,
                        parent.c.kind.in_(_EXPIRING_KIND_VALUES),
                        parent.c.points_amount > 0,
                        parent.c.expires_at <= now,
                        ~select(child.c.id)
                        .where(
                            and_(
                                child.c.parent_entry_id == parent.c.id,
                                child.c.kind == LedgerEntryKind.EXPIRE.value,
                            )
                        )
                        .exists(),
                    )
                    .order_by(parent.c.sequence)
                )
            ).all()

            consumed = await self._consumed_points(db, customer_id)
            for credit_id, credit_sequence in candidates:
                credits_through = await db.execute(
                    select(func.coalesce(func.sum(LoyaltyLedgerEntry.points_amount), 0)).where(
                        LoyaltyLedgerEntry.customer_id == customer_id,
                        LoyaltyLedgerEntry.kind.in_(_EXPIRING_KIND_VALUES),
                        LoyaltyLedgerEntry.points_amount > 0,
                        LoyaltyLedgerEntry.sequence <= credit_sequence,
                    )
                )
                account = await self.ledger.get_account(db, customer_id)
                to_expire = max(0, min(int(credits_through.scalar() or 0) - consumed, account.current_points))
                entry = await self.ledger.append(
                    db,
                    customer_id,
                    LedgerEntryKind.EXPIRE,
                    -to_expire,
                    reason=f"Points earned more than {settings.points_expiry_months} months ago",
                    cap_to_balance=True,
                    parent_entry_id=credit_id,
                    events=scope.events,
                    now=now,
                )
                consumed += -entry.points_amount
                expired += -entry.points_amount

            if expired:
                scope.emit(PointsExpired(customer_id=customer_id, points=expired))

        await self.notifications.dispatch(scope.events)
        return expired

    async def expire_points(self, db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
        """Expire points for every customer with credits past their expiry date.

        Returns:
            dict: customers processed and total points expired
        """
        now = now or self.clock()
        result = await db.execute(
            select(LoyaltyLedgerEntry.customer_id)
            .where(
                LoyaltyLedgerEntry.kind.in_(_EXPIRING_KIND_VALUES),
                LoyaltyLedgerEntry.points_amount > 0,
                LoyaltyLedgerEntry.expires_at <= now,
            )
            .distinct()
        )
        customer_ids = [row[0] for row in result.all()]

        total = 0
        for customer_id in customer_ids:
            total += await self._expire_customer(db, customer_id, now)

        logger.info(f"Points expiry run: customers={len(customer_ids)} points_expired={total}")
        return {"customers": len(customer_ids), "points_expired": total}
