"""Points ledger store and account projection.

``append`` is the only code path that moves a customer's balance. It
never commits: callers wrap it in an ``AtomicScope`` together with
whatever booking change caused it.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.core.exceptions import InsufficientBalance, LedgerError
from stayledger.domain.actors import Actor
from stayledger.domain.events import DomainEvent, TierChanged
from stayledger.domain.ledger_rules import (
    EXPIRING_KINDS,
    LedgerEntryKind,
    LedgerEntryStatus,
    affects_lifetime,
    validate_entry_amount,
)
from stayledger.domain.tier_policy import TierPolicy, tier_policy
from stayledger.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry
from stayledger.utils.dates import add_months

logger = logging.getLogger(__name__)


class LedgerService:
    """Append-only ledger plus the per-customer projection it maintains."""

    def __init__(self, policy: TierPolicy | None = None) -> None:
        self.policy = policy or tier_policy

    # ==================== ACCOUNTS ====================

    async def get_account(
        self,
        db: AsyncSession,
        customer_id: UUID,
        for_update: bool = False,
    ) -> LoyaltyAccount | None:
        """Fetch a customer's account, optionally locking the row."""
        query = select(LoyaltyAccount).where(LoyaltyAccount.customer_id == customer_id)
        if for_update:
            query = query.with_for_update()
        query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    def _new_account(self, customer_id: UUID, now: datetime) -> LoyaltyAccount:
        progress = self.policy.progress(0)
        return LoyaltyAccount(
            customer_id=customer_id,
            current_points=0,
            lifetime_points=0,
            last_sequence=0,
            tier=progress.tier.name,
            points_to_next_tier=progress.points_to_next_tier,
            tier_progress_percent=progress.progress_percent,
            is_active=True,
            enrolled_at=now,
        )

    async def ensure_account(
        self,
        db: AsyncSession,
        customer_id: UUID,
        now: datetime | None = None,
    ) -> tuple[LoyaltyAccount, bool]:
        """Lock the customer's account, creating it on first use.

        Returns:
            tuple: (account, created)
        """
        account = await self.get_account(db, customer_id, for_update=True)
        if account is not None:
            return account, False

        account = self._new_account(customer_id, now or datetime.now(UTC))
        db.add(account)
        await db.flush()
        logger.info(f"Enrolled customer {customer_id} in loyalty program")
        return account, True

    def _refresh_tier(
        self,
        account: LoyaltyAccount,
        now: datetime,
        events: list[DomainEvent] | None,
    ) -> None:
        progress = self.policy.progress(account.lifetime_points)
        account.points_to_next_tier = progress.points_to_next_tier
        account.tier_progress_percent = progress.progress_percent

        if progress.tier.name != account.tier:
            old_tier = account.tier
            account.tier = progress.tier.name
            account.tier_updated_at = now
            logger.info(f"Customer {account.customer_id} tier changed: {old_tier} -> {account.tier}")
            if events is not None:
                events.append(
                    TierChanged(customer_id=account.customer_id, old_tier=old_tier, new_tier=account.tier)
                )

    # ==================== APPEND ====================

    async def append(
        self,
        db: AsyncSession,
        customer_id: UUID,
        kind: LedgerEntryKind | str,
        points_amount: int,
        *,
        booking_id: UUID | None = None,
        actor: Actor | None = None,
        reason: str | None = None,
        cap_to_balance: bool = False,
        parent_entry_id: UUID | None = None,
        events: list[DomainEvent] | None = None,
        now: datetime | None = None,
    ) -> LoyaltyLedgerEntry:
        """Append a signed entry and update the projection in the same transaction.

        Args:
            db: Database session (not committed here)
            customer_id: Account owner
            kind: Entry kind
            points_amount: Signed amount; debits are negative
            booking_id: Booking that caused the movement
            actor: Who caused it (defaults to system)
            reason: Free-text note
            cap_to_balance: Shrink a debit to the available balance instead of failing
            parent_entry_id: Credit an EXPIRE entry refers to
            events: Buffer receiving TierChanged events
            now: Clock override

        Returns:
            LoyaltyLedgerEntry: The new entry (amount may be capped)

        Raises:
            LedgerError: If the amount does not fit the kind
            InsufficientBalance: If a debit exceeds the balance and is not capped
        """
        kind = LedgerEntryKind(kind)
        validate_entry_amount(kind, points_amount)
        now = now or datetime.now(UTC)
        actor = actor or Actor.system()

        account, _ = await self.ensure_account(db, customer_id, now=now)
        previous_balance = account.current_points
        amount = points_amount

        if previous_balance + amount < 0:
            if not cap_to_balance:
                raise InsufficientBalance(
                    f"Insufficient points: balance is {previous_balance}, {-amount} requested",
                    available=previous_balance,
                    requested=-amount,
                )
            amount = -previous_balance
            if amount == 0:
                validate_entry_amount(kind, 0)

        expires_at = None
        if kind in EXPIRING_KINDS and amount > 0:
            expires_at = add_months(now, settings.points_expiry_months)

        entry = LoyaltyLedgerEntry(
            customer_id=customer_id,
            booking_id=booking_id,
            sequence=account.last_sequence + 1,
            kind=kind.value,
            points_amount=amount,
            previous_balance=previous_balance,
            new_balance=previous_balance + amount,
            status=LedgerEntryStatus.COMPLETED.value,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            reason=reason,
            expires_at=expires_at,
            parent_entry_id=parent_entry_id,
            created_at=now,
        )
        db.add(entry)

        account.current_points = entry.new_balance
        account.last_sequence = entry.sequence
        if affects_lifetime(kind):
            account.lifetime_points = max(0, account.lifetime_points + amount)
        self._refresh_tier(account, now, events)

        await db.flush()

        logger.info(
            f"Ledger append: customer={customer_id} kind={kind.value} amount={amount} "
            f"balance={previous_balance}->{entry.new_balance} seq={entry.sequence}"
        )
        return entry

    # ==================== QUERIES ====================

    async def entries_for(
        self,
        db: AsyncSession,
        customer_id: UUID | None = None,
        booking_id: UUID | None = None,
    ) -> list[LoyaltyLedgerEntry]:
        """Entries for a customer or a booking, in insertion order."""
        if (customer_id is None) == (booking_id is None):
            raise LedgerError("Provide exactly one of customer_id or booking_id")

        query = select(LoyaltyLedgerEntry)
        if customer_id is not None:
            query = query.where(LoyaltyLedgerEntry.customer_id == customer_id)
        else:
            query = query.where(LoyaltyLedgerEntry.booking_id == booking_id)
        query = query.order_by(LoyaltyLedgerEntry.customer_id, LoyaltyLedgerEntry.sequence).execution_options(
            populate_existing=True
        )

        result = await db.execute(query)
        return list(result.scalars().all())

    async def history_page(
        self,
        db: AsyncSession,
        customer_id: UUID,
        page: int = 1,
        page_size: int = 20,
        kind: LedgerEntryKind | str | None = None,
        booking_id: UUID | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> tuple[list[LoyaltyLedgerEntry], int]:
        """One page of a customer's entries in insertion order, plus the filtered total.

        Returns:
            tuple: (entries, total)
        """
        query = select(LoyaltyLedgerEntry).where(LoyaltyLedgerEntry.customer_id == customer_id)
        if kind is not None:
            query = query.where(LoyaltyLedgerEntry.kind == LedgerEntryKind(kind).value)
        if booking_id is not None:
            query = query.where(LoyaltyLedgerEntry.booking_id == booking_id)
        if created_from is not None:
            query = query.where(LoyaltyLedgerEntry.created_at >= created_from)
        if created_before is not None:
            query = query.where(LoyaltyLedgerEntry.created_at < created_before)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        offset = (page - 1) * page_size
        query = (
            query.order_by(LoyaltyLedgerEntry.sequence)
            .offset(offset)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def ledger_totals(self, db: AsyncSession, customer_id: UUID) -> dict[str, Any]:
        """Aggregates used by expiry and reconciliation."""
        result = await db.execute(
            select(
                func.coalesce(func.sum(LoyaltyLedgerEntry.points_amount), 0),
                func.count(LoyaltyLedgerEntry.id),
            ).where(LoyaltyLedgerEntry.customer_id == customer_id)
        )
        total, count = result.one()
        return {"sum": int(total), "count": int(count)}
