from datetime import UTC, date, datetime

import pytest

from stayledger.core.exceptions import InsufficientBalance, LedgerError
from stayledger.core.immutability import ImmutabilityViolationError
from stayledger.domain.ledger_rules import LedgerEntryKind
from stayledger.models.booking import BookingStatusChange
from stayledger.services.ledger_service import LedgerService

CHECK_IN = date(2026, 3, 10)


class TestLedgerAppend:
    async def test_chain_and_projection(self, db, customer_id):
        ledger = LedgerService()
        now = datetime(2026, 3, 1, tzinfo=UTC)

        first = await ledger.append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 300, now=now)
        second = await ledger.append(db, customer_id, LedgerEntryKind.REDEEM, -100, now=now)
        third = await ledger.append(db, customer_id, LedgerEntryKind.REFUND_CANCELLATION, 100, now=now)
        await db.commit()

        assert [e.sequence for e in (first, second, third)] == [1, 2, 3]
        assert (first.previous_balance, first.new_balance) == (0, 300)
        assert (second.previous_balance, second.new_balance) == (300, 200)
        assert (third.previous_balance, third.new_balance) == (200, 300)

        account = await ledger.get_account(db, customer_id)
        assert account.current_points == 300
        assert account.lifetime_points == 300  # redeem and refund do not move lifetime
        assert account.last_sequence == 3

        totals = await ledger.ledger_totals(db, customer_id)
        assert totals == {"sum": 300, "count": 3}

    async def test_debit_beyond_balance_rejected(self, db, customer_id):
        ledger = LedgerService()
        await ledger.append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 50)

        with pytest.raises(InsufficientBalance):
            await ledger.append(db, customer_id, LedgerEntryKind.REDEEM, -100)

    async def test_capped_debit(self, db, customer_id):
        ledger = LedgerService()
        await ledger.append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 50)

        entry = await ledger.append(
            db, customer_id, LedgerEntryKind.PENALTY_CANCELLATION, -80, cap_to_balance=True
        )

        assert entry.points_amount == -50
        assert entry.new_balance == 0

    async def test_wrong_sign_rejected(self, db, customer_id):
        with pytest.raises(LedgerError):
            await LedgerService().append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, -10)

    async def test_lifetime_never_negative(self, db, customer_id):
        ledger = LedgerService()
        await ledger.append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 100)
        await ledger.append(db, customer_id, LedgerEntryKind.REDEEM, -100)
        await ledger.append(db, customer_id, LedgerEntryKind.REFUND_REJECTION, 100)
        await ledger.append(db, customer_id, LedgerEntryKind.ADJUSTMENT_ADMIN, -100)

        account = await ledger.get_account(db, customer_id)
        assert account.current_points == 0
        assert account.lifetime_points == 0

    async def test_tier_can_drop(self, db, customer_id):
        ledger = LedgerService()
        events: list = []
        await ledger.append(db, customer_id, LedgerEntryKind.ADJUSTMENT_ADMIN, 1200, events=events)
        await ledger.append(db, customer_id, LedgerEntryKind.PENALTY_CANCELLATION, -300, events=events)

        account = await ledger.get_account(db, customer_id)
        assert account.tier == "BRONZE"
        assert [(e.old_tier, e.new_tier) for e in events] == [("BRONZE", "SILVER"), ("SILVER", "BRONZE")]

    async def test_entries_for_needs_exactly_one_filter(self, db, customer_id):
        with pytest.raises(LedgerError):
            await LedgerService().entries_for(db)


    async def test_entries_for_booking(self, db, customer_id, insert_booking):
        ledger = LedgerService()
        booking = await insert_booking(customer_id, "CONFIRMED", CHECK_IN, 2, 20000)
        await ledger.append(db, customer_id, LedgerEntryKind.ADJUSTMENT_ADMIN, 40)
        await ledger.append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 200, booking_id=booking.id)

        entries = await ledger.entries_for(db, booking_id=booking.id)

        assert [(e.kind, e.points_amount) for e in entries] == [("EARN_CONFIRM", 200)]


class TestImmutability:
    async def test_ledger_entries_cannot_be_updated(self, db, customer_id):
        entry = await LedgerService().append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 100)
        await db.commit()

        entry.points_amount = 1000
        with pytest.raises(ImmutabilityViolationError):
            await db.flush()
        await db.rollback()

    async def test_ledger_entries_cannot_be_deleted(self, db, customer_id):
        entry = await LedgerService().append(db, customer_id, LedgerEntryKind.EARN_CONFIRM, 100)
        await db.commit()

        await db.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            await db.flush()
        await db.rollback()

    async def test_status_history_cannot_be_rewritten(self, db, customer_id, insert_booking):
        booking = await insert_booking(customer_id, "PENDING", CHECK_IN, 2, 20000)
        change = BookingStatusChange(
            booking_id=booking.id,
            sequence=1,
            previous_status=None,
            new_status="PENDING",
            actor_id=str(customer_id),
            actor_role="customer",
            created_at=datetime(2026, 3, 1, tzinfo=UTC),
        )
        db.add(change)
        await db.commit()

        change.new_status = "CONFIRMED"
        with pytest.raises(ImmutabilityViolationError):
            await db.flush()
        await db.rollback()
