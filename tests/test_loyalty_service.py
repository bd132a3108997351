from datetime import UTC, date, datetime

import pytest
from sqlalchemy import select

from stayledger.core.exceptions import AuthorizationError, InsufficientBalance, NotFoundError, ValidationError
from stayledger.domain.actors import Actor
from stayledger.domain.ledger_rules import LedgerEntryKind
from stayledger.models.loyalty import LoyaltyLedgerEntry
from stayledger.services.ledger_service import LedgerService
from stayledger.services.loyalty_service import LoyaltyService
from stayledger.services.notification_service import NotificationService


class TestAccounts:
    async def test_enroll_is_idempotent(self, db, loyalty, customer_id):
        first = await loyalty.enroll(db, customer_id)
        second = await loyalty.enroll(db, customer_id)

        assert first.id == second.id
        assert first.tier == "BRONZE"
        assert first.current_points == 0

    async def test_enroll_reopens_closed_account(self, db, loyalty, customer_id, admin):
        await loyalty.enroll(db, customer_id)
        closed = await loyalty.close_account(db, customer_id, admin)
        assert closed.is_active is False
        assert closed.closed_at is not None

        reopened = await loyalty.enroll(db, customer_id)

        assert reopened.is_active is True
        assert reopened.closed_at is None

    async def test_only_admins_close_accounts(self, db, loyalty, customer_id, customer):
        await loyalty.enroll(db, customer_id)
        with pytest.raises(AuthorizationError):
            await loyalty.close_account(db, customer_id, customer)

    async def test_closing_unknown_account(self, db, loyalty, customer_id, admin):
        with pytest.raises(NotFoundError):
            await loyalty.close_account(db, customer_id, admin)

    async def test_account_summary(self, db, loyalty, customer_id, seed_points):
        await seed_points(customer_id, 5500)

        summary = await loyalty.get_account_summary(db, customer_id)

        assert summary.current_points == 5500
        assert summary.lifetime_points == 5500
        assert summary.tier.name == "SILVER"
        assert summary.tier.multiplier == 1.2
        assert summary.next_tier.name == "GOLD"
        assert summary.points_to_next_tier == 4500
        assert summary.tier_progress_percent == 50.0
        assert summary.points_value == 5500  # cents
        assert summary.expiring_soon == 0
        assert summary.is_active is True

    async def test_summary_for_unknown_customer(self, db, loyalty, customer_id):
        with pytest.raises(NotFoundError):
            await loyalty.get_account_summary(db, customer_id)


class TestAdjustments:
    async def test_admin_adjustment(self, db, loyalty, customer_id, admin, publisher):
        entry = await loyalty.adjust(db, customer_id, 1500, admin, "Service recovery")

        assert entry.kind == "ADJUSTMENT_ADMIN"
        assert entry.points_amount == 1500
        assert entry.reason == "Service recovery"
        assert entry.actor_id == "admin-1"
        assert [e.new_tier for e in publisher.of_type("TierChanged")] == ["SILVER"]

    async def test_non_admin_rejected(self, db, loyalty, customer_id, receptionist):
        with pytest.raises(AuthorizationError):
            await loyalty.adjust(db, customer_id, 100, receptionist, "Nice guest")

    @pytest.mark.parametrize("points,reason", [(0, "Nothing"), (60000, "Too much"), (100, "  ")])
    async def test_invalid_adjustments(self, db, loyalty, customer_id, admin, points, reason):
        with pytest.raises(ValidationError):
            await loyalty.adjust(db, customer_id, points, admin, reason)

    async def test_deduction_cannot_overdraw(self, db, loyalty, customer_id, admin, seed_points):
        await seed_points(customer_id, 100)
        with pytest.raises(InsufficientBalance):
            await loyalty.adjust(db, customer_id, -200, admin, "Clawback")

    async def test_history_is_readable_after_a_failed_adjustment(self, db, loyalty, customer_id, admin, seed_points):
        await seed_points(customer_id, 100)
        with pytest.raises(InsufficientBalance):
            await loyalty.adjust(db, customer_id, -200, admin, "Clawback")

        entries = await loyalty.get_ledger(db, customer_id=customer_id)
        summary = await loyalty.get_account_summary(db, customer_id)

        assert [(e.kind, e.points_amount) for e in entries] == [("ADJUSTMENT_ADMIN", 100)]
        assert summary.current_points == 100


class TestExpiry:
    async def test_expired_credits_are_removed_once(self, db, loyalty, clock, customer_id, admin, publisher):
        clock.now = datetime(2024, 1, 15, tzinfo=UTC)
        await loyalty.adjust(db, customer_id, 1000, admin, "Old credit")
        await loyalty.adjust(db, customer_id, -300, admin, "Spent")
        clock.now = datetime(2025, 6, 1, tzinfo=UTC)
        await loyalty.adjust(db, customer_id, 500, admin, "Recent credit")

        run_at = datetime(2026, 3, 1, tzinfo=UTC)
        result = await loyalty.expire_points(db, now=run_at)

        assert result == {"customers": 1, "points_expired": 700}
        account = await LedgerService().get_account(db, customer_id, for_update=True)
        assert account.current_points == 500

        expired = (
            await db.execute(select(LoyaltyLedgerEntry).where(LoyaltyLedgerEntry.kind == "EXPIRE"))
        ).scalars().all()
        assert len(expired) == 1
        assert expired[0].points_amount == -700
        assert expired[0].parent_entry_id is not None
        assert [e.points for e in publisher.of_type("PointsExpired")] == [700]

        again = await loyalty.expire_points(db, now=run_at)
        assert again["points_expired"] == 0
        count = (
            await db.execute(select(LoyaltyLedgerEntry).where(LoyaltyLedgerEntry.kind == "EXPIRE"))
        ).scalars().all()
        assert len(count) == 1

    async def test_fully_spent_credit_expires_as_zero(self, db, loyalty, clock, customer_id, admin):
        clock.now = datetime(2024, 1, 15, tzinfo=UTC)
        await loyalty.adjust(db, customer_id, 400, admin, "Old credit")
        await loyalty.adjust(db, customer_id, -400, admin, "Spent")

        result = await loyalty.expire_points(db, now=datetime(2026, 3, 1, tzinfo=UTC))

        assert result["points_expired"] == 0
        entry = (
            await db.execute(select(LoyaltyLedgerEntry).where(LoyaltyLedgerEntry.kind == "EXPIRE"))
        ).scalar_one()
        assert entry.points_amount == 0

    async def test_expiring_points_window(self, db, loyalty, clock, customer_id, admin):
        clock.now = datetime(2024, 3, 20, tzinfo=UTC)
        await loyalty.adjust(db, customer_id, 800, admin, "Credit expiring soon")
        clock.now = datetime(2025, 3, 20, tzinfo=UTC)
        await loyalty.adjust(db, customer_id, 200, admin, "Later credit")
        await loyalty.adjust(db, customer_id, -300, admin, "Spent")

        clock.now = datetime(2026, 3, 1, tzinfo=UTC)
        assert await loyalty.expiring_points(db, customer_id, days=30) == 500
        assert await loyalty.expiring_points(db, customer_id, days=5) == 0

    async def test_expiring_points_unknown_customer(self, db, loyalty, customer_id):
        assert await loyalty.expiring_points(db, customer_id) == 0


class TestHistory:
    @pytest.fixture
    async def history(self, db, loyalty, clock, customer_id, admin):
        for day, points in ((1, 100), (2, 200), (3, -50), (4, 300), (5, 400)):
            clock.now = datetime(2026, 2, day, 12, 0, tzinfo=UTC)
            await loyalty.adjust(db, customer_id, points, admin, f"Day {day}")

    async def test_pages_keep_insertion_order(self, db, loyalty, customer_id, history):
        first, total = await loyalty.get_history(db, customer_id, page=1, page_size=2)
        last, _ = await loyalty.get_history(db, customer_id, page=3, page_size=2)

        assert total == 5
        assert [e.points_amount for e in first] == [100, 200]
        assert [e.points_amount for e in last] == [400]

    async def test_date_range_is_inclusive(self, db, loyalty, customer_id, history):
        entries, total = await loyalty.get_history(
            db, customer_id, start_date=date(2026, 2, 2), end_date=date(2026, 2, 4)
        )

        assert total == 3
        assert [e.points_amount for e in entries] == [200, -50, 300]

    async def test_filter_by_kind_and_booking(self, db, loyalty, customer_id, history, insert_booking):
        booking = await insert_booking(customer_id, "COMPLETED", date(2026, 2, 10), 2, 20000)
        booking_id = booking.id
        await LedgerService().append(db, customer_id, LedgerEntryKind.EARN_COMPLETION, 25, booking_id=booking_id)
        await db.commit()

        earned, earned_total = await loyalty.get_history(db, customer_id, kind=LedgerEntryKind.EARN_COMPLETION)
        adjusted, adjusted_total = await loyalty.get_history(db, customer_id, kind="ADJUSTMENT_ADMIN", page_size=100)
        for_booking, _ = await loyalty.get_history(db, customer_id, booking_id=booking_id)

        assert earned_total == 1
        assert earned[0].points_amount == 25
        assert adjusted_total == 5
        assert len(adjusted) == 5
        assert [e.booking_id for e in for_booking] == [booking_id]

    async def test_reversed_range_rejected(self, db, loyalty, customer_id):
        with pytest.raises(ValidationError):
            await loyalty.get_history(db, customer_id, start_date=date(2026, 2, 5), end_date=date(2026, 2, 1))


class TestSystemActor:
    async def test_entries_default_to_system_actor(self, db, customer_id):
        entry = await LedgerService().append(db, customer_id, LedgerEntryKind.EARN_COMPLETION, 10)
        assert entry.actor_id == "system"
        assert entry.actor_role == "system"

    async def test_system_may_close_accounts(self, db, customer_id):
        service = LoyaltyService(NotificationService(_NullPublisher()))
        await service.enroll(db, customer_id)

        account = await service.close_account(db, customer_id, Actor.system())

        assert account.is_active is False


class _NullPublisher:
    async def publish(self, event) -> None:
        return None

    async def close(self) -> None:
        return None
