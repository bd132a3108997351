import asyncio
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from stayledger.core.exceptions import ConcurrentModification, OperationTimeout
from stayledger.database import async_session_maker
from stayledger.domain.events import TierChanged
from stayledger.models.loyalty import LoyaltyAccount
from stayledger.services.atomic_scope import AtomicScope
from stayledger.services.ledger_service import LedgerService


def new_account(customer_id) -> LoyaltyAccount:
    return LoyaltyAccount(
        customer_id=customer_id,
        current_points=0,
        lifetime_points=0,
        last_sequence=0,
        tier="BRONZE",
        points_to_next_tier=1000,
        tier_progress_percent=0.0,
        is_active=True,
        enrolled_at=datetime(2026, 3, 1, tzinfo=UTC),
    )


class TestAtomicScope:
    async def test_commits_and_keeps_events(self, db, customer_id):
        async with AtomicScope(db) as scope:
            db.add(new_account(customer_id))
            scope.emit(TierChanged(customer_id=customer_id, old_tier="BRONZE", new_tier="SILVER"))

        assert scope.committed is True
        assert len(scope.events) == 1
        assert await LedgerService().get_account(db, customer_id) is not None

    async def test_error_rolls_back_and_drops_events(self, db, customer_id):
        with pytest.raises(RuntimeError):
            async with AtomicScope(db) as scope:
                db.add(new_account(customer_id))
                await db.flush()
                scope.emit(TierChanged(customer_id=customer_id, old_tier="BRONZE", new_tier="SILVER"))
                raise RuntimeError("boom")

        assert scope.committed is False
        assert scope.events == []
        assert await LedgerService().get_account(db, customer_id) is None

    async def test_integrity_error_is_a_concurrent_modification(self, db, customer_id):
        async with AtomicScope(db):
            db.add(new_account(customer_id))

        with pytest.raises(ConcurrentModification):
            async with AtomicScope(db):
                db.add(new_account(customer_id))
                await db.flush()

    async def test_stale_version_is_a_concurrent_modification(self, db, customer_id, seed_points):
        await seed_points(customer_id, 100)
        account = await LedgerService().get_account(db, customer_id)

        async with async_session_maker() as other:
            competing = await LedgerService().get_account(other, customer_id)
            competing.is_active = False
            await other.commit()

        with pytest.raises(ConcurrentModification) as exc:
            async with AtomicScope(db):
                account.tier = "GOLD"
        assert exc.value.status_code == 409

    async def test_acquire_times_out(self, db):
        scope = AtomicScope(db, timeout=0.01)
        with pytest.raises(OperationTimeout) as exc:
            await scope.acquire(asyncio.sleep(1))
        assert exc.value.status_code == 504

    async def test_acquire_returns_value(self, db):
        async def read():
            return 42

        assert await AtomicScope(db, timeout=1).acquire(read()) == 42

    async def test_failed_scope_leaves_session_usable(self, db):
        customer_id = uuid4()
        with pytest.raises(ValueError):
            async with AtomicScope(db):
                raise ValueError("bad input")

        async with AtomicScope(db):
            db.add(new_account(customer_id))
        assert (await LedgerService().get_account(db, customer_id)).tier == "BRONZE"
