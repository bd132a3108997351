from datetime import UTC, datetime

from sqlalchemy import select, update

from stayledger.core.background_tasks import execute_health_check
from stayledger.models.health import LoyaltyHealthRun
from stayledger.models.loyalty import LoyaltyAccount


def check(result, name):
    return next(c for c in result["checks"] if c["name"] == name)


class TestLoyaltyHealthCheck:
    async def test_clean_ledger_is_ok(self, db, customer_id, seed_points):
        await seed_points(customer_id, 1500)

        result = await execute_health_check(db, trigger="manual")

        assert result["status"] == "OK"
        assert all(c["status"] == "OK" for c in result["checks"])
        assert result["counts"]["accounts"] == 1
        assert result["counts"]["ledger_entries"] == 1

        runs = (await db.execute(select(LoyaltyHealthRun))).scalars().all()
        assert [(r.status, r.trigger) for r in runs] == [("OK", "manual")]

    async def test_tampered_balance_is_reported(self, db, customer_id, seed_points):
        await seed_points(customer_id, 500)
        await db.execute(
            update(LoyaltyAccount)
            .where(LoyaltyAccount.customer_id == customer_id)
            .values(current_points=999)
        )
        await db.commit()

        result = await execute_health_check(db, trigger="manual")

        assert result["status"] == "ERROR"
        balance = check(result, "balance_matches_ledger")
        assert balance["status"] == "ERROR"
        assert balance["details"]["customer_ids"] == [str(customer_id)]
        assert check(result, "entry_arithmetic")["status"] == "OK"

    async def test_booking_flow_passes_reconciliation(
        self, db, lifecycle, make_draft, customer_id, customer, admin, receptionist, clock
    ):
        booking = await lifecycle.create_booking(db, make_draft(customer_id), actor=customer)
        await lifecycle.transition(db, booking.id, "CONFIRMED", admin)
        clock.now = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)
        await lifecycle.transition(db, booking.id, "CHECKED_IN", receptionist)
        await lifecycle.transition(db, booking.id, "COMPLETED", receptionist)

        result = await execute_health_check(db, trigger="manual")

        assert result["status"] == "OK"
        assert check(result, "booking_effect_references")["status"] == "OK"
        assert result["counts"]["bookings"] == 1
