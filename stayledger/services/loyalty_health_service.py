"""Loyalty ledger reconciliation (read-only validation)."""

from collections import defaultdict
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.domain.ledger_rules import LedgerEntryKind, affects_lifetime
from stayledger.domain.loyalty_effect import STAGE_FIELDS
from stayledger.domain.tier_policy import TierPolicy, tier_policy
from stayledger.models.booking import Booking
from stayledger.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry

# Kinds a booking may carry at most once
_ONCE_PER_BOOKING = (
    LedgerEntryKind.EARN_CONFIRM.value,
    LedgerEntryKind.EARN_COMPLETION.value,
    LedgerEntryKind.REDEEM.value,
    LedgerEntryKind.REFUND_REJECTION.value,
    LedgerEntryKind.REFUND_CANCELLATION.value,
    LedgerEntryKind.PENALTY_CANCELLATION.value,
)


class HealthStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _result(name: str, status: HealthStatus, message: str, details: dict | None = None) -> dict:
    return {"name": name, "status": status, "message": message, "details": details or {}}


class LoyaltyHealthService:
    """Checks that every account projection agrees with its ledger."""

    def __init__(self, policy: TierPolicy | None = None) -> None:
        self.policy = policy or tier_policy

    async def run_all_checks(self, db: AsyncSession) -> dict[str, Any]:
        """Run all loyalty health checks."""
        checks = []
        overall_status = HealthStatus.OK

        check_methods = [
            self._check_balance_matches_ledger,
            self._check_entry_arithmetic,
            self._check_chain_continuity,
            self._check_negative_balances,
            self._check_lifetime_and_tier,
            self._check_duplicate_booking_stages,
            self._check_booking_effect_references,
        ]

        for check_method in check_methods:
            result = await check_method(db)
            checks.append(result)

            if result["status"] == HealthStatus.ERROR:
                overall_status = HealthStatus.ERROR
            elif result["status"] == HealthStatus.WARNING and overall_status != HealthStatus.ERROR:
                overall_status = HealthStatus.WARNING

        counts = await self._get_counts(db)

        return {
            "status": overall_status,
            "checks": checks,
            "counts": counts,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def _check_balance_matches_ledger(self, db: AsyncSession) -> dict:
        """current_points must equal the sum of the customer's entries."""
        sums = (
            select(
                LoyaltyLedgerEntry.customer_id.label("customer_id"),
                func.sum(LoyaltyLedgerEntry.points_amount).label("total"),
            )
            .group_by(LoyaltyLedgerEntry.customer_id)
            .subquery()
        )
        result = await db.execute(
            select(LoyaltyAccount.customer_id, LoyaltyAccount.current_points, sums.c.total)
            .outerjoin(sums, sums.c.customer_id == LoyaltyAccount.customer_id)
        )
        mismatched = [
            str(customer_id)
            for customer_id, current, total in result.all()
            if current != int(total or 0)
        ]

        if mismatched:
            return _result(
                "balance_matches_ledger",
                HealthStatus.ERROR,
                f"{len(mismatched)} account(s) disagree with their ledger sum",
                {"customer_ids": mismatched[:50]},
            )
        return _result("balance_matches_ledger", HealthStatus.OK, "All balances match their ledgers")

    async def _check_entry_arithmetic(self, db: AsyncSession) -> dict:
        """Each entry: new_balance == previous_balance + points_amount."""
        result = await db.execute(
            select(func.count()).select_from(LoyaltyLedgerEntry).where(
                LoyaltyLedgerEntry.new_balance
                != LoyaltyLedgerEntry.previous_balance + LoyaltyLedgerEntry.points_amount
            )
        )
        bad = result.scalar() or 0
        if bad:
            return _result(
                "entry_arithmetic",
                HealthStatus.ERROR,
                f"{bad} ledger entr(ies) with inconsistent balance arithmetic",
                {"count": bad},
            )
        return _result("entry_arithmetic", HealthStatus.OK, "All entries are arithmetically consistent")

    async def _check_chain_continuity(self, db: AsyncSession) -> dict:
        """Sequences run 1..n and each entry starts where the previous one ended."""
        result = await db.execute(
            select(
                LoyaltyLedgerEntry.customer_id,
                LoyaltyLedgerEntry.sequence,
                LoyaltyLedgerEntry.previous_balance,
                LoyaltyLedgerEntry.new_balance,
            ).order_by(LoyaltyLedgerEntry.customer_id, LoyaltyLedgerEntry.sequence)
        )

        broken: set[str] = set()
        last: dict[UUID, tuple[int, int]] = {}
        for customer_id, sequence, previous_balance, new_balance in result.all():
            expected_sequence, expected_balance = last.get(customer_id, (0, 0))
            if sequence != expected_sequence + 1 or previous_balance != expected_balance:
                broken.add(str(customer_id))
            last[customer_id] = (sequence, new_balance)

        accounts = await db.execute(select(LoyaltyAccount.customer_id, LoyaltyAccount.last_sequence))
        for customer_id, last_sequence in accounts.all():
            if last.get(customer_id, (0, 0))[0] != last_sequence:
                broken.add(str(customer_id))

        if broken:
            return _result(
                "chain_continuity",
                HealthStatus.ERROR,
                f"{len(broken)} customer ledger(s) have a broken balance chain",
                {"customer_ids": sorted(broken)[:50]},
            )
        return _result("chain_continuity", HealthStatus.OK, "All ledger chains are continuous")

    async def _check_negative_balances(self, db: AsyncSession) -> dict:
        result = await db.execute(
            select(func.count()).select_from(LoyaltyAccount).where(LoyaltyAccount.current_points < 0)
        )
        negative = result.scalar() or 0
        if negative:
            return _result(
                "negative_balances",
                HealthStatus.ERROR,
                f"{negative} account(s) have a negative balance",
                {"count": negative},
            )
        return _result("negative_balances", HealthStatus.OK, "No negative balances")

    async def _check_lifetime_and_tier(self, db: AsyncSession) -> dict:
        """Replay lifetime points from the ledger and compare lifetime and tier."""
        result = await db.execute(
            select(LoyaltyLedgerEntry.customer_id, LoyaltyLedgerEntry.kind, LoyaltyLedgerEntry.points_amount)
            .order_by(LoyaltyLedgerEntry.customer_id, LoyaltyLedgerEntry.sequence)
        )
        lifetime: dict[UUID, int] = defaultdict(int)
        for customer_id, kind, amount in result.all():
            if affects_lifetime(LedgerEntryKind(kind)):
                lifetime[customer_id] = max(0, lifetime[customer_id] + amount)

        accounts = await db.execute(
            select(LoyaltyAccount.customer_id, LoyaltyAccount.lifetime_points, LoyaltyAccount.tier)
        )
        lifetime_mismatch = []
        tier_mismatch = []
        for customer_id, lifetime_points, tier in accounts.all():
            if lifetime_points != lifetime.get(customer_id, 0):
                lifetime_mismatch.append(str(customer_id))
            if tier != self.policy.tier_for(lifetime_points).name:
                tier_mismatch.append(str(customer_id))

        if lifetime_mismatch or tier_mismatch:
            return _result(
                "lifetime_and_tier",
                HealthStatus.ERROR if lifetime_mismatch else HealthStatus.WARNING,
                f"{len(lifetime_mismatch)} lifetime mismatch(es), {len(tier_mismatch)} tier mismatch(es)",
                {
                    "lifetime_customer_ids": lifetime_mismatch[:50],
                    "tier_customer_ids": tier_mismatch[:50],
                },
            )
        return _result("lifetime_and_tier", HealthStatus.OK, "Lifetime points and tiers match the ledger")

    async def _check_duplicate_booking_stages(self, db: AsyncSession) -> dict:
        """A booking may not carry the same earn/redeem/refund/penalty entry twice."""
        result = await db.execute(
            select(LoyaltyLedgerEntry.booking_id, LoyaltyLedgerEntry.kind, func.count().label("cnt"))
            .where(
                LoyaltyLedgerEntry.booking_id.is_not(None),
                LoyaltyLedgerEntry.kind.in_(_ONCE_PER_BOOKING),
            )
            .group_by(LoyaltyLedgerEntry.booking_id, LoyaltyLedgerEntry.kind)
            .having(func.count() > 1)
        )
        duplicates = result.all()
        if duplicates:
            return _result(
                "duplicate_booking_stages",
                HealthStatus.ERROR,
                f"{len(duplicates)} booking stage(s) recorded more than once",
                {"stages": [{"booking_id": str(b), "kind": k, "count": c} for b, k, c in duplicates[:50]]},
            )
        return _result("duplicate_booking_stages", HealthStatus.OK, "Every booking stage recorded at most once")

    async def _check_booking_effect_references(self, db: AsyncSession) -> dict:
        """Transaction ids on booking loyalty effects must point at real entries."""
        bookings = await db.execute(select(Booking.id, Booking.loyalty_effect))
        referenced: dict[str, str] = {}
        for booking_id, effect in bookings.all():
            for id_field, _ in STAGE_FIELDS.values():
                transaction_id = (effect or {}).get(id_field)
                if transaction_id:
                    referenced[str(transaction_id)] = str(booking_id)

        if not referenced:
            return _result("booking_effect_references", HealthStatus.OK, "No booking loyalty references")

        existing = await db.execute(
            select(LoyaltyLedgerEntry.id).where(
                LoyaltyLedgerEntry.id.in_([UUID(value) for value in referenced])
            )
        )
        found = {str(row[0]) for row in existing.all()}
        dangling = sorted({referenced[tid] for tid in referenced if tid not in found})

        if dangling:
            return _result(
                "booking_effect_references",
                HealthStatus.ERROR,
                f"{len(dangling)} booking(s) reference missing ledger entries",
                {"booking_ids": dangling[:50]},
            )
        return _result(
            "booking_effect_references", HealthStatus.OK, "All booking loyalty references resolve"
        )

    async def _get_counts(self, db: AsyncSession) -> dict:
        """Get entity counts for reporting."""
        bookings = await db.execute(select(func.count()).select_from(Booking))
        accounts = await db.execute(select(func.count()).select_from(LoyaltyAccount))
        entries = await db.execute(select(func.count()).select_from(LoyaltyLedgerEntry))

        return {
            "bookings": bookings.scalar() or 0,
            "accounts": accounts.scalar() or 0,
            "ledger_entries": entries.scalar() or 0,
        }


loyalty_health_service = LoyaltyHealthService()
