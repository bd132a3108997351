"""Loyalty tier policy.

Tiers are unlocked by lifetime points, never by the spendable balance:

- BRONZE:   0+       (1.0x earn)
- SILVER:   1,000+   (1.2x earn)
- GOLD:     10,000+  (1.5x earn)
- PLATINUM: 25,000+  (2.0x earn)
- DIAMOND:  50,000+  (2.5x earn)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from stayledger.config import TierSetting, settings


@dataclass(frozen=True)
class TierDefinition:
    """A single tier threshold and its earn multiplier."""

    name: str
    threshold: int
    multiplier: Decimal
    benefits: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TierProgress:
    """Where a lifetime balance sits relative to the next tier."""

    tier: TierDefinition
    next_tier: TierDefinition | None
    points_to_next_tier: int
    progress_percent: float


class TierPolicy:
    """Ordered tier table with pure lookups."""

    def __init__(self, tiers: Iterable[TierDefinition]) -> None:
        ordered = sorted(tiers, key=lambda t: t.threshold)
        if not ordered or ordered[0].threshold != 0:
            raise ValueError("Tier table must start at a zero threshold")
        names = [t.name for t in ordered]
        if len(set(names)) != len(names):
            raise ValueError("Tier names must be unique")
        self._tiers: tuple[TierDefinition, ...] = tuple(ordered)

    @classmethod
    def from_settings(cls, rows: Iterable[TierSetting] | None = None) -> "TierPolicy":
        rows = settings.loyalty_tiers if rows is None else rows
        return cls(
            TierDefinition(
                name=row.name,
                threshold=row.threshold,
                multiplier=Decimal(str(row.multiplier)),
                benefits=tuple(row.benefits),
            )
            for row in rows
        )

    @property
    def tiers(self) -> tuple[TierDefinition, ...]:
        return self._tiers

    @property
    def base_tier(self) -> TierDefinition:
        return self._tiers[0]

    def get(self, name: str) -> TierDefinition:
        """Look up a tier by name, falling back to the base tier."""
        for tier in self._tiers:
            if tier.name == name:
                return tier
        return self.base_tier

    def tier_for(self, lifetime_points: int) -> TierDefinition:
        """Highest tier whose threshold is met by ``lifetime_points``."""
        current = self._tiers[0]
        for tier in self._tiers:
            if lifetime_points >= tier.threshold:
                current = tier
            else:
                break
        return current

    def next_tier(self, lifetime_points: int) -> TierDefinition | None:
        for tier in self._tiers:
            if tier.threshold > lifetime_points:
                return tier
        return None

    def progress(self, lifetime_points: int) -> TierProgress:
        """Points still needed and percent of the way to the next tier."""
        tier = self.tier_for(lifetime_points)
        upcoming = self.next_tier(lifetime_points)
        if upcoming is None:
            return TierProgress(tier=tier, next_tier=None, points_to_next_tier=0, progress_percent=100.0)

        span = upcoming.threshold - tier.threshold
        earned_in_span = max(0, lifetime_points - tier.threshold)
        percent = round(earned_in_span * 100 / span, 2) if span else 100.0
        return TierProgress(
            tier=tier,
            next_tier=upcoming,
            points_to_next_tier=upcoming.threshold - lifetime_points,
            progress_percent=percent,
        )


tier_policy = TierPolicy.from_settings()
