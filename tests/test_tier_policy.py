from decimal import Decimal

import pytest

from stayledger.config import TierSetting
from stayledger.domain.tier_policy import TierDefinition, TierPolicy, tier_policy


class TestTierLookup:
    @pytest.mark.parametrize(
        "lifetime,expected",
        [
            (0, "BRONZE"),
            (999, "BRONZE"),
            (1000, "SILVER"),
            (9999, "SILVER"),
            (10000, "GOLD"),
            (10030, "GOLD"),
            (25000, "PLATINUM"),
            (50000, "DIAMOND"),
            (1_000_000, "DIAMOND"),
        ],
    )
    def test_tier_for_lifetime_points(self, lifetime, expected):
        assert tier_policy.tier_for(lifetime).name == expected

    def test_multipliers(self):
        assert tier_policy.get("BRONZE").multiplier == Decimal("1.0")
        assert tier_policy.get("SILVER").multiplier == Decimal("1.2")
        assert tier_policy.get("GOLD").multiplier == Decimal("1.5")
        assert tier_policy.get("PLATINUM").multiplier == Decimal("2.0")
        assert tier_policy.get("DIAMOND").multiplier == Decimal("2.5")

    def test_unknown_tier_name_falls_back_to_base(self):
        assert tier_policy.get("COPPER").name == "BRONZE"

    def test_next_tier(self):
        assert tier_policy.next_tier(0).name == "SILVER"
        assert tier_policy.next_tier(9950).name == "GOLD"
        assert tier_policy.next_tier(50000) is None


class TestTierProgress:
    def test_progress_towards_gold(self):
        progress = tier_policy.progress(5500)

        assert progress.tier.name == "SILVER"
        assert progress.next_tier.name == "GOLD"
        assert progress.points_to_next_tier == 4500
        assert progress.progress_percent == 50.0

    def test_top_tier_is_complete(self):
        progress = tier_policy.progress(75000)

        assert progress.tier.name == "DIAMOND"
        assert progress.next_tier is None
        assert progress.points_to_next_tier == 0
        assert progress.progress_percent == 100.0


class TestTierTable:
    def test_from_settings_rows_are_sorted(self):
        policy = TierPolicy.from_settings(
            [
                TierSetting(name="TOP", threshold=500, multiplier=2.0),
                TierSetting(name="BASE", threshold=0, multiplier=1.0),
            ]
        )

        assert [t.name for t in policy.tiers] == ["BASE", "TOP"]
        assert policy.tier_for(499).name == "BASE"
        assert policy.tier_for(500).name == "TOP"

    def test_table_must_start_at_zero(self):
        with pytest.raises(ValueError):
            TierPolicy([TierDefinition(name="ONLY", threshold=10, multiplier=Decimal("1"))])

    def test_names_must_be_unique(self):
        with pytest.raises(ValueError):
            TierPolicy(
                [
                    TierDefinition(name="A", threshold=0, multiplier=Decimal("1")),
                    TierDefinition(name="A", threshold=10, multiplier=Decimal("2")),
                ]
            )
