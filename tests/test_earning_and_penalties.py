from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from stayledger.domain.cancellation_policy import (
    calculate_penalty_points,
    check_in_moment,
    get_policy_description,
    hours_until_check_in,
    penalty_percentage,
)
from stayledger.domain.earning import completion_bonus, confirmation_points, redemption_discount
from stayledger.utils.dates import add_months


class TestConfirmationPoints:
    def test_one_point_per_unit_at_bronze(self):
        assert confirmation_points(20000, Decimal("1.0")) == 200

    def test_multiplier_rounds_down(self):
        # 195 units x 1.2 = 234
        assert confirmation_points(19500, Decimal("1.2")) == 234
        # 33 units x 1.5 = 49.5
        assert confirmation_points(3300, Decimal("1.5")) == 49

    def test_partial_units_are_ignored(self):
        assert confirmation_points(19999, 1.0) == 199

    def test_zero_price_earns_nothing(self):
        assert confirmation_points(0, Decimal("2.5")) == 0


class TestCompletionBonus:
    def test_nights_plus_spend(self):
        # 3 nights x 10 + floor(500 x 0.10)
        assert completion_bonus(3, 50000) == 80

    def test_capped(self):
        assert completion_bonus(30, 1_000_000) == 200

    def test_overrides(self):
        assert completion_bonus(2, 10000, points_per_night=5, spend_rate=0.5, cap=1000) == 60


class TestRedemption:
    def test_hundred_points_buy_one_unit(self):
        assert redemption_discount(500) == 500  # $5.00
        assert redemption_discount(100) == 100

    def test_custom_rate(self):
        assert redemption_discount(500, points_per_unit=50) == 1000


class TestCancellationPolicy:
    def test_check_in_moment_uses_hotel_hour(self):
        assert check_in_moment(date(2026, 3, 10)) == datetime(2026, 3, 10, 15, 0, tzinfo=UTC)

    def test_hours_until_check_in(self):
        now = datetime(2026, 3, 10, 5, 0, tzinfo=UTC)
        assert hours_until_check_in(date(2026, 3, 10), now) == 10.0

    def test_naive_now_treated_as_utc(self):
        assert hours_until_check_in(date(2026, 3, 10), datetime(2026, 3, 9, 15, 0)) == 24.0

    @pytest.mark.parametrize(
        "hours,percent",
        [(100, 0), (24, 0), (23.9, 50), (12, 50), (11.9, 100), (0, 100), (-5, 100)],
    )
    def test_penalty_percentage(self, hours, percent):
        assert penalty_percentage(hours) == percent

    def test_penalty_points(self):
        assert calculate_penalty_points(200, 48) == 0
        assert calculate_penalty_points(200, 18) == 100
        assert calculate_penalty_points(201, 18) == 100
        assert calculate_penalty_points(200, 3) == 200

    def test_policy_description_mentions_windows(self):
        text = get_policy_description()
        assert "24 hours" in text
        assert "50%" in text


class TestAddMonths:
    def test_plain(self):
        assert add_months(datetime(2026, 3, 1, tzinfo=UTC), 24) == datetime(2028, 3, 1, tzinfo=UTC)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
