"""Default redemption eligibility rules."""

from uuid import UUID

from stayledger.collaborators.base import EligibilityResult, EligibilityService
from stayledger.config import settings
from stayledger.domain.earning import redemption_discount
from stayledger.models.loyalty import LoyaltyAccount


class RedemptionRulesEligibility(EligibilityService):
    """Checks enrollment, account status and per-booking redemption limits.

    Balance is not checked here; the ledger enforces it on append.
    """

    def __init__(self, min_points: int | None = None, max_points: int | None = None) -> None:
        self.min_points = settings.min_redemption_points if min_points is None else min_points
        self.max_points = settings.max_redemption_points_per_booking if max_points is None else max_points

    async def check_redemption_eligible(
        self,
        customer_id: UUID,
        points: int,
        quoted_price: int,
        account: LoyaltyAccount | None = None,
    ) -> EligibilityResult:
        if account is None:
            return EligibilityResult(False, "Customer is not enrolled in the loyalty program")
        if not account.is_active:
            return EligibilityResult(False, "Loyalty account is closed")
        if points < self.min_points:
            return EligibilityResult(False, f"Minimum redemption is {self.min_points} points")
        if points > self.max_points:
            return EligibilityResult(False, f"Maximum redemption is {self.max_points} points per booking")
        if redemption_discount(points) > quoted_price:
            return EligibilityResult(False, "Discount cannot exceed the booking price")
        return EligibilityResult(True)
