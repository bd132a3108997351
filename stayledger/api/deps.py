"""API dependencies for actor identity and service wiring."""

from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from stayledger.collaborators.base import EligibilityService, InventoryService, PricingService
from stayledger.collaborators.eligibility import RedemptionRulesEligibility
from stayledger.collaborators.inventory import HttpInventoryService
from stayledger.collaborators.notifications import build_publisher
from stayledger.collaborators.pricing import HttpPricingService
from stayledger.core.exceptions import AuthorizationError
from stayledger.core.security import actor_from_token
from stayledger.database import get_db
from stayledger.domain.actors import Actor, ActorRole
from stayledger.services.lifecycle_service import LifecycleService
from stayledger.services.loyalty_service import LoyaltyService
from stayledger.services.notification_service import NotificationService

__all__ = [
    "get_db",
    "get_current_actor",
    "get_current_admin",
    "ensure_customer_access",
    "get_inventory_service",
    "get_lifecycle_service",
    "get_loyalty_service",
]

# Security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """Resolve the calling actor from the bearer token."""
    return actor_from_token(credentials.credentials)


async def get_current_admin(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    if actor.role != ActorRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return actor


def ensure_customer_access(actor: Actor, customer_id: UUID) -> None:
    """Customers may only see their own data; staff may see anyone's."""
    if actor.role == ActorRole.CUSTOMER and actor.actor_id != str(customer_id):
        raise AuthorizationError("You don't have permission to access this customer's data")


# ==================== SERVICES ====================


@lru_cache
def get_pricing_service() -> PricingService:
    return HttpPricingService()


@lru_cache
def get_inventory_service() -> InventoryService:
    return HttpInventoryService()


@lru_cache
def get_eligibility_service() -> EligibilityService:
    return RedemptionRulesEligibility()


@lru_cache
def get_notification_service() -> NotificationService:
    return NotificationService(build_publisher())


def get_lifecycle_service(
    pricing: Annotated[PricingService, Depends(get_pricing_service)],
    eligibility: Annotated[EligibilityService, Depends(get_eligibility_service)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> LifecycleService:
    return LifecycleService(pricing=pricing, eligibility=eligibility, notifications=notifications)


def get_loyalty_service(
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> LoyaltyService:
    return LoyaltyService(notifications)
