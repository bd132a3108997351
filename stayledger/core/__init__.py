"""Errors, actor tokens and other cross-cutting pieces."""

from stayledger.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    CollaboratorUnavailable,
    ConcurrentModification,
    InsufficientBalance,
    InvalidTransition,
    LedgerError,
    NotFoundError,
    OperationTimeout,
    RedemptionNotEligible,
    RoomsNotAvailable,
    StateTransitionError,
    TransitionNotPermitted,
    ValidationError,
)
from stayledger.core.security import actor_from_token, create_actor_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "CollaboratorUnavailable",
    "ConcurrentModification",
    "InsufficientBalance",
    "InvalidTransition",
    "LedgerError",
    "NotFoundError",
    "OperationTimeout",
    "RedemptionNotEligible",
    "RoomsNotAvailable",
    "StateTransitionError",
    "TransitionNotPermitted",
    "ValidationError",
    "actor_from_token",
    "create_actor_token",
]
