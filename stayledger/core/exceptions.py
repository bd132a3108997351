"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# ==================== LIFECYCLE ====================


class InvalidTransition(AppException):
    """Requested status change is not reachable or its precondition failed."""

    def __init__(
        self,
        detail: str = "This status change is not allowed for the current booking status",
        current: str | None = None,
        target: str | None = None,
        status_code: int = status.HTTP_409_CONFLICT,
    ) -> None:
        self.current = current
        self.target = target
        super().__init__(status_code=status_code, detail=detail)


StateTransitionError = InvalidTransition


class TransitionNotPermitted(InvalidTransition):
    """Actor role may not perform this transition."""

    def __init__(self, detail: str = "You are not allowed to perform this status change") -> None:
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class ConcurrentModification(AppException):
    """A competing writer committed first; retry the whole operation."""

    def __init__(self, detail: str = "The record was modified concurrently. Please retry.") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class OperationTimeout(AppException):
    """Atomic scope could not be acquired in time."""

    def __init__(self, detail: str = "The operation timed out before it could start") -> None:
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=detail)


class CollaboratorUnavailable(AppException):
    """A required external collaborator failed or timed out."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        self.service = service
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class RoomsNotAvailable(AppException):
    """Inventory could not be reserved for the requested rooms and dates."""

    def __init__(self, detail: str = "The selected rooms are not available for these dates") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


# ==================== LOYALTY ====================


class InsufficientBalance(AppException):
    """Debit would drive the points balance negative."""

    def __init__(
        self,
        detail: str = "Insufficient points balance for this operation",
        available: int | None = None,
        requested: int | None = None,
    ) -> None:
        self.available = available
        self.requested = requested
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RedemptionNotEligible(AppException):
    """Points redemption refused by the eligibility check."""

    def __init__(self, detail: str = "Points redemption is not available for this booking") -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class LedgerError(ValidationError):
    """Malformed ledger request."""

    def __init__(self, detail: str = "Invalid ledger entry") -> None:
        super().__init__(detail=detail)
