"""Bearer tokens that carry an actor's identity and role."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from stayledger.config import settings
from stayledger.core.exceptions import AuthenticationError
from stayledger.domain.actors import Actor, ActorRole

TOKEN_TYPE = "actor"


def create_actor_token(actor_id: str, role: str, expires_delta: timedelta | None = None) -> str:
    """Issue a signed token for a customer, receptionist, admin or system actor."""
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {"sub": actor_id, "role": ActorRole(role).value, "type": TOKEN_TYPE, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Verify the signature and expiry and return the raw claims."""
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")
    if claims.get("type") != TOKEN_TYPE:
        raise AuthenticationError("Invalid token type")
    return claims


def actor_from_token(token: str) -> Actor:
    """Resolve the actor a token was issued to.

    Raises:
        AuthenticationError: Bad signature, expired, no subject or unknown role
    """
    claims = decode_token(token)
    actor_id = claims.get("sub")
    if not actor_id:
        raise AuthenticationError("Invalid token payload")
    try:
        role = ActorRole(claims.get("role", ActorRole.CUSTOMER.value))
    except ValueError:
        raise AuthenticationError("Unknown actor role")
    return Actor(actor_id=str(actor_id), role=role)
