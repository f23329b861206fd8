"""
Authentication and Authorization Module

Provides FastAPI dependencies that identify the acting user from the session
bearer token and enforce role capabilities:

- volunteer, organizer, admin: may check participants in at checkpoints
- organizer, admin: may approve/reject registrations and manage checkpoints

Session tokens are issued by the identity subsystem; this module only
validates them via security.decode_token.

SECURITY NOTE:
- Development mode test tokens are ONLY accepted when PYTHON_ENV=development
  is set explicitly; an unset PYTHON_ENV never enables them
- Production environments MUST set PYTHON_ENV=production
"""

import enum
import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventgate.core.config import settings
from eventgate.core.security import decode_token

logger = logging.getLogger(__name__)

security = HTTPBearer(
    auto_error=True,
    description="Session JWT Bearer token",
)


class Role(str, enum.Enum):
    """Platform roles relevant to registration handling."""

    ADMIN = "admin"
    ORGANIZER = "organizer"
    VOLUNTEER = "volunteer"
    PARTICIPANT = "participant"
    APPLICANT = "applicant"


VOLUNTEER_ROLES = frozenset({Role.ADMIN, Role.ORGANIZER, Role.VOLUNTEER})
ORGANIZER_ROLES = frozenset({Role.ADMIN, Role.ORGANIZER})


@dataclass
class Actor:
    """
    The authenticated user performing a request.

    Attributes:
        id: User's unique identifier
        email: User's email address
        role: User's platform role
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: Role
    name: str | None = None

    @property
    def can_check_in(self) -> bool:
        return self.role in VOLUNTEER_ROLES

    @property
    def can_approve(self) -> bool:
        return self.role in ORGANIZER_ROLES

    def __str__(self) -> str:
        return f"Actor(id={self.id}, role={self.role.value})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development test tokens may be accepted.

    Both the settings and the raw PYTHON_ENV variable must agree that this
    is a development environment. The variable has to be set explicitly.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = settings.is_development and not settings.is_production and env_var == "development"

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

# Fixed development identities, keyed by test token
_DEV_ACTORS = {
    "dev-admin": Actor(
        id=UUID("00000000-0000-0000-0000-000000000001"),
        email="admin@eventgate.dev",
        role=Role.ADMIN,
        name="Development Admin",
    ),
    "dev-organizer": Actor(
        id=UUID("00000000-0000-0000-0000-000000000002"),
        email="organizer@eventgate.dev",
        role=Role.ORGANIZER,
        name="Development Organizer",
    ),
    "dev-volunteer": Actor(
        id=UUID("00000000-0000-0000-0000-000000000003"),
        email="volunteer@eventgate.dev",
        role=Role.VOLUNTEER,
        name="Development Volunteer",
    ),
}


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def actor_from_token(token: str) -> Actor:
    """
    Validate a session token and build the Actor from its claims.

    Raises:
        HTTPException 401: If token is invalid, expired, or has bad claims
    """
    if _DEVELOPMENT_MODE and token in _DEV_ACTORS:
        logger.debug("Development mode: using test identity")
        return _DEV_ACTORS[token]

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired session token")
        raise _unauthorized("INVALID_SESSION", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid session token type: {payload.get('type')}")
        raise _unauthorized("INVALID_SESSION_TYPE", "This endpoint requires an access token.")

    try:
        return Actor(
            id=UUID(payload["sub"]),
            email=payload.get("email", ""),
            role=Role(payload.get("role", "")),
            name=payload.get("name"),
        )
    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid session token claims: {e}")
        raise _unauthorized(
            "INVALID_SESSION_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """FastAPI dependency returning the authenticated actor (any role)."""
    return actor_from_token(credentials.credentials)


async def require_volunteer(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require check-in capability (volunteer, organizer or admin).

    Raises:
        HTTPException 403: If the actor may not perform check-ins
    """
    if not actor.can_check_in:
        logger.warning(f"Check-in denied for {actor}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "VOLUNTEER_ACCESS_REQUIRED",
                "message": "Volunteer privileges are required for this endpoint.",
            },
        )
    return actor


async def require_organizer(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require approval capability (organizer or admin).

    Raises:
        HTTPException 403: If the actor is not an organizer or admin
    """
    if not actor.can_approve:
        logger.warning(f"Organizer action denied for {actor}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ORGANIZER_ACCESS_REQUIRED",
                "message": "Organizer or admin access is required for this endpoint.",
            },
        )
    return actor


__all__ = [
    "Actor",
    "Role",
    "actor_from_token",
    "get_current_actor",
    "require_organizer",
    "require_volunteer",
]
