"""
Check-In Token Codec

Issues and verifies the signed credential a participant presents at a
checkpoint. The token is a compact JWT (header, claims, signature) whose
claims carry:

    {kind: "participant-checkin", registrationId, eventId, secret, iat, exp}

Verification needs no database lookup. Checks run in this order:
1. Structure and signature (any payload change invalidates the signature)
2. Required claims and their types
3. The ``kind`` discriminator
4. Expiry, against the codec's clock

A tampered token therefore reports ``invalid`` even when it is also expired.
The signing key is passed in at construction; the codec never reads
application settings.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from eventgate.modules.registrations.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    WrongTokenKindError,
)

logger = logging.getLogger(__name__)

TOKEN_KIND = "participant-checkin"
DEFAULT_TTL = timedelta(days=30)
SECRET_LENGTH = 24  # bytes of entropy for the per-registration secret

_REQUIRED_CLAIMS = ["kind", "registrationId", "eventId", "secret", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_secret() -> str:
    """Generate a fresh per-registration secret."""
    return secrets.token_urlsafe(SECRET_LENGTH)


@dataclass(frozen=True)
class CheckinTokenContext:
    """Claims recovered from a verified check-in token."""

    registration_id: UUID
    event_id: UUID
    secret: str
    issued_at: datetime
    expires_at: datetime


class CheckinTokenCodec:
    """
    Signs and verifies participant check-in tokens.

    Args:
        secret: Symmetric signing key (deployment-time secret)
        ttl: Lifetime of issued tokens
        algorithm: JWT HMAC algorithm
        clock: Callable returning the current aware datetime; tests inject
            a controllable clock here
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = DEFAULT_TTL,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] | None = None,
    ):
        if not secret:
            raise ValueError("Check-in token signing key must not be empty")
        if ttl <= timedelta(0):
            raise ValueError("Check-in token TTL must be positive")

        self._secret = secret
        self.ttl = ttl
        self.algorithm = algorithm
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    def issue(self, registration_id: UUID, event_id: UUID, secret: str) -> str:
        """
        Issue a signed check-in token for a registration.

        Args:
            registration_id: The registration the bearer represents
            event_id: The event the registration belongs to
            secret: The registration's random secret (see ``generate_secret``)

        Returns:
            Encoded token string
        """
        issued_at = int(self.now().timestamp())
        expires_at = issued_at + int(self.ttl.total_seconds())

        claims = {
            "kind": TOKEN_KIND,
            "registrationId": str(registration_id),
            "eventId": str(event_id),
            "secret": secret,
            "iat": issued_at,
            "exp": expires_at,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> CheckinTokenContext:
        """
        Verify a check-in token and return its context.

        Raises:
            InvalidTokenError: Malformed token, bad signature or bad claims
            WrongTokenKindError: Correctly signed but not a check-in token
            ExpiredTokenError: Correctly signed check-in token past its expiry
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError()

        try:
            # Expiry is checked below against the codec clock
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.MissingRequiredClaimError as e:
            if e.claim == "kind":
                raise WrongTokenKindError() from e
            logger.warning(f"Check-in token rejected: missing claim {e.claim}")
            raise InvalidTokenError() from e
        except jwt.PyJWTError as e:
            logger.warning(f"Check-in token rejected: {type(e).__name__}")
            raise InvalidTokenError() from e

        kind = claims["kind"]
        if kind != TOKEN_KIND:
            logger.warning("Check-in token rejected: wrong token kind")
            raise WrongTokenKindError(kind)

        try:
            registration_id = UUID(claims["registrationId"])
            event_id = UUID(claims["eventId"])
            issued_ts = int(claims["iat"])
            expires_ts = int(claims["exp"])
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Check-in token rejected: malformed claims")
            raise InvalidTokenError() from e

        secret = claims["secret"]
        if not isinstance(secret, str) or not secret:
            raise InvalidTokenError()

        if expires_ts <= self.now().timestamp():
            raise ExpiredTokenError()

        return CheckinTokenContext(
            registration_id=registration_id,
            event_id=event_id,
            secret=secret,
            issued_at=datetime.fromtimestamp(issued_ts, UTC),
            expires_at=datetime.fromtimestamp(expires_ts, UTC),
        )


__all__ = [
    "DEFAULT_TTL",
    "TOKEN_KIND",
    "CheckinTokenCodec",
    "CheckinTokenContext",
    "generate_secret",
]
