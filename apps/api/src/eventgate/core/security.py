"""
Session Token Utilities

Session JWTs are minted by the identity subsystem after login. This module
only validates them (and can mint them for local development and tests).
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from eventgate.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed session access token.

    Args:
        subject: The user ID placed in the ``sub`` claim
        additional_claims: Extra claims such as email, role, name
        expires_delta: Token lifetime (defaults to the configured minutes)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode: dict[str, Any] = {
        "sub": subject,
        "type": "access",
        "iat": now,
        "exp": expire,
    }
    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a session token.

    Returns:
        The claims dict, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Session token rejected: {type(e).__name__}")
        return None
