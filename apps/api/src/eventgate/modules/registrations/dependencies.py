"""
Registrations Dependencies

FastAPI dependencies shared by the registration routers.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import HTTPException

from eventgate.core.auth import Actor
from eventgate.core.config import settings
from eventgate.core.rate_limit import enforce_rate_limit
from eventgate.modules.registrations.exceptions import RegistrationServiceError
from eventgate.modules.registrations.tokens import CheckinTokenCodec

logger = logging.getLogger(__name__)


@lru_cache
def get_token_codec() -> CheckinTokenCodec:
    """Check-in token codec configured from settings."""
    return CheckinTokenCodec(
        settings.checkin_token_secret,
        ttl=timedelta(days=settings.checkin_token_ttl_days),
        algorithm=settings.checkin_token_algorithm,
    )


async def check_action_rate_limit(
    actor: Actor,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for an action performed by ``actor``.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    await enforce_rate_limit(f"{action}:{actor.id}", limit, window_seconds)


def service_error_to_http(e: RegistrationServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )
