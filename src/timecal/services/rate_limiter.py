"""Rate limiting service for API endpoints."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from timecal.auth.models import AuthenticatedUser
from timecal.config import settings

logger = logging.getLogger(__name__)


def get_user_id_or_ip(request: Request) -> str:
    """
    Extract user ID from the authenticated request or fall back to IP address.

    - Authenticated requests: Rate limited per user ID
    - Unauthenticated requests (OAuth start/callback): Rate limited per IP

    Args:
        request: FastAPI request object

    Returns:
        "user:<id>" or "ip:<address>"
    """
    # Set by get_current_user once the token is verified
    user: AuthenticatedUser | None = getattr(request.state, "user", None)

    if user and user.id:
        return f"user:{user.id}"

    return f"ip:{get_remote_address(request)}"


# PKCE state is per-process too, so in-memory storage matches the deployment model
limiter = Limiter(
    key_func=get_user_id_or_ip,
    default_limits=[],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """
    Rate limit tiers for different endpoint categories.

    Authenticated endpoints are limited per user, public ones per IP.
    """

    # Authenticated reads (/auth/me, /profile, /preferences)
    DEFAULT = ["100 per minute", "1000 per hour"]

    # State-changing operations (POST/PUT/DELETE)
    WRITE = ["30 per minute", "200 per hour"]

    # OAuth start/callback and logout
    PUBLIC = ["20 per minute", "100 per hour"]


# These decorators require the endpoint to have a 'request: Request' parameter
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
write_rate_limit = limiter.limit(";".join(RateLimitTiers.WRITE))
public_rate_limit = limiter.limit(";".join(RateLimitTiers.PUBLIC))
