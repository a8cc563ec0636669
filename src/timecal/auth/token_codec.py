"""Issuing and verifying signed auth tokens (HS256 JWT)."""

import logging
import time
from typing import Any

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from timecal.auth.models import TokenClaims
from timecal.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenCodec:
    """
    Creates and verifies signed, time-limited auth tokens.

    The signing secret is read once at construction (application startup)
    and never changes for the life of the process. A codec without a secret
    can still be constructed: issuing raises ConfigurationError and every
    verification fails closed.

    Attributes:
        default_ttl: Lifetime in seconds used when issue() gets no ttl

    Example:
        >>> codec = TokenCodec(secret="s3cret", default_ttl=86400)
        >>> token = codec.issue(claims)
        >>> codec.verify(token).github_username
        'octocat'
    """

    def __init__(self, secret: str | None, default_ttl: int = 24 * 60 * 60):
        """
        Initialize token codec.

        Args:
            secret: HMAC signing secret (None when not configured)
            default_ttl: Token lifetime in seconds (default: 24 hours)
        """
        self._secret = secret
        self.default_ttl = default_ttl

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def issue(self, claims: TokenClaims, ttl: int | None = None, now: float | None = None) -> str:
        """
        Encode claims plus issued-at/expiry into a signed token.

        Args:
            claims: Identity claims (any iat/exp on it are ignored)
            ttl: Lifetime in seconds (default: self.default_ttl)
            now: Issue time override, seconds since epoch

        Returns:
            Compact signed JWT string

        Raises:
            ConfigurationError: If no signing secret is configured
            ValueError: If ttl is not positive
        """
        if not self._secret:
            raise ConfigurationError("Token signing secret is not configured")

        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"Token ttl must be positive, got {ttl}")

        issued_at = int(now if now is not None else time.time())
        payload: dict[str, Any] = claims.model_dump(
            by_alias=True, exclude_none=True, exclude={"iat", "exp"}
        )
        payload["iat"] = issued_at
        payload["exp"] = issued_at + ttl

        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str | None) -> TokenClaims | None:
        """
        Check signature and expiry and return the claims.

        Never raises: an invalid signature, malformed token, missing claim or
        past expiry all return None so callers branch on presence.

        Args:
            token: JWT string (without "Bearer " prefix)

        Returns:
            Verified claims, or None
        """
        if not token or not self._secret:
            return None

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_aud": False,
                    "require_exp": True,
                    "require_iat": True,
                },
            )
            return TokenClaims.model_validate(payload)

        except JWTError as e:
            logger.debug(f"Token verification failed: {e}", extra={"error": str(e)})
            return None

        except PydanticValidationError as e:
            logger.warning(
                "Token verified but claims are incomplete",
                extra={"error_type": "invalid_token_claims", "error_count": e.error_count()},
            )
            return None


def read_expiry(token: str) -> int | None:
    """
    Read the 'exp' claim without verifying the signature.

    Only for local expiry checks on the client side, never for trust
    decisions.
    """
    try:
        exp = jwt.get_unverified_claims(token).get("exp")
    except JWTError:
        return None
    return exp if isinstance(exp, int) else None
