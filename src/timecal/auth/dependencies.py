"""FastAPI dependencies for token authentication and the auth singletons."""

import logging
from datetime import UTC, datetime

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.security.utils import get_authorization_scheme_param

from timecal.auth.github import GitHubOAuthClient
from timecal.auth.models import AuthenticatedUser
from timecal.auth.pkce import PKCEStore
from timecal.auth.token_codec import TokenCodec
from timecal.exceptions import AuthenticationRequired
from timecal.services import PostHogService

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth_token"

# Optional so the legacy cookie can still authenticate
security = HTTPBearer(auto_error=False)

# Global instances (initialized in main.py lifespan)
_token_codec: TokenCodec | None = None
_pkce_store: PKCEStore | None = None
_github_client: GitHubOAuthClient | None = None


def set_token_codec(codec: TokenCodec | None) -> None:
    """Set the global token codec. Called during application startup."""
    global _token_codec
    _token_codec = codec


def get_token_codec() -> TokenCodec:
    """
    Get the global token codec.

    Raises:
        RuntimeError: If the codec was not initialized
    """
    if _token_codec is None:
        raise RuntimeError(
            "Token codec not initialized. "
            "Ensure application startup calls set_token_codec()."
        )
    return _token_codec


def set_pkce_store(store: PKCEStore | None) -> None:
    """Set the global PKCE exchange store."""
    global _pkce_store
    _pkce_store = store


def get_pkce_store() -> PKCEStore:
    """
    Get the global PKCE exchange store.

    Raises:
        RuntimeError: If the store was not initialized
    """
    if _pkce_store is None:
        raise RuntimeError(
            "PKCE store not initialized. Ensure application startup calls set_pkce_store()."
        )
    return _pkce_store


def set_github_client(client: GitHubOAuthClient | None) -> None:
    """Set the global GitHub OAuth client."""
    global _github_client
    _github_client = client


def get_github_client() -> GitHubOAuthClient:
    """
    Get the global GitHub OAuth client.

    Raises:
        RuntimeError: If the client was not initialized
    """
    if _github_client is None:
        raise RuntimeError(
            "GitHub client not initialized. Ensure application startup calls set_github_client()."
        )
    return _github_client


def extract_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None = None
) -> str | None:
    """
    Find the auth token on a request.

    The Authorization Bearer header wins over the legacy ``auth_token``
    cookie, which is still read for sessions created before the switch to
    header-based auth.

    Args:
        request: Incoming request
        credentials: Bearer credentials already parsed by ``security``

    Returns:
        Raw token string, or None if neither transport carries one
    """
    if credentials is not None and credentials.credentials:
        return credentials.credentials

    scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and param:
        return param

    return request.cookies.get(AUTH_COOKIE_NAME) or None


def resolve_user(request: Request) -> AuthenticatedUser | None:
    """Verify the request's token and return the user, or None. Never raises."""
    token = extract_token(request)
    if token is None:
        return None

    claims = get_token_codec().verify(token)
    if claims is None:
        return None

    return AuthenticatedUser.from_claims(claims)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthenticatedUser:
    """
    Resolve the authenticated user from the request token.

    Args:
        request: Incoming request (legacy cookie transport)
        credentials: Bearer token from Authorization header

    Returns:
        AuthenticatedUser projected from the verified token claims

    Raises:
        AuthenticationRequired: 401 if the token is missing, invalid or expired

    Example:
        @router.get("/profile")
        async def get_profile(current_user: AuthenticatedUser = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    token = extract_token(request, credentials)
    if token is None:
        logger.info("Auth failed: no token", extra={"path": request.url.path})
        raise AuthenticationRequired("No authentication token")

    claims = get_token_codec().verify(token)
    if claims is None:
        logger.warning(
            "Auth failed: invalid or expired token",
            extra={"error_type": "token_verification_failed", "path": request.url.path},
        )
        PostHogService().capture(
            distinct_id="anonymous",
            event="authentication_failed",
            properties={"error": "token_verification_failed"},
        )
        raise AuthenticationRequired("Invalid or expired token")

    user = AuthenticatedUser.from_claims(claims)
    request.state.user = user

    logger.info(f"User authenticated: {user.id} ({user.github_username})")
    PostHogService().capture(
        distinct_id=user.id,
        event="user_authenticated",
        properties={"timestamp": datetime.now(UTC).isoformat()},
    )

    return user
