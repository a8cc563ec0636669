"""API handlers for GitHub OAuth sign-in, the current user and logout."""

import logging
import secrets
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from timecal.auth.dependencies import (
    AUTH_COOKIE_NAME,
    get_current_user,
    get_github_client,
    get_pkce_store,
    get_token_codec,
    resolve_user,
)
from timecal.auth.github import GitHubOAuthClient
from timecal.auth.models import AuthenticatedUser
from timecal.auth.pkce import PKCEStore, derive_challenge, generate_state, generate_verifier
from timecal.auth.token_codec import TokenCodec
from timecal.config import settings
from timecal.features.auth.models import LogoutResponse, MeResponse
from timecal.features.auth.service import complete_sign_in, describe_user
from timecal.services import PostHogService
from timecal.services.rate_limiter import default_rate_limit, public_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

OAUTH_SESSION_COOKIE = "oauth_session"
OAUTH_STATE_COOKIE = "oauth_state"

MISSING_CODE = "Missing authorization code"
INVALID_STATE = "Invalid state parameter"
SESSION_EXPIRED = "OAuth session expired"
AUTHENTICATION_FAILED = "Authentication failed"


def _login_redirect(error: str | None = None) -> RedirectResponse:
    url = f"{settings.base_url}/auth/login"
    if error:
        url += f"?error={quote(error, safe='')}"
    return RedirectResponse(url, status_code=302)


def _clear_cookies(response: RedirectResponse, *names: str) -> None:
    for name in names:
        response.delete_cookie(name, path="/")


def _set_flow_cookie(response: RedirectResponse, name: str, value: str) -> None:
    response.set_cookie(
        name,
        value,
        max_age=settings.oauth_cookie_max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


@router.get("/github")
@public_rate_limit
async def start_github_oauth(
    request: Request,
    github: GitHubOAuthClient = Depends(get_github_client),
    store: PKCEStore = Depends(get_pkce_store),
) -> RedirectResponse:
    """
    Start the GitHub OAuth flow.

    Stores a fresh PKCE verifier, then redirects to GitHub with the S256
    challenge. The pending-exchange id and anti-CSRF state ride along in
    short-lived HttpOnly cookies.

    Raises:
        ConfigurationError: 500 if no GitHub client id is configured
    """
    github.require_configured()

    verifier = generate_verifier()
    state = generate_state()
    session_id = store.create(verifier)

    response = RedirectResponse(
        github.authorize_url(state, derive_challenge(verifier)), status_code=302
    )
    _set_flow_cookie(response, OAUTH_SESSION_COOKIE, session_id)
    _set_flow_cookie(response, OAUTH_STATE_COOKIE, state)

    logger.info("Started GitHub OAuth flow", extra={"pending_exchanges": len(store)})
    return response


@router.get("/callback")
@public_rate_limit
async def github_oauth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    github: GitHubOAuthClient = Depends(get_github_client),
    store: PKCEStore = Depends(get_pkce_store),
    codec: TokenCodec = Depends(get_token_codec),
) -> RedirectResponse:
    """
    Finish the GitHub OAuth flow.

    Every outcome is a redirect: failures go to the login page with an
    ``error`` message, success goes to the client callback page with the
    session token in the ``token`` query parameter.
    """
    if error:
        logger.warning(f"GitHub returned OAuth error: {error}")
        return _login_redirect(error)

    if not code:
        return _login_redirect(MISSING_CODE)

    session_id = request.cookies.get(OAUTH_SESSION_COOKIE)
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if (
        not session_id
        or not state
        or not expected_state
        or not secrets.compare_digest(state, expected_state)
    ):
        logger.warning("OAuth callback state mismatch", extra={"has_session": bool(session_id)})
        return _login_redirect(INVALID_STATE)

    verifier = store.consume(session_id)
    if verifier is None:
        logger.info("OAuth callback for expired or unknown session")
        return _login_redirect(SESSION_EXPIRED)

    try:
        token, claims = await complete_sign_in(github, codec, code, verifier)
    except Exception as e:
        logger.error(f"OAuth sign-in failed: {e}", exc_info=True)
        response = _login_redirect(AUTHENTICATION_FAILED)
        _clear_cookies(response, OAUTH_SESSION_COOKIE, OAUTH_STATE_COOKIE)
        return response

    PostHogService().capture(
        distinct_id=claims.user_id,
        event="user_signed_in",
        properties={"provider": "github", "github_username": claims.github_username},
    )
    logger.info(f"User signed in: {claims.user_id} ({claims.github_username})")

    response = RedirectResponse(
        f"{settings.base_url}/auth/callback?token={quote(token, safe='')}", status_code=302
    )
    _clear_cookies(response, OAUTH_SESSION_COOKIE, OAUTH_STATE_COOKIE)
    return response


@router.get("/me", response_model=MeResponse)
@default_rate_limit
async def get_me(
    request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> MeResponse:
    """
    Return the signed-in user.

    Raises:
        AuthenticationRequired: 401 without a valid token
    """
    return MeResponse(user=describe_user(current_user))


@router.post("/logout", response_model=LogoutResponse)
@public_rate_limit
async def logout(request: Request, response: Response) -> LogoutResponse:
    """
    Log out.

    Tokens live on the client, so this only clears the legacy cookies. It
    always succeeds, with or without a valid token.
    """
    user = resolve_user(request)
    if user is not None:
        logger.info(f"User signed out: {user.id} ({user.github_username})")
        PostHogService().capture(distinct_id=user.id, event="user_signed_out")
    else:
        logger.info("Logout without a valid session")

    for name in (AUTH_COOKIE_NAME, OAUTH_SESSION_COOKIE, OAUTH_STATE_COOKIE):
        response.delete_cookie(name, path="/")

    return LogoutResponse(message="Logged out successfully")


@router.get("/logout")
@public_rate_limit
async def logout_redirect(request: Request) -> RedirectResponse:
    """Legacy redirect-based logout: clear cookies and go to the login page."""
    response = _login_redirect()
    _clear_cookies(response, AUTH_COOKIE_NAME, OAUTH_SESSION_COOKIE, OAUTH_STATE_COOKIE)
    return response
