"""GitHub OAuth client: authorize URL, code exchange, and user lookup."""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from timecal.auth.models import GitHubUser
from timecal.auth.pkce import CHALLENGE_METHOD
from timecal.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
API_BASE_URL = "https://api.github.com"
SCOPES = "user:email read:user"
USER_AGENT = "Time-Cal-App/1.0"


class GitHubOAuthClient:
    """
    Talks to GitHub on behalf of the OAuth handlers.

    Attributes:
        client_id: OAuth app client id (None when not configured)
        client_secret: OAuth app client secret
        redirect_uri: Callback URL registered with the OAuth app

    Example:
        >>> client = GitHubOAuthClient("cid", "csecret", "http://localhost:3000/api/auth/callback")
        >>> url = client.authorize_url(state, challenge)
        >>> access_token = await client.exchange_code(code, verifier)
        >>> user = await client.fetch_user(access_token)
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            client_id: OAuth app client id
            client_secret: OAuth app client secret
            redirect_uri: Absolute callback URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    def require_configured(self) -> None:
        """Raise ConfigurationError unless a client id is set."""
        if not self.client_id:
            raise ConfigurationError("GitHub OAuth is not configured")

    def authorize_url(self, state: str, code_challenge: str) -> str:
        """
        Build the GitHub authorization URL for a new flow.

        Raises:
            ConfigurationError: If no client id is configured
        """
        self.require_configured()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": SCOPES,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": CHALLENGE_METHOD,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> str:
        """
        Exchange an authorization code for a GitHub access token.

        Not retried: authorization codes are single use.

        Raises:
            ConfigurationError: If client id or secret is missing
            UpstreamError: If GitHub rejects the code or cannot be reached
        """
        self.require_configured()
        if not self.client_secret:
            raise ConfigurationError("GitHub OAuth client secret is not configured")

        try:
            response = await self._http_client.post(
                ACCESS_TOKEN_URL,
                headers={"Accept": "application/json"},
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "code_verifier": code_verifier,
                },
            )
            token_data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                f"GitHub token exchange failed: {e}",
                exc_info=True,
                extra={"error_type": "github_token_request_failed"},
            )
            raise UpstreamError("GitHub token exchange failed") from e

        logger.info(
            "GitHub token response received",
            extra={
                "status": response.status_code,
                "has_access_token": "access_token" in token_data,
                "error": token_data.get("error"),
            },
        )

        # GitHub reports bad codes with a 200 and an "error" field
        access_token = token_data.get("access_token")
        if response.is_error or token_data.get("error") or not access_token:
            detail = token_data.get("error_description") or token_data.get("error")
            raise UpstreamError(f"GitHub token exchange rejected: {detail}")

        return access_token

    async def fetch_user(self, access_token: str) -> GitHubUser:
        """
        Fetch the GitHub profile, preferring the primary verified email.

        Raises:
            UpstreamError: If the profile request fails
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github.v3+json",
        }

        try:
            user_response = await self._get(f"{API_BASE_URL}/user", headers)
        except httpx.HTTPError as e:
            logger.error(f"GitHub user request failed: {e}", exc_info=True)
            raise UpstreamError("Failed to fetch GitHub user profile") from e

        if user_response.is_error:
            logger.error(
                "GitHub user request rejected",
                extra={"status": user_response.status_code, "reason": user_response.reason_phrase},
            )
            raise UpstreamError(f"Failed to fetch GitHub user profile: {user_response.status_code}")

        user_data: dict[str, Any] = user_response.json()
        email = user_data.get("email")

        # Emails need a separate call; a failure here keeps the public email
        try:
            emails_response = await self._get(f"{API_BASE_URL}/user/emails", headers)
            if emails_response.is_success:
                primary = next(
                    (e for e in emails_response.json() if e.get("primary") and e.get("verified")),
                    None,
                )
                if primary:
                    email = primary["email"]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub email lookup failed, using public email: {e}")

        user = GitHubUser(
            id=user_data["id"],
            login=user_data["login"],
            email=email,
            name=user_data.get("name"),
            avatar_url=user_data.get("avatar_url"),
        )
        logger.info(
            "GitHub user fetched",
            extra={"github_id": user.id, "login": user.login, "has_email": bool(user.email)},
        )
        return user

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """GET with retry on connection-level failures only."""
        return await self._http_client.get(url, headers=headers)

    async def close(self) -> None:
        """Close the HTTP client. Called during application shutdown."""
        await self._http_client.aclose()
