"""Client session manager: sign-in redirect, callback handling, authenticated requests."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any
from urllib.parse import quote, unquote

import httpx

from timecal.client.token_storage import (
    MemoryTokenStorage,
    TokenStorage,
    is_token_expired,
    validate_token_security,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
HOME_PATH = "/dashboard"
DEFAULT_REDIRECT_DELAY_SECONDS = 3.0


class SessionStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"


class SessionManager:
    """
    Holds the client's sign-in state and talks to the auth API.

    The token lives in a TokenStorage; every API call made through
    ``request`` carries it as a Bearer header. Navigation is delegated to the
    ``navigate`` callable so a UI (or a test) decides what a redirect means.

    Example:
        >>> session = SessionManager("http://localhost:3000", FileTokenStorage(path), navigate)
        >>> await session.initialize()
        >>> if not session.is_authenticated():
        ...     session.sign_in()
    """

    def __init__(
        self,
        base_url: str,
        storage: TokenStorage | None = None,
        navigate: Callable[[str], Any] | None = None,
        redirect_delay: float = DEFAULT_REDIRECT_DELAY_SECONDS,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Origin of the app, e.g. ``http://localhost:3000``
            storage: Token storage (in-memory when None)
            navigate: Called with the target URL or path on every redirect
            redirect_delay: Seconds to show an OAuth error before leaving the page
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.storage = storage or MemoryTokenStorage()
        self.redirect_delay = redirect_delay
        self._navigate = navigate or (lambda target: None)
        self._http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self.status = SessionStatus.LOADING
        self.user: dict[str, Any] | None = None
        self.error: str | None = None

    def is_authenticated(self) -> bool:
        """Token present and not expired by its own ``exp`` claim."""
        return not is_token_expired(self.storage.get())

    def sign_in(self) -> None:
        """Send the user to the server's GitHub OAuth start endpoint."""
        self._go(f"{self.base_url}/api/auth/github")

    async def handle_callback(self, token: str | None = None, error: str | None = None) -> SessionStatus:
        """
        Process a landing on the client callback page.

        Args:
            token: ``token`` query parameter set by the server callback
            error: ``error`` query parameter set by the server callback

        Returns:
            Resulting session status
        """
        if token:
            is_valid, reason = validate_token_security(token)
            if not is_valid:
                logger.warning(f"Rejected callback token: {reason}")
                self._fail_callback()
                return self.status

            self.storage.set(token)
            try:
                user = await self._fetch_user()
            except httpx.HTTPError as e:
                logger.warning(f"Could not reach /api/auth/me: {e}")
                user = None
            if user is None:
                self._fail_callback()
                return self.status

            self._set_authenticated(user)
            self._go(HOME_PATH)
            return self.status

        if error:
            self._set_unauthenticated(SessionStatus.ERROR, unquote(error))
            logger.warning(f"OAuth callback error: {self.error}")
            await asyncio.sleep(self.redirect_delay)
            self._go(LOGIN_PATH)
            return self.status

        if self.is_authenticated():
            self.status = SessionStatus.AUTHENTICATED
            self._go(HOME_PATH)
        else:
            self._set_unauthenticated()
            self._go(LOGIN_PATH)
        return self.status

    async def initialize(self) -> SessionStatus:
        """
        Restore the session at startup.

        A stored, locally unexpired token is checked against the server and
        cleared if the server rejects it. When the server cannot be reached
        the token is kept and the session trusts its local expiry.
        """
        if not self.storage.is_available():
            logger.info("Token storage unavailable, starting signed out")
            self._set_unauthenticated()
            return self.status

        if not self.is_authenticated():
            if self.storage.has_token():
                self.storage.clear()
            self._set_unauthenticated()
            return self.status

        try:
            user = await self._fetch_user()
        except httpx.HTTPError as e:
            logger.warning(f"Could not reach /api/auth/me, keeping stored token: {e}")
            self.status = SessionStatus.AUTHENTICATED
            self.user = None
            self.error = None
            return self.status

        if user is None:
            self.storage.clear()
            self._set_unauthenticated()
        else:
            self._set_authenticated(user)
        return self.status

    async def sign_out(self) -> None:
        """Tell the server (best effort), then forget the token and user."""
        try:
            await self.request("POST", "/api/auth/logout")
        except httpx.HTTPError as e:
            logger.warning(f"Logout request failed, clearing local session anyway: {e}")
        finally:
            self.storage.clear()
            self._set_unauthenticated()

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send an API request with the stored token as a Bearer header.

        A 401 response clears the stored token.

        Raises:
            httpx.HTTPError: On network failure
        """
        headers = dict(kwargs.pop("headers", None) or {})
        token = self.storage.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await self._http_client.request(method, path, headers=headers, **kwargs)

        if response.status_code == 401:
            logger.info("API returned 401, clearing stored token", extra={"path": path})
            self.storage.clear()
            self._set_unauthenticated()
        return response

    async def close(self) -> None:
        await self._http_client.aclose()

    async def _fetch_user(self) -> dict[str, Any] | None:
        """
        Ask the server who the stored token belongs to.

        Returns:
            The user, or None when the server rejected the token

        Raises:
            httpx.HTTPError: If the server could not be reached
        """
        response = await self.request("GET", "/api/auth/me")

        if response.status_code != 200:
            logger.info(f"Token rejected by server: {response.status_code}")
            return None

        try:
            return response.json()["user"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Unexpected /api/auth/me response body")
            return None

    def _set_authenticated(self, user: dict[str, Any]) -> None:
        self.status = SessionStatus.AUTHENTICATED
        self.user = user
        self.error = None

    def _set_unauthenticated(
        self, status: SessionStatus = SessionStatus.UNAUTHENTICATED, error: str | None = None
    ) -> None:
        self.status = status
        self.user = None
        self.error = error

    def _fail_callback(self) -> None:
        self.storage.clear()
        self._set_unauthenticated(SessionStatus.ERROR, "Authentication failed")
        self._go(f"{LOGIN_PATH}?error={quote(self.error, safe='')}")

    def _go(self, target: str) -> None:
        logger.debug(f"Navigating to {target}")
        self._navigate(target)
