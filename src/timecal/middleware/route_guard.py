"""Route guard middleware: session redirects and security headers for page routes."""

import logging
from enum import Enum
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from timecal.auth.dependencies import resolve_user
from timecal.config import settings

logger = logging.getLogger(__name__)

# Pages that need a signed-in user
PROTECTED_PREFIXES = [
    "/dashboard",
    "/sleep",
    "/activities",
    "/statistics",
    "/migration",
    "/profile",
    "/settings",
]

# Pages only for signed-out users
AUTH_ONLY_PREFIXES = ["/auth/login"]

LOGIN_PATH = "/auth/login"
HOME_PATH = "/dashboard"

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class RouteKind(str, Enum):
    PROTECTED = "protected"
    AUTH_ONLY = "auth_only"
    PASS_THROUGH = "pass_through"  # OAuth plumbing, never redirected or decorated
    PUBLIC = "public"


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def classify_path(path: str) -> RouteKind:
    """Decide how the guard treats a request path."""
    if path == "/auth/callback" or path.startswith("/api/auth/"):
        return RouteKind.PASS_THROUGH
    if any(_matches_prefix(path, prefix) for prefix in PROTECTED_PREFIXES):
        return RouteKind.PROTECTED
    if any(_matches_prefix(path, prefix) for prefix in AUTH_ONLY_PREFIXES):
        return RouteKind.AUTH_ONLY
    return RouteKind.PUBLIC


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """
    Redirect page requests based on session state.

    A session is valid when the request carries a token (Bearer header or the
    legacy ``auth_token`` cookie) that the app's TokenCodec verifies, the same
    check GET /api/auth/me applies.

    - Protected page without a session: redirect to the login page with
      ``redirectTo`` set to the requested path
    - Login page with a session: redirect to the dashboard
    - Everything else passes through with security headers added
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        kind = classify_path(path)

        if kind is RouteKind.PASS_THROUGH:
            self._log("Auth route, passing through", path)
            return await call_next(request)

        if kind in (RouteKind.PROTECTED, RouteKind.AUTH_ONLY):
            user = resolve_user(request)

            if kind is RouteKind.PROTECTED and user is None:
                self._log("No session on protected route, redirecting to login", path)
                query = urlencode({"redirectTo": path})
                return RedirectResponse(f"{LOGIN_PATH}?{query}")

            if kind is RouteKind.AUTH_ONLY and user is not None:
                self._log("Signed-in user on login page, redirecting to dashboard", path)
                return RedirectResponse(HOME_PATH)

        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response

    @staticmethod
    def _log(message: str, path: str) -> None:
        if not settings.is_production:
            logger.debug(message, extra={"path": path})
