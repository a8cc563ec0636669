"""Custom exceptions shared by the API handlers and services."""


class TimeCalError(Exception):
    """Base exception for all application errors.

    Each subclass carries the HTTP status it is surfaced with. The app-level
    exception handler renders any TimeCalError as ``{"error": message}``.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(TimeCalError):
    """Raised when a required secret or client id is missing."""

    status_code = 500
    default_message = "Server is not configured for this operation"


class AuthenticationRequired(TimeCalError):
    """Raised when a request has no token, or an invalid or expired one."""

    status_code = 401
    default_message = "Authentication required"


class ValidationError(TimeCalError):
    """Raised when request data fails field validation."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(TimeCalError):
    """Raised when a requested record does not exist."""

    status_code = 404
    default_message = "Not found"


class UpstreamError(TimeCalError):
    """Raised when GitHub or the database fails.

    The message is shown to clients, so it must stay generic; put details in
    the log record instead.
    """

    status_code = 502
    default_message = "Upstream service failed"
