"""Client-side session handling for the auth API."""

from timecal.client.session import SessionManager, SessionStatus
from timecal.client.token_storage import (
    FileTokenStorage,
    MemoryTokenStorage,
    TokenStorage,
    is_token_expired,
    is_valid_token_format,
    validate_token_security,
)

__all__ = [
    "SessionManager",
    "SessionStatus",
    "FileTokenStorage",
    "MemoryTokenStorage",
    "TokenStorage",
    "is_token_expired",
    "is_valid_token_format",
    "validate_token_security",
]
