"""Client-side storage for the session token.

TokenStorage is the abstraction; FileTokenStorage keeps the token across
restarts in a small JSON file, MemoryTokenStorage keeps it for the life of
the process.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from jose import JWTError, jwt

from timecal.auth.token_codec import read_expiry

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
MAX_TOKEN_LIFETIME_SECONDS = 24 * 60 * 60


def is_valid_token_format(token: str) -> bool:
    """
    Check that a string looks like one of our session tokens.

    Three dot-separated parts, a JWT header with an algorithm, and a payload
    carrying ``userId``, ``githubId`` and ``exp``. The signature is not checked.
    """
    if not token or token.count(".") != 2:
        return False
    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return False

    return bool(
        header.get("alg")
        and header.get("typ") == "JWT"
        and claims.get("userId")
        and claims.get("githubId")
        and claims.get("exp")
    )


def is_token_expired(token: str | None, now: float | None = None) -> bool:
    """Local expiry check. Unreadable tokens count as expired."""
    if not token:
        return True
    exp = read_expiry(token)
    if exp is None:
        return True
    return exp < int(now if now is not None else time.time())


def validate_token_security(token: str, now: float | None = None) -> tuple[bool, str | None]:
    """
    Run the local sanity checks on a token.

    Returns:
        (True, None) when the token looks usable, otherwise (False, reason)
    """
    if not token:
        return False, "Token is empty"
    if not is_valid_token_format(token):
        return False, "Invalid JWT format"

    current = int(now if now is not None else time.time())
    exp = read_expiry(token)
    if exp is None:
        return False, "Failed to parse token"
    if exp < current:
        return False, "Token has expired"
    if exp - current > MAX_TOKEN_LIFETIME_SECONDS:
        return False, "Token expiration too far in future"
    return True, None


class TokenStorage(ABC):
    """Where the client keeps its session token."""

    def get(self) -> str | None:
        """
        Return the stored token.

        A stored value that is not a well-formed session token is cleared and
        None is returned.
        """
        token = self._read()
        if token and not is_valid_token_format(token):
            logger.warning("Invalid token format in storage, clearing token")
            self.clear()
            return None
        return token

    def has_token(self) -> bool:
        return self.get() is not None

    @abstractmethod
    def set(self, token: str) -> None:
        """Store a token, replacing any previous one."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored token, if any."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this storage can be used at all."""

    @abstractmethod
    def _read(self) -> str | None:
        """Return the raw stored value."""


class MemoryTokenStorage(TokenStorage):
    """Keeps the token in process memory."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token
        self._lock = threading.Lock()

    def set(self, token: str) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        with self._lock:
            self._token = None

    def is_available(self) -> bool:
        return True

    def _read(self) -> str | None:
        with self._lock:
            return self._token


class FileTokenStorage(TokenStorage):
    """
    Keeps the token in a JSON file under the ``auth_token`` key.

    Other keys in the file are preserved. Read and write failures are logged
    and treated as "no token", matching how a browser behaves when storage
    is blocked.

    Args:
        path: JSON file to use (created on first write)
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def set(self, token: str) -> None:
        with self._lock:
            data = self._load()
            data[TOKEN_KEY] = token
            self._dump(data)

    def clear(self) -> None:
        with self._lock:
            data = self._load()
            if data.pop(TOKEN_KEY, None) is not None:
                self._dump(data)

    def is_available(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        if self.path.exists():
            return os.access(self.path, os.R_OK | os.W_OK)
        return os.access(self.path.parent, os.W_OK)

    def _read(self) -> str | None:
        with self._lock:
            token = self._load().get(TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def _load(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read token file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            os.chmod(tmp_path, 0o600)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to write token file {self.path}: {e}")
