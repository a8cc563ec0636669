"""PKCE verifier generation and the pending-exchange store.

RFC 7636 - Proof Key for Code Exchange, S256 challenge method.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
import threading
import time
from base64 import urlsafe_b64encode
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CHALLENGE_METHOD = "S256"


def generate_verifier(num_bytes: int = 32) -> str:
    """Return a high-entropy base64url verifier (43 chars for 32 bytes)."""
    return secrets.token_urlsafe(num_bytes)


def derive_challenge(verifier: str) -> str:
    """Derive the S256 challenge: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_state(length: int = 32) -> str:
    """Return a random anti-CSRF state value of exactly ``length`` url-safe chars."""
    return secrets.token_urlsafe(length)[:length]


@dataclass
class PendingExchange:
    """A PKCE verifier waiting for its OAuth callback."""

    verifier: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class PKCEStore:
    """
    Short-lived in-memory map from session id to PKCE verifier.

    Entries expire ``ttl`` seconds after creation and are unusable from that
    moment even if the periodic sweep has not removed them yet.

    The store lives in one process. A callback handled by a different
    instance than the one that started the flow will not find its entry.

    Lifecycle: construct at startup, ``start()`` to run the sweep task,
    ``await stop()`` on shutdown.
    """

    def __init__(
        self,
        ttl: int = 10 * 60,
        sweep_interval: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, PendingExchange] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None

    def create(self, verifier: str | None = None) -> str:
        """
        Register a pending exchange and return its new session id.

        Args:
            verifier: PKCE verifier to store (generated when None)

        Returns:
            Random, unguessable session id
        """
        if verifier is None:
            verifier = generate_verifier()

        session_id = secrets.token_urlsafe(16)
        entry = PendingExchange(verifier=verifier, expires_at=self._clock() + self.ttl)

        with self._lock:
            self._entries[session_id] = entry

        logger.debug("Created pending PKCE exchange", extra={"pending_count": len(self)})
        return session_id

    def lookup(self, session_id: str) -> str | None:
        """Return the live verifier for a session id, evicting it if expired."""
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[session_id]
                return None
            return entry.verifier

    def consume(self, session_id: str) -> str | None:
        """Return the live verifier and remove the entry (single use)."""
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry.verifier

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Swept {len(expired)} expired PKCE exchanges")
        return len(expired)

    def start(self) -> None:
        """Start the periodic sweep task on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(
            "PKCE sweep task started", extra={"interval_seconds": self.sweep_interval}
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("PKCE sweep task stopped")

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"PKCE sweep failed: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._entries)
