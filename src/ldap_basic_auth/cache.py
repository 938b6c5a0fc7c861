"""CredentialCache: bounded, time-limited store of verified secrets."""

from __future__ import annotations

import hmac
import logging
import threading
import time
from collections.abc import Callable

from cachetools import TTLCache

from ldap_basic_auth.constants import DEFAULT_CACHE_SIZE, DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)


class CredentialCache:
    """Process-wide map from principal to its last directory-verified secret.

    Entries expire ``ttl`` seconds after they were last written, and the
    least recently used entry is evicted when ``maxsize`` is reached. An
    expired entry reads as absent whatever its LRU position. Every
    operation runs under one lock, so the cache is safe to share between
    worker threads.

    Args:
        maxsize: Maximum number of cached principals.
        ttl: Seconds an entry stays valid after ``set``.
        timer: Clock used for expiry (monotonic by default).
    """

    def __init__(
        self,
        maxsize: int = DEFAULT_CACHE_SIZE,
        ttl: float = DEFAULT_CACHE_TTL,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1, got {maxsize}")
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._entries: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    @property
    def maxsize(self) -> int:
        return int(self._entries.maxsize)

    @property
    def ttl(self) -> float:
        return float(self._entries.ttl)

    def get(self, principal: str) -> str | None:
        """Return the cached secret for ``principal``, or None if absent or expired."""
        with self._lock:
            return self._entries.get(principal)

    def set(self, principal: str, secret: str) -> None:
        """Insert or refresh an entry, evicting the LRU entry when full."""
        with self._lock:
            self._entries[principal] = secret

    def invalidate(self, principal: str) -> bool:
        """Drop ``principal`` from the cache. Returns True if an entry was removed."""
        with self._lock:
            removed = self._entries.pop(principal, None) is not None
        if removed:
            logger.debug("Invalidated cached credentials for %s", principal)
        return removed

    def matches(self, principal: str, secret: str) -> bool:
        """Constant-time check of ``secret`` against the cached one."""
        cached = self.get(principal)
        if cached is None:
            return False
        return hmac.compare_digest(cached.encode("utf-8"), secret.encode("utf-8"))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, principal: object) -> bool:
        with self._lock:
            return principal in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
