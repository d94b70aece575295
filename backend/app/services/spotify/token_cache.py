"""
In-memory cache for Spotify bearer tokens with per-key single-flight refresh.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Tuple

from app.utils.datetime_helper import make_aware, utc_now

logger = logging.getLogger(__name__)

# Tokens are treated as expired this long before their real expiry
SAFETY_MARGIN = timedelta(minutes=1)

RefreshFunc = Callable[[], Awaitable[Tuple[str, datetime]]]


@dataclass
class CachedToken:
    token: str
    expires_at: datetime  # UTC, aware


def is_fresh(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when a token expiring at `expires_at` has more than the safety margin left."""
    if expires_at is None:
        return False
    now = now or utc_now()
    return make_aware(expires_at) > now + SAFETY_MARGIN


class TokenCache:
    """
    Maps a scope key (e.g. "spotify:app") to a token and its expiry.

    Each key has its own asyncio.Lock, so a refresh for one scope never
    blocks callers of another.
    """

    def __init__(self):
        self._entries: Dict[str, CachedToken] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not is_fresh(entry.expires_at):
            del self._entries[key]
            return None
        return entry.token

    def set(self, key: str, token: str, expires_at: datetime) -> None:
        expires_at = make_aware(expires_at)
        ttl = expires_at - utc_now() - SAFETY_MARGIN
        if ttl <= timedelta(0):
            return
        self._entries[key] = CachedToken(token=token, expires_at=expires_at)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def reset(self) -> None:
        """Drop entries and locks. Locks are bound to the event loop that first waits on them."""
        self._entries.clear()
        self._locks.clear()

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks.setdefault(key, asyncio.Lock())
        return lock

    async def get_or_refresh(self, key: str, refresh: RefreshFunc) -> str:
        """
        Return the cached token for `key`, calling `refresh` at most once
        per cold period even with many concurrent callers.
        """
        token = self.get(key)
        if token:
            return token

        async with self.lock_for(key):
            # Another caller may have refreshed while we waited for the lock
            token = self.get(key)
            if token:
                return token

            logger.debug(f"Token cache miss for {key}, refreshing")
            token, expires_at = await refresh()
            self.set(key, token, expires_at)
            return token


# Global token cache instance
token_cache = TokenCache()
