"""Short-lived profile cache.

Order creation reads the customer's client name on every call; caching
the profile saves a round trip. Entries expire after the TTL and are
dropped whenever the profile's client name changes, so an order is never
stamped with a stale name.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from src.config import settings
from src.storage.base import Profile

logger = structlog.get_logger(__name__)


@dataclass
class _CacheEntry:
    profile: Profile
    stored_at: float


@dataclass
class ProfileCacheMetrics:
    """Hit/miss counters for the profile cache."""

    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits / total) * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 2),
        }


class ProfileCache:
    """TTL cache of profiles keyed by user id."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime (defaults to PROFILE_CACHE_TTL_SECONDS).
            clock: Monotonic time source.
        """
        self.ttl_seconds = settings.PROFILE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self.metrics = ProfileCacheMetrics()

    async def get_or_load(
        self,
        user_id: str,
        loader: Callable[[str], Awaitable[Profile | None]],
    ) -> Profile | None:
        """Return the cached profile or load and cache it.

        Args:
            user_id: Profile to fetch.
            loader: Store lookup used on a miss.

        Returns:
            The profile, or None when the loader finds none (not cached).
        """
        now = self._clock()
        entry = self._entries.get(user_id)
        if entry is not None and now - entry.stored_at < self.ttl_seconds:
            self.metrics.hits += 1
            logger.debug("profile_cache_hit", user_id=user_id)
            return entry.profile

        self.metrics.misses += 1
        profile = await loader(user_id)
        if profile is not None:
            self._entries[user_id] = _CacheEntry(profile=profile, stored_at=now)
        return profile

    def invalidate(self, user_id: str | None = None) -> None:
        """Drop one user's entry, or every entry when ``user_id`` is None."""
        if user_id is None:
            self._entries.clear()
        else:
            self._entries.pop(user_id, None)
        logger.debug("profile_cache_invalidated", user_id=user_id)
