"""Time-bounded read cache.

Holds one value together with the moment it was fetched. The value is served
while it is younger than ``ttl`` seconds; the next read past that point calls
the refresh function again. Failed refreshes are not cached.

The clock is always passed in, so staleness can be tested without sleeping.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .result import Err, Ok, Result

__all__ = ["CacheEntry", "TimedCache", "DEFAULT_TTL_SECONDS"]

DEFAULT_TTL_SECONDS = 60 * 60.0


@dataclass(frozen=True, slots=True)
class CacheEntry[T]:
    value: T
    created_at: float

    def is_valid(self, now: float, ttl: float) -> bool:
        return now - self.created_at < ttl


class TimedCache[T]:
    """A single lazily-refreshed value."""

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        self.ttl = ttl
        self._entry: CacheEntry[T] | None = None

    @property
    def entry(self) -> CacheEntry[T] | None:
        return self._entry

    def peek(self, now: float) -> T | None:
        """Return the cached value if still valid, without refreshing."""
        if self._entry is not None and self._entry.is_valid(now, self.ttl):
            return self._entry.value
        return None

    async def get_or_refresh[E](
        self,
        now: float,
        refresh: Callable[[], Awaitable[Result[T, E]]],
    ) -> Result[T, E]:
        """Return the cached value, refreshing it first if expired or empty.

        Args:
            now: Current time in seconds (same clock as previous calls).
            refresh: Coroutine factory fetching a fresh value.

        Returns:
            Ok(value) from cache or refresh; Err from a failed refresh (the
            previous entry, if any, is left untouched).
        """
        if self._entry is not None and self._entry.is_valid(now, self.ttl):
            return Ok(self._entry.value)

        result = await refresh()
        if isinstance(result, Err):
            return result

        self._entry = CacheEntry(value=result.value, created_at=now)
        return result
