"""
Rate Limiter module for the traffic insights pipeline.

This module bounds how many aggregation requests a caller identity may issue
per time window using fixed-window counting:
- A window opens on the first request from a key and lasts window_seconds
- Requests inside the window are counted up to the limit
- The counter resets only once the clock passes the window's reset time

Fixed windows admit a burst of up to twice the limit across a window boundary
(limit requests just before the reset and limit more just after). This is
accepted; a sliding window would need per-request timestamps per key.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Protocol, runtime_checkable

from traffic_insights.config import RateLimitRule


@dataclass
class RateLimitEntry:
    """Counter for one caller identity within its current window."""

    count: int
    reset_at: float


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: float

    def retry_after_seconds(self, now: float) -> int:
        """Whole seconds until the window resets, never less than 1."""
        return max(1, math.ceil(self.reset_at - now))


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage for rate limit entries, keyed by caller identity."""

    def get(self, key: str) -> Optional[RateLimitEntry]:
        ...

    def set(self, key: str, entry: RateLimitEntry) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def items(self) -> Iterator[tuple[str, RateLimitEntry]]:
        ...


class InMemoryRateLimitStore:
    """Process-local rate limit store backed by a dict."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def items(self) -> Iterator[tuple[str, RateLimitEntry]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)


class RateLimiter:
    """
    Fixed-window rate limiter keyed by caller identity.

    check() is the only mutator of an entry. The check-and-update sequence
    runs under a lock and never awaits, so it stays atomic under asyncio and
    under threaded servers alike.
    """

    def __init__(
        self,
        rule: Optional[RateLimitRule] = None,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            rule: Default limit and window used by admit()
            store: Entry storage (defaults to an in-memory store)
            clock: Wall clock in seconds, injectable for tests
        """
        self._rule = rule or RateLimitRule()
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def rule(self) -> RateLimitRule:
        """Get the default rate limit rule."""
        return self._rule

    @property
    def store(self) -> RateLimitStore:
        """Get the backing store."""
        return self._store

    def now(self) -> float:
        """Current time according to the limiter's clock."""
        return self._clock()

    def check(self, key: str, limit: int, window_seconds: float) -> RateLimitStatus:
        """
        Count a request from key and decide whether it is admitted.

        Args:
            key: Caller identity
            limit: Maximum requests per window
            window_seconds: Window length in seconds

        Returns:
            RateLimitStatus with the admission decision, requests left in the
            window and the window's reset time
        """
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)

            if entry is None or entry.reset_at <= now:
                reset_at = now + window_seconds
                self._store.set(key, RateLimitEntry(count=1, reset_at=reset_at))
                return RateLimitStatus(
                    allowed=True,
                    remaining=limit - 1,
                    reset_at=reset_at,
                )

            if entry.count >= limit:
                return RateLimitStatus(
                    allowed=False,
                    remaining=0,
                    reset_at=entry.reset_at,
                )

            entry.count += 1
            self._store.set(key, entry)
            return RateLimitStatus(
                allowed=True,
                remaining=limit - entry.count,
                reset_at=entry.reset_at,
            )

    def admit(self, key: str) -> RateLimitStatus:
        """Check key against the limiter's configured rule."""
        return self.check(key, self._rule.max_requests, self._rule.window_seconds)

    def sweep(self) -> int:
        """
        Drop all entries whose window has already elapsed.

        Returns:
            Number of entries removed
        """
        removed = 0
        with self._lock:
            now = self._clock()
            for key, entry in self._store.items():
                if entry.reset_at <= now:
                    self._store.delete(key)
                    removed += 1
        return removed
