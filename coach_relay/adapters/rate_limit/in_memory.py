"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Bounded: expired windows are swept on every check and the store is halved
  (oldest windows first) once it grows past ``max_entries``.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy

logger = logging.getLogger(__name__)


@dataclass
class WindowEntry:
    count: int
    window_start: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window that starts at a key's first attempt.

    Every attempt is counted, including rejected ones, so a caller that keeps
    retrying past the limit stays blocked until its window runs out.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    DEFAULT_MAX_ENTRIES = 10_000

    def __init__(
        self,
        *,
        policy: RateLimitPolicy,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            policy: Requests allowed per window.
            max_entries: Upper bound on tracked keys before eviction kicks in.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If max_entries is invalid.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._policy = policy
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, WindowEntry] = {}

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def peek(self, key: str) -> WindowEntry | None:
        """Return a copy of the stored window for ``key`` without recording an attempt."""
        with self._lock:
            entry = self._entries.get(key)
            return replace(entry) if entry is not None else None

    def _is_expired(self, entry: WindowEntry, now: float) -> bool:
        return now - entry.window_start > self._policy.window_seconds

    def _sweep_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired_keys:
            del self._entries[key]

    def _evict_if_over_capacity_locked(self) -> None:
        size = len(self._entries)
        if size <= self._max_entries:
            return

        # Keys with the oldest windows go first; a forgotten key simply starts fresh.
        oldest_first = sorted(self._entries.items(), key=lambda item: item[1].window_start)
        evict_count = math.ceil(size / 2)
        for key, _ in oldest_first[:evict_count]:
            del self._entries[key]

        logger.debug(
            "rate_limit.evicted",
            extra={"evicted": evict_count, "size_before": size, "max_entries": self._max_entries},
        )

    def record(self, key: str) -> int:
        """Record one attempt for ``key`` and return the attempt count in its window.

        Args:
            key: Rate limit key.

        Returns:
            Number of attempts recorded in the key's current window, this one included.
        """
        now = self._clock()

        with self._lock:
            self._sweep_expired_locked(now)
            self._evict_if_over_capacity_locked()

            entry = self._entries.get(key)
            if entry is None or self._is_expired(entry, now):
                self._entries[key] = WindowEntry(count=1, window_start=now)
                return 1

            entry.count += 1
            return entry.count

    async def should_block(self, key: str) -> bool:
        return self.record(key) > self._policy.max_requests
