"""Rate limiter interfaces.

The HTTP layer depends on this abstraction only, so the backend (in-process,
remote, or remote-with-fallback) is chosen once at startup and never leaks
into route code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    """Quota applied to a single key.

    Attributes:
        max_requests: Attempts admitted per window.
        window_seconds: Length of the trailing window in seconds.
    """

    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


class AbstractRateLimiter(ABC):
    """Interface for admission limiters."""

    @abstractmethod
    async def should_block(self, key: str) -> bool:
        """Record an attempt for ``key`` and decide whether to reject it.

        Args:
            key: Unique identifier of the throttled entity (user id, IP address).

        Returns:
            True when the caller is over quota and the request must be rejected.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any resources held by the limiter."""
        return None
