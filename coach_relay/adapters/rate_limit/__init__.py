"""Rate limiting adapters.

This package keeps the admission contract (``should_block``) separate from the
storage behind it: an in-process fixed-window limiter, a remote sliding-window
limiter backed by a Redis REST endpoint, and a composing limiter that falls
back from the first to the second when the remote store misbehaves.
"""

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy
from coach_relay.adapters.rate_limit.factory import create_rate_limiter
from coach_relay.adapters.rate_limit.fallback import FallbackRateLimiter
from coach_relay.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from coach_relay.adapters.rate_limit.upstash import UpstashRedisRest, UpstashSlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "FallbackRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitPolicy",
    "UpstashRedisRest",
    "UpstashSlidingWindowRateLimiter",
    "create_rate_limiter",
]
