"""Factory for admission limiters."""

from __future__ import annotations

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy
from coach_relay.adapters.rate_limit.fallback import FallbackRateLimiter
from coach_relay.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from coach_relay.adapters.rate_limit.upstash import UpstashRedisRest, UpstashSlidingWindowRateLimiter


def create_rate_limiter(
    *,
    name: str,
    policy: RateLimitPolicy,
    max_entries: int = InMemoryFixedWindowRateLimiter.DEFAULT_MAX_ENTRIES,
    redis: UpstashRedisRest | None = None,
    remote_policy: RateLimitPolicy | None = None,
    prefix: str = "coach-relay",
) -> AbstractRateLimiter:
    """Build the limiter for one quota.

    Without a remote store the in-memory limiter is returned as-is. With one,
    the remote limiter is wrapped so that any failure is answered locally.

    Args:
        name: Quota name (e.g. "chat", "login"); namespaces remote keys.
        policy: Local fixed-window policy.
        max_entries: Capacity of the local store.
        redis: Remote REST client, or None when no remote store is configured.
        remote_policy: Remote policy; defaults to ``policy``.
        prefix: Remote key prefix shared by all quotas of this service.

    Returns:
        AbstractRateLimiter: Limiter honoring the contract for this quota.
    """
    local = InMemoryFixedWindowRateLimiter(policy=policy, max_entries=max_entries)
    if redis is None:
        return local

    remote = UpstashSlidingWindowRateLimiter(
        redis=redis,
        policy=remote_policy or policy,
        prefix=f"{prefix}:{name}",
    )
    return FallbackRateLimiter(remote, local, name=name)
