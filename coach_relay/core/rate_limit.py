"""Admission rate limiting for FastAPI routes.

This module wires the rate limiting adapters into the HTTP layer.

Design goals:
- Minimal coupling: routes call ``enforce_rate_limit`` with a quota name only.
- Owned state: limiters are built once per application by the app factory and
  kept on ``app.state``, so each app (and each test) has isolated counters.
- Backend selection happens once: a remote store is used only when both
  UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN are set, always behind
  a local fallback.

Quotas:
- "chat": per authenticated user, guards the completion API.
- "login": per client address, guards admin password checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy
from coach_relay.adapters.rate_limit.factory import create_rate_limiter
from coach_relay.adapters.rate_limit.upstash import UpstashRedisRest
from coach_relay.core.config import Settings, settings
from coach_relay.core.logging import hash_for_log

logger = logging.getLogger(__name__)

CHAT_QUOTA = "chat"
LOGIN_QUOTA = "login"

_BLOCKED_MESSAGES = {
    CHAT_QUOTA: "Too many requests. Please try again later.",
    LOGIN_QUOTA: "Too many login attempts. Please try again later.",
}


@dataclass
class AdmissionLimiters:
    """Limiters for every quota, plus the remote client they share."""

    limiters: dict[str, AbstractRateLimiter]
    policies: dict[str, RateLimitPolicy]
    redis: UpstashRedisRest | None = None
    enabled: bool = True
    include_headers: bool = True

    def get(self, quota: str) -> AbstractRateLimiter:
        return self.limiters[quota]

    @property
    def backend(self) -> str:
        return "remote+local" if self.redis is not None else "local"

    async def aclose(self) -> None:
        for limiter in self.limiters.values():
            await limiter.aclose()
        if self.redis is not None:
            await self.redis.aclose()


def build_admission_limiters(
    cfg: Settings | None = None,
    *,
    redis: UpstashRedisRest | None = None,
) -> AdmissionLimiters:
    """Build the chat and login limiters from configuration.

    Args:
        cfg: Settings to read; defaults to the global settings.
        redis: Prebuilt remote client (tests); otherwise created when configured.

    Returns:
        AdmissionLimiters holding one limiter per quota.
    """
    cfg = cfg or settings
    rl = cfg.rate_limit

    policies = {
        CHAT_QUOTA: RateLimitPolicy(rl.chat_requests, rl.chat_window_seconds),
        LOGIN_QUOTA: RateLimitPolicy(rl.login_requests, rl.login_window_seconds),
    }
    remote_policies = {
        CHAT_QUOTA: RateLimitPolicy(
            rl.remote_chat_requests or rl.chat_requests,
            rl.remote_chat_window_seconds or rl.chat_window_seconds,
        ),
        LOGIN_QUOTA: RateLimitPolicy(
            rl.remote_login_requests or rl.login_requests,
            rl.remote_login_window_seconds or rl.login_window_seconds,
        ),
    }

    if redis is None and cfg.remote_limiter.configured:
        redis = UpstashRedisRest(
            url=cfg.remote_limiter.url or "",
            token=cfg.remote_limiter.token or "",
            timeout_seconds=cfg.remote_limiter.timeout_seconds,
        )

    limiters = {
        quota: create_rate_limiter(
            name=quota,
            policy=policy,
            max_entries=rl.max_entries,
            redis=redis,
            remote_policy=remote_policies[quota],
            prefix=cfg.remote_limiter.prefix,
        )
        for quota, policy in policies.items()
    }

    logger.info(
        "rate_limit.configured",
        extra={
            "backend": "remote+local" if redis is not None else "local",
            "chat_limit": policies[CHAT_QUOTA].max_requests,
            "chat_window_s": policies[CHAT_QUOTA].window_seconds,
            "login_limit": policies[LOGIN_QUOTA].max_requests,
            "login_window_s": policies[LOGIN_QUOTA].window_seconds,
        },
    )
    return AdmissionLimiters(
        limiters=limiters,
        policies=policies,
        redis=redis,
        enabled=rl.enabled,
        include_headers=rl.include_headers,
    )


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request, quota: str, key: str) -> None:
    """Record an attempt for ``key`` under ``quota`` and reject it when over limit.

    Args:
        request: Current request; the limiters live on ``request.app.state``.
        quota: Quota name ("chat" or "login").
        key: Rate key (user id or client address).

    Raises:
        HTTPException: 429 Too Many Requests when the quota is exhausted.
    """
    admission: AdmissionLimiters = request.app.state.limiters
    if not admission.enabled:
        return

    policy = admission.policies[quota]
    key_hash = hash_for_log(key)

    if not await admission.get(quota).should_block(key):
        logger.debug("rate_limit.allowed", extra={"quota": quota, "key_hash": key_hash})
        return

    # Precise reset time is unknown across backends; one window is the upper bound.
    retry_after = int(policy.window_seconds)
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "quota": quota,
            "key_hash": key_hash,
            "limit": policy.max_requests,
            "window_s": policy.window_seconds,
            "backend": admission.backend,
        },
    )

    headers: dict[str, str] = {}
    if admission.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(policy.max_requests)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=_BLOCKED_MESSAGES.get(quota, "Rate limit exceeded. Try again later."),
        headers=headers or None,
    )


async def enforce_login_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the login quota keyed by client address."""
    await enforce_rate_limit(request, LOGIN_QUOTA, client_address(request))
