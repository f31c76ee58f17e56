"""Remote sliding-window rate limiter over the Upstash Redis REST API.

The counter lives in Redis so every instance of the API shares one budget.
The check-and-increment runs as a single Lua script, which Redis executes
atomically, and is sent through the REST endpoint as an ``EVAL`` command.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

import httpx

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy
from coach_relay.core.errors import RateLimitBackendError

logger = logging.getLogger(__name__)


# Weighted two-window approximation of a sliding window: the previous window's
# count is scaled by how much of it still overlaps the trailing window.
# Returns -1 when blocked, otherwise the remaining budget.
SLIDING_WINDOW_SCRIPT = """
local current_key = KEYS[1]
local previous_key = KEYS[2]
local limit = tonumber(ARGV[1])
local now = tonumber(ARGV[2])
local window = tonumber(ARGV[3])

local current = tonumber(redis.call('GET', current_key) or '0')
local previous = tonumber(redis.call('GET', previous_key) or '0')
local overlap = 1 - ((now % window) / window)
local weighted_previous = math.floor(overlap * previous)

if weighted_previous + current >= limit then
    return -1
end

local used = redis.call('INCR', current_key)
if used == 1 then
    redis.call('PEXPIRE', current_key, window * 2 + 1000)
end
return limit - (used + weighted_previous)
"""


class UpstashRedisRest:
    """Minimal async client for the Upstash Redis REST protocol.

    Commands are posted as a JSON array to the database URL with a bearer
    token; the reply is ``{"result": ...}`` or ``{"error": "..."}``.
    """

    def __init__(
        self,
        *,
        url: str,
        token: str,
        timeout_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the REST client.

        Args:
            url: Base URL of the Redis REST endpoint.
            token: Access token sent as a bearer credential.
            timeout_seconds: Per-request timeout; a timeout counts as a backend failure.
            transport: Optional httpx transport (tests pass an httpx.MockTransport).
        """
        self._url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    async def command(self, *args: Any) -> Any:
        """Run a single Redis command and return its result.

        Raises:
            RateLimitBackendError: On transport errors, timeouts, non-2xx replies
                or replies that do not carry a result.
        """
        payload = [str(arg) for arg in args]
        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise RateLimitBackendError(
                code="rate_limit_backend_http_error",
                message=f"Redis REST returned HTTP {exc.response.status_code}",
                details={"http_status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise RateLimitBackendError(
                code="rate_limit_backend_unavailable",
                message=f"Redis REST request failed: {type(exc).__name__}",
            ) from exc
        except ValueError as exc:
            raise RateLimitBackendError(
                code="rate_limit_backend_bad_response",
                message="Redis REST returned a non-JSON body",
            ) from exc

        if not isinstance(body, dict) or "result" not in body:
            error = body.get("error") if isinstance(body, dict) else None
            raise RateLimitBackendError(
                code="rate_limit_backend_bad_response",
                message=f"Redis REST reply has no result: {error or 'unexpected shape'}",
            )
        return body["result"]

    async def eval(self, script: str, keys: Sequence[str], args: Sequence[Any]) -> Any:
        return await self.command("EVAL", script, len(keys), *keys, *args)

    async def aclose(self) -> None:
        await self._client.aclose()


class UpstashSlidingWindowRateLimiter(AbstractRateLimiter):
    """Shared sliding-window limiter for multi-instance deployments.

    Keys are namespaced as ``{prefix}:{key}:{window_index}``; each counter
    expires on its own after two windows, so Redis needs no cleanup job.
    The REST client is borrowed, not owned: whoever built it closes it.
    """

    def __init__(
        self,
        *,
        redis: UpstashRedisRest,
        policy: RateLimitPolicy,
        prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis
        self._policy = policy
        self._prefix = prefix
        self._clock = clock

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    def _window_keys(self, key: str, now_ms: int, window_ms: int) -> list[str]:
        current_window = now_ms // window_ms
        return [
            f"{self._prefix}:{key}:{current_window}",
            f"{self._prefix}:{key}:{current_window - 1}",
        ]

    async def should_block(self, key: str) -> bool:
        """Check the shared counter for ``key``.

        Raises:
            RateLimitBackendError: When the remote store cannot answer; callers
                are expected to wrap this limiter in a fallback.
        """
        now_ms = int(self._clock() * 1000)
        window_ms = max(1, int(self._policy.window_seconds * 1000))

        result = await self._redis.eval(
            SLIDING_WINDOW_SCRIPT,
            self._window_keys(key, now_ms, window_ms),
            [self._policy.max_requests, now_ms, window_ms],
        )

        # bool is an int subclass; a boolean reply is not a valid counter.
        if isinstance(result, bool) or not isinstance(result, int):
            raise RateLimitBackendError(
                code="rate_limit_backend_bad_response",
                message="Sliding window script returned a non-integer reply",
            )
        return result < 0
