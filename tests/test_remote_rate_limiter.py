"""Tests for the Upstash REST client and the remote sliding-window limiter."""

import json
from unittest.mock import Mock

import httpx
import pytest

from coach_relay.adapters.rate_limit.base import RateLimitPolicy
from coach_relay.adapters.rate_limit.upstash import (
    SLIDING_WINDOW_SCRIPT,
    UpstashRedisRest,
    UpstashSlidingWindowRateLimiter,
)
from coach_relay.core.errors import RateLimitBackendError

REST_URL = "https://eu1-test.upstash.io"


def _redis(handler) -> UpstashRedisRest:
    return UpstashRedisRest(url=REST_URL + "/", token="rest-token", transport=httpx.MockTransport(handler))


def _limiter(redis: UpstashRedisRest, *, now: float = 1_000.0) -> UpstashSlidingWindowRateLimiter:
    return UpstashSlidingWindowRateLimiter(
        redis=redis,
        policy=RateLimitPolicy(20, 300),
        prefix="coach-relay:chat",
        clock=Mock(return_value=now),
    )


class TestUpstashRedisRest:
    @pytest.mark.asyncio
    async def test_command_posts_json_array_with_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"result": "PONG"})

        redis = _redis(handler)
        try:
            assert await redis.command("PING") == "PONG"
        finally:
            await redis.aclose()

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url).rstrip("/") == REST_URL
        assert request.headers["Authorization"] == "Bearer rest-token"
        assert json.loads(request.content) == ["PING"]

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        redis = _redis(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(RateLimitBackendError) as exc_info:
            await redis.command("PING")

        assert exc_info.value.code == "rate_limit_backend_http_error"
        assert exc_info.value.details == {"http_status": 503}
        await redis.aclose()

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        redis = _redis(handler)

        with pytest.raises(RateLimitBackendError) as exc_info:
            await redis.command("PING")

        assert exc_info.value.code == "rate_limit_backend_unavailable"
        await redis.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        redis = _redis(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(RateLimitBackendError) as exc_info:
            await redis.command("PING")

        assert exc_info.value.code == "rate_limit_backend_bad_response"
        await redis.aclose()

    @pytest.mark.asyncio
    async def test_error_reply(self) -> None:
        redis = _redis(lambda request: httpx.Response(200, json={"error": "ERR wrong number of arguments"}))

        with pytest.raises(RateLimitBackendError, match="wrong number of arguments"):
            await redis.command("EVAL")
        await redis.aclose()


class TestUpstashSlidingWindowRateLimiter:
    @pytest.mark.asyncio
    async def test_sends_script_with_window_keys_and_policy(self) -> None:
        payloads: list[list[str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={"result": 19})

        redis = _redis(handler)
        blocked = await _limiter(redis, now=1_000.0).should_block("user_42")
        await redis.aclose()

        assert blocked is False
        # 1_000_000 ms // 300_000 ms = window 3
        assert payloads[0] == [
            "EVAL",
            SLIDING_WINDOW_SCRIPT,
            "2",
            "coach-relay:chat:user_42:3",
            "coach-relay:chat:user_42:2",
            "20",
            "1000000",
            "300000",
        ]

    @pytest.mark.asyncio
    async def test_negative_reply_blocks(self) -> None:
        redis = _redis(lambda request: httpx.Response(200, json={"result": -1}))

        assert await _limiter(redis).should_block("user_42") is True
        await redis.aclose()

    @pytest.mark.asyncio
    async def test_zero_remaining_still_admits(self) -> None:
        redis = _redis(lambda request: httpx.Response(200, json={"result": 0}))

        assert await _limiter(redis).should_block("user_42") is False
        await redis.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", ["OK", None, True, 1.5])
    async def test_non_integer_reply_is_a_backend_error(self, result) -> None:
        redis = _redis(lambda request: httpx.Response(200, json={"result": result}))

        with pytest.raises(RateLimitBackendError) as exc_info:
            await _limiter(redis).should_block("user_42")

        assert exc_info.value.code == "rate_limit_backend_bad_response"
        await redis.aclose()
