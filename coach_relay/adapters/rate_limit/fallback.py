"""Composing limiter that degrades to a secondary backend on failure."""

from __future__ import annotations

import logging

from coach_relay.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class FallbackRateLimiter(AbstractRateLimiter):
    """Ask the primary limiter; on any failure, ask the secondary for that call.

    Enforcement never turns off when the primary breaks: the request is still
    judged, only by the secondary's (usually per-process) view of the key.
    """

    def __init__(
        self,
        primary: AbstractRateLimiter,
        secondary: AbstractRateLimiter,
        *,
        name: str = "default",
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._name = name

    @property
    def primary(self) -> AbstractRateLimiter:
        return self._primary

    @property
    def secondary(self) -> AbstractRateLimiter:
        return self._secondary

    async def should_block(self, key: str) -> bool:
        try:
            return await self._primary.should_block(key)
        except Exception as exc:
            logger.warning(
                "rate_limit.backend_failed",
                extra={
                    "limiter": self._name,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "fallback": type(self._secondary).__name__,
                },
            )
            return await self._secondary.should_block(key)

    async def aclose(self) -> None:
        try:
            await self._primary.aclose()
        finally:
            await self._secondary.aclose()
