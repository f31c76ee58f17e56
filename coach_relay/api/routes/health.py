from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Needs no session and touches neither the database nor the rate limit
    store, so it stays green while a remote limiter is degraded.

    Returns:
        dict: ``{"status": "ok"}``.
    """

    return {"status": "ok"}
