"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
per-app state) to improve testability: every call returns an app with its own
settings, database engine, rate limit counters and chat service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coach_relay.adapters.db.session import create_engine, create_session_maker, init_db
from coach_relay.adapters.llm.base import AbstractLLMClient
from coach_relay.adapters.llm.factory import create_llm_client
from coach_relay.api.routes import admin_router, chat_router, health_router, sync_router
from coach_relay.core.config import Settings, settings, split_csv
from coach_relay.core.exception_handlers import setup_exception_handlers
from coach_relay.core.logging import configure_logging
from coach_relay.core.middleware import (
    csrf_origin_middleware,
    request_id_middleware,
    security_headers_middleware,
)
from coach_relay.core.openapi import apply_openapi_customizations
from coach_relay.core.rate_limit import build_admission_limiters
from coach_relay.services.chat_service import ChatService

logger = logging.getLogger(__name__)


def _build_llm_client(cfg: Settings) -> AbstractLLMClient | None:
    if not cfg.llm.api_key:
        logger.warning("llm.not_configured", extra={"provider": cfg.llm.provider})
        return None
    return create_llm_client(cfg.llm)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await init_db(app.state.db_engine)
    logger.info("app.started", extra={"limiter_backend": app.state.limiters.backend})
    try:
        yield
    finally:
        await app.state.limiters.aclose()
        await app.state.db_engine.dispose()
        logger.info("app.stopped")


def create_app(
    cfg: Settings | None = None,
    *,
    llm: AbstractLLMClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cfg: Settings to build from; defaults to the global settings.
        llm: Prebuilt LLM client (tests); otherwise created from LLM_* settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = cfg or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Coach Relay API",
        description=(
            "Backend for a fitness coaching chat app: relays conversations to "
            "the coaching model, stores per-user progress, and lets admins "
            "manage users. Chat and admin sign-in are rate limited per user "
            "and per address."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.db_engine = create_engine(cfg.database)
    app.state.session_maker = create_session_maker(app.state.db_engine)
    app.state.limiters = build_admission_limiters(cfg)
    app.state.chat_service = ChatService(
        llm if llm is not None else _build_llm_client(cfg),
        limits=cfg.app,
    )

    # Middleware: the last registered runs outermost
    app.middleware("http")(csrf_origin_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=split_csv(cfg.app.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", cfg.log.request_id_header],
        expose_headers=[cfg.log.request_id_header, "Retry-After"],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(chat_router, prefix="/api")
    app.include_router(sync_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
