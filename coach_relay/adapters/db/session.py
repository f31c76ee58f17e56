"""Async database session management for SQLAlchemy 2.0+.

Each app owns one engine built from its ``DATABASE_URL`` (SQLite via aiosqlite
by default) and keeps it, with its session factory, on ``app.state``. Routes
receive a session through the ``get_db`` dependency, which tests replace
through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from coach_relay.adapters.db.base import Base
from coach_relay.core.config import DatabaseSettings, settings

logger = logging.getLogger(__name__)


def create_engine(db_settings: DatabaseSettings | None = None) -> AsyncEngine:
    """Create an async engine; connections open on first use."""
    cfg = db_settings or settings.database
    engine = create_async_engine(cfg.url, echo=cfg.echo, future=True)
    logger.info("db.engine_created", extra={"dialect": engine.dialect.name})
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Transaction handling:
    - Successful requests: changes are committed
    - Exceptions: changes are rolled back, exception is re-raised
    """
    session_maker: async_sessionmaker[AsyncSession] = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


SessionDep = Annotated[AsyncSession, Depends(get_db)]
