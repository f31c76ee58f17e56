"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It ensures that the TESTING environment variable is set to prevent
loading the .env file during tests, and configures deterministic auth
secrets so tokens can be minted locally.
"""

import asyncio
import os

# CRITICAL: Set this before any imports that might load settings
# This prevents Pydantic from loading the .env file in tests
os.environ["TESTING"] = "true"

# Set default env vars that all tests might need
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ["AUTH_SESSION_JWT_KEY"] = "test-session-secret"
os.environ["AUTH_SESSION_JWT_ALGORITHMS"] = "HS256"
os.environ["AUTH_ADMIN_JWT_SECRET"] = "test-admin-secret"
os.environ["AUTH_ADMIN_PASSWORD"] = "correct-horse"
os.environ.pop("AUTH_ADMIN_PASSWORD_HASH", None)
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from coach_relay.adapters.db.session import init_db
from coach_relay.adapters.llm.base import AbstractLLMClient, ChatMessage
from coach_relay.core.app_factory import create_app

SESSION_SECRET = "test-session-secret"


class StubLLMClient(AbstractLLMClient):
    """Records every conversation and answers with a canned reply."""

    def __init__(self, reply: str = "Yo Kevin, lekker bezig!") -> None:
        self.reply = reply
        self.error: Exception | None = None
        self.calls: list[list[ChatMessage]] = []

    async def complete(self, messages: list[ChatMessage], **kwargs: Any) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


def make_session_token(
    sub: str = "user_123",
    *,
    role: str | None = None,
    name: str | None = "Kevin",
    **claims: Any,
) -> str:
    """Mint a session token the way the identity provider would."""
    payload: dict[str, Any] = {"sub": sub, **claims}
    if name is not None:
        payload["name"] = name
    if role is not None:
        payload["metadata"] = {"role": role}
    return jwt.encode(payload, SESSION_SECRET, algorithm="HS256")


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db_engine(tmp_path) -> AsyncEngine:
    """File-backed SQLite engine with fresh tables for one test.

    NullPool keeps connections from outliving the event loop that opened them,
    since TestClient runs each app call on its own loop.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def stub_llm() -> StubLLMClient:
    return StubLLMClient()


def attach_database(application: FastAPI, engine: AsyncEngine) -> FastAPI:
    """Point the app's sessions at a test engine."""
    application.state.session_maker = async_sessionmaker(engine, expire_on_commit=False)
    return application


@pytest.fixture
def app(db_engine: AsyncEngine, stub_llm: StubLLMClient) -> FastAPI:
    """Fresh app per test: isolated rate limit counters and database."""
    return attach_database(create_app(llm=stub_llm), db_engine)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def user_headers() -> dict[str, str]:
    return bearer(make_session_token())


@pytest.fixture
def admin_session_headers() -> dict[str, str]:
    return bearer(make_session_token("admin_1", role="admin", name="Coach"))


@pytest.fixture
def session_token_factory() -> Callable[..., str]:
    return make_session_token
