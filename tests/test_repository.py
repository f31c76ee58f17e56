"""Tests for the user and settings repositories against a temporary SQLite file."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from coach_relay.adapters.db import MIN_AUTH_KEY, SettingsRepository, UserRepository, init_db


@pytest_asyncio.fixture
async def session(tmp_path) -> AsyncSession:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}", poolclass=NullPool)
    await init_db(engine)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as db_session:
        yield db_session
    await engine.dispose()


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_add_and_get(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        user = await repo.add(name="Sanne", email="sanne@example.com")

        fetched = await repo.get_by_id(user.id)

        assert fetched is not None
        assert fetched.name == "Sanne"
        assert fetched.role == "user"
        assert fetched.data == "{}"
        assert fetched.created_at

    @pytest.mark.asyncio
    async def test_ensure_for_identity_is_idempotent(self, session: AsyncSession) -> None:
        repo = UserRepository(session)

        first = await repo.ensure_for_identity("user_123", name="Kevin")
        second = await repo.ensure_for_identity("user_123", name="Someone else")

        assert first.id == second.id
        assert second.name == "Kevin"
        assert len(await repo.list_users()) == 1

    @pytest.mark.asyncio
    async def test_ensure_for_identity_returns_concurrently_created_user(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        existing = await repo.ensure_for_identity("user_123", name="Kevin")
        lookup = repo.get_by_clerk_id
        misses = [None]

        async def stale_first_lookup(clerk_id: str):
            return misses.pop() if misses else await lookup(clerk_id)

        repo.get_by_clerk_id = stale_first_lookup

        raced = await repo.ensure_for_identity("user_123", name="Kevin")

        assert raced.id == existing.id
        assert len(await repo.list_users()) == 1

    @pytest.mark.asyncio
    async def test_get_by_clerk_id_ignores_blank(self, session: AsyncSession) -> None:
        assert await UserRepository(session).get_by_clerk_id("") is None

    @pytest.mark.asyncio
    async def test_partial_update(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        user = await repo.add(name="Sanne", email="sanne@example.com")

        assert await repo.update(user.id, role="admin") is True

        updated = await repo.get_by_id(user.id)
        assert updated.role == "admin"
        assert updated.name == "Sanne"
        assert updated.email == "sanne@example.com"

    @pytest.mark.asyncio
    async def test_update_can_clear_email(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        user = await repo.add(name="Sanne", email="sanne@example.com")

        await repo.update(user.id, email=None)

        assert (await repo.get_by_id(user.id)).email is None

    @pytest.mark.asyncio
    async def test_update_missing_user(self, session: AsyncSession) -> None:
        repo = UserRepository(session)

        assert await repo.update("missing", name="X") is False
        assert await repo.update("missing") is False

    @pytest.mark.asyncio
    async def test_delete(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        user = await repo.add(name="Sanne")

        assert await repo.delete(user.id) is True
        assert await repo.delete(user.id) is False
        assert await repo.get_by_id(user.id) is None

    @pytest.mark.asyncio
    async def test_data_round_trip(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        await repo.ensure_for_identity("user_123", name="Kevin")

        assert await repo.get_data("user_123") == {}
        assert await repo.update_data("user_123", {"stats": {"xp": 5}}) is True
        assert await repo.get_data("user_123") == {"stats": {"xp": 5}}

    @pytest.mark.asyncio
    async def test_data_for_unknown_identity(self, session: AsyncSession) -> None:
        repo = UserRepository(session)

        assert await repo.get_data("nobody") is None
        assert await repo.update_data("nobody", {"a": 1}) is False

    @pytest.mark.asyncio
    async def test_unreadable_data_becomes_empty(self, session: AsyncSession) -> None:
        repo = UserRepository(session)
        user = await repo.ensure_for_identity("user_123", name="Kevin")
        await repo.update(user.id, data="{not json")

        assert await repo.get_data("user_123") == {}


class TestSettingsRepository:
    @pytest.mark.asyncio
    async def test_default_when_absent(self, session: AsyncSession) -> None:
        assert await SettingsRepository(session).get(MIN_AUTH_KEY, 0) == 0

    @pytest.mark.asyncio
    async def test_set_then_overwrite(self, session: AsyncSession) -> None:
        repo = SettingsRepository(session)

        await repo.set(MIN_AUTH_KEY, 1_700_000_000_000)
        await repo.set(MIN_AUTH_KEY, 1_800_000_000_000)

        assert await repo.get(MIN_AUTH_KEY) == 1_800_000_000_000
