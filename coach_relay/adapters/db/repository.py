"""Repositories over the users and settings tables.

Repositories flush but never commit; the request-scoped session from
``get_db`` owns the transaction.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coach_relay.adapters.db.models import SettingRecord, UserRecord

logger = logging.getLogger(__name__)

_UNSET: Any = object()

# Epoch milliseconds; client sessions started earlier must sign in again
MIN_AUTH_KEY = "min_auth_ts"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserRepository:
    """User record persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_users(self) -> list[UserRecord]:
        result = await self.session.execute(select(UserRecord).order_by(UserRecord.created_at))
        return list(result.scalars().all())

    async def get_by_id(self, user_id: str) -> UserRecord | None:
        return await self.session.get(UserRecord, user_id)

    async def get_by_clerk_id(self, clerk_id: str) -> UserRecord | None:
        if not clerk_id:
            return None
        result = await self.session.execute(select(UserRecord).where(UserRecord.clerk_id == clerk_id))
        return result.scalar_one_or_none()

    async def add(
        self,
        *,
        name: str,
        email: str | None = None,
        role: str = "user",
        clerk_id: str | None = None,
    ) -> UserRecord:
        record = UserRecord(
            id=str(uuid.uuid4()),
            clerk_id=clerk_id,
            name=name,
            email=email,
            role=role,
            created_at=_now_iso(),
            data="{}",
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def ensure_for_identity(
        self,
        clerk_id: str,
        *,
        name: str,
        email: str | None = None,
    ) -> UserRecord:
        """Return the user linked to ``clerk_id``, creating it on first sight.

        The insert runs in a savepoint; when a concurrent request created the
        same user first, the unique constraint fails and that row is returned.
        """
        record = await self.get_by_clerk_id(clerk_id)
        if record is not None:
            return record

        try:
            async with self.session.begin_nested():
                record = await self.add(name=name, email=email, clerk_id=clerk_id)
        except IntegrityError:
            record = await self.get_by_clerk_id(clerk_id)
            if record is None:
                raise
            logger.info("user.provision_raced", extra={"user_id": record.id})
            return record

        logger.info("user.provisioned", extra={"user_id": record.id})
        return record

    async def update(
        self,
        user_id: str,
        *,
        name: str | None = _UNSET,
        email: str | None = _UNSET,
        role: str = _UNSET,
        data: dict[str, Any] | str = _UNSET,
    ) -> bool:
        """Apply a partial update; arguments left unset are not touched.

        Returns:
            False when no user has ``user_id``.
        """
        record = await self.get_by_id(user_id)
        if record is None:
            return False

        if name is not _UNSET and name is not None:
            record.name = name
        if email is not _UNSET:
            record.email = email
        if role is not _UNSET and role is not None:
            record.role = role
        if data is not _UNSET:
            record.data = data if isinstance(data, str) else json.dumps(data)

        await self.session.flush()
        return True

    async def delete(self, user_id: str) -> bool:
        record = await self.get_by_id(user_id)
        if record is None:
            return False
        await self.session.delete(record)
        await self.session.flush()
        return True

    async def get_data(self, clerk_id: str) -> dict[str, Any] | None:
        """Return the stored JSON blob, ``{}`` when unreadable, None without a user."""
        record = await self.get_by_clerk_id(clerk_id)
        if record is None or not record.data:
            return None
        try:
            parsed = json.loads(record.data)
        except json.JSONDecodeError:
            logger.warning("user.data_unreadable", extra={"user_id": record.id})
            return {}
        return parsed if isinstance(parsed, dict) else {}

    async def update_data(self, clerk_id: str, data: dict[str, Any]) -> bool:
        record = await self.get_by_clerk_id(clerk_id)
        if record is None:
            return False
        record.data = json.dumps(data)
        await self.session.flush()
        return True


class SettingsRepository:
    """System-wide key/value settings stored as JSON text."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str, default: Any = None) -> Any:
        record = await self.session.get(SettingRecord, key)
        if record is None:
            return default
        return json.loads(record.value)

    async def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        record = await self.session.get(SettingRecord, key)
        if record is None:
            self.session.add(SettingRecord(key=key, value=encoded))
        else:
            record.value = encoded
        await self.session.flush()
