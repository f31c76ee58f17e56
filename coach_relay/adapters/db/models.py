"""ORM models for user records and system-wide settings."""

from __future__ import annotations

from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coach_relay.adapters.db.base import Base


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Subject of the identity provider's session token; null for admin-created users
    clerk_id: Mapped[str | None] = mapped_column("clerkId", String, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, default="user", server_default="user")
    created_at: Mapped[str] = mapped_column("createdAt", String)
    # Opaque JSON blob written by the sync endpoint
    data: Mapped[str | None] = mapped_column(Text, nullable=True, default="{}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "clerk_id": self.clerk_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at,
        }


class SettingRecord(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text)
