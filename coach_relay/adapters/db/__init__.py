"""Relational store adapter (SQLAlchemy async ORM)."""

from coach_relay.adapters.db.base import Base
from coach_relay.adapters.db.models import SettingRecord, UserRecord
from coach_relay.adapters.db.repository import MIN_AUTH_KEY, SettingsRepository, UserRepository
from coach_relay.adapters.db.session import SessionDep, get_db, init_db

__all__ = [
    "MIN_AUTH_KEY",
    "Base",
    "SessionDep",
    "SettingRecord",
    "SettingsRepository",
    "UserRecord",
    "UserRepository",
    "get_db",
    "init_db",
]
