from __future__ import annotations

from coach_relay.api.routes.admin import router as admin_router
from coach_relay.api.routes.chat import router as chat_router
from coach_relay.api.routes.health import router as health_router
from coach_relay.api.routes.sync import router as sync_router

__all__ = ["admin_router", "chat_router", "health_router", "sync_router"]
