from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter

from coach_relay.adapters.db import MIN_AUTH_KEY, SessionDep, SettingsRepository, UserRepository
from coach_relay.core.auth import CurrentIdentity
from coach_relay.core.config import SettingsDep
from coach_relay.core.errors import ValidationAppError
from coach_relay.core.logging import hash_for_log
from coach_relay.schemas.sync import SuccessResponse, SyncRequest

router = APIRouter(tags=["Sync"])
logger = logging.getLogger(__name__)

SYSTEM_KEY = "__sys"


@router.get("/sync")
async def get_sync(identity: CurrentIdentity, db: SessionDep) -> dict[str, Any]:
    """Return the caller's stored client state.

    The ``__sys`` entry is added on read and carries ``minAuth``, the epoch
    millisecond timestamp before which client sessions are considered stale.
    """
    users = UserRepository(db)
    await users.ensure_for_identity(identity.user_id, name=identity.display_name, email=identity.email)

    data = await users.get_data(identity.user_id) or {}
    data[SYSTEM_KEY] = {"minAuth": await SettingsRepository(db).get(MIN_AUTH_KEY, 0)}
    return data


@router.post("/sync", response_model=SuccessResponse)
async def post_sync(
    payload: SyncRequest,
    identity: CurrentIdentity,
    db: SessionDep,
    app_settings: SettingsDep,
) -> SuccessResponse:
    """Replace the caller's stored client state.

    Raises:
        ValidationAppError: 400 when ``data`` is missing, not an object, or
            larger than the configured limit.
    """
    if not isinstance(payload.data, dict):
        raise ValidationAppError(
            code="sync_data_required",
            message="Data required",
            details={"hint": "Send {\"data\": {...}}"},
        )

    data = {key: value for key, value in payload.data.items() if key != SYSTEM_KEY}
    size = len(json.dumps(data).encode("utf-8"))
    if size > app_settings.app.max_sync_bytes:
        raise ValidationAppError(
            code="sync_payload_too_large",
            message="Sync payload is too large",
            details={"max_value": app_settings.app.max_sync_bytes, "actual_value": size},
        )

    users = UserRepository(db)
    await users.ensure_for_identity(identity.user_id, name=identity.display_name, email=identity.email)
    await users.update_data(identity.user_id, data)

    logger.info("sync.stored", extra={"user_hash": hash_for_log(identity.user_id), "bytes": size})
    return SuccessResponse()
