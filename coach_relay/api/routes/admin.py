from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, status

from coach_relay.adapters.db import MIN_AUTH_KEY, SessionDep, SettingsRepository, UserRepository
from coach_relay.core.auth import AdminIdentity, create_admin_token, verify_admin_password
from coach_relay.core.config import SettingsDep
from coach_relay.core.errors import AuthenticationAppError, NotFoundAppError, ValidationAppError
from coach_relay.core.rate_limit import enforce_login_rate_limit
from coach_relay.schemas.admin import (
    LoginRequest,
    LoginResponse,
    ResetResponse,
    UserCreateRequest,
    UserCreateResponse,
    UserDeleteRequest,
    UserOut,
    UserUpdateRequest,
    UsersResponse,
)
from coach_relay.schemas.sync import SuccessResponse

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)


def _require_id(user_id: str | None) -> str:
    if not user_id or not user_id.strip():
        raise ValidationAppError(code="user_id_required", message="ID required")
    return user_id.strip()


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(enforce_login_rate_limit)],
)
async def login(payload: LoginRequest, app_settings: SettingsDep) -> LoginResponse:
    """Exchange the admin password for a short-lived admin token.

    Every attempt counts against the per-address login quota, which is
    checked before the password is looked at.
    """
    if not payload.password:
        raise ValidationAppError(code="password_required", message="Password required")

    if not verify_admin_password(payload.password, app_settings.auth):
        logger.warning("admin.login_failed")
        raise AuthenticationAppError(code="invalid_credentials", message="Invalid password")

    logger.info("admin.login_succeeded")
    return LoginResponse(success=True, token=create_admin_token(app_settings.auth))


@router.get("/users", response_model=UsersResponse)
async def list_users(_: AdminIdentity, db: SessionDep) -> UsersResponse:
    users = await UserRepository(db).list_users()
    return UsersResponse(users=[UserOut(**user.to_dict()) for user in users])


@router.post("/users", response_model=UserCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, _: AdminIdentity, db: SessionDep) -> UserCreateResponse:
    name = payload.name.strip()
    if not name:
        raise ValidationAppError(code="user_name_required", message="Name required")

    user = await UserRepository(db).add(name=name, email=payload.email, role=payload.role or "user")
    logger.info("admin.user_created", extra={"user_id": user.id, "role": user.role})
    return UserCreateResponse(user=UserOut(**user.to_dict()))


@router.put("/users", response_model=SuccessResponse)
async def update_user(payload: UserUpdateRequest, _: AdminIdentity, db: SessionDep) -> SuccessResponse:
    user_id = _require_id(payload.id)
    changes = payload.model_dump(include={"name", "email", "role"}, exclude_unset=True)

    if not await UserRepository(db).update(user_id, **changes):
        raise NotFoundAppError(code="user_not_found", message="User not found")

    logger.info("admin.user_updated", extra={"user_id": user_id, "fields": sorted(changes)})
    return SuccessResponse()


@router.delete("/users", response_model=SuccessResponse)
async def delete_user(payload: UserDeleteRequest, _: AdminIdentity, db: SessionDep) -> SuccessResponse:
    user_id = _require_id(payload.id)

    if not await UserRepository(db).delete(user_id):
        raise NotFoundAppError(code="user_not_found", message="User not found")

    logger.info("admin.user_deleted", extra={"user_id": user_id})
    return SuccessResponse()


@router.post("/users/reset", response_model=ResetResponse)
async def reset_sessions(_: AdminIdentity, db: SessionDep) -> ResetResponse:
    """Invalidate every client session started before now."""
    now_ms = int(time.time() * 1000)
    await SettingsRepository(db).set(MIN_AUTH_KEY, now_ms)
    logger.info("admin.sessions_reset", extra={"min_auth": now_ms})
    return ResetResponse(success=True, min_auth=now_ms)
