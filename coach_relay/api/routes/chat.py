from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from coach_relay.adapters.db import SessionDep, UserRepository
from coach_relay.core.auth import CurrentIdentity
from coach_relay.core.rate_limit import CHAT_QUOTA, enforce_rate_limit
from coach_relay.schemas.chat import ChatRequest, ChatResponse, ValidateResponse
from coach_relay.services.chat_service import ChatService

router = APIRouter(tags=["Chat"])
logger = logging.getLogger(__name__)


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    request: Request,
    identity: CurrentIdentity,
    db: SessionDep,
) -> ChatResponse | ValidateResponse:
    """Relay one chat turn to the coaching model.

    A ``validateOnly`` request just confirms the session and returns the
    user's name; it does not count against the chat quota.

    Raises:
        AuthenticationAppError: 401 without a valid session.
        HTTPException: 429 when the per-user chat quota is exhausted.
        ValidationAppError: 400 for oversized conversations or bad images.
        LLMAppError: 502 on provider failure, 500 when not configured.
    """
    if payload.validate_only:
        user = await UserRepository(db).ensure_for_identity(
            identity.user_id,
            name=identity.display_name,
            email=identity.email,
        )
        return ValidateResponse(valid=True, user_name=user.name)

    await enforce_rate_limit(request, CHAT_QUOTA, identity.user_id)

    service: ChatService = request.app.state.chat_service
    content = await service.reply(
        payload.messages,
        name=payload.name,
        lang=payload.lang,
        image=payload.image,
    )
    return ChatResponse(message=content)
