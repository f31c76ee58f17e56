"""Chat relay service: turns a client conversation into a coaching reply.

Responsibilities:
- Conversation sanitising (role filter, size limits, image attachment)
- Prompt assembly (persona, language instruction, personal intro)
- LLM invocation with provider errors mapped to domain errors
"""

import logging
import time
from typing import Any

from coach_relay.adapters.llm.base import AbstractLLMClient, ChatMessage
from coach_relay.core.config import AppSettings, settings
from coach_relay.core.errors import LLMAppError, ValidationAppError
from coach_relay.services.prompts import (
    DEFAULT_LANGUAGE,
    INTRO_TEMPLATE,
    LANGUAGE_INSTRUCTIONS,
    SYSTEM_PROMPT,
)
from coach_relay.utils.message_validators import (
    attach_image,
    filter_messages,
    is_valid_image_url,
    validate_messages,
)

logger = logging.getLogger(__name__)


def resolve_language(lang: str | None) -> str:
    return lang if lang in LANGUAGE_INSTRUCTIONS else DEFAULT_LANGUAGE


def build_chat_messages(
    raw_messages: Any,
    *,
    name: str | None = None,
    lang: str | None = None,
    image: str | None = None,
    limits: AppSettings | None = None,
) -> list[ChatMessage]:
    """Build the full provider message list for one chat turn.

    Args:
        raw_messages: Conversation as sent by the client.
        name: Display name used for the personal intro message.
        lang: Preferred reply language ("nl" or "en").
        image: Optional image to attach to the latest user message.
        limits: Conversation size limits; defaults to the global settings.

    Returns:
        list: System prompt, language instruction, optional intro, then the
            filtered conversation.

    Raises:
        ValidationAppError: If the conversation exceeds size limits or the
            image reference is not allowed.
    """
    limits = limits or settings.app
    messages = filter_messages(raw_messages)
    validate_messages(
        messages,
        max_messages=limits.max_messages,
        max_chars=limits.max_message_chars,
    )

    if image:
        if not is_valid_image_url(image):
            raise ValidationAppError(
                code="invalid_image_url",
                message="Invalid image URL format",
                details={"hint": "Use a data:image/ URL or an https:// URL"},
            )
        messages = attach_image(messages, image)

    language = resolve_language(lang)
    chat_messages: list[ChatMessage] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "system", "content": LANGUAGE_INSTRUCTIONS[language]},
    ]
    if name:
        chat_messages.append({"role": "user", "content": INTRO_TEMPLATE.format(name=name)})
    chat_messages.extend(messages)
    return chat_messages


class ChatService:
    """Relays a conversation to the LLM provider.

    Attributes:
        llm: LLM client, or None when no provider is configured.
        limits: Conversation size limits applied before every call.
    """

    def __init__(self, llm: AbstractLLMClient | None, limits: AppSettings | None = None) -> None:
        self.llm = llm
        self.limits = limits or settings.app

    async def reply(
        self,
        raw_messages: Any,
        *,
        name: str | None = None,
        lang: str | None = None,
        image: str | None = None,
    ) -> str:
        """Produce the coach's next reply.

        Returns:
            str: Reply text, empty when the provider returned no content.

        Raises:
            ValidationAppError: For invalid conversations (see build_chat_messages).
            LLMAppError: ``llm_not_configured`` without a provider,
                ``llm_request_failed`` when the provider call fails.
        """
        if self.llm is None:
            raise LLMAppError(
                code="llm_not_configured",
                message="Chat provider is not configured",
                details={"hint": "Set LLM_API_KEY"},
            )

        chat_messages = build_chat_messages(
            raw_messages, name=name, lang=lang, image=image, limits=self.limits
        )

        started = time.perf_counter()
        try:
            content = await self.llm.complete(chat_messages)
        except RuntimeError as exc:
            logger.error(
                "chat.provider_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise LLMAppError(
                code="llm_request_failed",
                message="Chat provider request failed. Please try again later.",
            ) from exc

        logger.info(
            "chat.completed",
            extra={
                "message_count": len(chat_messages),
                "has_image": bool(image),
                "language": resolve_language(lang),
                "reply_chars": len(content),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return content
