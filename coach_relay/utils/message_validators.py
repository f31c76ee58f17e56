from typing import Any
from urllib.parse import urlparse

from coach_relay.core.errors import ValidationAppError

ALLOWED_ROLES = frozenset({"user", "assistant"})
IMAGE_MARKER = " [Image Uploaded]"


def is_valid_image_url(url: Any) -> bool:
    """Check whether an image reference may be forwarded to the model.

    Only inline image data URLs and absolute HTTPS URLs are accepted, so the
    provider is never asked to fetch local files or plain-HTTP resources.

    Args:
        url: Candidate image reference from the request body.

    Returns:
        bool: True for ``data:image/...`` or ``https://host/...`` values.
    """
    if not url or not isinstance(url, str):
        return False
    if url.startswith("data:image/"):
        return True
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme == "https" and bool(parsed.netloc)


def filter_messages(raw: Any) -> list[dict[str, Any]]:
    """Keep only user and assistant turns, reduced to role and content.

    Args:
        raw: Client-supplied message list; anything that is not a list
            yields an empty conversation.

    Returns:
        list: New message dicts in the original order.
    """
    if not isinstance(raw, list):
        return []
    return [
        {"role": item["role"], "content": item.get("content")}
        for item in raw
        if isinstance(item, dict) and item.get("role") in ALLOWED_ROLES
    ]


def validate_messages(
    messages: list[dict[str, Any]],
    *,
    max_messages: int,
    max_chars: int,
) -> None:
    """Enforce conversation size limits.

    Content must be plain text; multimodal parts are only built server-side
    by ``attach_image``.

    Raises:
        ValidationAppError: ``too_many_messages``, ``invalid_message_content``
            or ``message_too_long``.
    """
    if len(messages) > max_messages:
        raise ValidationAppError(
            code="too_many_messages",
            message=f"Too many messages. Maximum {max_messages} allowed.",
            details={"max_value": max_messages, "actual_value": len(messages)},
        )
    for message in messages:
        content = message.get("content")
        if not isinstance(content, str):
            raise ValidationAppError(
                code="invalid_message_content",
                message="Message content must be text.",
                details={"role": message.get("role"), "actual_type": type(content).__name__},
            )
        if len(content) > max_chars:
            raise ValidationAppError(
                code="message_too_long",
                message=f"Message too long. Maximum {max_chars} characters.",
                details={"max_value": max_chars, "actual_value": len(content)},
            )


def attach_image(messages: list[dict[str, Any]], image: str) -> list[dict[str, Any]]:
    """Attach an image to the conversation as multimodal user content.

    The last message, when it comes from the user, is rewritten into a text
    part plus an image part. Otherwise a new image-only user message is
    appended.

    Args:
        messages: Filtered conversation; not modified.
        image: Validated image URL.

    Returns:
        list: The conversation with the image attached.
    """
    result = list(messages)
    image_part = {"type": "image_url", "image_url": {"url": image}}

    if result and result[-1]["role"] == "user":
        content = result[-1].get("content")
        text = content.replace(IMAGE_MARKER, "", 1) if isinstance(content, str) else ""
        result[-1] = {
            "role": "user",
            "content": [{"type": "text", "text": text}, image_part],
        }
    else:
        result.append({"role": "user", "content": [image_part]})
    return result
