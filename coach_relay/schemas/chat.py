"""Pydantic schemas for the chat relay endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """One chat turn as sent by the client.

    ``messages`` is accepted loosely; entries that are not user or assistant
    turns are dropped before the conversation reaches the model.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: Any = Field(
        default_factory=list,
        description="Conversation so far: list of {role, content} objects.",
    )
    name: str | None = Field(
        default=None,
        description="Display name the coach should use to address the user.",
    )
    lang: str | None = Field(
        default=None,
        description="Preferred reply language: 'nl' (default) or 'en'.",
    )
    image: Any = Field(
        default=None,
        description="Optional image: a data:image/ URL or an https:// URL.",
    )
    validate_only: bool = Field(
        default=False,
        alias="validateOnly",
        description="Only check the session and return the user's name.",
    )


class ChatResponse(BaseModel):
    message: str = Field(..., description="The coach's reply.")


class ValidateResponse(BaseModel):
    valid: bool = True
    user_name: str | None = Field(
        default=None,
        description="Name of the signed-in user.",
    )
