"""Pydantic schemas for the progress sync endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    data: Any = Field(
        default=None,
        description="Client state to store as an opaque JSON object.",
    )


class SuccessResponse(BaseModel):
    success: bool = True
