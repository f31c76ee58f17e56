"""Pydantic schemas for admin sign-in and user management."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    password: str = Field(default="", description="Shared admin password.")


class LoginResponse(BaseModel):
    success: bool = True
    token: str = Field(..., description="Short-lived admin bearer token.")


class UserOut(BaseModel):
    id: str
    clerk_id: str | None = None
    name: str
    email: str | None = None
    role: str = "user"
    created_at: str


class UsersResponse(BaseModel):
    users: list[UserOut] = Field(default_factory=list)


class UserCreateRequest(BaseModel):
    name: str = Field(default="", description="Display name (required).")
    email: str | None = None
    role: str = Field(default="user", description="'user' or 'admin'.")


class UserCreateResponse(BaseModel):
    user: UserOut


class UserUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""

    id: str | None = None
    name: str | None = None
    email: str | None = None
    role: str | None = None


class UserDeleteRequest(BaseModel):
    id: str | None = None


class ResetResponse(BaseModel):
    success: bool = True
    min_auth: int = Field(
        ...,
        description="Epoch milliseconds; sessions started before this must sign in again.",
    )
