from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6, max_length=256)


class PasswordResetRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    redirect_to: str | None = None


class SessionResponse(BaseModel):
    user_id: UUID
    email: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None


class MessageResponse(BaseModel):
    message: str
