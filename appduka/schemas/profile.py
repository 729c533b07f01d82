from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from appduka.models.profile import ProfileRole


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str | None = None
    role: ProfileRole


class UsernameUpdateRequest(BaseModel):
    username: str | None = None


class RoleUpdateRequest(BaseModel):
    role: str
