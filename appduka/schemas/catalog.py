from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from appduka.models.catalog import AppStatus


class CatalogEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime | None = None
    name: str
    version: str | None = None
    category: str | None = None
    size: str | None = None
    icon_url: str | None = None
    apk_url: str | None = None
    short_description: str | None = None
    full_description: str | None = None
    screenshots: list[str] = Field(default_factory=list)
    status: AppStatus
    average_rating: float = 0.0
    review_count: int = 0


class StatusUpdateRequest(BaseModel):
    status: str


class DeleteResult(BaseModel):
    deleted: UUID
    files_attempted: int
    files_failed: int
