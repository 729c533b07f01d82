from __future__ import annotations

from pydantic import BaseModel, Field


# Range is enforced by the review service so it can report its own error code.
class ReviewCreateRequest(BaseModel):
    rating: int
    comment: str | None = Field(default=None, max_length=4000)
