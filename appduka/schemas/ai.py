from __future__ import annotations

from pydantic import BaseModel, Field


class RecommendationRequest(BaseModel):
    query: str = Field(min_length=1, max_length=1000)


class AdviceResponse(BaseModel):
    text: str
