"""HistoryCollection - named snapshot of a full history list."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from meshforge.models.generation import GeneratedResult


class HistoryCollection(BaseModel):
    """A saved copy of the history list that can be loaded back later."""

    id: str = Field(default_factory=lambda: f"collection_{uuid4().hex[:12]}")
    name: str = Field(..., min_length=1, max_length=200)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: list[GeneratedResult] = Field(default_factory=list)
