"""Pydantic models for scraped events."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models.types import Embedding, EventID


class Event(BaseModel):
    """Event record produced by the scraping subsystem (read-only here)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: EventID
    title: str = Field(..., min_length=1)
    description: str = ""
    url: str
    event_date: datetime
    image_url: str | None = None
    description_embedding: Embedding | None = None
    last_scraped: datetime | None = None
