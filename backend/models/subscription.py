"""Pydantic models for interest subscriptions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models.types import Embedding, SubscriptionID, UserID


class Subscription(BaseModel):
    """A user's natural-language interest subscription."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: SubscriptionID
    user_id: UserID
    prompt: str = Field(..., min_length=1)
    is_active: bool = True
    email_frequency_hours: int = Field(24, ge=1)
    last_email_sent: datetime | None = None
    next_email_scheduled: datetime | None = None
    prompt_embedding: Embedding | None = None

    def is_due(self, now: datetime) -> bool:
        """Active and scheduled at or before `now`. Never-scheduled is never due."""
        if not self.is_active or self.next_email_scheduled is None:
            return False
        return self.next_email_scheduled <= now


class UserProfile(BaseModel):
    """Digest recipient."""

    id: UserID
    email: str = Field(..., pattern=r"^[^@]+@[^@]+\.[^@]+$")
