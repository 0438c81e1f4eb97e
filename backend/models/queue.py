"""Pydantic models for the email queue and digest reporting."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from models.event import Event
from models.types import EventID, MatchType, QueueEntryID, SubscriptionID


class MatchResult(BaseModel):
    """Scorer output for one (prompt, event) pair."""

    score: float = Field(..., ge=0, le=1)
    match_type: MatchType


class QueueEntry(BaseModel):
    """Queued match waiting to be sent in a digest."""

    id: QueueEntryID
    subscription_id: SubscriptionID
    event_id: EventID
    match_score: float = Field(..., ge=0, le=1)
    match_type: MatchType
    queued_at: datetime
    email_sent: bool = False
    email_sent_at: datetime | None = None


class QueuedEvent(BaseModel):
    """A queue entry joined with its event."""

    entry: QueueEntry
    event: Event


class QueueStats(BaseModel):
    """Read-only queue counts for operators."""

    total: int = 0
    unsent: int = 0
    sent: int = 0


class SubscriptionOutcome(BaseModel):
    """Result of processing one due subscription."""

    subscription_id: SubscriptionID
    status: Literal["sent", "empty", "failed"]
    events_included: int = 0
    error: str | None = None


class DigestFailure(BaseModel):
    subscription_id: SubscriptionID
    reason: str


class DigestReport(BaseModel):
    """Aggregated outcome of one digest cycle."""

    subscriptions_processed: int = 0
    digests_sent: int = 0
    empty_digests: int = 0
    events_included: int = 0
    failures: list[DigestFailure] = Field(default_factory=list)

    def record(self, outcome: SubscriptionOutcome) -> None:
        self.subscriptions_processed += 1
        if outcome.status == "sent":
            self.digests_sent += 1
            self.events_included += outcome.events_included
        elif outcome.status == "empty":
            self.empty_digests += 1
        else:
            self.failures.append(
                DigestFailure(
                    subscription_id=outcome.subscription_id,
                    reason=outcome.error or "Unknown error",
                )
            )


class MatchSummary(BaseModel):
    """Counts from matching one event against all active subscriptions."""

    checked: int = 0
    matched: int = 0
    queued: int = 0
    skipped: int = 0
    errors: int = 0
