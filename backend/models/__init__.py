"""Pydantic models for data validation and type checking."""

from models.event import Event
from models.queue import (
    DigestFailure,
    DigestReport,
    MatchResult,
    MatchSummary,
    QueuedEvent,
    QueueEntry,
    QueueStats,
    SubscriptionOutcome,
)
from models.subscription import Subscription, UserProfile
from models.types import MatchType

__all__ = [
    "Event",
    "Subscription",
    "UserProfile",
    "MatchType",
    "MatchResult",
    "QueueEntry",
    "QueuedEvent",
    "QueueStats",
    "SubscriptionOutcome",
    "DigestFailure",
    "DigestReport",
    "MatchSummary",
]
