"""Shared type definitions for type checking.

Uses NewType for IDs to provide compile-time type safety - prevents mixing
different ID types (e.g., passing EventID where SubscriptionID expected).

Uses TypeAlias for complex types that are purely structural.
"""

from enum import Enum
from typing import NewType, TypeAlias

# ID types using NewType for type safety
SubscriptionID = NewType("SubscriptionID", str)
EventID = NewType("EventID", str)
UserID = NewType("UserID", str)
QueueEntryID = NewType("QueueEntryID", str)

# Structural aliases
Embedding: TypeAlias = list[float]
MatchScore: TypeAlias = float  # 0.0-1.0


class MatchType(str, Enum):
    """How an event matched a subscription prompt."""

    SEMANTIC = "semantic"
    LEXICAL = "lexical"
