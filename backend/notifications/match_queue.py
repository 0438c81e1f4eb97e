"""
Email queue management.

Every (subscription, event) pair has at most one queue entry. Later matches
for the same pair only replace the stored score when they are strictly
better, so the queue always holds the best score ever seen for a pair.
"""

from datetime import datetime
from typing import Iterable

from models import Event, MatchResult, MatchType, QueuedEvent, QueueEntry, QueueStats
from models.types import EventID, QueueEntryID, SubscriptionID
from shared.store import DuplicateKeyError, Store, StoreError
from shared.utils import utc_now

QUEUE_TABLE = "email_queue"
EVENTS_TABLE = "events"

# Optimistic upsert retries before giving up on a contended pair
MAX_UPSERT_ATTEMPTS = 5


class MatchQueueManager:
    """Enqueue, list and mark-sent operations on the email queue."""

    def __init__(self, store: Store):
        self.store = store

    def _find_entry(
        self, subscription_id: SubscriptionID, event_id: EventID
    ) -> QueueEntry | None:
        rows = self.store.find(
            QUEUE_TABLE, {"subscription_id": subscription_id, "event_id": event_id}
        )
        if not rows:
            return None
        return QueueEntry.model_validate(rows[0])

    def enqueue_or_update(
        self,
        subscription_id: SubscriptionID,
        event_id: EventID,
        score: float,
        match_type: MatchType | str,
        now: datetime | None = None,
    ) -> QueueEntryID:
        """
        Queue an event for a subscription, keeping the best score per pair.

        New pairs are inserted unsent. Existing pairs are updated (score,
        type and queued_at) only when `score` is strictly greater than the
        stored score; otherwise the entry is left untouched.

        The read-modify-write is optimistic: inserts lean on the unique
        (subscription_id, event_id) constraint and updates are conditional on
        the score that was read. Conflicts re-read and retry.

        Returns:
            ID of the queue entry for the pair

        Raises:
            StoreError: If the store fails or the pair stays contended
            ValidationError: If score is outside [0, 1] or match_type is unknown
        """
        now = now or utc_now()
        # Scores outside [0, 1] never reach the queue
        match = MatchResult(score=score, match_type=match_type)
        score = match.score
        match_type = match.match_type.value

        for _ in range(MAX_UPSERT_ATTEMPTS):
            existing = self._find_entry(subscription_id, event_id)

            if existing is None:
                try:
                    row = self.store.insert(
                        QUEUE_TABLE,
                        {
                            "subscription_id": subscription_id,
                            "event_id": event_id,
                            "match_score": score,
                            "match_type": match_type,
                            "queued_at": now,
                            "email_sent": False,
                            "email_sent_at": None,
                        },
                    )
                    return QueueEntryID(row["id"])
                except DuplicateKeyError:
                    # Another matching pass inserted the pair first
                    continue

            # Ties keep the incumbent entry
            if score <= existing.match_score:
                return existing.id

            updated = self.store.patch(
                QUEUE_TABLE,
                existing.id,
                {"match_score": score, "match_type": match_type, "queued_at": now},
                expected={"match_score": existing.match_score},
            )
            if updated is not None:
                return existing.id

        raise StoreError(
            f"Could not queue event {event_id} for subscription {subscription_id} "
            f"after {MAX_UPSERT_ATTEMPTS} attempts"
        )

    def list_for_subscription(
        self, subscription_id: SubscriptionID, include_sent: bool = False
    ) -> list[QueuedEvent]:
        """
        Get queued events for a subscription, best match first.

        Entries whose event no longer exists are dropped. Ties on score are
        ordered by entry id so results are reproducible.
        """
        filters: dict[str, object] = {"subscription_id": subscription_id}
        if not include_sent:
            filters["email_sent"] = False

        entries = [
            QueueEntry.model_validate(row)
            for row in self.store.find(QUEUE_TABLE, filters)
        ]
        if not entries:
            return []

        event_ids = list({entry.event_id for entry in entries})
        events = {
            row["id"]: Event.model_validate(row)
            for row in self.store.find(EVENTS_TABLE, {"id": event_ids})
        }

        queued = [
            QueuedEvent(entry=entry, event=events[entry.event_id])
            for entry in entries
            if entry.event_id in events
        ]
        queued.sort(key=lambda item: (-item.entry.match_score, item.entry.id))
        return queued

    def mark_sent(
        self,
        subscription_id: SubscriptionID,
        event_ids: Iterable[EventID],
        now: datetime | None = None,
    ) -> int:
        """
        Mark the subscription's entries for these events as sent.

        Missing and already-sent entries are ignored, so repeating the call
        is a no-op.

        Returns:
            Number of entries newly marked as sent
        """
        now = now or utc_now()
        event_ids = list(dict.fromkeys(event_ids))
        if not event_ids:
            return 0

        rows = self.store.find(
            QUEUE_TABLE,
            {
                "subscription_id": subscription_id,
                "event_id": event_ids,
                "email_sent": False,
            },
        )

        marked = 0
        for row in rows:
            updated = self.store.patch(
                QUEUE_TABLE,
                row["id"],
                {"email_sent": True, "email_sent_at": now},
                expected={"email_sent": False},
            )
            if updated is not None:
                marked += 1
        return marked

    def reset_sent(self, subscription_id: SubscriptionID) -> int:
        """Mark every sent entry of a subscription unsent again."""
        rows = self.store.find(
            QUEUE_TABLE, {"subscription_id": subscription_id, "email_sent": True}
        )

        reset = 0
        for row in rows:
            updated = self.store.patch(
                QUEUE_TABLE,
                row["id"],
                {"email_sent": False, "email_sent_at": None},
                expected={"email_sent": True},
            )
            if updated is not None:
                reset += 1
        return reset

    def delete_for_subscription(self, subscription_id: SubscriptionID) -> int:
        """Remove all queue entries of a subscription."""
        rows = self.store.find(QUEUE_TABLE, {"subscription_id": subscription_id})
        return sum(1 for row in rows if self.store.delete(QUEUE_TABLE, row["id"]))

    def get_queue_stats(self) -> QueueStats:
        """Total, unsent and sent entry counts across all subscriptions."""
        total = self.store.count(QUEUE_TABLE)
        sent = self.store.count(QUEUE_TABLE, {"email_sent": True})
        return QueueStats(total=total, unsent=total - sent, sent=sent)
