"""
Queue retention policy.

Queue entries older than the retention horizon are deleted whether or not
they were sent. Subscriptions and events are never touched.
"""

from datetime import datetime, timedelta

from config import settings
from shared.store import Store

QUEUE_TABLE = "email_queue"

DEFAULT_RETENTION = timedelta(days=settings.QUEUE_RETENTION_DAYS)


class RetentionSweeper:
    """Deletes stale email queue entries."""

    def __init__(self, store: Store):
        self.store = store

    def _find_stale(self, now: datetime, horizon: timedelta) -> list[dict]:
        return self.store.find(QUEUE_TABLE, lt=("queued_at", now - horizon))

    def count_stale(self, now: datetime, horizon: timedelta = DEFAULT_RETENTION) -> int:
        """Number of entries a sweep at `now` would delete. Read-only."""
        return len(self._find_stale(now, horizon))

    def sweep(self, now: datetime, horizon: timedelta = DEFAULT_RETENTION) -> int:
        """
        Delete every queue entry queued before `now - horizon`.

        Rows removed concurrently by another sweep are not counted.

        Returns:
            Number of entries deleted
        """
        deleted = 0
        for row in self._find_stale(now, horizon):
            if self.store.delete(QUEUE_TABLE, row["id"]):
                deleted += 1
        return deleted
