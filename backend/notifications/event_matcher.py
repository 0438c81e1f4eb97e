"""
Subscription matching for scraped events.

Scores an event against every active subscription and queues the matches
that clear the similarity threshold.
"""

from datetime import datetime

from config import settings
from models import Event, MatchSummary, Subscription
from models.types import EventID
from notifications.error_logger import log_notification_error
from notifications.match_queue import EVENTS_TABLE, MatchQueueManager
from notifications.scheduler import SUBSCRIPTIONS_TABLE, ScheduleManager
from notifications.scorer import Scorer, ScorerError
from shared.store import Store, StoreError


class SubscriptionMatcher:
    """Matches events to subscriptions and feeds the email queue."""

    def __init__(
        self,
        store: Store,
        scorer: Scorer,
        queue: MatchQueueManager,
        schedule: ScheduleManager,
        threshold: float = settings.SIMILARITY_THRESHOLD,
    ):
        self.store = store
        self.scorer = scorer
        self.queue = queue
        self.schedule = schedule
        self.threshold = threshold

    def get_active_subscriptions(self) -> list[Subscription]:
        rows = self.store.find(SUBSCRIPTIONS_TABLE, {"is_active": True})
        return [Subscription.model_validate(row) for row in rows]

    def process_event(
        self, event_id: EventID, now: datetime, dry_run: bool = False
    ) -> MatchSummary:
        """
        Match one event against all active subscriptions.

        Past or missing events are ignored. Scorer failures skip the pair for
        this pass; store failures are counted and the remaining
        subscriptions are still processed.

        Args:
            event_id: Event to match
            now: Current time (events at or before it are in the past)
            dry_run: Score and count matches without queuing or scheduling

        Returns:
            MatchSummary with checked/matched/queued/skipped/errors counts
        """
        summary = MatchSummary()

        row = self.store.get(EVENTS_TABLE, event_id)
        if row is None:
            print(f"Event {event_id} not found")
            return summary

        event = Event.model_validate(row)
        if event.event_date <= now:
            print(f"Event {event_id} is in the past, skipping")
            return summary

        subscriptions = self.get_active_subscriptions()
        if not subscriptions:
            print("No active subscriptions found")
            return summary

        print(f"Checking event {event_id} against {len(subscriptions)} subscriptions")

        for subscription in subscriptions:
            summary.checked += 1
            self._match_pair(event, subscription, now, summary, dry_run)

        return summary

    def _match_pair(
        self,
        event: Event,
        subscription: Subscription,
        now: datetime,
        summary: MatchSummary,
        dry_run: bool = False,
    ) -> None:
        try:
            result = self.scorer.score(
                subscription.prompt, event, prompt_embedding=subscription.prompt_embedding
            )
        except ScorerError as e:
            summary.skipped += 1
            error_file = log_notification_error(
                error_type="matching",
                error_message=str(e),
                context={"event_id": event.id, "subscription_id": subscription.id},
            )
            print(
                f"  ⚠️  Could not score subscription {subscription.id}: {e}. "
                f"Details logged to: {error_file}"
            )
            return

        if result.score <= 0 or result.score < self.threshold:
            return

        summary.matched += 1
        if dry_run:
            print(
                f"  [DRY RUN] Would queue for subscription {subscription.id} "
                f"(score {result.score:.2f}, {result.match_type.value})"
            )
            return

        try:
            self.queue.enqueue_or_update(
                subscription.id, event.id, result.score, result.match_type, now
            )
            self.schedule.ensure_scheduled(subscription.id, now)
            summary.queued += 1
            print(
                f"  ✓ Queued for subscription {subscription.id} "
                f"(score {result.score:.2f}, {result.match_type.value})"
            )
        except StoreError as e:
            summary.errors += 1
            error_file = log_notification_error(
                error_type="queuing",
                error_message=str(e),
                context={
                    "event_id": event.id,
                    "subscription_id": subscription.id,
                    "match_score": result.score,
                },
            )
            print(f"  ✗ Could not queue match. Details logged to: {error_file}")
