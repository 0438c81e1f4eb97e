"""
Digest dispatching for due subscriptions.

For each due subscription: send every unsent queued event in one email,
then mark those events sent and advance the schedule. A failed or timed out
send leaves the queue and the schedule untouched so the next cycle retries
the same events (at-least-once delivery).
"""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime

from config import settings
from models import DigestReport, QueuedEvent, Subscription, SubscriptionOutcome
from models.types import SubscriptionID
from notifications.email_sender import Mailer
from notifications.error_logger import log_notification_error
from notifications.match_queue import MatchQueueManager
from notifications.scheduler import ScheduleManager
from shared.store import StoreError


class DigestDispatcher:
    """Runs digest cycles over due subscriptions."""

    def __init__(
        self,
        queue: MatchQueueManager,
        schedule: ScheduleManager,
        mailer: Mailer,
        max_workers: int = settings.DIGEST_MAX_WORKERS,
        mailer_timeout: float = settings.MAILER_TIMEOUT_SECONDS,
    ):
        self.queue = queue
        self.schedule = schedule
        self.mailer = mailer
        self.max_workers = max(1, max_workers)
        self.mailer_timeout = mailer_timeout

    def run_digest_cycle(self, now: datetime) -> DigestReport:
        """
        Send digests for every subscription due at `now`.

        Subscriptions are processed in parallel (bounded by max_workers).
        A failure for one subscription is recorded in the report and never
        stops the others.
        """
        report = DigestReport()
        due = self.schedule.find_due_subscriptions(now)

        if not due:
            print("No subscriptions due for a digest.")
            return report

        print(f"Found {len(due)} due subscriptions")

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: dict[Future[SubscriptionOutcome], Subscription] = {
                pool.submit(self.process_subscription, subscription, now): subscription
                for subscription in due
            }
            try:
                for future in as_completed(futures):
                    report.record(future.result())
            except KeyboardInterrupt:
                # Finished subscriptions stay finished; the rest wait for the next cycle
                for future in futures:
                    future.cancel()
                raise

        return report

    def send_now(self, subscription_id: SubscriptionID, now: datetime) -> SubscriptionOutcome:
        """Process one subscription immediately, ignoring its schedule."""
        subscription = self.schedule.get_subscription(subscription_id)
        return self.process_subscription(subscription, now)

    def process_subscription(
        self, subscription: Subscription, now: datetime
    ) -> SubscriptionOutcome:
        """Send (or skip) one subscription's digest. Never raises."""
        try:
            items = self.queue.list_for_subscription(subscription.id)

            if not items:
                self.schedule.reschedule(subscription.id, now)
                print(f"  ⊘ No queued events for subscription {subscription.id}, rescheduled")
                return SubscriptionOutcome(subscription_id=subscription.id, status="empty")

            error = self._send(subscription, items)
            if error:
                print(f"  ✗ Failed to send digest for subscription {subscription.id}: {error}")
                self._log_failure("sending", subscription, error, len(items))
                return SubscriptionOutcome(
                    subscription_id=subscription.id, status="failed", error=error
                )

            # Marking sent first: a crash before rescheduling leaves nothing unsent,
            # so the retry is an empty digest that just advances the window.
            self.queue.mark_sent(
                subscription.id, [item.entry.event_id for item in items], now
            )
            self.schedule.reschedule(subscription.id, now)

            print(f"  ✓ Sent {len(items)} events to subscription {subscription.id}")
            return SubscriptionOutcome(
                subscription_id=subscription.id,
                status="sent",
                events_included=len(items),
            )

        except StoreError as e:
            error = f"Store error: {e}"
            self._log_failure("scheduling", subscription, error)
        except Exception as e:
            error = f"Unexpected error: {e}"
            self._log_failure("sending", subscription, error)

        print(f"  ✗ Subscription {subscription.id} failed this cycle: {error}")
        return SubscriptionOutcome(
            subscription_id=subscription.id, status="failed", error=error
        )

    def _send(self, subscription: Subscription, items: list[QueuedEvent]) -> str | None:
        """
        Call the mailer with a timeout. Returns an error message on failure.

        Each call gets its own worker thread, so the timeout covers only this
        call and a hung send never delays another subscription's send.
        """
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mailer")
        future = pool.submit(self.mailer.send, subscription, items)
        try:
            result = future.result(timeout=self.mailer_timeout)
        except FutureTimeoutError:
            future.cancel()
            return f"Mailer timed out after {self.mailer_timeout}s"
        except Exception as e:
            return f"Mailer error: {e}"
        finally:
            # A hung call is abandoned, not awaited
            pool.shutdown(wait=False, cancel_futures=True)

        if not result.get("success"):
            return str(result.get("error", "Unknown error"))
        return None

    def _log_failure(
        self,
        error_type: str,
        subscription: Subscription,
        error: str,
        event_count: int | None = None,
    ) -> None:
        context: dict[str, object] = {
            "subscription_id": subscription.id,
            "user_id": subscription.user_id,
        }
        if event_count is not None:
            context["event_count"] = event_count
        error_file = log_notification_error(
            error_type=error_type, error_message=error, context=context
        )
        print(f"    Error details logged to: {error_file}")
