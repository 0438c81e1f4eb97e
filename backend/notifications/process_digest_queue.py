"""
CLI script for running the digest pipeline from cron.

Usage:
    # Send digests for every due subscription
    uv run python -m notifications.process_digest_queue --digest-cycle

    # Delete queue entries older than the retention horizon (default 30 days)
    uv run python -m notifications.process_digest_queue --sweep --retention-days 30

    # Match a freshly scraped event against all subscriptions
    uv run python -m notifications.process_digest_queue --match-event <event-id>

    # Send one subscription's digest right away
    uv run python -m notifications.process_digest_queue --send-now <subscription-id>

    # Show queue counts
    uv run python -m notifications.process_digest_queue --stats

    # Dry run (any action: report what would happen, no sends or writes)
    uv run python -m notifications.process_digest_queue --digest-cycle --dry-run
    uv run python -m notifications.process_digest_queue --sweep --dry-run
"""

import argparse
import os
from datetime import datetime, timedelta

from config import settings
from notifications.digest_dispatcher import DigestDispatcher
from notifications.email_sender import ResendMailer
from notifications.error_logger import log_notification_error
from notifications.event_matcher import SubscriptionMatcher
from notifications.match_queue import MatchQueueManager
from notifications.retention import RetentionSweeper
from notifications.scheduler import ScheduleManager
from notifications.scorer import PromptScorer
from shared.db import get_store
from shared.store import Store, StoreError
from shared.utils import parse_timestamp, print_summary, utc_now


def run_digest_cycle(
    store: Store, now: datetime, max_workers: int, dry_run: bool = False
) -> dict[str, int]:
    """Send (or preview) digests for all due subscriptions."""
    queue = MatchQueueManager(store)
    schedule = ScheduleManager(store)

    if dry_run:
        return preview_digest_cycle(queue, schedule, now)

    mailer = ResendMailer(store, api_key=os.getenv("RESEND_API_KEY"))
    dispatcher = DigestDispatcher(queue, schedule, mailer, max_workers=max_workers)
    report = dispatcher.run_digest_cycle(now)

    for failure in report.failures:
        print(f"  ✗ {failure.subscription_id}: {failure.reason}")

    stats = {
        "Processed": report.subscriptions_processed,
        "Sent": report.digests_sent,
        "Empty": report.empty_digests,
        "Events included": report.events_included,
        "Failed": len(report.failures),
    }
    print_summary("Digest Cycle Complete", stats)
    return stats


def preview_digest_cycle(
    queue: MatchQueueManager, schedule: ScheduleManager, now: datetime
) -> dict[str, int]:
    """Print what a digest cycle would send without touching the store."""
    due = schedule.find_due_subscriptions(now)
    events = 0

    for subscription in due:
        items = queue.list_for_subscription(subscription.id)
        events += len(items)
        print(f"\n[DRY RUN] Subscription {subscription.id}: \"{subscription.prompt}\"")
        if not items:
            print("  (empty, would only reschedule)")
        for item in items:
            print(f"  {item.entry.match_score:.2f}  {item.event.title}")

    stats = {"Due": len(due), "Events": events}
    print_summary("Dry Run Complete", stats)
    return stats


def run_sweep(
    store: Store, now: datetime, retention_days: int, dry_run: bool = False
) -> int:
    sweeper = RetentionSweeper(store)
    horizon = timedelta(days=retention_days)

    if dry_run:
        stale = sweeper.count_stale(now, horizon)
        print(f"[DRY RUN] Would clean up {stale} old email queue items")
        return stale

    deleted = sweeper.sweep(now, horizon)
    print(f"🧹 Cleaned up {deleted} old email queue items")
    return deleted


def run_match_event(
    store: Store, event_id: str, now: datetime, dry_run: bool = False
) -> dict[str, int]:
    queue = MatchQueueManager(store)
    matcher = SubscriptionMatcher(store, PromptScorer(), queue, ScheduleManager(store))
    summary = matcher.process_event(event_id, now, dry_run=dry_run)

    stats = summary.model_dump()
    title = "Dry Run Complete" if dry_run else "Matching Complete"
    print_summary(f"{title} for event {event_id}", stats)
    return stats


def run_send_now(
    store: Store, subscription_id: str, now: datetime, dry_run: bool = False
) -> str:
    queue = MatchQueueManager(store)
    schedule = ScheduleManager(store)

    if dry_run:
        subscription = schedule.get_subscription(subscription_id)
        items = queue.list_for_subscription(subscription.id)
        print(f"[DRY RUN] Subscription {subscription.id}: would send {len(items)} events")
        for item in items:
            print(f"  {item.entry.match_score:.2f}  {item.event.title}")
        return "sent" if items else "empty"

    mailer = ResendMailer(store, api_key=os.getenv("RESEND_API_KEY"))

    outcome = DigestDispatcher(queue, schedule, mailer).send_now(subscription_id, now)
    print(f"Subscription {subscription_id}: {outcome.status}")
    if outcome.error:
        print(f"  Error: {outcome.error}")
    return outcome.status


def print_stats(store: Store) -> None:
    stats = MatchQueueManager(store).get_queue_stats()
    print_summary(
        "Email Queue",
        {"Total": stats.total, "Unsent": stats.unsent, "Sent": stats.sent},
    )


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run the event digest pipeline")

    parser.add_argument(
        "--digest-cycle", action="store_true", help="Send digests for due subscriptions"
    )
    parser.add_argument(
        "--sweep", action="store_true", help="Delete queue entries past retention"
    )
    parser.add_argument("--stats", action="store_true", help="Print queue counts")
    parser.add_argument(
        "--match-event", type=str, metavar="EVENT_ID", help="Match an event to subscriptions"
    )
    parser.add_argument(
        "--send-now",
        type=str,
        metavar="SUBSCRIPTION_ID",
        help="Send one subscription's digest immediately",
    )
    parser.add_argument(
        "--now",
        type=str,
        help="Override the current time (ISO 8601, naive values are UTC)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.QUEUE_RETENTION_DAYS,
        help=f"Retention horizon in days (default: {settings.QUEUE_RETENTION_DAYS})",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=settings.DIGEST_MAX_WORKERS,
        help="Subscriptions processed in parallel",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode for every action (report what would happen, don't send or write)",
    )

    args = parser.parse_args()

    if not (
        args.digest_cycle or args.sweep or args.stats or args.match_event or args.send_now
    ):
        parser.error(
            "Must specify --digest-cycle, --sweep, --stats, --match-event or --send-now"
        )

    now = utc_now()
    if args.now:
        now = parse_timestamp(args.now)
        if now is None:
            parser.error(f"Could not parse --now value: {args.now}")

    store = get_store()

    if args.match_event:
        run_match_event(store, args.match_event, now, dry_run=args.dry_run)

    if args.send_now:
        run_send_now(store, args.send_now, now, dry_run=args.dry_run)

    if args.digest_cycle:
        run_digest_cycle(store, now, args.max_workers, dry_run=args.dry_run)

    if args.sweep:
        try:
            run_sweep(store, now, args.retention_days, dry_run=args.dry_run)
        except StoreError as e:
            error_file = log_notification_error(
                error_type="cleanup",
                error_message=str(e),
                context={"retention_days": args.retention_days, "now": now},
            )
            print(f"💥 Error in email queue cleanup. Details logged to: {error_file}")
            raise

    if args.stats:
        print_stats(store)


if __name__ == "__main__":
    main()
