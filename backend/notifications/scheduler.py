"""
Per-subscription digest scheduling.

A subscription is due when it is active and its next_email_scheduled time
has arrived. Subscriptions that were never scheduled (null) are never
picked up automatically; `ensure_scheduled` is the explicit first step.
"""

from datetime import datetime, timedelta

from models import Subscription
from models.types import SubscriptionID
from shared.store import Store

SUBSCRIPTIONS_TABLE = "subscriptions"


class SubscriptionNotFoundError(Exception):
    """Subscription does not exist (or is not owned by the caller)."""


class ScheduleManager:
    """Due selection and rescheduling for subscription digests."""

    def __init__(self, store: Store):
        self.store = store

    def get_subscription(self, subscription_id: SubscriptionID) -> Subscription:
        row = self.store.get(SUBSCRIPTIONS_TABLE, subscription_id)
        if row is None:
            raise SubscriptionNotFoundError(
                f"Subscription with id '{subscription_id}' not found"
            )
        return Subscription.model_validate(row)

    def find_due_subscriptions(self, now: datetime) -> list[Subscription]:
        """Active subscriptions whose next send time is at or before `now`."""
        rows = self.store.find(
            SUBSCRIPTIONS_TABLE,
            {"is_active": True},
            lte=("next_email_scheduled", now),
        )
        subscriptions = [Subscription.model_validate(row) for row in rows]
        return [sub for sub in subscriptions if sub.is_due(now)]

    def reschedule(self, subscription_id: SubscriptionID, now: datetime) -> datetime:
        """
        Advance the subscription's window after a digest.

        Sets last_email_sent to `now` and next_email_scheduled to
        `now + email_frequency_hours`. Repeating with a later `now` only moves
        the window forward.
        """
        subscription = self.get_subscription(subscription_id)
        next_scheduled = now + timedelta(hours=subscription.email_frequency_hours)

        updated = self.store.patch(
            SUBSCRIPTIONS_TABLE,
            subscription_id,
            {"last_email_sent": now, "next_email_scheduled": next_scheduled},
        )
        if updated is None:
            raise SubscriptionNotFoundError(
                f"Subscription with id '{subscription_id}' not found"
            )
        return next_scheduled

    def ensure_scheduled(
        self, subscription_id: SubscriptionID, now: datetime
    ) -> datetime | None:
        """
        Give a never-scheduled active subscription its first send time.

        Only fills a null schedule; an existing schedule is left as is.

        Returns:
            The subscription's schedule afterwards (None if inactive and unscheduled)
        """
        subscription = self.get_subscription(subscription_id)
        if subscription.next_email_scheduled is not None:
            return subscription.next_email_scheduled
        if not subscription.is_active:
            return None

        updated = self.store.patch(
            SUBSCRIPTIONS_TABLE,
            subscription_id,
            {"next_email_scheduled": now},
            expected={"next_email_scheduled": None},
        )
        if updated is None:
            # Someone else scheduled it in the meantime
            return self.get_subscription(subscription_id).next_email_scheduled
        return now

    def force_due(self, subscription_id: SubscriptionID, now: datetime) -> datetime:
        """Make a subscription due immediately (admin resend)."""
        updated = self.store.patch(
            SUBSCRIPTIONS_TABLE, subscription_id, {"next_email_scheduled": now}
        )
        if updated is None:
            raise SubscriptionNotFoundError(
                f"Subscription with id '{subscription_id}' not found"
            )
        return now
