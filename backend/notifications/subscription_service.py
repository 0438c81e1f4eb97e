"""
Subscription lifecycle: create, edit and delete with queue cleanup.
"""

from datetime import datetime

from config import settings
from models import Subscription
from models.types import SubscriptionID, UserID
from notifications.match_queue import MatchQueueManager
from notifications.scheduler import SUBSCRIPTIONS_TABLE, SubscriptionNotFoundError
from shared.store import Store
from shared.utils import utc_now


class SubscriptionValidationError(ValueError):
    """Subscription fields failed validation."""


def validate_subscription_data(
    prompt: str | None = None, email_frequency_hours: int | None = None
) -> None:
    if prompt is not None and not prompt.strip():
        raise SubscriptionValidationError("Subscription prompt cannot be empty")

    if email_frequency_hours is not None and email_frequency_hours < 1:
        raise SubscriptionValidationError("Email frequency must be at least 1 hour")


def _get_owned(
    store: Store, subscription_id: SubscriptionID, user_id: UserID
) -> Subscription:
    row = store.get(SUBSCRIPTIONS_TABLE, subscription_id)
    if row is None or row.get("user_id") != user_id:
        raise SubscriptionNotFoundError(
            f"Subscription of id '{subscription_id}' for userId '{user_id}' "
            "not found or access denied"
        )
    return Subscription.model_validate(row)


def create_subscription(
    store: Store,
    user_id: UserID,
    prompt: str,
    email_frequency_hours: int = settings.DEFAULT_EMAIL_FREQUENCY_HOURS,
    is_active: bool = True,
    now: datetime | None = None,
) -> Subscription:
    """Create a subscription that may send as soon as something is queued."""
    validate_subscription_data(prompt, email_frequency_hours)

    row = store.insert(
        SUBSCRIPTIONS_TABLE,
        {
            "user_id": user_id,
            "prompt": prompt.strip(),
            "is_active": is_active,
            "email_frequency_hours": email_frequency_hours,
            "last_email_sent": None,
            "next_email_scheduled": now or utc_now(),
        },
    )
    return Subscription.model_validate(row)


def update_subscription(
    store: Store,
    subscription_id: SubscriptionID,
    user_id: UserID,
    prompt: str | None = None,
    is_active: bool | None = None,
    email_frequency_hours: int | None = None,
) -> Subscription:
    """Apply user edits. Only the given fields change."""
    validate_subscription_data(prompt, email_frequency_hours)
    subscription = _get_owned(store, subscription_id, user_id)

    updates: dict[str, object] = {}
    if prompt is not None:
        updates["prompt"] = prompt.strip()
        # Stale embedding; regenerated by the embedding job
        updates["prompt_embedding"] = None
    if is_active is not None:
        updates["is_active"] = is_active
    if email_frequency_hours is not None:
        updates["email_frequency_hours"] = email_frequency_hours

    if not updates:
        return subscription

    row = store.patch(SUBSCRIPTIONS_TABLE, subscription_id, updates)
    if row is None:
        raise SubscriptionNotFoundError(
            f"Subscription with id '{subscription_id}' not found"
        )
    return Subscription.model_validate(row)


def delete_subscription(
    store: Store, subscription_id: SubscriptionID, user_id: UserID
) -> int:
    """
    Delete a subscription and its queue entries.

    Returns:
        Number of queue entries removed
    """
    _get_owned(store, subscription_id, user_id)

    removed = MatchQueueManager(store).delete_for_subscription(subscription_id)
    store.delete(SUBSCRIPTIONS_TABLE, subscription_id)
    return removed
