"""
Email sending via Resend API for subscription digests.

The dispatcher only sees the Mailer protocol: `send(subscription, items)`
returning a dict with 'success' (bool), 'email_id' (str if success) and
'error' (str if failed). ResendMailer is the production implementation and
sends a plain-text digest.
"""

from datetime import datetime
from typing import Any, Protocol

import resend

from config import settings
from models import QueuedEvent, Subscription, UserProfile
from shared.store import Store

USER_PROFILES_TABLE = "user_profiles"


class MailerError(Exception):
    """Digest could not be delivered to the mail provider."""


class Mailer(Protocol):
    def send(
        self, subscription: Subscription, items: list[QueuedEvent]
    ) -> dict[str, Any]: ...


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def get_score_label(score: float) -> str:
    if score >= 0.8:
        return "Excellent match"
    if score >= 0.6:
        return "Good match"
    if score >= 0.4:
        return "Fair match"
    return "Poor match"


def _format_event_date(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y at %I:%M %p")


def build_digest_subject(subscription: Subscription, event_count: int) -> str:
    plural = "s" if event_count != 1 else ""
    return f'{event_count} new event{plural} matching "{subscription.prompt}"'


def build_digest_text(
    subscription: Subscription,
    items: list[QueuedEvent],
    manage_url: str,
    max_events: int = settings.MAX_EVENTS_PER_EMAIL,
    max_description: int = settings.MAX_DESCRIPTION_LENGTH,
) -> str:
    """
    Build the plain text body for a digest.

    Args:
        subscription: Subscription the digest belongs to
        items: Queued events, already ordered best match first
        manage_url: Link to the subscription management page
        max_events: Events listed before collapsing into "N more"
        max_description: Description length before truncation

    Returns:
        Plain text string
    """
    shown = items[:max_events]
    hidden = len(items) - len(shown)

    text = f"""NEW EVENTS FOR YOU
Your subscription: "{subscription.prompt}"

We found {len(items)} new event{'s' if len(items) != 1 else ''} matching your subscription:

"""

    for i, item in enumerate(shown, 1):
        event = item.event
        score = item.entry.match_score
        text += f"""{i}. {event.title}
When: {_format_event_date(event.event_date)}
{get_score_label(score)} ({round(score * 100)}%)
"""
        if event.description:
            text += f"\n{truncate_text(event.description, max_description)}\n"

        text += f"\nView event: {event.url}\n\n"
        text += "-" * 60 + "\n\n"

    if hidden > 0:
        text += f"And {hidden} more event{'s' if hidden != 1 else ''}...\n\n"

    text += f"""
You're receiving this email because you're subscribed to event notifications.
Manage your subscriptions: {manage_url}
"""

    return text


class ResendMailer:
    """Sends digests through Resend, looking recipients up in user_profiles."""

    def __init__(
        self,
        store: Store,
        api_key: str | None,
        from_email: str = settings.NOTIFICATION_FROM_EMAIL,
        frontend_base_url: str = settings.FRONTEND_BASE_URL,
    ):
        if not api_key:
            raise ValueError("RESEND_API_KEY must be set")

        resend.api_key = api_key
        self.store = store
        self.from_email = from_email
        self.manage_url = f"{frontend_base_url}/subscriptions"

    def _get_recipient(self, subscription: Subscription) -> UserProfile:
        row = self.store.get(USER_PROFILES_TABLE, subscription.user_id)
        if not row or not row.get("email"):
            raise MailerError(
                f"User with id '{subscription.user_id}' not found or has no email address"
            )
        return UserProfile.model_validate(row)

    def send(
        self, subscription: Subscription, items: list[QueuedEvent]
    ) -> dict[str, Any]:
        """
        Send one digest email.

        Returns:
            Dictionary with 'success' (bool), 'email_id' (str if success), 'error' (str if failed)
        """
        if not items:
            return {"success": False, "error": "No events to send"}

        try:
            recipient = self._get_recipient(subscription)
            response = resend.Emails.send(
                {
                    "from": f"Event Notifications <{self.from_email}>",
                    "to": recipient.email,
                    "subject": build_digest_subject(subscription, len(items)),
                    "text": build_digest_text(subscription, items, self.manage_url),
                }
            )

            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            return {"success": False, "error": str(e)}
