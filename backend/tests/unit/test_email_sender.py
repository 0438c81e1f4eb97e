"""
Unit tests for notifications/email_sender.py

Tests digest subject/text generation, truncation, score labels,
and Resend API integration.
"""

import unittest
from unittest.mock import patch

from models import QueuedEvent, QueueEntry, Subscription, Event
from notifications.email_sender import (
    ResendMailer,
    build_digest_subject,
    build_digest_text,
    get_score_label,
    truncate_text,
)
from tests.fixtures.event_factory import create_test_event, create_test_queue_entry
from tests.fixtures.memory_store import MemoryStore
from tests.fixtures.user_factory import create_test_subscription, create_test_user


def _subscription(**kwargs) -> Subscription:
    kwargs.setdefault("subscription_id", "sub_1")
    kwargs.setdefault("user_id", "user_1")
    return Subscription.model_validate(create_test_subscription(**kwargs))


def _items(count: int, description: str = "Live music") -> list[QueuedEvent]:
    items = []
    for i in range(count):
        event = create_test_event(
            event_id=f"evt_{i}", title=f"Event {i}", description=description
        )
        entry = create_test_queue_entry(
            entry_id=f"entry_{i}",
            subscription_id="sub_1",
            event_id=f"evt_{i}",
            match_score=0.9 - i * 0.01,
        )
        items.append(
            QueuedEvent(
                entry=QueueEntry.model_validate(entry), event=Event.model_validate(event)
            )
        )
    return items


class TestHelpers(unittest.TestCase):
    """Tests for text helpers."""

    def test_truncate_short_text_unchanged(self):
        self.assertEqual(truncate_text("short", 200), "short")

    def test_truncate_long_text(self):
        result = truncate_text("x" * 250, 200)

        self.assertEqual(len(result), 203)
        self.assertTrue(result.endswith("..."))

    def test_score_labels(self):
        """Score thresholds map to labels."""
        self.assertEqual(get_score_label(0.85), "Excellent match")
        self.assertEqual(get_score_label(0.8), "Excellent match")
        self.assertEqual(get_score_label(0.65), "Good match")
        self.assertEqual(get_score_label(0.4), "Fair match")
        self.assertEqual(get_score_label(0.2), "Poor match")

    def test_subject_plural(self):
        subscription = _subscription(prompt="jazz concerts")

        self.assertEqual(
            build_digest_subject(subscription, 3), '3 new events matching "jazz concerts"'
        )
        self.assertEqual(
            build_digest_subject(subscription, 1), '1 new event matching "jazz concerts"'
        )


class TestBuildDigestText(unittest.TestCase):
    """Tests for build_digest_text()"""

    def test_includes_events_in_order(self):
        subscription = _subscription(prompt="jazz concerts")
        items = _items(3)

        text = build_digest_text(subscription, items, "https://example.com/subscriptions")

        self.assertIn('Your subscription: "jazz concerts"', text)
        self.assertIn("We found 3 new events", text)
        self.assertLess(text.index("1. Event 0"), text.index("2. Event 1"))
        self.assertLess(text.index("2. Event 1"), text.index("3. Event 2"))
        self.assertIn("Excellent match (90%)", text)
        self.assertIn("View event: https://example.com/events/evt_0", text)
        self.assertIn("Manage your subscriptions: https://example.com/subscriptions", text)

    def test_caps_events_and_reports_rest(self):
        """Only max_events are listed; the rest are summarized"""
        text = build_digest_text(_subscription(), _items(13), "https://x", max_events=10)

        self.assertIn("10. Event 9", text)
        self.assertNotIn("11. Event 10", text)
        self.assertIn("And 3 more events...", text)
        self.assertIn("We found 13 new events", text)

    def test_truncates_long_descriptions(self):
        text = build_digest_text(
            _subscription(), _items(1, description="y" * 300), "https://x", max_description=200
        )

        self.assertIn("y" * 200 + "...", text)
        self.assertNotIn("y" * 201, text)


class TestResendMailer(unittest.TestCase):
    """Tests for ResendMailer.send()"""

    def setUp(self):
        self.store = MemoryStore()
        self.store.seed("user_profiles", create_test_user(user_id="user_1", email="ann@example.com"))

    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            ResendMailer(self.store, api_key=None)

    @patch("notifications.email_sender.resend.Emails.send")
    def test_send_success(self, mock_send):
        """Sends to the subscriber's address and returns email id"""
        mock_send.return_value = {"id": "email_123"}
        mailer = ResendMailer(
            self.store, api_key="re_test", from_email="events@example.com",
            frontend_base_url="https://example.com",
        )

        result = mailer.send(_subscription(prompt="jazz"), _items(2))

        self.assertTrue(result["success"])
        self.assertEqual(result["email_id"], "email_123")
        params = mock_send.call_args[0][0]
        self.assertEqual(params["to"], "ann@example.com")
        self.assertEqual(params["subject"], '2 new events matching "jazz"')
        self.assertIn("events@example.com", params["from"])
        self.assertIn("https://example.com/subscriptions", params["text"])

    @patch("notifications.email_sender.resend.Emails.send")
    def test_send_api_error(self, mock_send):
        """Resend exceptions become a failed result"""
        mock_send.side_effect = Exception("Resend API error")
        mailer = ResendMailer(self.store, api_key="re_test")

        result = mailer.send(_subscription(), _items(1))

        self.assertFalse(result["success"])
        self.assertIn("Resend API error", result["error"])

    @patch("notifications.email_sender.resend.Emails.send")
    def test_missing_recipient(self, mock_send):
        """Unknown user fails without calling Resend"""
        mailer = ResendMailer(self.store, api_key="re_test")

        result = mailer.send(_subscription(user_id="ghost"), _items(1))

        self.assertFalse(result["success"])
        self.assertIn("ghost", result["error"])
        mock_send.assert_not_called()

    @patch("notifications.email_sender.resend.Emails.send")
    def test_no_items(self, mock_send):
        mailer = ResendMailer(self.store, api_key="re_test")

        result = mailer.send(_subscription(), [])

        self.assertFalse(result["success"])
        mock_send.assert_not_called()


if __name__ == "__main__":
    unittest.main()
