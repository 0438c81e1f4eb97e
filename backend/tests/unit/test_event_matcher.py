"""
Unit tests for notifications/event_matcher.py

Tests matching an event against subscriptions: threshold gating, queueing,
first scheduling, past/missing events and error isolation.
"""

import unittest
from datetime import timedelta
from unittest.mock import Mock, patch

from models import MatchResult, MatchType
from notifications.event_matcher import SubscriptionMatcher
from notifications.match_queue import MatchQueueManager
from notifications.scheduler import ScheduleManager
from notifications.scorer import PromptScorer, ScorerError
from tests.fixtures.event_factory import NOW, create_test_event
from tests.fixtures.memory_store import MemoryStore
from tests.fixtures.user_factory import create_test_subscription


def _fixed_scorer(scores):
    """Scorer returning {prompt: score} as semantic matches."""
    scorer = Mock()

    def score(prompt, event, prompt_embedding=None):
        value = scores[prompt]
        if isinstance(value, Exception):
            raise value
        return MatchResult(score=value, match_type=MatchType.SEMANTIC)

    scorer.score.side_effect = score
    return scorer


@patch("notifications.event_matcher.log_notification_error", return_value="/tmp/error.txt")
class TestProcessEvent(unittest.TestCase):
    """Tests for SubscriptionMatcher.process_event()"""

    def setUp(self):
        self.store = MemoryStore()
        self.queue = MatchQueueManager(self.store)
        self.schedule = ScheduleManager(self.store)
        self.store.seed("events", create_test_event(event_id="evt_1"))

    def _matcher(self, scorer):
        return SubscriptionMatcher(
            self.store, scorer, self.queue, self.schedule, threshold=0.2
        )

    def test_queues_matches_above_threshold(self, mock_log):
        """Only scores at or above the threshold are queued"""
        self.store.seed(
            "subscriptions",
            create_test_subscription(subscription_id="sub_high", prompt="high"),
            create_test_subscription(subscription_id="sub_edge", prompt="edge"),
            create_test_subscription(subscription_id="sub_low", prompt="low"),
            create_test_subscription(subscription_id="sub_zero", prompt="zero"),
        )
        scorer = _fixed_scorer({"high": 0.9, "edge": 0.2, "low": 0.1, "zero": 0.0})

        summary = self._matcher(scorer).process_event("evt_1", NOW)

        self.assertEqual(summary.checked, 4)
        self.assertEqual(summary.matched, 2)
        self.assertEqual(summary.queued, 2)
        queued = {row["subscription_id"]: row for row in self.store.rows("email_queue")}
        self.assertEqual(set(queued), {"sub_high", "sub_edge"})
        self.assertEqual(queued["sub_high"]["match_score"], 0.9)
        self.assertEqual(queued["sub_high"]["match_type"], "semantic")

    def test_inactive_subscriptions_ignored(self, mock_log):
        self.store.seed(
            "subscriptions",
            create_test_subscription(subscription_id="sub_off", prompt="high", is_active=False),
        )
        scorer = _fixed_scorer({"high": 0.9})

        summary = self._matcher(scorer).process_event("evt_1", NOW)

        self.assertEqual(summary.checked, 0)
        scorer.score.assert_not_called()

    def test_first_match_schedules_subscription(self, mock_log):
        """A never-scheduled subscription becomes due when it gets a match"""
        self.store.seed(
            "subscriptions",
            create_test_subscription(
                subscription_id="sub_1", prompt="high", next_email_scheduled=None
            ),
        )

        self._matcher(_fixed_scorer({"high": 0.9})).process_event("evt_1", NOW)

        self.assertEqual(
            self.store.get("subscriptions", "sub_1")["next_email_scheduled"], NOW
        )

    def test_existing_schedule_kept(self, mock_log):
        later = NOW + timedelta(hours=10)
        self.store.seed(
            "subscriptions",
            create_test_subscription(
                subscription_id="sub_1", prompt="high", next_email_scheduled=later
            ),
        )

        self._matcher(_fixed_scorer({"high": 0.9})).process_event("evt_1", NOW)

        self.assertEqual(
            self.store.get("subscriptions", "sub_1")["next_email_scheduled"], later
        )

    def test_rescoring_keeps_best(self, mock_log):
        """Processing the same event again with a weaker score keeps the best"""
        self.store.seed(
            "subscriptions", create_test_subscription(subscription_id="sub_1", prompt="p")
        )

        self._matcher(_fixed_scorer({"p": 0.8})).process_event("evt_1", NOW)
        self._matcher(_fixed_scorer({"p": 0.4})).process_event(
            "evt_1", NOW + timedelta(hours=1)
        )

        rows = self.store.rows("email_queue")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["match_score"], 0.8)
        self.assertEqual(rows[0]["queued_at"], NOW)

    def test_past_event_skipped(self, mock_log):
        self.store.seed("events", create_test_event(event_id="evt_past", event_date=NOW))
        self.store.seed(
            "subscriptions", create_test_subscription(subscription_id="sub_1", prompt="p")
        )
        scorer = _fixed_scorer({"p": 0.9})

        summary = self._matcher(scorer).process_event("evt_past", NOW)

        self.assertEqual(summary.checked, 0)
        self.assertEqual(self.store.rows("email_queue"), [])

    def test_missing_event(self, mock_log):
        summary = self._matcher(_fixed_scorer({})).process_event("missing", NOW)

        self.assertEqual(summary.checked, 0)

    def test_scorer_error_skips_pair(self, mock_log):
        """A scorer failure skips that subscription only"""
        self.store.seed(
            "subscriptions",
            create_test_subscription(subscription_id="sub_bad", prompt="bad"),
            create_test_subscription(subscription_id="sub_ok", prompt="ok"),
        )
        scorer = _fixed_scorer({"bad": ScorerError("dimension mismatch"), "ok": 0.5})

        summary = self._matcher(scorer).process_event("evt_1", NOW)

        self.assertEqual(summary.skipped, 1)
        self.assertEqual(summary.queued, 1)
        self.assertEqual(mock_log.call_args[1]["error_type"], "matching")
        self.assertEqual(
            [row["subscription_id"] for row in self.store.rows("email_queue")], ["sub_ok"]
        )

    def test_store_error_counted_and_logged(self, mock_log):
        """Queue write failures are logged and counted, not raised"""
        self.store.seed(
            "subscriptions", create_test_subscription(subscription_id="sub_1", prompt="p")
        )
        self.store.fail_on.add("insert")

        summary = self._matcher(_fixed_scorer({"p": 0.9})).process_event("evt_1", NOW)

        self.assertEqual(summary.errors, 1)
        self.assertEqual(summary.queued, 0)
        mock_log.assert_called_once()
        self.assertEqual(mock_log.call_args[1]["error_type"], "queuing")

    def test_dry_run_counts_without_writing(self, mock_log):
        """Dry run scores and counts matches but queues and schedules nothing"""
        self.store.seed(
            "subscriptions",
            create_test_subscription(
                subscription_id="sub_1", prompt="high", next_email_scheduled=None
            ),
        )

        summary = self._matcher(_fixed_scorer({"high": 0.9})).process_event(
            "evt_1", NOW, dry_run=True
        )

        self.assertEqual(summary.matched, 1)
        self.assertEqual(summary.queued, 0)
        self.assertEqual(self.store.rows("email_queue"), [])
        self.assertIsNone(
            self.store.get("subscriptions", "sub_1")["next_email_scheduled"]
        )

    def test_with_prompt_scorer(self, mock_log):
        """Keyword fallback queues lexical matches end to end"""
        self.store.seed(
            "events",
            create_test_event(
                event_id="evt_jazz", title="Jazz Night", description="Outdoor concerts"
            ),
        )
        self.store.seed(
            "subscriptions",
            create_test_subscription(subscription_id="sub_1", prompt="jazz concerts"),
            create_test_subscription(subscription_id="sub_2", prompt="pottery classes"),
        )

        summary = self._matcher(PromptScorer()).process_event("evt_jazz", NOW)

        self.assertEqual(summary.queued, 1)
        row = self.store.rows("email_queue")[0]
        self.assertEqual(row["subscription_id"], "sub_1")
        self.assertEqual(row["match_type"], "lexical")


if __name__ == "__main__":
    unittest.main()
