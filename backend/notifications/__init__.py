"""
Notification system for event subscriptions.

This module handles:
- Matching scraped events against subscription prompts
- Queuing matches (one entry per subscription/event, best score kept)
- Scheduling and sending digest emails via Resend
- Cleaning up old queue entries
"""

from .digest_dispatcher import DigestDispatcher
from .event_matcher import SubscriptionMatcher
from .match_queue import MatchQueueManager
from .retention import RetentionSweeper
from .scheduler import ScheduleManager

__all__ = [
    'DigestDispatcher',
    'MatchQueueManager',
    'RetentionSweeper',
    'ScheduleManager',
    'SubscriptionMatcher',
]
