"""Runtime settings for the digest pipeline, read from the environment."""

import os

from dotenv import load_dotenv

load_dotenv()

# Scheduling
DEFAULT_EMAIL_FREQUENCY_HOURS = int(os.getenv("DEFAULT_EMAIL_FREQUENCY_HOURS", "24"))
QUEUE_RETENTION_DAYS = int(os.getenv("QUEUE_RETENTION_DAYS", "30"))

# Matching thresholds
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.2"))
KEYWORD_MIN_SCORE = float(os.getenv("KEYWORD_MIN_SCORE", "0.3"))

# Dispatch limits (Resend allows ~10 requests/second)
DIGEST_MAX_WORKERS = int(os.getenv("DIGEST_MAX_WORKERS", "4"))
MAILER_TIMEOUT_SECONDS = float(os.getenv("MAILER_TIMEOUT_SECONDS", "30"))

# Digest content
MAX_EVENTS_PER_EMAIL = 10
MAX_DESCRIPTION_LENGTH = 200

NOTIFICATION_FROM_EMAIL = os.getenv(
    "NOTIFICATION_FROM_EMAIL", "notifications@busso.events"
)
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "https://busso.events")

# Error reports land here (see notifications.error_logger)
NOTIFICATION_LOG_DIR = os.getenv(
    "NOTIFICATION_LOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "notifications", "logs"),
)
