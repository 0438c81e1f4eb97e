"""
Failure reports for the digest pipeline.

Each failure becomes one file named after the pipeline stage it happened in,
so a cron operator can list e.g. every `sending_error_*.txt` after a run.
"""

import os
from datetime import datetime, timezone
from typing import Any

from config import settings

# Pipeline stage -> what was being attempted
PIPELINE_STAGES = {
    "matching": "Scoring an event against subscription prompts",
    "queuing": "Writing a match to the email queue",
    "sending": "Delivering a digest through the mailer",
    "scheduling": "Reading the queue or advancing a subscription's schedule",
    "cleanup": "Deleting queue entries past the retention horizon",
}


def _format_report(error_type: str, error_message: str, context: dict[str, Any]) -> str:
    lines = [
        f"[{error_type}] {PIPELINE_STAGES[error_type]}",
        f"Logged at: {datetime.now(timezone.utc).isoformat()}",
        "",
        error_message,
    ]
    if context:
        width = max(len(key) for key in context)
        lines += ["", "Context:"]
        lines += [f"  {key:<{width}}  {value}" for key, value in sorted(context.items())]
    return "\n".join(lines) + "\n"


def log_notification_error(
    error_type: str,
    error_message: str,
    context: dict[str, Any] | None = None,
    log_dir: str | None = None,
) -> str:
    """
    Write a failure report for one pipeline stage.

    Args:
        error_type: Pipeline stage, one of PIPELINE_STAGES
        error_message: What went wrong
        context: Identifiers needed to retry or investigate (subscription_id, event_id, ...)
        log_dir: Directory for report files (defaults to NOTIFICATION_LOG_DIR)

    Returns:
        Path to the report file

    Raises:
        ValueError: If error_type is not a known pipeline stage
    """
    if error_type not in PIPELINE_STAGES:
        raise ValueError(f"Unknown pipeline stage '{error_type}'")

    log_dir = log_dir or settings.NOTIFICATION_LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    # Microseconds keep reports from parallel workers apart
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    path = os.path.join(log_dir, f"{error_type}_error_{stamp}.txt")

    with open(path, "w", encoding="utf-8") as f:
        f.write(_format_report(error_type, error_message, context or {}))

    return path
