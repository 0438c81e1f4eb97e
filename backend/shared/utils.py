from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime | None:
    """Parse a date string into an aware datetime (naive input is taken as UTC)."""
    if not value:
        return None
    try:
        dt = date_parser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def print_summary(title: str, stats: dict[str, Any]) -> None:
    """Print an end-of-run summary block."""
    print(f"\n{'=' * 60}")
    print(f"[{datetime.now()}] {title}")
    print(f"{'=' * 60}")
    for label, value in stats.items():
        print(f"{label + ':':<24}{value}")
    print(f"{'=' * 60}\n")
