"""
Column names for analytics frames.
"""

from __future__ import annotations

from typing import Final


EVENT_COLUMNS: Final[list[str]] = [
    "session_id",
    "item_id",
    "grade",
    "correct",
    "timestamp",
    "response_time_ms",
    "day_utc",
]

DAILY_COLUMNS: Final[list[str]] = [
    "reviews_count",
    "correct_count",
    "sessions_count",
    "time_spent_seconds",
]
