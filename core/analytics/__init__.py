"""
Analytics package exports.
"""

from core.analytics.service import (
    build_activity_summary,
    build_daily_activity,
    daily_activity_rows,
)
from core.analytics.types import ActivitySummary, DailyActivity

__all__ = [
    "build_activity_summary",
    "build_daily_activity",
    "daily_activity_rows",
    "ActivitySummary",
    "DailyActivity",
]
