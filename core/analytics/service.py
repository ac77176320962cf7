"""
Service layer to assemble activity summaries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional

import pandas as pd

from core.analytics.constants import DAILY_COLUMNS
from core.analytics.metrics import (
    build_day_index,
    compute_daily_counts,
    compute_learned_count,
    compute_session_span_daily_seconds,
    compute_studied_cumulative,
    compute_studied_unique,
)
from core.analytics.queries import load_review_events_df, review_events_df
from core.analytics.types import ActivitySummary, DailyActivity
from core.fsrs.constants import R_TARGET
from core.fsrs.memory_state import CardSchedulingState
from core.fsrs.review_log import ReviewEvent
from core.persistence.gateway import PersistenceGateway


def _daily_frame(events_df: pd.DataFrame) -> pd.DataFrame:
    day_index = build_day_index(events_df)
    if len(day_index) == 0:
        return pd.DataFrame(columns=DAILY_COLUMNS, index=day_index)

    daily = compute_daily_counts(events_df, day_index)
    daily["time_spent_seconds"] = compute_session_span_daily_seconds(events_df, day_index)
    return daily[DAILY_COLUMNS]


def build_daily_activity(events: Iterable[ReviewEvent]) -> pd.DataFrame:
    """
    Group review events per UTC day.

    Returns:
        Frame indexed by day (dense, no gaps) with reviews_count,
        correct_count, sessions_count and time_spent_seconds
    """
    return _daily_frame(review_events_df(events))


def daily_activity_rows(daily: pd.DataFrame) -> list[DailyActivity]:
    """Convert a daily activity frame into DailyActivity records."""
    return [
        DailyActivity(
            day=day.date(),
            reviews_count=int(row["reviews_count"]),
            correct_count=int(row["correct_count"]),
            sessions_count=int(row["sessions_count"]),
            time_spent_seconds=float(row["time_spent_seconds"]),
        )
        for day, row in daily.iterrows()
    ]


def build_activity_summary(
    gateway: PersistenceGateway,
    since: Optional[datetime] = None,
    states: Optional[Mapping[str, CardSchedulingState]] = None,
    now: Optional[datetime] = None
) -> ActivitySummary:
    """
    Build KPI values and daily series for a learner.

    Args:
        gateway: Learner-scoped persistence gateway
        since: Only count events after this instant
        states: Current scheduling states, for the learned count
        now: Reference instant for retrievability
    """
    events_df = load_review_events_df(gateway, since)
    day_index = build_day_index(events_df)
    daily = _daily_frame(events_df)

    time_spent = daily["time_spent_seconds"].astype("float64")
    return ActivitySummary(
        total_reviews=int(len(events_df)),
        correct_reviews=int(events_df["correct"].sum()) if not events_df.empty else 0,
        studied_unique=compute_studied_unique(events_df),
        learned_current=compute_learned_count(states or {}, R_TARGET, now),
        daily=daily,
        studied_cumulative_daily=compute_studied_cumulative(events_df, day_index),
        time_spent_cumulative_seconds=time_spent.cumsum() if not time_spent.empty else pd.Series(dtype="float64"),
    )
