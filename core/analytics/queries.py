"""
Data-loading helpers for analytics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from core.analytics.constants import EVENT_COLUMNS
from core.fsrs.review_log import ReviewEvent
from core.persistence.gateway import PersistenceGateway


def review_events_df(events: Iterable[ReviewEvent]) -> pd.DataFrame:
    """
    Flatten review events into a dataframe sorted by timestamp.
    """
    rows = [
        {
            "session_id": e.session_id,
            "item_id": e.item_id,
            "grade": int(e.grade),
            "correct": e.grade.is_correct,
            "timestamp": e.graded_at,
            "response_time_ms": e.response_time_ms,
        }
        for e in events
    ]
    if not rows:
        return pd.DataFrame(columns=EVENT_COLUMNS)

    df = pd.DataFrame(rows)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    df = df.dropna(subset=["item_id", "timestamp"])
    df["day_utc"] = df["timestamp"].dt.floor("D")
    df = df.sort_values("timestamp").reset_index(drop=True)
    return df[EVENT_COLUMNS]


def load_review_events_df(
    gateway: PersistenceGateway,
    since: Optional[datetime] = None
) -> pd.DataFrame:
    """
    Load a learner's review events through the gateway into a dataframe.
    """
    return review_events_df(gateway.list_review_events(since))
