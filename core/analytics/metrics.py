"""
Metric computations over review-event frames.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

import pandas as pd

from core.fsrs.memory_state import CardSchedulingState, retrievability_at


def build_day_index(events_df: pd.DataFrame) -> pd.DatetimeIndex:
    """
    Build a dense UTC day index spanning the event range.
    """
    if events_df.empty:
        return pd.DatetimeIndex([], tz="UTC")
    start = events_df["day_utc"].min()
    end = events_df["day_utc"].max()
    return pd.date_range(start=start, end=end, freq="D")


def zero_series(day_index: pd.DatetimeIndex, dtype: str = "float64") -> pd.Series:
    """
    Convenience zero-valued series aligned to day index.
    """
    return pd.Series(0, index=day_index, dtype=dtype)


def compute_studied_unique(events_df: pd.DataFrame) -> int:
    """
    Count unique reviewed item_ids.
    """
    if events_df.empty:
        return 0
    return int(events_df["item_id"].nunique())


def compute_studied_cumulative(
    events_df: pd.DataFrame,
    day_index: pd.DatetimeIndex
) -> pd.Series:
    """
    Cumulative unique studied items by first-seen day.
    """
    if events_df.empty or len(day_index) == 0:
        return pd.Series(dtype="int64")

    first_seen = events_df.groupby("item_id")["timestamp"].min().dt.floor("D")
    counts = first_seen.value_counts().sort_index()
    return counts.reindex(day_index, fill_value=0).cumsum().astype("int64")


def compute_daily_counts(events_df: pd.DataFrame, day_index: pd.DatetimeIndex) -> pd.DataFrame:
    """
    Reviews, correct reviews and distinct sessions per day.
    """
    columns = ["reviews_count", "correct_count", "sessions_count"]
    if events_df.empty or len(day_index) == 0:
        return pd.DataFrame(columns=columns, index=day_index, dtype="int64")

    daily = events_df.groupby("day_utc").agg(
        reviews_count=("item_id", "size"),
        correct_count=("correct", "sum"),
        sessions_count=("session_id", "nunique"),
    )
    return daily.reindex(day_index, fill_value=0).astype("int64")


def compute_session_span_daily_seconds(
    events_df: pd.DataFrame,
    day_index: pd.DatetimeIndex
) -> pd.Series:
    """
    Daily study time as sum of per-session span (last - first timestamp).

    A session is attributed to the day it started on.
    """
    if events_df.empty or len(day_index) == 0:
        return pd.Series(dtype="float64")

    scoped = events_df[events_df["session_id"].notna()]
    if scoped.empty:
        return zero_series(day_index, dtype="float64")

    spans = scoped.groupby("session_id").agg(
        session_start=("timestamp", "min"),
        session_end=("timestamp", "max"),
    )
    spans["span_seconds"] = (spans["session_end"] - spans["session_start"]).dt.total_seconds()
    spans["day_utc"] = spans["session_start"].dt.floor("D")

    daily = spans.groupby("day_utc")["span_seconds"].sum()
    return daily.reindex(day_index, fill_value=0.0).astype("float64")


def compute_learned_count(
    states: Mapping[str, CardSchedulingState],
    r_target: float,
    now: Optional[datetime] = None
) -> int:
    """
    Learned count where learned == current retrievability >= threshold.
    """
    if not states:
        return 0
    snapshots = pd.Series(
        {item_id: retrievability_at(state, now) for item_id, state in states.items()},
        dtype="float64",
    )
    return int((snapshots >= r_target).sum())
