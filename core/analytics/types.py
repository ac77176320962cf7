"""
Types for activity analytics.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pandas as pd


@dataclass(frozen=True)
class DailyActivity:
    """One learner-day of review activity (UTC)."""
    day: date
    reviews_count: int
    correct_count: int
    sessions_count: int
    time_spent_seconds: float

    @property
    def accuracy(self) -> float:
        if self.reviews_count == 0:
            return 0.0
        return self.correct_count / self.reviews_count


@dataclass(frozen=True)
class ActivitySummary:
    """
    Precomputed KPI values and daily series over a learner's review history.
    """
    total_reviews: int
    correct_reviews: int
    studied_unique: int
    learned_current: int
    daily: pd.DataFrame
    studied_cumulative_daily: pd.Series
    time_spent_cumulative_seconds: pd.Series
