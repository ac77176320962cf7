"""
Due-queue selection for review sessions.

Pure helpers: callers load the learner's scheduling states, these decide
which items a sitting should cover and in what order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

from core.fsrs.memory_state import CardSchedulingState, is_due, utcnow
from study.session_types import ReviewItem


def due_item_ids(
    states: Mapping[str, Optional[CardSchedulingState]],
    now: Optional[datetime] = None,
    limit: Optional[int] = None
) -> list[str]:
    """
    Ids of items due at `now`, most urgent first.

    Never-reviewed items (no state) come first, then the oldest due_at.
    Blank ids are ignored.
    """
    now = now or utcnow()
    unseen = []
    due = []
    for item_id, state in states.items():
        if not item_id:
            continue
        if state is None:
            unseen.append(item_id)
        elif is_due(state, now):
            due.append((state.due_at, item_id))

    due.sort()
    ordered = unseen + [item_id for _, item_id in due]
    if limit is not None:
        return ordered[:max(0, limit)]
    return ordered


def build_review_queue(
    states: Mapping[str, Optional[CardSchedulingState]],
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
    subtopics: Optional[Mapping[str, str]] = None
) -> list[ReviewItem]:
    """
    Build the ReviewItem queue for a sitting.

    Args:
        states: Scheduling state per item id (None for unseen items)
        now: Reference instant (defaults to now)
        limit: Maximum queue length
        subtopics: Optional item id -> subtopic id mapping

    Returns:
        ReviewItems ready for ReviewSessionController.start_session
    """
    subtopics = subtopics or {}
    return [
        ReviewItem(item_id=item_id, state=states[item_id], subtopic_id=subtopics.get(item_id))
        for item_id in due_item_ids(states, now, limit)
    ]
