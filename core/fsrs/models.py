"""
SQLAlchemy ORM Models for the Review Database

Defines the persisted shapes of scheduling states, review events, study
sessions and knowledge probabilities. Timestamps are stored as ISO-8601
strings so that timezone offsets survive every backend.
"""

from sqlalchemy import Column, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CardSchedulingStateModel(Base):
    """
    Latest scheduling state for one (learner, item) pair.

    Upserts overwrite the row: last write wins.
    """
    __tablename__ = 'card_scheduling_state'

    user_id = Column(String(255), primary_key=True, nullable=False)
    item_id = Column(String(255), primary_key=True, nullable=False)

    stability = Column(Float, nullable=False)
    difficulty = Column(Float, nullable=False)
    due_at = Column(String(64), nullable=False)
    repetitions = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)
    phase = Column(String(20), nullable=False)  # new, learning, review, relearning
    last_review_at = Column(String(64), nullable=True)
    updated_at = Column(String(64), nullable=False)

    def __repr__(self):
        return f"<CardSchedulingState({self.user_id}, {self.item_id}, {self.phase})>"


class ReviewEventModel(Base):
    """
    Append-only log entry for a single graded review.
    """
    __tablename__ = 'review_events'

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(String(255), nullable=False, index=True)
    session_id = Column(String(255), nullable=False, index=True)
    item_id = Column(String(255), nullable=False)

    grade = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    graded_at = Column(String(64), nullable=False, index=True)
    response_time_ms = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, {self.item_id}, grade={self.grade})>"


class StudySessionModel(Base):
    """
    One study sitting. completed_at stays NULL for abandoned sessions.
    """
    __tablename__ = 'study_sessions'

    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    item_type = Column(String(50), nullable=False)  # flashcard, quiz, reading, mixed
    course_scope = Column(String(255), nullable=True)

    started_at = Column(String(64), nullable=False)
    completed_at = Column(String(64), nullable=True)
    total_reviews = Column(Integer, nullable=False, default=0)
    correct_reviews = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<StudySession({self.id}, {self.item_type}, closed={self.completed_at is not None})>"


class KnowledgeProbabilityModel(Base):
    """
    Per-subtopic knowledge estimate for one learner.
    """
    __tablename__ = 'knowledge_probabilities'

    user_id = Column(String(255), primary_key=True, nullable=False)
    subtopic_id = Column(String(255), primary_key=True, nullable=False)

    # Optional grouping used to list a learner's probabilities by course/keyword
    scope = Column(String(255), nullable=True, index=True)

    p_know = Column(Float, nullable=False)
    max_p_know = Column(Float, nullable=True)
    total_attempts = Column(Integer, nullable=False, default=0)
    correct_attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<KnowledgeProbability({self.user_id}, {self.subtopic_id}, p={self.p_know})>"
