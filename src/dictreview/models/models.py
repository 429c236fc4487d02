"""Database models for the review scheduler."""
from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from dictreview.models.base import Base, TimestampMixin, UTCDateTime


class MistakeLedgerRecord(Base, TimestampMixin):
    """Stored mistake ledger entry for one (user, word) pair."""

    __tablename__ = "mistake_ledger"
    __table_args__ = (UniqueConstraint("user_id", "word_id", name="uq_ledger_user_word"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    word_id = Column(String, nullable=False)
    mistake_count = Column(Integer, nullable=False, default=0)
    correct_streak = Column(Integer, nullable=False, default=0)
    total_attempts = Column(Integer, nullable=False, default=0)
    last_mistake_at = Column(UTCDateTime, nullable=False)
    last_event_at = Column(UTCDateTime, nullable=False)
    next_review_at = Column(UTCDateTime, nullable=False, index=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    first_mistake_at = Column(UTCDateTime, nullable=False)


class DictationSession(Base, TimestampMixin):
    """A completed dictation session."""

    __tablename__ = "dictation_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    session_type = Column(String, nullable=False)  # SessionRecordType value
    source_id = Column(String, nullable=False)  # lesson, workbook, ...
    source_name = Column(String, nullable=False)
    total_words = Column(Integer, default=0)
    correct_words = Column(Integer, default=0)
    started_at = Column(UTCDateTime, nullable=False)
    completed_at = Column(UTCDateTime)

    # Relationships
    attempts = relationship(
        "DictationAttempt",
        back_populates="session",
        order_by="DictationAttempt.position",
        cascade="all, delete-orphan",
    )


class DictationAttempt(Base, TimestampMixin):
    """One word attempted during a dictation session."""

    __tablename__ = "dictation_attempts"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("dictation_sessions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    word_id = Column(String, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    attempted_at = Column(UTCDateTime, nullable=False)
    time_spent = Column(Float, default=0.0)  # in seconds
    mistake_type = Column(String, nullable=True)  # MistakeType value

    # Relationships
    session = relationship("DictationSession", back_populates="attempts")
