"""Persists finished dictation sessions and feeds their outcomes to the ledger."""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from dictreview import monitoring
from dictreview.models.base import as_utc, utcnow
from dictreview.models.ledger import AttemptOutcome
from dictreview.models.models import DictationAttempt, DictationSession
from dictreview.models.session_models import SessionRecordType, SessionState, SessionStatus, SessionSummary
from dictreview.services.review_service import ReviewService

logger = logging.getLogger(__name__)


class SessionRecorder:
    """Service for recording dictation sessions."""

    def __init__(self, db: Session, review_service: ReviewService):
        """Initialize the recorder with a database session and the review service."""
        self.db = db
        self.review_service = review_service

    def record_session(
        self,
        user_id: str,
        source_id: str,
        source_name: str,
        outcomes: Sequence[AttemptOutcome],
        session_type: SessionRecordType = SessionRecordType.LESSON,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> SessionSummary:
        """Store a session with its attempts, then update the ledger in attempt order."""
        if not user_id:
            raise ValueError("user_id is required")
        if not source_id or not source_name:
            raise ValueError("source_id and source_name are required")
        blank = [position for position, outcome in enumerate(outcomes) if not str(outcome.word_id or "").strip()]
        if blank:
            raise ValueError(f"Outcomes at positions {blank} have no word id")
        foreign = [outcome.word_id for outcome in outcomes if outcome.user_id != user_id]
        if foreign:
            raise ValueError(f"Outcomes for words {foreign} belong to another user")

        completed_at = as_utc(completed_at) if completed_at else utcnow()
        started_at = as_utc(started_at) if started_at else completed_at
        if completed_at < started_at:
            raise ValueError("Session cannot complete before it starts")

        correct_words = sum(1 for outcome in outcomes if outcome.is_correct)
        session = DictationSession(
            user_id=user_id,
            session_type=session_type.value,
            source_id=source_id,
            source_name=source_name,
            total_words=len(outcomes),
            correct_words=correct_words,
            started_at=started_at,
            completed_at=completed_at,
        )
        session.attempts = [
            DictationAttempt(
                position=position,
                word_id=outcome.word_id,
                is_correct=outcome.is_correct,
                attempted_at=as_utc(outcome.timestamp) if outcome.timestamp else completed_at,
                time_spent=outcome.time_spent,
                mistake_type=outcome.mistake_type,
            )
            for position, outcome in enumerate(outcomes)
        ]
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        _, rejected = self.review_service.record_attempts(outcomes)

        summary = SessionSummary(
            session_id=session.id,
            total_words=session.total_words,
            correct_words=session.correct_words,
            started_at=started_at,
            completed_at=completed_at,
            mistaken_word_ids=tuple(outcome.word_id for outcome in outcomes if not outcome.is_correct),
            rejected_word_ids=tuple(rejected),
        )
        monitoring.sessions_recorded.labels(session_type=session_type.value).inc()
        monitoring.session_accuracy.observe(summary.accuracy)
        logger.info(
            "Recorded %s session %d for user %s: %d/%d correct",
            session_type.value,
            session.id,
            user_id,
            correct_words,
            len(outcomes),
        )
        return summary

    def record_state(self, state: SessionState) -> SessionSummary:
        """Record a session that reached the completed state."""
        if state.status != SessionStatus.COMPLETED:
            raise ValueError(f"Only completed sessions can be recorded, got {state.status.value}")
        return self.record_session(
            user_id=state.user_id,
            source_id=state.source_id,
            source_name=state.source_name,
            outcomes=state.outcomes,
            session_type=state.session_type,
            started_at=state.started_at,
            completed_at=state.completed_at,
        )

    def get_sessions(self, user_id: str, source_id: Optional[str] = None) -> List[DictationSession]:
        """Get a user's sessions, newest first."""
        query = self.db.query(DictationSession).filter(DictationSession.user_id == user_id)
        if source_id is not None:
            query = query.filter(DictationSession.source_id == source_id)
        return query.order_by(DictationSession.started_at.desc(), DictationSession.id.desc()).all()

    def get_session(self, session_id: int) -> Optional[DictationSession]:
        return self.db.query(DictationSession).filter(DictationSession.id == session_id).first()
