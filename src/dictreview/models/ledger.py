"""Mistake ledger entry and attempt outcome value types."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from dictreview.errors import InvalidStateError


@dataclass(frozen=True)
class MistakeLedgerEntry:
    """Mistake and schedule record for one word of one learner.

    Attributes:
        user_id: Learner the entry belongs to.
        word_id: Vocabulary item the entry tracks.
        mistake_count: Lifetime number of incorrect attempts.
        correct_streak: Correct attempts since the last mistake.
        total_attempts: All attempts recorded since the entry was created.
        last_mistake_at: Time of the most recent incorrect attempt.
        last_event_at: Time of the most recent attempt of any kind.
        next_review_at: When the word is next due for practice.
        is_resolved: True once the word no longer needs scheduling.
        created_at: Time of the first mistake.
    """

    user_id: str
    word_id: str
    mistake_count: int
    correct_streak: int
    total_attempts: int
    last_mistake_at: datetime
    last_event_at: datetime
    next_review_at: datetime
    is_resolved: bool = False
    created_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.word_id)

    @property
    def error_rate(self) -> float:
        """Share of attempts that were mistakes."""
        if self.total_attempts <= 0:
            return 0.0
        return self.mistake_count / self.total_attempts

    def is_due(self, now: datetime) -> bool:
        """Check if the entry should be practised at ``now``."""
        return not self.is_resolved and now >= self.next_review_at

    def validate(self) -> None:
        """Raise InvalidStateError if any ledger invariant is broken."""
        if not self.user_id or not str(self.user_id).strip():
            raise InvalidStateError("user_id must not be blank")
        if not self.word_id or not str(self.word_id).strip():
            raise InvalidStateError("word_id must not be blank")
        if self.mistake_count < 0:
            raise InvalidStateError(f"mistake_count cannot be negative: {self.mistake_count}")
        if self.correct_streak < 0:
            raise InvalidStateError(f"correct_streak cannot be negative: {self.correct_streak}")
        if self.total_attempts < self.mistake_count:
            raise InvalidStateError(
                f"total_attempts ({self.total_attempts}) cannot be less than "
                f"mistake_count ({self.mistake_count})"
            )
        if self.last_mistake_at is None or self.last_event_at is None or self.next_review_at is None:
            raise InvalidStateError("ledger timestamps are required")
        if any(ts.tzinfo is None for ts in (self.last_mistake_at, self.last_event_at, self.next_review_at)):
            raise InvalidStateError("ledger timestamps must be timezone-aware")


@dataclass(frozen=True)
class AttemptOutcome:
    """A single word result reported at the end of a dictation session."""

    word_id: str
    user_id: str
    is_correct: bool
    timestamp: datetime
    time_spent: float = 0.0  # in seconds
    mistake_type: Optional[str] = None  # MistakeType value
