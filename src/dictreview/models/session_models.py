"""Models for dictation sessions and their state machine."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from dictreview.errors import InvalidStateError
from dictreview.models.base import as_utc
from dictreview.models.ledger import AttemptOutcome


class SessionRecordType(Enum):
    """Where the words of a dictation session came from."""
    LESSON = "lesson"  # Words of one lesson
    WORKBOOK = "workbook"  # Words of a workbook
    COMMON_MISTAKES = "common_mistakes"  # The learner's most mistaken words
    REVIEW = "review"  # Words due for spaced review


class MistakeType(Enum):
    """Why a word was written incorrectly."""
    MEMORY = "memory"  # Remembered wrongly, usually stubborn
    UNFAMILIAR = "unfamiliar"  # Never properly learned, easy to fix
    CARELESS = "careless"  # Slip of attention


class SessionStatus(Enum):
    """States of a dictation session."""
    IDLE = "idle"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


class EventKind(Enum):
    """Inputs that drive a dictation session."""
    LOAD = "load"  # Words chosen for the session
    START = "start"  # First word is played
    ANSWER = "answer"  # Current word was marked correct or incorrect
    FINISH = "finish"  # Session ended
    FAIL = "fail"  # Preparation or playback failed
    RESET = "reset"  # Back to idle


@dataclass(frozen=True)
class DictationWord:
    """A word as presented to the learner."""
    word_id: str
    text: str
    language: str = "en"


@dataclass(frozen=True)
class SessionEvent:
    """An event with the payload its kind needs."""
    kind: EventKind
    timestamp: Optional[datetime] = None
    words: Tuple[DictationWord, ...] = ()
    user_id: Optional[str] = None
    session_type: Optional[SessionRecordType] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent: float = 0.0
    mistake_type: Optional[MistakeType] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a dictation session; each status uses its own fields."""
    status: SessionStatus = SessionStatus.IDLE
    user_id: Optional[str] = None
    session_type: Optional[SessionRecordType] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    words: Tuple[DictationWord, ...] = ()
    position: int = 0
    outcomes: Tuple[AttemptOutcome, ...] = ()
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def current_word(self) -> Optional[DictationWord]:
        if self.status != SessionStatus.IN_PROGRESS or self.position >= len(self.words):
            return None
        return self.words[self.position]

    @property
    def remaining(self) -> int:
        return max(len(self.words) - self.position, 0)


def _require(state: SessionState, event: SessionEvent, *allowed: SessionStatus) -> None:
    if state.status not in allowed:
        raise InvalidStateError(
            f"Cannot apply {event.kind.value} while session is {state.status.value}"
        )


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state that follows ``state`` after ``event``.

    Raises:
        InvalidStateError: the event is not allowed in the current state.
    """
    if event.kind == EventKind.RESET:
        return SessionState()

    if event.kind == EventKind.FAIL:
        return replace(state, status=SessionStatus.ERROR, error=event.message or "Unknown error")

    if event.kind == EventKind.LOAD:
        _require(state, event, SessionStatus.IDLE)
        if not event.user_id:
            raise InvalidStateError("A session needs a user")
        if not event.words:
            return SessionState(
                status=SessionStatus.ERROR,
                user_id=event.user_id,
                session_type=event.session_type,
                source_id=event.source_id,
                source_name=event.source_name,
                error="No words to dictate",
            )
        return SessionState(
            status=SessionStatus.READY,
            user_id=event.user_id,
            session_type=event.session_type or SessionRecordType.LESSON,
            source_id=event.source_id,
            source_name=event.source_name,
            words=tuple(event.words),
        )

    if event.kind == EventKind.START:
        _require(state, event, SessionStatus.READY)
        return replace(state, status=SessionStatus.IN_PROGRESS, started_at=as_utc(event.timestamp))

    if event.kind == EventKind.ANSWER:
        _require(state, event, SessionStatus.IN_PROGRESS)
        word = state.current_word
        if word is None:
            raise InvalidStateError("All words have already been answered")
        if event.is_correct is None:
            raise InvalidStateError("An answer must be marked correct or incorrect")
        outcome = AttemptOutcome(
            word_id=word.word_id,
            user_id=state.user_id,
            is_correct=event.is_correct,
            timestamp=as_utc(event.timestamp),
            time_spent=event.time_spent,
            mistake_type=None if event.is_correct or event.mistake_type is None else event.mistake_type.value,
        )
        return replace(state, position=state.position + 1, outcomes=state.outcomes + (outcome,))

    if event.kind == EventKind.FINISH:
        _require(state, event, SessionStatus.IN_PROGRESS)
        return replace(state, status=SessionStatus.COMPLETED, completed_at=as_utc(event.timestamp))

    raise InvalidStateError(f"Unknown event {event.kind}")


@dataclass
class SessionSummary:
    """Result of a recorded dictation session."""
    session_id: int
    total_words: int
    correct_words: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    mistaken_word_ids: Tuple[str, ...] = field(default_factory=tuple)
    rejected_word_ids: Tuple[str, ...] = field(default_factory=tuple)  # not applied to the ledger

    @property
    def accuracy(self) -> float:
        if self.total_words == 0:
            return 0.0
        return self.correct_words / self.total_words

    @property
    def incorrect_words(self) -> int:
        return self.total_words - self.correct_words

    @property
    def duration(self) -> float:
        """Seconds from start to completion."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def grade_level(self) -> str:
        accuracy = self.accuracy
        if accuracy >= 0.95:
            return "excellent"
        if accuracy >= 0.85:
            return "good"
        if accuracy >= 0.70:
            return "pass"
        return "needs work"
