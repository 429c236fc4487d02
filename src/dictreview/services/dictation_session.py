"""Dictation session flow built on the session state machine."""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from dictreview.models.base import utcnow
from dictreview.models.session_models import (
    DictationWord,
    EventKind,
    MistakeType,
    SessionEvent,
    SessionRecordType,
    SessionState,
    SessionStatus,
    SessionSummary,
    transition,
)
from dictreview.services.review_service import ReviewService
from dictreview.services.session_recorder import SessionRecorder

logger = logging.getLogger(__name__)


class ContentLookup(ABC):
    """Read-only access to lessons and words."""

    @abstractmethod
    def get_word(self, word_id: str) -> Optional[DictationWord]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_lesson_words(self, lesson_id: str) -> List[DictationWord]:
        raise NotImplementedError("Subclasses must implement this method")


class AudioPlayer(ABC):
    """Speaks a word to the learner."""

    @abstractmethod
    def play(self, text: str, language: str) -> None:
        raise NotImplementedError("Subclasses must implement this method")


class DictationSessionFlow:
    """Drives one dictation session from word selection to recording."""

    def __init__(
        self,
        review_service: ReviewService,
        recorder: SessionRecorder,
        content: ContentLookup,
        audio: AudioPlayer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.review_service = review_service
        self.recorder = recorder
        self.content = content
        self.audio = audio
        self.clock = clock
        self.state = SessionState()

    def _apply(self, event: SessionEvent) -> SessionState:
        previous = self.state.status
        self.state = transition(self.state, event)
        logger.debug("Session %s -> %s on %s", previous.value, self.state.status.value, event.kind.value)
        return self.state

    def _fail(self, message: str) -> SessionState:
        logger.error("Dictation session failed: %s", message)
        return self._apply(SessionEvent(EventKind.FAIL, timestamp=self.clock(), message=message))

    def prepare_review(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> SessionState:
        """Load the user's due words into a review session."""
        words = []
        for word_id in self.review_service.due_words(user_id, now or self.clock(), limit):
            word = self.content.get_word(word_id)
            if word is None:
                logger.warning("Due word %s of user %s is missing from the content", word_id, user_id)
                continue
            words.append(word)

        return self._apply(
            SessionEvent(
                EventKind.LOAD,
                user_id=user_id,
                words=tuple(words),
                session_type=SessionRecordType.REVIEW,
                source_id="review",
                source_name="Spaced review",
            )
        )

    def prepare_lesson(self, user_id: str, lesson_id: str, lesson_name: str) -> SessionState:
        """Load the words of a lesson."""
        words = self.content.get_lesson_words(lesson_id)
        return self._apply(
            SessionEvent(
                EventKind.LOAD,
                user_id=user_id,
                words=tuple(words),
                session_type=SessionRecordType.LESSON,
                source_id=lesson_id,
                source_name=lesson_name,
            )
        )

    def _play_current(self) -> None:
        word = self.state.current_word
        if word is None:
            return
        try:
            self.audio.play(word.text, word.language)
        except Exception as e:
            self._fail(f"Could not play '{word.text}': {e}")

    def start(self) -> SessionState:
        self._apply(SessionEvent(EventKind.START, timestamp=self.clock()))
        self._play_current()
        return self.state

    def replay(self) -> None:
        """Play the current word again."""
        self._play_current()

    def answer(
        self,
        is_correct: bool,
        time_spent: float = 0.0,
        mistake_type: Optional[MistakeType] = None,
    ) -> SessionState:
        """Mark the current word and move on to the next one."""
        self._apply(
            SessionEvent(
                EventKind.ANSWER,
                timestamp=self.clock(),
                is_correct=is_correct,
                time_spent=time_spent,
                mistake_type=mistake_type,
            )
        )
        self._play_current()
        return self.state

    def finish(self) -> SessionSummary:
        """Complete the session and hand its outcomes to the recorder."""
        self._apply(SessionEvent(EventKind.FINISH, timestamp=self.clock()))
        return self.recorder.record_state(self.state)

    def reset(self) -> SessionState:
        return self._apply(SessionEvent(EventKind.RESET))

    @property
    def all_answered(self) -> bool:
        return self.state.status == SessionStatus.IN_PROGRESS and self.state.remaining == 0
