"""Scheduler that turns attempt outcomes into ledger updates."""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from dictreview.config import settings
from dictreview.errors import InvalidStateError
from dictreview.models.base import as_utc
from dictreview.models.ledger import MistakeLedgerEntry
from dictreview.services.intervals import IntervalTable

logger = logging.getLogger(__name__)


class ReviewScheduler:
    """Pure ledger update rules over an interval table.

    The review level is the correct streak clamped to the table, so a mistake
    always drops the word back to the shortest interval and each further
    correct answer climbs one rung. The delay is added to the attempt time.
    """

    def __init__(
        self,
        table: Optional[IntervalTable] = None,
        resolve_after_streak: Optional[int] = None,
    ):
        self.table = table or IntervalTable.from_settings()
        if resolve_after_streak is None:
            resolve_after_streak = settings.review.resolve_after_streak
        if resolve_after_streak < 0:
            raise ValueError("resolve_after_streak cannot be negative")
        # 0 disables automatic resolution
        self.resolve_after_streak = resolve_after_streak

    def next_review_time(self, correct_streak: int, now: datetime) -> datetime:
        """Due time for an entry with ``correct_streak`` after an attempt at ``now``."""
        return now + self.table.interval_for(self.table.level_for(correct_streak))

    def update_after_attempt(
        self,
        entry: Optional[MistakeLedgerEntry],
        is_correct: bool,
        now: datetime,
        user_id: Optional[str] = None,
        word_id: Optional[str] = None,
    ) -> Optional[MistakeLedgerEntry]:
        """Apply one attempt to ``entry`` and return the updated entry.

        ``entry`` may be None when the pair has never been mistaken; then
        ``user_id`` and ``word_id`` identify the pair. A correct attempt on an
        absent entry returns None, since the ledger only tracks mistaken words.

        Raises:
            InvalidStateError: ``entry`` already violates a ledger invariant, or
                the pair cannot be identified.
        """
        now = as_utc(now)

        if entry is None:
            if is_correct:
                return None
            return self._create_entry(user_id, word_id, now)

        entry.validate()
        if (user_id is not None and user_id != entry.user_id) or (
            word_id is not None and word_id != entry.word_id
        ):
            raise InvalidStateError(
                f"Attempt for ({user_id}, {word_id}) applied to entry {entry.key}"
            )

        if is_correct:
            streak = entry.correct_streak + 1
            resolved = entry.is_resolved or (
                self.resolve_after_streak > 0 and streak >= self.resolve_after_streak
            )
            if resolved and not entry.is_resolved:
                logger.info("Word %s resolved for user %s after %d correct", entry.word_id, entry.user_id, streak)
            updated = replace(
                entry,
                correct_streak=streak,
                total_attempts=entry.total_attempts + 1,
                last_event_at=now,
                next_review_at=self.next_review_time(streak, now),
                is_resolved=resolved,
            )
        else:
            updated = replace(
                entry,
                mistake_count=entry.mistake_count + 1,
                correct_streak=0,
                total_attempts=entry.total_attempts + 1,
                last_mistake_at=now,
                last_event_at=now,
                next_review_at=self.next_review_time(0, now),
                is_resolved=False,
            )

        updated.validate()
        return updated

    def _create_entry(self, user_id: Optional[str], word_id: Optional[str], now: datetime) -> MistakeLedgerEntry:
        if not user_id or not word_id:
            raise InvalidStateError("user_id and word_id are required to create a ledger entry")

        entry = MistakeLedgerEntry(
            user_id=user_id,
            word_id=word_id,
            mistake_count=1,
            correct_streak=0,
            total_attempts=1,
            last_mistake_at=now,
            last_event_at=now,
            next_review_at=self.next_review_time(0, now),
            is_resolved=False,
            created_at=now,
        )
        entry.validate()
        logger.debug("Created ledger entry for word %s of user %s", word_id, user_id)
        return entry
