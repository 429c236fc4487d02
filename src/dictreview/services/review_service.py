"""Review service: records attempts and answers due-word queries."""
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from dictreview import monitoring
from dictreview.errors import InvalidStateError
from dictreview.models.base import as_utc, utcnow
from dictreview.models.ledger import AttemptOutcome, MistakeLedgerEntry
from dictreview.services.due_query import get_due_entries
from dictreview.services.ledger_store import LedgerStore
from dictreview.services.scheduler import ReviewScheduler

logger = logging.getLogger(__name__)


class KeyedLock:
    """One mutex per key, kept only while some caller holds or waits on it."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], Tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    def _acquire_ref(self, key: Tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
            return lock

    def _release_ref(self, key: Tuple[str, str]) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Tuple[str, str]) -> Iterator[None]:
        lock = self._acquire_ref(key)
        try:
            with lock:
                yield
        finally:
            self._release_ref(key)


class ReviewService:
    """Owns the ledger store and is the only component that mutates it."""

    def __init__(self, store: LedgerStore, scheduler: Optional[ReviewScheduler] = None):
        """Initialize the service with a ledger store."""
        self.store = store
        self.scheduler = scheduler or ReviewScheduler()
        self.locks = KeyedLock()

    def get_entry(self, user_id: str, word_id: str) -> Optional[MistakeLedgerEntry]:
        """Get a ledger entry; None means the word was never mistaken."""
        return self.store.get(user_id, word_id)

    def record_attempt(
        self,
        word_id: str,
        user_id: str,
        is_correct: bool,
        timestamp: Optional[datetime] = None,
    ) -> Optional[MistakeLedgerEntry]:
        """Apply one attempt to the ledger and persist the result."""
        now = as_utc(timestamp) if timestamp is not None else utcnow()

        with self.locks.hold((user_id, word_id)):
            entry = self.store.get(user_id, word_id)
            try:
                updated = self.scheduler.update_after_attempt(
                    entry, is_correct, now, user_id=user_id, word_id=word_id
                )
            except InvalidStateError as e:
                monitoring.invalid_states.inc()
                logger.error("Rejected attempt on word %s for user %s: %s", word_id, user_id, e)
                raise

            monitoring.attempts_recorded.labels(outcome="correct" if is_correct else "incorrect").inc()
            if updated is None:
                return None

            self.store.put(updated)

        if entry is None:
            monitoring.ledger_entries_created.inc()
        elif updated.is_resolved and not entry.is_resolved:
            monitoring.entries_resolved.labels(reason="streak").inc()

        logger.debug(
            "Word %s for user %s: mistakes=%d streak=%d next review %s",
            word_id,
            user_id,
            updated.mistake_count,
            updated.correct_streak,
            updated.next_review_at.isoformat(),
        )
        return updated

    def record_attempts(
        self, outcomes: Iterable[AttemptOutcome]
    ) -> Tuple[List[Optional[MistakeLedgerEntry]], List[str]]:
        """Apply session outcomes one by one, in attempt order.

        An outcome rejected with InvalidStateError is skipped and the rest are
        still applied. Returns the per-outcome results (None for skipped or
        untracked words) and the word ids that were rejected.
        """
        results: List[Optional[MistakeLedgerEntry]] = []
        rejected: List[str] = []
        for outcome in outcomes:
            try:
                results.append(
                    self.record_attempt(outcome.word_id, outcome.user_id, outcome.is_correct, outcome.timestamp)
                )
            except InvalidStateError:
                results.append(None)
                rejected.append(outcome.word_id)
        if rejected:
            logger.warning("Skipped %d rejected attempts: %s", len(rejected), rejected)
        return results, rejected

    def due_entries(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[MistakeLedgerEntry]:
        """Ledger entries of a user that are due, earliest due first."""
        now = as_utc(now) if now is not None else utcnow()
        entries = get_due_entries(self.store.list_due_for_user(user_id, now), now, limit)
        monitoring.due_queries.inc()
        monitoring.due_words.labels(user_id=user_id).set(len(entries))
        return entries

    def due_words(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        """Word ids due for review, earliest due first."""
        return [entry.word_id for entry in self.due_entries(user_id, now, limit)]

    def mark_mastered(self, user_id: str, word_id: str) -> Optional[MistakeLedgerEntry]:
        """Resolve an entry so it is no longer scheduled."""
        with self.locks.hold((user_id, word_id)):
            entry = self.store.get(user_id, word_id)
            if entry is None:
                return None
            if entry.is_resolved:
                return entry
            entry.validate()
            resolved = replace(entry, is_resolved=True)
            self.store.put(resolved)

        monitoring.entries_resolved.labels(reason="mastered").inc()
        logger.info("Word %s marked as mastered for user %s", word_id, user_id)
        return resolved

    def remove_entry(self, user_id: str, word_id: str) -> bool:
        """Delete an entry from the ledger."""
        with self.locks.hold((user_id, word_id)):
            removed = self.store.delete(user_id, word_id)
        if removed:
            logger.info("Removed ledger entry for word %s of user %s", word_id, user_id)
        return removed

    def tracked_users(self) -> List[str]:
        return self.store.list_user_ids()
