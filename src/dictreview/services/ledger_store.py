"""Storage for mistake ledger entries."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from dictreview.models.base import as_utc
from dictreview.models.ledger import MistakeLedgerEntry
from dictreview.models.models import MistakeLedgerRecord

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Keyed storage of ledger entries, one per (user, word) pair."""

    @abstractmethod
    def get(self, user_id: str, word_id: str) -> Optional[MistakeLedgerEntry]:
        """Get the entry for a pair, or None if the word was never mistaken."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def put(self, entry: MistakeLedgerEntry) -> None:
        """Insert or replace the entry for its pair."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def delete(self, user_id: str, word_id: str) -> bool:
        """Remove the entry for a pair. Returns False if there was none."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[MistakeLedgerEntry]:
        """All entries of a user in creation order."""
        raise NotImplementedError("Subclasses must implement this method")

    def list_due_for_user(self, user_id: str, now: datetime) -> List[MistakeLedgerEntry]:
        """Entries of a user that may be due at ``now``; callers still filter and order."""
        return self.list_for_user(user_id)

    @abstractmethod
    def list_user_ids(self) -> List[str]:
        """Users that have at least one entry."""
        raise NotImplementedError("Subclasses must implement this method")


class InMemoryLedgerStore(LedgerStore):
    """Process-local store for single-user or sample deployments."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], MistakeLedgerEntry] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, word_id: str) -> Optional[MistakeLedgerEntry]:
        with self._lock:
            return self._entries.get((user_id, word_id))

    def put(self, entry: MistakeLedgerEntry) -> None:
        # dict keeps the first insertion position on replace
        with self._lock:
            self._entries[entry.key] = entry

    def delete(self, user_id: str, word_id: str) -> bool:
        with self._lock:
            return self._entries.pop((user_id, word_id), None) is not None

    def list_for_user(self, user_id: str) -> List[MistakeLedgerEntry]:
        with self._lock:
            return [entry for key, entry in self._entries.items() if key[0] == user_id]

    def list_user_ids(self) -> List[str]:
        with self._lock:
            return list(dict.fromkeys(user_id for user_id, _ in self._entries))


class SqlLedgerStore(LedgerStore):
    """SQLAlchemy-backed store; every put is its own transaction.

    The Session is not thread-safe, so every operation holds the store lock.
    """

    def __init__(self, db: Session):
        """Initialize the store with a database session."""
        self.db = db
        self._lock = threading.RLock()

    def _query(self, user_id: str, word_id: str):
        return self.db.query(MistakeLedgerRecord).filter(
            and_(
                MistakeLedgerRecord.user_id == user_id,
                MistakeLedgerRecord.word_id == word_id,
            )
        )

    @staticmethod
    def _to_entry(record: MistakeLedgerRecord) -> MistakeLedgerEntry:
        return MistakeLedgerEntry(
            user_id=record.user_id,
            word_id=record.word_id,
            mistake_count=record.mistake_count,
            correct_streak=record.correct_streak,
            total_attempts=record.total_attempts,
            last_mistake_at=as_utc(record.last_mistake_at),
            last_event_at=as_utc(record.last_event_at),
            next_review_at=as_utc(record.next_review_at),
            is_resolved=record.is_resolved,
            created_at=as_utc(record.first_mistake_at),
        )

    def get(self, user_id: str, word_id: str) -> Optional[MistakeLedgerEntry]:
        with self._lock:
            record = self._query(user_id, word_id).first()
            return self._to_entry(record) if record else None

    def put(self, entry: MistakeLedgerEntry) -> None:
        with self._lock:
            record = self._query(entry.user_id, entry.word_id).first()
            if record is None:
                record = MistakeLedgerRecord(
                    user_id=entry.user_id,
                    word_id=entry.word_id,
                    first_mistake_at=entry.created_at or entry.last_mistake_at,
                )
                self.db.add(record)

            record.mistake_count = entry.mistake_count
            record.correct_streak = entry.correct_streak
            record.total_attempts = entry.total_attempts
            record.last_mistake_at = entry.last_mistake_at
            record.last_event_at = entry.last_event_at
            record.next_review_at = entry.next_review_at
            record.is_resolved = entry.is_resolved

            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

    def delete(self, user_id: str, word_id: str) -> bool:
        with self._lock:
            record = self._query(user_id, word_id).first()
            if not record:
                return False
            self.db.delete(record)
            self.db.commit()
            return True

    def list_for_user(self, user_id: str) -> List[MistakeLedgerEntry]:
        with self._lock:
            records = (
                self.db.query(MistakeLedgerRecord)
                .filter(MistakeLedgerRecord.user_id == user_id)
                .order_by(MistakeLedgerRecord.id)
                .all()
            )
            return [self._to_entry(record) for record in records]

    def list_due_for_user(self, user_id: str, now: datetime) -> List[MistakeLedgerEntry]:
        with self._lock:
            records = (
                self.db.query(MistakeLedgerRecord)
                .filter(
                    and_(
                        MistakeLedgerRecord.user_id == user_id,
                        MistakeLedgerRecord.is_resolved == False,  # noqa: E712
                        MistakeLedgerRecord.next_review_at <= as_utc(now),
                    )
                )
                .order_by(MistakeLedgerRecord.next_review_at, MistakeLedgerRecord.id)
                .all()
            )
            return [self._to_entry(record) for record in records]

    def list_user_ids(self) -> List[str]:
        with self._lock:
            rows = (
                self.db.query(MistakeLedgerRecord.user_id)
                .distinct()
                .order_by(MistakeLedgerRecord.user_id)
                .all()
            )
            return [row[0] for row in rows]
