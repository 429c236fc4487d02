"""Tests for the review service."""
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from dictreview.errors import InvalidStateError
from dictreview.models.ledger import AttemptOutcome
from dictreview.services.ledger_store import InMemoryLedgerStore, SqlLedgerStore
from dictreview.services.review_service import KeyedLock, ReviewService
from dictreview.services.scheduler import ReviewScheduler


@pytest.fixture
def review_service(scheduler: ReviewScheduler) -> ReviewService:
    """Create a review service over an in-memory ledger."""
    return ReviewService(InMemoryLedgerStore(), scheduler)


def test_record_attempt_creates_entry(review_service: ReviewService, now: datetime) -> None:
    entry = review_service.record_attempt("apple", "u1", False, now)

    assert entry.mistake_count == 1
    assert entry.next_review_at == now + timedelta(minutes=5)
    assert review_service.get_entry("u1", "apple") == entry


def test_correct_attempt_for_unknown_word(review_service: ReviewService, now: datetime) -> None:
    """Test that a never mistaken word stays out of the ledger."""
    assert review_service.record_attempt("apple", "u1", True, now) is None
    assert review_service.get_entry("u1", "apple") is None


def test_record_attempts_in_order(review_service: ReviewService, now: datetime) -> None:
    outcomes = [
        AttemptOutcome("apple", "u1", False, now),
        AttemptOutcome("apple", "u1", True, now + timedelta(minutes=10)),
        AttemptOutcome("pear", "u1", True, now + timedelta(minutes=11)),
        AttemptOutcome("apple", "u1", True, now + timedelta(minutes=20)),
    ]

    results, rejected = review_service.record_attempts(outcomes)

    assert results[2] is None
    assert rejected == []
    entry = review_service.get_entry("u1", "apple")
    assert entry.correct_streak == 2
    assert entry.total_attempts == 3
    assert entry.next_review_at == now + timedelta(minutes=20) + timedelta(hours=12)


def test_due_words(review_service: ReviewService, now: datetime) -> None:
    """Test that due words come back earliest due first and per user."""
    review_service.record_attempt("banana", "u1", False, now - timedelta(minutes=10))
    review_service.record_attempt("apple", "u1", False, now - timedelta(minutes=15))
    review_service.record_attempt("cherry", "u1", False, now)
    review_service.record_attempt("apple", "u2", False, now - timedelta(hours=1))

    assert review_service.due_words("u1", now) == ["apple", "banana"]
    assert review_service.due_words("u1", now, limit=1) == ["apple"]
    assert review_service.due_words("u2", now) == ["apple"]
    assert review_service.due_words("u3", now) == []
    # Querying does not move anything
    assert review_service.due_words("u1", now) == ["apple", "banana"]


def test_mark_mastered(review_service: ReviewService, now: datetime) -> None:
    review_service.record_attempt("apple", "u1", False, now - timedelta(hours=1))

    entry = review_service.mark_mastered("u1", "apple")

    assert entry.is_resolved is True
    assert review_service.due_words("u1", now) == []
    assert review_service.mark_mastered("u1", "unknown") is None


def test_remove_entry(review_service: ReviewService, now: datetime) -> None:
    review_service.record_attempt("apple", "u1", False, now)
    assert review_service.remove_entry("u1", "apple") is True
    assert review_service.remove_entry("u1", "apple") is False
    assert review_service.get_entry("u1", "apple") is None


def test_invalid_entry_leaves_store_untouched(review_service: ReviewService, now: datetime) -> None:
    """Test that a rejected update does not write anything."""
    review_service.record_attempt("apple", "u1", False, now)
    review_service.record_attempt("pear", "u1", False, now)
    stored = review_service.get_entry("u1", "apple")

    with patch.object(review_service.store, "put") as put, patch.object(
        review_service.scheduler, "update_after_attempt", side_effect=InvalidStateError("broken")
    ):
        with pytest.raises(InvalidStateError):
            review_service.record_attempt("apple", "u1", True, now)
        put.assert_not_called()

    assert review_service.get_entry("u1", "apple") == stored
    assert review_service.get_entry("u1", "pear").mistake_count == 1


def test_concurrent_attempts_on_same_word(review_service: ReviewService, now: datetime) -> None:
    """Test that concurrent updates to one pair are not lost."""
    review_service.record_attempt("apple", "u1", False, now)

    def worker() -> None:
        for _ in range(50):
            review_service.record_attempt("apple", "u1", False, now)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entry = review_service.get_entry("u1", "apple")
    assert entry.mistake_count == 201
    assert entry.total_attempts == 201


def test_keyed_lock_drops_idle_keys(review_service: ReviewService, now: datetime) -> None:
    """Test that locks are only kept while a key is in use."""
    locks = KeyedLock()
    with locks.hold(("u", "w")):
        assert len(locks) == 1
        with locks.hold(("u", "x")):
            assert len(locks) == 2
    assert len(locks) == 0

    review_service.record_attempt("apple", "u1", False, now)
    review_service.remove_entry("u1", "apple")
    assert len(review_service.locks) == 0


def test_rejected_outcome_does_not_stop_the_rest(review_service: ReviewService, now: datetime) -> None:
    """Test that an invalid stored entry only fails its own update."""
    review_service.record_attempt("banana", "u1", False, now)
    broken = replace(review_service.get_entry("u1", "banana"), mistake_count=-1)
    review_service.store.put(broken)

    results, rejected = review_service.record_attempts(
        [
            AttemptOutcome("apple", "u1", False, now),
            AttemptOutcome("banana", "u1", False, now),
            AttemptOutcome("pear", "u1", False, now),
        ]
    )

    assert rejected == ["banana"]
    assert results[1] is None
    assert review_service.get_entry("u1", "apple").mistake_count == 1
    assert review_service.get_entry("u1", "pear").mistake_count == 1
    assert review_service.get_entry("u1", "banana") == broken


def test_sql_backed_service(db: Session, scheduler: ReviewScheduler, now: datetime) -> None:
    """Test the service against the SQL store."""
    service = ReviewService(SqlLedgerStore(db), scheduler)
    service.record_attempt("apple", "u1", False, now - timedelta(hours=2))
    service.record_attempt("banana", "u1", False, now - timedelta(hours=3))
    service.record_attempt("banana", "u1", True, now - timedelta(hours=2))

    assert service.due_words("u1", now) == ["apple", "banana"]
    assert service.tracked_users() == ["u1"]
    assert service.get_entry("u1", "banana").correct_streak == 1


def test_concurrent_attempts_on_sql_store(db: Session, scheduler: ReviewScheduler, now: datetime) -> None:
    """Test threads recording different and identical words through one SQL-backed service."""
    service = ReviewService(SqlLedgerStore(db), scheduler)

    def worker(word_id: str) -> None:
        for _ in range(20):
            service.record_attempt(word_id, "u1", False, now)
            service.record_attempt("shared", "u1", False, now)

    threads = [threading.Thread(target=worker, args=(f"word{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for i in range(4):
        assert service.get_entry("u1", f"word{i}").mistake_count == 20
    assert service.get_entry("u1", "shared").mistake_count == 80
    assert len(service.store.list_for_user("u1")) == 5
