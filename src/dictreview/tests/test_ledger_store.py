"""Tests for ledger stores."""
from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from dictreview.models.ledger import MistakeLedgerEntry
from dictreview.models.models import MistakeLedgerRecord
from dictreview.services.ledger_store import InMemoryLedgerStore, LedgerStore, SqlLedgerStore


@pytest.fixture(params=["memory", "sql"])
def store(request, db: Session) -> LedgerStore:
    """Run each test against both store implementations."""
    if request.param == "memory":
        return InMemoryLedgerStore()
    return SqlLedgerStore(db)


def make_entry(user_id: str, word_id: str, due: datetime) -> MistakeLedgerEntry:
    return MistakeLedgerEntry(
        user_id=user_id,
        word_id=word_id,
        mistake_count=1,
        correct_streak=0,
        total_attempts=1,
        last_mistake_at=due - timedelta(minutes=5),
        last_event_at=due - timedelta(minutes=5),
        next_review_at=due,
        created_at=due - timedelta(minutes=5),
    )


def test_get_missing_entry(store: LedgerStore) -> None:
    """Test that a never mistaken word is simply absent."""
    assert store.get("u1", "nope") is None


def test_put_and_get(store: LedgerStore, now: datetime) -> None:
    entry = make_entry("u1", "apple", now)
    store.put(entry)
    assert store.get("u1", "apple") == entry
    assert store.get("u2", "apple") is None


def test_put_replaces_entry(store: LedgerStore, now: datetime) -> None:
    entry = make_entry("u1", "apple", now)
    store.put(entry)
    updated = replace(entry, correct_streak=1, total_attempts=2, next_review_at=now + timedelta(hours=1))
    store.put(updated)

    assert store.get("u1", "apple") == updated
    assert len(store.list_for_user("u1")) == 1


def test_list_for_user_in_creation_order(store: LedgerStore, now: datetime) -> None:
    for word_id in ["c", "a", "b"]:
        store.put(make_entry("u1", word_id, now))
    store.put(make_entry("u2", "z", now))
    # Updating an entry keeps its position
    store.put(replace(make_entry("u1", "c", now), correct_streak=1, total_attempts=2))

    assert [e.word_id for e in store.list_for_user("u1")] == ["c", "a", "b"]
    assert store.list_user_ids() == ["u1", "u2"]


def test_delete(store: LedgerStore, now: datetime) -> None:
    store.put(make_entry("u1", "apple", now))
    assert store.delete("u1", "apple") is True
    assert store.delete("u1", "apple") is False
    assert store.get("u1", "apple") is None


def test_list_due_for_user_covers_due_entries(store: LedgerStore, now: datetime) -> None:
    store.put(make_entry("u1", "past", now - timedelta(hours=1)))
    store.put(make_entry("u1", "future", now + timedelta(hours=1)))
    word_ids = [e.word_id for e in store.list_due_for_user("u1", now)]
    assert "past" in word_ids


def test_sql_store_keeps_timezones(db: Session, now: datetime) -> None:
    """Test that timestamps come back timezone-aware from SQLite."""
    store = SqlLedgerStore(db)
    store.put(make_entry("u1", "apple", now))
    db.expire_all()

    entry = store.get("u1", "apple")
    assert entry.next_review_at == now
    assert entry.next_review_at.tzinfo is not None
    assert db.query(MistakeLedgerRecord).count() == 1


def test_sql_store_due_query_orders_rows(db: Session, now: datetime) -> None:
    store = SqlLedgerStore(db)
    store.put(make_entry("u1", "b", now - timedelta(minutes=5)))
    store.put(make_entry("u1", "a", now - timedelta(minutes=10)))
    store.put(make_entry("u1", "c", now + timedelta(minutes=10)))
    store.put(replace(make_entry("u1", "d", now - timedelta(days=1)), is_resolved=True))

    assert [e.word_id for e in store.list_due_for_user("u1", now)] == ["a", "b"]
