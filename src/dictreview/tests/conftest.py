"""Test configuration."""
import os
from datetime import UTC, datetime
from typing import Generator

import pytest

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("METRICS_PORT", "0")

# Import after environment setup
from sqlalchemy.orm import Session

from dictreview.models.base import Base, SessionLocal, engine, init_db
from dictreview.services.intervals import IntervalTable
from dictreview.services.scheduler import ReviewScheduler


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def now() -> datetime:
    """A fixed point in time."""
    return datetime(2024, 3, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def scheduler() -> ReviewScheduler:
    """Scheduler over the default ladder with auto-resolution after 9 correct answers."""
    return ReviewScheduler(IntervalTable(), resolve_after_streak=9)
