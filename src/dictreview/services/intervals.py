"""Ebbinghaus-style spacing ladder."""
from datetime import timedelta
from typing import Iterable, List, Sequence

from dictreview.config import settings

DEFAULT_INTERVALS: List[timedelta] = [
    timedelta(minutes=5),
    timedelta(minutes=30),
    timedelta(hours=12),
    timedelta(days=1),
    timedelta(days=2),
    timedelta(days=4),
    timedelta(days=7),
    timedelta(days=15),
    timedelta(days=30),
]


class IntervalTable:
    """Ordered review delays, shortest first, indexed by review level."""

    def __init__(self, intervals: Iterable[timedelta] = DEFAULT_INTERVALS):
        self.intervals: Sequence[timedelta] = tuple(intervals)
        if not self.intervals:
            raise ValueError("Interval table must not be empty")
        if any(interval <= timedelta(0) for interval in self.intervals):
            raise ValueError("Intervals must be positive")
        if any(later <= earlier for earlier, later in zip(self.intervals, self.intervals[1:])):
            raise ValueError("Intervals must be strictly increasing")

    @classmethod
    def from_minutes(cls, minutes: Iterable[int]) -> "IntervalTable":
        return cls(timedelta(minutes=value) for value in minutes)

    @classmethod
    def from_settings(cls) -> "IntervalTable":
        """Build the table from REVIEW_INTERVALS_MINUTES."""
        return cls.from_minutes(settings.review.intervals_minutes)

    def __len__(self) -> int:
        return len(self.intervals)

    @property
    def max_level(self) -> int:
        return len(self.intervals) - 1

    def clamp(self, level: int) -> int:
        return max(0, min(level, self.max_level))

    def level_for(self, correct_streak: int) -> int:
        """Review level reached after ``correct_streak`` consecutive correct attempts."""
        return self.clamp(correct_streak)

    def interval_for(self, level: int) -> timedelta:
        return self.intervals[self.clamp(level)]
