"""Selection of ledger entries that are due for review."""
from datetime import datetime
from typing import Iterable, List, Optional

from dictreview.models.base import as_utc
from dictreview.models.ledger import MistakeLedgerEntry


def get_due_entries(
    entries: Iterable[MistakeLedgerEntry],
    now: datetime,
    limit: Optional[int] = None,
) -> List[MistakeLedgerEntry]:
    """Return unresolved entries due at ``now``, earliest due first.

    Entries with the same due time keep their input order.

    Raises:
        InvalidStateError: an entry breaks a ledger invariant, such as
            carrying naive timestamps.
    """
    now = as_utc(now)
    entries = list(entries)
    for entry in entries:
        entry.validate()

    due = sorted(
        (entry for entry in entries if entry.is_due(now)),
        key=lambda entry: entry.next_review_at,
    )
    if limit is not None:
        due = due[:max(limit, 0)]
    return due
