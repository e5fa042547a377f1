# src/storage/history_ledger.py

"""Date-keyed ledger of per-cycle aggregate statistics.

Both operations are pure: they return a new mapping and never touch the
one passed in.  Keys are ISO dates (``YYYY-MM-DD``), so two cycles on the
same day share one entry and the later one wins.
"""

from collections.abc import Mapping
from datetime import date, datetime, timedelta

from src.models.history_entry import HistoryEntry

Ledger = dict[str, HistoryEntry]


def date_key(moment: datetime | date) -> str:
    """Ledger key for the calendar day of ``moment``."""
    if isinstance(moment, datetime):
        moment = moment.date()
    return moment.isoformat()


def record(
    ledger: Mapping[str, HistoryEntry],
    key: str,
    stats: HistoryEntry,
) -> Ledger:
    """Upsert ``stats`` under ``key``, overwriting any same-day entry."""
    updated = dict(ledger)
    updated[key] = stats
    return updated


def prune(
    ledger: Mapping[str, HistoryEntry],
    retention_days: int,
    now: datetime | date,
) -> Ledger:
    """Drop entries dated strictly before ``now - retention_days``.

    An entry exactly ``retention_days`` old is kept.  Keys that are not
    ISO dates cannot be placed on the timeline and are dropped too.
    """
    today = now.date() if isinstance(now, datetime) else now
    cutoff = today - timedelta(days=retention_days)
    kept: Ledger = {}
    for key, entry in ledger.items():
        try:
            day = date.fromisoformat(key)
        except ValueError:
            continue
        if day >= cutoff:
            kept[key] = entry
    return dict(sorted(kept.items()))
