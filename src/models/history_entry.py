# src/models/history_entry.py

"""Daily aggregate statistics kept in the history ledger."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HistoryEntry:
    """One calendar day's aggregate cycle statistics."""

    date: str
    listing_count: int
    cluster_count: int
    drop_count: int
