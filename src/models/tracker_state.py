# src/models/tracker_state.py

"""The document carried from one cycle to the next."""

from dataclasses import dataclass, field
from datetime import datetime

from src.models.history_entry import HistoryEntry
from src.models.listing import Listing
from src.models.match_cluster import MatchCluster


@dataclass
class TrackerState:
    """Listing snapshot, clusters and ledger persisted between cycles."""

    listings: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    clusters: list[MatchCluster] = field(
        default_factory=lambda: list[MatchCluster]()
    )
    ledger: dict[str, HistoryEntry] = field(
        default_factory=lambda: dict[str, HistoryEntry]()
    )
    last_updated: datetime | None = None
