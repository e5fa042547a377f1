# src/models/change_record.py

"""Per-listing change classification and the per-cycle change report."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.models.diagnostics import CycleDiagnostics
from src.models.listing import Listing


class ChangeKind(str, Enum):
    """How a listing moved between two consecutive cycles."""

    NEW = "new"
    REMOVED = "removed"
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ChangeRecord:
    """Result of diffing one listing id against the previous cycle."""

    kind: ChangeKind
    listing_id: str
    listing: Listing
    old_price: Decimal | None = None
    new_price: Decimal | None = None

    @property
    def delta(self) -> Decimal | None:
        """Absolute price movement for priced changes."""
        if self.old_price is None or self.new_price is None:
            return None
        return abs(self.new_price - self.old_price)


@dataclass
class ChangeReport:
    """Change records grouped by kind for downstream consumers."""

    generated_at: datetime
    new: list[ChangeRecord] = field(
        default_factory=lambda: list[ChangeRecord]()
    )
    removed: list[ChangeRecord] = field(
        default_factory=lambda: list[ChangeRecord]()
    )
    increased: list[ChangeRecord] = field(
        default_factory=lambda: list[ChangeRecord]()
    )
    decreased: list[ChangeRecord] = field(
        default_factory=lambda: list[ChangeRecord]()
    )
    unchanged_count: int = 0
    diagnostics: CycleDiagnostics = field(default_factory=CycleDiagnostics)

    @property
    def has_changes(self) -> bool:
        """True when anything other than unchanged listings was found."""
        return bool(
            self.new or self.removed or self.increased or self.decreased
        )
