# src/models/diagnostics.py

"""Per-cycle diagnostic tallies."""

from dataclasses import dataclass


@dataclass
class CycleDiagnostics:
    """Counters describing what a cycle dropped, skipped or reset."""

    raw_count: int = 0
    malformed_records: int = 0
    missing_name: int = 0
    missing_price: int = 0
    unparseable_price: int = 0
    below_floor: int = 0
    duplicate_ids: int = 0
    without_model_key: int = 0
    unclustered_with_model_key: int = 0
    previous_invalid_listings: int = 0
    state_reset: bool = False
    state_error: str = ""

    @property
    def dropped(self) -> int:
        """Total raw records that did not become listings."""
        return (
            self.malformed_records
            + self.missing_name
            + self.missing_price
            + self.unparseable_price
            + self.below_floor
        )
