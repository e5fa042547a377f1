# src/services/reconciliation.py

"""Orchestrates one reconciliation cycle over a materialised snapshot."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.config.settings import EngineConfig
from src.errors import StateDecodeError
from src.filters.listing_validator import ListingValidator
from src.filters.matcher import ProductMatcher
from src.models.change_record import ChangeReport
from src.models.diagnostics import CycleDiagnostics
from src.models.history_entry import HistoryEntry
from src.models.tracker_state import TrackerState
from src.services import differ
from src.storage import history_ledger
from src.storage.state_codec import decode_state
from src.storage.state_store import StateStore

logger = logging.getLogger("price_tracker.orchestrator")


@dataclass
class CycleResult:
    """Container for the outcome of one completed cycle."""

    state: TrackerState
    report: ChangeReport
    diagnostics: CycleDiagnostics


class ReconciliationOrchestrator:
    """Coordinates validation, matching, diffing and ledger upkeep."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig.from_settings()

    # ── Private helpers ──────────────────────────────────

    @staticmethod
    def _load_previous(
        previous_document: Any,
        diagnostics: CycleDiagnostics,
    ) -> TrackerState:
        """Decode the previous state, falling back to an empty one.

        A corrupt document must not crash-loop a scheduled job, and must
        not be silently papered over either: the reset is flagged in the
        diagnostics and logged at ERROR.
        """
        try:
            state, invalid = decode_state(previous_document)
        except StateDecodeError as exc:
            logger.error(
                "Previous state unreadable, treating as first run: %s", exc
            )
            diagnostics.state_reset = True
            diagnostics.state_error = str(exc)
            return TrackerState()
        diagnostics.previous_invalid_listings = invalid
        return state

    # ── Cycle ────────────────────────────────────────────

    def run_cycle(
        self,
        previous_document: Any,
        raw_listings: Iterable[object],
        now: datetime | None = None,
    ) -> CycleResult:
        """Run one cycle and return the new state plus a change report.

        ``previous_document`` is whatever the persistent store handed
        back: JSON text, bytes, an already-parsed dict, a
        :class:`TrackerState`, or ``None`` on a first run.
        """
        now = now or datetime.now()
        diagnostics = CycleDiagnostics()

        if isinstance(previous_document, TrackerState):
            previous = previous_document
        else:
            previous = self._load_previous(previous_document, diagnostics)
        logger.info("Loaded %d previous listings", len(previous.listings))

        listings, _ = ListingValidator.validate(
            raw_listings, self.config, now, diagnostics
        )

        clusters = ProductMatcher.match(
            listings, self.config.min_cluster_stores
        )
        diagnostics.unclustered_with_model_key = (
            ProductMatcher.unclustered_count(listings, clusters)
        )

        records = differ.diff(previous.listings, listings)
        report = differ.build_report(records, now, diagnostics)

        ledger = history_ledger.record(
            previous.ledger,
            history_ledger.date_key(now),
            HistoryEntry(
                date=history_ledger.date_key(now),
                listing_count=len(listings),
                cluster_count=len(clusters),
                drop_count=len(report.decreased),
            ),
        )
        ledger = history_ledger.prune(
            ledger, self.config.history_retention_days, now
        )

        state = TrackerState(
            listings=listings,
            clusters=clusters,
            ledger=ledger,
            last_updated=now,
        )

        logger.info(
            "Cycle complete: %d listings, %d clusters, %d dropped, "
            "%d keyed but unclustered",
            len(listings),
            len(clusters),
            diagnostics.dropped,
            diagnostics.unclustered_with_model_key,
        )
        return CycleResult(state=state, report=report, diagnostics=diagnostics)

    def run_with_store(
        self,
        store: StateStore,
        raw_listings: Iterable[object],
        now: datetime | None = None,
    ) -> CycleResult:
        """Read the store once, run a cycle, write the store once."""
        try:
            document = store.read()
        except StateDecodeError as exc:
            logger.error("State store unreadable: %s", exc)
            result = self.run_cycle(None, raw_listings, now)
            result.diagnostics.state_reset = True
            result.diagnostics.state_error = str(exc)
        else:
            result = self.run_cycle(document, raw_listings, now)
        store.write(result.state)
        return result


def run_cycle(
    previous_document: Any,
    raw_listings: Iterable[object],
    config: EngineConfig | None = None,
    now: datetime | None = None,
) -> CycleResult:
    """Functional entry point: run one cycle with ``config``."""
    orchestrator = ReconciliationOrchestrator(config or EngineConfig())
    return orchestrator.run_cycle(previous_document, raw_listings, now)
