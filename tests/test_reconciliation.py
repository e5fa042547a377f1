# tests/test_reconciliation.py

"""Tests for the ReconciliationOrchestrator cycle."""

import tempfile
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from src.config.settings import EngineConfig
from src.filters.normalizer import listing_id, normalize
from src.models.tracker_state import TrackerState
from src.services.reconciliation import ReconciliationOrchestrator, run_cycle
from src.storage.state_codec import decode_state, dumps_state
from src.storage.state_store import StateStore

_NOW = datetime(2026, 10, 19, 9, 0)

SCAN_IPHONE = {
    "storeName": "Scan",
    "rawName": "iPhone 15 128GB",
    "rawPriceText": "€999.00",
}
KLIKK_IPHONE = {
    "storeName": "Klikk",
    "rawName": "Apple iPhone 15 128GB",
    "rawPriceText": "€1,050",
}


def _previous_document() -> dict[str, object]:
    """State left by an earlier cycle with Scan's iPhone at 1099."""
    return {
        "products": [
            {
                "id": "scan_iphone15",
                "store": "Scan",
                "name": "iPhone 15 128GB",
                "price": 1099,
                "priceText": "€1,099.00",
            },
        ],
        "matches": {},
        "history": {},
        "lastUpdated": "2026-10-18T09:00:00",
    }


class TestEndToEnd(unittest.TestCase):
    """The Scan / Klikk iPhone scenario."""

    def setUp(self) -> None:
        """Run one cycle over the scenario inputs."""
        self.result = run_cycle(
            _previous_document(),
            [SCAN_IPHONE, KLIKK_IPHONE],
            EngineConfig(),
            _NOW,
        )
        self.scan_id = listing_id("Scan", normalize("iPhone 15 128GB"))

    def test_prices_parsed(self) -> None:
        """Both listings survive with their parsed prices."""
        prices = {l.store: l.price for l in self.result.state.listings}
        self.assertEqual(prices, {"Scan": Decimal("999.00"), "Klikk": Decimal("1050")})

    def test_spec_extracted(self) -> None:
        """Both listings share model key and storage."""
        for listing in self.result.state.listings:
            with self.subTest(store=listing.store):
                self.assertEqual(listing.model_key, "iphone15")
                self.assertEqual(listing.storage_gb, 128)

    def test_single_ordered_cluster(self) -> None:
        """One cluster, Scan first as the best price."""
        clusters = self.result.state.clusters
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0].match_key, "iphone15_128")
        self.assertEqual(
            [(m.store, m.price) for m in clusters[0].members],
            [("Scan", Decimal("999.00")), ("Klikk", Decimal("1050"))],
        )

    def test_scan_decreased_by_100(self) -> None:
        """Scan's listing is reported as a 100 drop."""
        report = self.result.report
        self.assertEqual(len(report.decreased), 1)
        change = report.decreased[0]
        self.assertEqual(change.listing_id, self.scan_id)
        self.assertEqual(change.old_price, Decimal("1099"))
        self.assertEqual(change.delta, Decimal("100"))
        self.assertEqual([r.listing.store for r in report.new], ["Klikk"])
        self.assertEqual(report.removed, [])

    def test_ledger_updated(self) -> None:
        """Today's aggregate is recorded."""
        entry = self.result.state.ledger["2026-10-19"]
        self.assertEqual(entry.listing_count, 2)
        self.assertEqual(entry.cluster_count, 1)
        self.assertEqual(entry.drop_count, 1)
        self.assertEqual(self.result.state.last_updated, _NOW)


class TestCycleBehaviour(unittest.TestCase):
    """Failure tolerance and cross-cycle behaviour."""

    def setUp(self) -> None:
        """Default-policy orchestrator."""
        self.orchestrator = ReconciliationOrchestrator(EngineConfig())

    def test_first_run(self) -> None:
        """No previous document: everything is new, nothing is reset."""
        result = self.orchestrator.run_cycle(None, [SCAN_IPHONE], _NOW)
        self.assertEqual(len(result.report.new), 1)
        self.assertFalse(result.diagnostics.state_reset)

    def test_corrupt_state_fails_closed(self) -> None:
        """A corrupt document becomes an empty previous state, flagged."""
        with self.assertLogs("price_tracker.orchestrator", level="ERROR"):
            result = self.orchestrator.run_cycle(
                "{not json", [SCAN_IPHONE], _NOW
            )
        self.assertTrue(result.diagnostics.state_reset)
        self.assertTrue(result.report.diagnostics.state_reset)
        self.assertIn("JSON", result.diagnostics.state_error)
        self.assertEqual(len(result.report.new), 1)
        self.assertEqual(list(result.state.ledger), ["2026-10-19"])

    def test_infinite_history_count_does_not_abort(self) -> None:
        """A stored Infinity count is skipped instead of crashing the cycle."""
        document = '{"history": {"2026-10-18": {"count": Infinity}}}'
        with self.assertLogs("price_tracker.storage", level="WARNING"):
            result = self.orchestrator.run_cycle(document, [SCAN_IPHONE], _NOW)
        self.assertFalse(result.diagnostics.state_reset)
        self.assertEqual(list(result.state.ledger), ["2026-10-19"])
        self.assertEqual(len(result.report.new), 1)

    def test_int_keyed_document_does_not_abort(self) -> None:
        """A pre-loaded document with integer history keys is accepted."""
        stamp = int(datetime(2026, 10, 18, 12, 0).timestamp() * 1000)
        result = self.orchestrator.run_cycle(
            {"history": {stamp: {"count": 1}}}, [SCAN_IPHONE], _NOW
        )
        self.assertEqual(list(result.state.ledger), ["2026-10-18", "2026-10-19"])

    def test_malformed_listings_do_not_abort(self) -> None:
        """Bad records are dropped and counted."""
        records: list[object] = [
            SCAN_IPHONE,
            None,
            {"storeName": "Klikk"},
            {"storeName": "Klikk", "rawName": "Case", "rawPriceText": "€9"},
        ]
        result = self.orchestrator.run_cycle(None, records, _NOW)
        self.assertEqual(len(result.state.listings), 1)
        self.assertEqual(result.diagnostics.raw_count, 4)
        self.assertEqual(result.diagnostics.dropped, 3)

    def test_missing_store_page_reports_removed(self) -> None:
        """A store absent this cycle shows up as removals."""
        first = self.orchestrator.run_cycle(None, [SCAN_IPHONE, KLIKK_IPHONE], _NOW)
        second = self.orchestrator.run_cycle(
            first.state, [SCAN_IPHONE], _NOW + timedelta(days=1)
        )
        self.assertEqual([r.listing.store for r in second.report.removed], ["Klikk"])
        self.assertEqual(second.report.unchanged_count, 1)
        self.assertEqual(second.state.clusters, [])

    def test_unchanged_cycle_through_serialised_state(self) -> None:
        """Re-running on identical input after a round trip changes nothing."""
        first = self.orchestrator.run_cycle(None, [SCAN_IPHONE, KLIKK_IPHONE], _NOW)
        second = self.orchestrator.run_cycle(
            dumps_state(first.state), [KLIKK_IPHONE, SCAN_IPHONE], _NOW
        )
        self.assertFalse(second.report.has_changes)
        self.assertEqual(second.report.unchanged_count, 2)

    def test_same_day_overwrites_ledger(self) -> None:
        """Two cycles on one day leave a single ledger entry."""
        first = self.orchestrator.run_cycle(None, [SCAN_IPHONE, KLIKK_IPHONE], _NOW)
        second = self.orchestrator.run_cycle(
            first.state, [SCAN_IPHONE], _NOW + timedelta(hours=3)
        )
        self.assertEqual(len(second.state.ledger), 1)
        self.assertEqual(second.state.ledger["2026-10-19"].listing_count, 1)

    def test_ledger_pruned(self) -> None:
        """Entries past the retention window are dropped each cycle."""
        old = self.orchestrator.run_cycle(None, [SCAN_IPHONE], _NOW - timedelta(days=31))
        result = self.orchestrator.run_cycle(old.state, [SCAN_IPHONE], _NOW)
        self.assertEqual(list(result.state.ledger), ["2026-10-19"])

    def test_unclustered_diagnostic(self) -> None:
        """Keyed listings without a partner store are counted."""
        pro = {
            "storeName": "Klikk",
            "rawName": "iPhone 15 Pro 128GB",
            "rawPriceText": "€1,199",
        }
        result = self.orchestrator.run_cycle(None, [SCAN_IPHONE, pro], _NOW)
        self.assertEqual(result.state.clusters, [])
        self.assertEqual(result.diagnostics.unclustered_with_model_key, 2)

    def test_accepts_tracker_state(self) -> None:
        """An in-memory state can be passed directly."""
        result = self.orchestrator.run_cycle(TrackerState(), [SCAN_IPHONE], _NOW)
        self.assertEqual(len(result.report.new), 1)


class TestRunWithStore(unittest.TestCase):
    """ReconciliationOrchestrator.run_with_store persistence."""

    def setUp(self) -> None:
        """Temp state file."""
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = StateStore(
            state_path=Path(self._tmp.name) / "prices.json",
            results_dir=Path(self._tmp.name) / "results",
        )
        self.orchestrator = ReconciliationOrchestrator(EngineConfig())

    def test_persists_between_cycles(self) -> None:
        """The second cycle sees the first cycle's snapshot."""
        self.orchestrator.run_with_store(self.store, [SCAN_IPHONE], _NOW)
        cheaper = dict(SCAN_IPHONE, rawPriceText="€949.00")
        result = self.orchestrator.run_with_store(
            self.store, [cheaper], _NOW + timedelta(days=1)
        )
        self.assertEqual(len(result.report.decreased), 1)
        saved, _ = decode_state(self.store.read())
        self.assertEqual(saved.listings[0].price, Decimal("949.00"))
        self.assertEqual(len(saved.ledger), 2)

    def test_unreadable_file_resets(self) -> None:
        """Unreadable bytes on disk reset the state and are overwritten."""
        self.store.state_path.write_bytes(b"\xff\xfe\x00")
        with self.assertLogs("price_tracker.orchestrator", level="ERROR"):
            result = self.orchestrator.run_with_store(self.store, [SCAN_IPHONE], _NOW)
        self.assertTrue(result.report.diagnostics.state_reset)
        saved, _ = decode_state(self.store.read())
        self.assertEqual(len(saved.listings), 1)


if __name__ == "__main__":
    unittest.main()
