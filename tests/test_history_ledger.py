# tests/test_history_ledger.py

"""Tests for the date-keyed history ledger."""

import unittest
from datetime import date, datetime

from src.models.history_entry import HistoryEntry
from src.storage.history_ledger import date_key, prune, record


def _entry(day: str, count: int = 10) -> HistoryEntry:
    """Create a HistoryEntry for ``day``."""
    return HistoryEntry(date=day, listing_count=count, cluster_count=2, drop_count=1)


class TestDateKey(unittest.TestCase):
    """date_key() formatting."""

    def test_datetime_and_date(self) -> None:
        """Both datetimes and dates map to ISO day strings."""
        self.assertEqual(date_key(datetime(2026, 3, 4, 23, 59)), "2026-03-04")
        self.assertEqual(date_key(date(2026, 3, 4)), "2026-03-04")


class TestRecord(unittest.TestCase):
    """record() upsert semantics."""

    def test_inserts_new_day(self) -> None:
        """A new day is added."""
        ledger = record({}, "2026-10-19", _entry("2026-10-19"))
        self.assertEqual(list(ledger), ["2026-10-19"])

    def test_same_day_overwrites(self) -> None:
        """A second run on the same day replaces the first."""
        first = record({}, "2026-10-19", _entry("2026-10-19", count=5))
        second = record(first, "2026-10-19", _entry("2026-10-19", count=8))
        self.assertEqual(len(second), 1)
        self.assertEqual(second["2026-10-19"].listing_count, 8)

    def test_input_untouched(self) -> None:
        """record() returns a new mapping."""
        original = {"2026-10-18": _entry("2026-10-18")}
        record(original, "2026-10-19", _entry("2026-10-19"))
        self.assertEqual(list(original), ["2026-10-18"])


class TestPrune(unittest.TestCase):
    """prune() retention semantics."""

    def setUp(self) -> None:
        """Ledger spanning the 30-day boundary."""
        self.now = datetime(2026, 10, 19, 12, 0)
        self.ledger = {
            "2026-10-19": _entry("2026-10-19"),
            "2026-09-19": _entry("2026-09-19"),
            "2026-09-18": _entry("2026-09-18"),
            "2026-01-01": _entry("2026-01-01"),
        }

    def test_boundary_kept_day_past_dropped(self) -> None:
        """Exactly N days old stays; N+1 days old goes."""
        pruned = prune(self.ledger, 30, self.now)
        self.assertIn("2026-09-19", pruned)
        self.assertNotIn("2026-09-18", pruned)
        self.assertNotIn("2026-01-01", pruned)
        self.assertIn("2026-10-19", pruned)

    def test_idempotent(self) -> None:
        """Pruning twice equals pruning once."""
        once = prune(self.ledger, 30, self.now)
        self.assertEqual(prune(once, 30, self.now), once)

    def test_input_untouched(self) -> None:
        """prune() returns a new mapping."""
        prune(self.ledger, 30, self.now)
        self.assertEqual(len(self.ledger), 4)

    def test_zero_retention_keeps_today(self) -> None:
        """With zero retention only today's entry survives."""
        self.assertEqual(list(prune(self.ledger, 0, self.now)), ["2026-10-19"])

    def test_unparseable_keys_dropped(self) -> None:
        """Keys that are not dates cannot be retained."""
        ledger = dict(self.ledger)
        ledger["yesterday"] = _entry("yesterday")
        self.assertNotIn("yesterday", prune(ledger, 30, self.now))

    def test_sorted_output(self) -> None:
        """Surviving keys come back in date order."""
        ledger = {
            "2026-10-19": _entry("2026-10-19"),
            "2026-10-01": _entry("2026-10-01"),
            "2026-10-10": _entry("2026-10-10"),
        }
        self.assertEqual(
            list(prune(ledger, 30, date(2026, 10, 19))),
            ["2026-10-01", "2026-10-10", "2026-10-19"],
        )


if __name__ == "__main__":
    unittest.main()
