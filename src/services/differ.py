# src/services/differ.py

"""Snapshot diffing: classify every listing id across two cycles."""

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from src.models.change_record import ChangeKind, ChangeRecord, ChangeReport
from src.models.diagnostics import CycleDiagnostics
from src.models.listing import Listing

logger = logging.getLogger("price_tracker.differ")

_KIND_ORDER: dict[ChangeKind, int] = {
    ChangeKind.NEW: 0,
    ChangeKind.REMOVED: 1,
    ChangeKind.INCREASED: 2,
    ChangeKind.DECREASED: 3,
    ChangeKind.UNCHANGED: 4,
}


def _sort_key(record: ChangeRecord) -> tuple[int, Decimal, str]:
    """Kind, then largest movement first, then id."""
    delta = record.delta if record.delta is not None else Decimal(0)
    return (_KIND_ORDER[record.kind], -delta, record.listing_id)


def diff(
    previous: Sequence[Listing],
    current: Sequence[Listing],
) -> list[ChangeRecord]:
    """Compare two listing snapshots keyed by listing id.

    Every id in ``current`` yields New, Increased, Decreased or
    Unchanged; every id only in ``previous`` yields Removed.  When an
    id repeats inside one snapshot the last occurrence wins.
    """
    before = {listing.id: listing for listing in previous}
    after = {listing.id: listing for listing in current}
    records: list[ChangeRecord] = []

    for lid, listing in after.items():
        old = before.get(lid)
        if old is None:
            records.append(ChangeRecord(ChangeKind.NEW, lid, listing))
            continue
        if listing.price < old.price:
            kind = ChangeKind.DECREASED
        elif listing.price > old.price:
            kind = ChangeKind.INCREASED
        else:
            kind = ChangeKind.UNCHANGED
        records.append(
            ChangeRecord(
                kind,
                lid,
                listing,
                old_price=old.price,
                new_price=listing.price,
            )
        )

    for lid, listing in before.items():
        if lid not in after:
            records.append(ChangeRecord(ChangeKind.REMOVED, lid, listing))

    records.sort(key=_sort_key)
    return records


def build_report(
    records: Sequence[ChangeRecord],
    generated_at: datetime,
    diagnostics: CycleDiagnostics | None = None,
) -> ChangeReport:
    """Group change records by kind; unchanged ones are only counted."""
    report = ChangeReport(
        generated_at=generated_at,
        diagnostics=diagnostics or CycleDiagnostics(),
    )
    buckets: dict[ChangeKind, list[ChangeRecord]] = {
        ChangeKind.NEW: report.new,
        ChangeKind.REMOVED: report.removed,
        ChangeKind.INCREASED: report.increased,
        ChangeKind.DECREASED: report.decreased,
    }
    for record in records:
        bucket = buckets.get(record.kind)
        if bucket is None:
            report.unchanged_count += 1
        else:
            bucket.append(record)

    logger.info(
        "Changes: %d new, %d removed, %d up, %d down, %d unchanged",
        len(report.new),
        len(report.removed),
        len(report.increased),
        len(report.decreased),
        report.unchanged_count,
    )
    return report
