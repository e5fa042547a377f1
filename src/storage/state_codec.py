# src/storage/state_codec.py

"""JSON document codec for the persisted tracker state and change report.

The state document keeps the field names the tracker has always written
(``products``, ``matches``, ``history``, ``lastUpdated``) so existing
``prices.json`` files stay readable.  Decoding is strict about the
document's overall shape and lenient about individual entries: a bad
product or history row is skipped and counted, a bad document raises
:class:`~src.errors.StateDecodeError`.
"""

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from src.errors import StateDecodeError
from src.filters.normalizer import (
    detect_category,
    extract_spec,
    listing_id,
    normalize,
)
from src.models.change_record import ChangeRecord, ChangeReport
from src.models.history_entry import HistoryEntry
from src.models.listing import Listing
from src.models.match_cluster import MatchCluster
from src.models.tracker_state import TrackerState
from src.storage.history_ledger import date_key

logger = logging.getLogger("price_tracker.storage")

_EPOCH = datetime.fromtimestamp(0)


# ── Encoding ─────────────────────────────────────────────


def _price(value: Decimal) -> float:
    return float(value)


def encode_listing(listing: Listing) -> dict[str, Any]:
    """Serialise a listing to a plain JSON-ready dict."""
    return {
        "id": listing.id,
        "store": listing.store,
        "name": listing.raw_name,
        "canonicalName": listing.canonical_name,
        "price": _price(listing.price),
        "priceText": listing.price_text,
        "url": listing.url,
        "imageUrl": listing.image_url,
        "category": listing.category,
        "spec": dict(listing.spec_attributes),
        "scrapedAt": listing.observed_at.isoformat(),
    }


def encode_state(state: TrackerState) -> dict[str, Any]:
    """Serialise the full tracker state document."""
    return {
        "products": [encode_listing(p) for p in state.listings],
        "matches": {
            c.match_key: [encode_listing(m) for m in c.members]
            for c in state.clusters
        },
        "history": {
            key: {
                "count": entry.listing_count,
                "matches": entry.cluster_count,
                "drops": entry.drop_count,
            }
            for key, entry in sorted(state.ledger.items())
        },
        "lastUpdated": (
            state.last_updated.isoformat() if state.last_updated else None
        ),
    }


def dumps_state(state: TrackerState) -> str:
    """Serialise the state document to JSON text."""
    return json.dumps(encode_state(state), ensure_ascii=False, indent=2)


def _encode_change(record: ChangeRecord) -> dict[str, Any]:
    data = encode_listing(record.listing)
    data["id"] = record.listing_id
    if record.old_price is not None and record.new_price is not None:
        data["oldPrice"] = _price(record.old_price)
        data["newPrice"] = _price(record.new_price)
        data["delta"] = _price(record.delta or Decimal(0))
    return data


def encode_report(report: ChangeReport) -> dict[str, Any]:
    """Serialise a change report independently of the state document."""
    diagnostics = asdict(report.diagnostics)
    diagnostics["dropped"] = report.diagnostics.dropped
    return {
        "generatedAt": report.generated_at.isoformat(),
        "new": [_encode_change(r) for r in report.new],
        "removed": [_encode_change(r) for r in report.removed],
        "increased": [_encode_change(r) for r in report.increased],
        "decreased": [_encode_change(r) for r in report.decreased],
        "unchangedCount": report.unchanged_count,
        "diagnostics": diagnostics,
    }


# ── Decoding ─────────────────────────────────────────────


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _optional_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def decode_listing(
    data: Any,
    fallback_time: datetime = _EPOCH,
) -> Listing | None:
    """Rebuild a listing from a stored dict, or ``None`` if it is unusable.

    The id is always re-derived from store and canonical name, which
    also repairs documents whose ids carried a scrape timestamp.
    """
    if not isinstance(data, Mapping):
        return None
    store = _optional_text(data.get("store"))
    raw_name = _optional_text(data.get("name"))
    if store is None or raw_name is None:
        return None

    canonical = _optional_text(data.get("canonicalName")) or normalize(raw_name)
    if not canonical:
        return None

    raw_price = data.get("price")
    if isinstance(raw_price, bool) or not isinstance(raw_price, (int, float, str)):
        return None
    try:
        price = Decimal(str(raw_price))
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0:
        return None

    spec = data.get("spec")
    category = data.get("category")
    return Listing(
        id=listing_id(store, canonical),
        store=store,
        raw_name=raw_name,
        canonical_name=canonical,
        price=price,
        price_text=str(data.get("priceText") or raw_price),
        observed_at=_parse_datetime(data.get("scrapedAt")) or fallback_time,
        category=(
            category if isinstance(category, str) and category
            else detect_category(raw_name)
        ),
        url=_optional_text(data.get("url")),
        image_url=_optional_text(data.get("imageUrl")),
        spec_attributes=(
            dict(spec) if isinstance(spec, Mapping) else extract_spec(canonical)
        ),
    )


def _decode_listings(
    rows: list[Any],
    fallback_time: datetime,
) -> tuple[list[Listing], int]:
    """Decode listing rows, collapsing re-derived id clashes to the cheapest."""
    kept: list[Listing] = []
    index: dict[str, int] = {}
    invalid = 0
    for row in rows:
        listing = decode_listing(row, fallback_time)
        if listing is None:
            invalid += 1
            continue
        if listing.id in index:
            pos = index[listing.id]
            if listing.price < kept[pos].price:
                kept[pos] = listing
            continue
        index[listing.id] = len(kept)
        kept.append(listing)
    return kept, invalid


def _history_key(raw_key: str) -> str | None:
    """Map a stored history key to an ISO date.

    Older documents keyed history by epoch milliseconds.
    """
    if raw_key.isdigit():
        try:
            return date_key(datetime.fromtimestamp(int(raw_key) / 1000))
        except (OverflowError, OSError, ValueError):
            return None
    try:
        return date_key(datetime.fromisoformat(raw_key))
    except ValueError:
        return None


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"not a count: {value!r}")
    # json.loads accepts Infinity, NaN and overflowing literals like 1e400.
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"not a finite count: {value!r}")
    return int(value)


def _decode_history(raw: Mapping[str, Any]) -> dict[str, HistoryEntry]:
    def order(item: tuple[str, Any]) -> tuple[int, str]:
        # Epoch-ms keys sort numerically so the latest run of a day wins.
        key = item[0]
        return (0, key.zfill(20)) if key.isdigit() else (1, key)

    # Keys are stringified up front; a pre-loaded dict may hold ints.
    rows = [(str(k), v) for k, v in raw.items()]
    ledger: dict[str, HistoryEntry] = {}
    for raw_key, row in sorted(rows, key=order):
        key = _history_key(raw_key)
        if key is None or not isinstance(row, Mapping):
            logger.warning("Skipping unreadable history entry %r", raw_key)
            continue
        try:
            entry = HistoryEntry(
                date=key,
                listing_count=_count(row.get("count", 0)),
                cluster_count=_count(row.get("matches", 0)),
                drop_count=_count(row.get("drops", 0)),
            )
        except ValueError:
            logger.warning("Skipping malformed history entry %r", raw_key)
            continue
        ledger[key] = entry
    return dict(sorted(ledger.items()))


def decode_state(document: Any) -> tuple[TrackerState, int]:
    """Parse a state document (JSON text, bytes or an already-loaded dict).

    Returns the state and the number of stored listings that had to be
    skipped.  ``None`` or blank text means a first run and yields an
    empty state.

    Raises:
        StateDecodeError: the document is not valid JSON or does not
            have the expected top-level shape.
    """
    if document is None:
        return TrackerState(), 0
    if isinstance(document, (bytes, bytearray)):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StateDecodeError(f"state is not UTF-8: {exc}") from exc
    if isinstance(document, str):
        if not document.strip():
            return TrackerState(), 0
        try:
            document = json.loads(document)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise StateDecodeError(f"state is not valid JSON: {exc}") from exc

    if not isinstance(document, Mapping):
        raise StateDecodeError(
            f"state must be a JSON object, got {type(document).__name__}"
        )

    products = document.get("products", [])
    matches = document.get("matches", {})
    history = document.get("history", {})
    if not isinstance(products, list):
        raise StateDecodeError("'products' must be an array")
    if not isinstance(matches, Mapping):
        raise StateDecodeError("'matches' must be an object")
    if not isinstance(history, Mapping):
        raise StateDecodeError("'history' must be an object")

    last_updated = _parse_datetime(document.get("lastUpdated"))
    fallback_time = last_updated or _EPOCH

    listings, invalid = _decode_listings(products, fallback_time)

    clusters: list[MatchCluster] = []
    for key, rows in sorted(
        ((str(k), v) for k, v in matches.items()), key=lambda kv: kv[0]
    ):
        if not isinstance(rows, list):
            continue
        members, _ = _decode_listings(rows, fallback_time)
        if members:
            clusters.append(MatchCluster(match_key=key, members=tuple(members)))

    if invalid:
        logger.warning("Skipped %d unreadable stored listings", invalid)

    state = TrackerState(
        listings=listings,
        clusters=clusters,
        ledger=_decode_history(history),
        last_updated=last_updated,
    )
    return state, invalid
