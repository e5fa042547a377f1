# src/filters/listing_validator.py

"""Raw record validation: turn fetcher records into listings or drop them."""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from src.config.settings import EngineConfig
from src.filters.normalizer import (
    detect_category,
    extract_spec,
    listing_id,
    normalize,
)
from src.filters.price_parser import below_floor, extract_amount
from src.models.diagnostics import CycleDiagnostics
from src.models.listing import Listing, RawListing

logger = logging.getLogger("price_tracker.filters")


class ListingValidator:
    """Validate raw records and drop those with missing essential fields."""

    @staticmethod
    def _coerce(record: object) -> RawListing | None:
        """Accept a RawListing or a mapping; anything else is malformed."""
        if isinstance(record, RawListing):
            return record
        if isinstance(record, Mapping):
            return RawListing.from_mapping(record)
        return None

    @staticmethod
    def build_listing(
        raw: RawListing,
        config: EngineConfig,
        observed_at: datetime,
        diagnostics: CycleDiagnostics,
    ) -> Listing | None:
        """Normalise and price one raw record, tallying the drop reason."""
        if not raw.store_name:
            logger.debug("Dropped record without store (name=%s)", raw.raw_name)
            diagnostics.malformed_records += 1
            return None

        canonical = normalize(raw.raw_name)
        if not canonical:
            logger.debug(
                "Dropped record with empty name (store=%s, url=%s)",
                raw.store_name,
                raw.url,
            )
            diagnostics.missing_name += 1
            return None

        if not raw.raw_price_text:
            logger.debug(
                "Dropped record without price (store=%s, name=%s)",
                raw.store_name,
                raw.raw_name,
            )
            diagnostics.missing_price += 1
            return None

        amount = extract_amount(raw.raw_price_text)
        if amount is None:
            logger.debug(
                "Dropped unparseable price %r (store=%s, name=%s)",
                raw.raw_price_text,
                raw.store_name,
                raw.raw_name,
            )
            diagnostics.unparseable_price += 1
            return None
        if below_floor(amount, config.price_floor):
            logger.debug(
                "Dropped price %s at or below floor %s (store=%s, name=%s)",
                amount,
                config.price_floor,
                raw.store_name,
                raw.raw_name,
            )
            diagnostics.below_floor += 1
            return None

        return Listing(
            id=listing_id(raw.store_name, canonical),
            store=raw.store_name,
            raw_name=raw.raw_name or "",
            canonical_name=canonical,
            price=amount,
            price_text=raw.raw_price_text,
            observed_at=observed_at,
            category=detect_category(raw.raw_name),
            url=raw.url,
            image_url=raw.image_url,
            spec_attributes=extract_spec(canonical),
        )

    @staticmethod
    def validate(
        records: Iterable[object],
        config: EngineConfig,
        observed_at: datetime,
        diagnostics: CycleDiagnostics | None = None,
    ) -> tuple[list[Listing], CycleDiagnostics]:
        """Build listings from raw records, keeping the cheapest per id.

        A single bad record never raises; it is dropped and counted in
        the returned diagnostics.
        """
        tally = diagnostics or CycleDiagnostics()
        seen_ids: dict[str, int] = {}
        kept: list[Listing] = []

        for record in records:
            tally.raw_count += 1
            raw = ListingValidator._coerce(record)
            if raw is None:
                logger.debug("Dropped malformed record of type %s", type(record).__name__)
                tally.malformed_records += 1
                continue

            listing = ListingValidator.build_listing(
                raw, config, observed_at, tally
            )
            if listing is None:
                continue

            if listing.id in seen_ids:
                existing_idx = seen_ids[listing.id]
                if listing.price < kept[existing_idx].price:
                    kept[existing_idx] = listing
                tally.duplicate_ids += 1
                continue

            seen_ids[listing.id] = len(kept)
            kept.append(listing)

        tally.without_model_key = sum(
            1 for listing in kept if listing.model_key is None
        )

        if tally.dropped:
            logger.info(
                "Validation dropped %d of %d raw records",
                tally.dropped,
                tally.raw_count,
            )
        if tally.duplicate_ids:
            logger.info(
                "Collapsed %d same-store duplicate listings",
                tally.duplicate_ids,
            )

        return kept, tally
