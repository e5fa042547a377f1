# src/models/listing.py

"""Listing data models for inter-module data flow."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

# Interface names first, legacy scraper names after.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "store_name": ("storeName", "store"),
    "raw_name": ("rawName", "name"),
    "raw_price_text": ("rawPriceText", "priceText"),
    "url": ("url",),
    "image_url": ("imageUrl", "image"),
}


def _as_text(value: Any) -> str | None:
    """Coerce a scalar field to stripped text; anything else is missing."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class RawListing:
    """One record as handed over by the fetcher; every field may be absent."""

    store_name: str | None = None
    raw_name: str | None = None
    raw_price_text: str | None = None
    url: str | None = None
    image_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RawListing":
        """Build a raw listing from a loosely-shaped mapping."""
        values: dict[str, str | None] = {}
        for attr, keys in _FIELD_ALIASES.items():
            values[attr] = None
            for key in keys:
                text = _as_text(data.get(key))
                if text is not None:
                    values[attr] = text
                    break
        return cls(**values)


@dataclass(frozen=True)
class Listing:
    """One observed product offer at one store at one point in time."""

    id: str
    store: str
    raw_name: str
    canonical_name: str
    price: Decimal
    price_text: str
    observed_at: datetime
    category: str = "Other"
    url: str | None = None
    image_url: str | None = None
    spec_attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def model_key(self) -> str | None:
        """Model key extracted from the name, if any."""
        value = self.spec_attributes.get("modelKey")
        return str(value) if value else None

    @property
    def storage_gb(self) -> int | None:
        """Storage capacity in GB, if any."""
        value = self.spec_attributes.get("storageGb")
        return int(value) if value is not None else None

    @property
    def match_key(self) -> str | None:
        """Clustering key, or ``None`` when the listing cannot be matched."""
        model = self.model_key
        if not model:
            return None
        storage = self.storage_gb
        return f"{model}_{storage if storage is not None else 'unknown'}"
