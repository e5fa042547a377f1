# src/scrapers/html_extractor.py

"""Offline extraction of raw listings from saved store category pages.

Fetching is someone else's job; this module only reshapes HTML that has
already been downloaded into the fetcher's record shape.  Each field is
located with an ordered selector cascade from ``selectors.json``: the
first selector that yields a usable value wins, and a card with no usable
name or price is skipped.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings
from src.errors import ConfigError
from src.models.listing import RawListing

_DIGIT_RE = re.compile(r"\d")


class HtmlListingExtractor:
    """Turn one store's category page HTML into raw listing records."""

    def __init__(
        self,
        store_id: str,
        selectors_path: Path | None = None,
        max_cards: int = 50,
    ) -> None:
        stores = {s["id"]: s for s in Settings.AVAILABLE_STORES}
        if store_id not in stores:
            valid = ", ".join(sorted(stores))
            raise ConfigError(f"Unknown store {store_id!r} (available: {valid})")
        self.store_id = store_id
        self.store_label = stores[store_id]["label"]
        self.base_url = stores[store_id]["base_url"]
        self.max_cards = max_cards
        self.logger = logging.getLogger(f"price_tracker.{store_id}")
        self.selectors = self._load_selectors(
            selectors_path or Settings.SELECTORS_PATH
        )

    def _load_selectors(self, path: Path) -> dict[str, list[str]]:
        """Merge this store's selector cascades over the defaults."""
        with open(path, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        merged: dict[str, list[str]] = dict(all_selectors.get("default", {}))
        merged.update(all_selectors.get(self.store_id, {}))
        return merged

    @staticmethod
    def _first_text(
        card: Tag,
        selectors: list[str],
        min_length: int = 1,
        require_digit: bool = False,
    ) -> str | None:
        """Text of the first selector match that passes the checks."""
        for selector in selectors:
            el = card.select_one(selector)
            if el is None:
                continue
            text = " ".join(el.get_text(" ", strip=True).split())
            if len(text) < min_length:
                continue
            if require_digit and not _DIGIT_RE.search(text):
                continue
            return text
        return None

    @staticmethod
    def _first_attr(
        card: Tag,
        selectors: list[str],
        attrs: tuple[str, ...],
    ) -> str | None:
        """First non-empty attribute among ``attrs`` across the cascade."""
        for selector in selectors:
            el = card.select_one(selector)
            if el is None:
                continue
            for attr in attrs:
                value = el.get(attr)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None

    def _find_cards(self, soup: BeautifulSoup) -> list[Tag]:
        """Cards from the first product selector that matches anything."""
        for selector in self.selectors.get("product_card", []):
            cards = soup.select(selector)
            if cards:
                self.logger.debug(
                    "[%s] %d cards with selector %s",
                    self.store_id,
                    len(cards),
                    selector,
                )
                return cards[: self.max_cards]
        return []

    def _parse_card(self, card: Tag) -> RawListing | None:
        """Parse a single product card into a RawListing."""
        name = self._first_text(card, self.selectors.get("name", []), min_length=4)
        price_text = self._first_text(
            card, self.selectors.get("price", []), require_digit=True
        )
        if name is None or price_text is None:
            return None

        href = self._first_attr(card, self.selectors.get("url", []), ("href",))
        image = self._first_attr(
            card, self.selectors.get("image", []), ("src", "data-src")
        )
        return RawListing(
            store_name=self.store_label,
            raw_name=name,
            raw_price_text=price_text,
            url=urljoin(self.base_url, href) if href else None,
            image_url=urljoin(self.base_url, image) if image else None,
        )

    def extract(self, html: str) -> list[RawListing]:
        """Extract every parseable card from a category page."""
        soup = BeautifulSoup(html, "lxml")
        cards = self._find_cards(soup)
        if not cards:
            self.logger.warning(
                "[%s] No product cards found on page", self.store_id
            )
            return []

        listings: list[RawListing] = []
        for card in cards:
            raw = self._parse_card(card)
            if raw is not None:
                listings.append(raw)

        self.logger.info(
            "[%s] Extracted %d of %d cards",
            self.store_id,
            len(listings),
            len(cards),
        )
        return listings

    def extract_file(self, path: Path) -> list[RawListing]:
        """Extract listings from a saved HTML file."""
        return self.extract(path.read_text(encoding="utf-8"))
