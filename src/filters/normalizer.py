# src/filters/normalizer.py

"""Listing name normalisation and specification extraction.

Extraction is driven by ordered rule tables.  Each :class:`SpecRule`
pairs a compiled pattern with an extractor that turns the match into a
value or ``None``; the first rule producing a value wins.  A name that no
rule recognises simply yields an empty mapping, the listing then stays a
standalone product and is never clustered.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("price_tracker.normalizer")

_NON_RETAINED_RE = re.compile(r"[^a-z0-9+]+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Alphanumeric boundaries; ``\b`` does not treat "+" as part of a token.
_START = r"(?<![a-z0-9])"
_END = r"(?![a-z0-9])"


@dataclass(frozen=True)
class SpecRule:
    """A named pattern plus the function that turns its match into a value."""

    name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str]], Any]

    def apply(self, text: str) -> Any:
        """Return the extracted value, or ``None`` when the rule does not apply."""
        match = self.pattern.search(text)
        if match is None:
            return None
        return self.extract(match)


def _compact(*parts: str | None) -> str:
    """Join matched parts into a single key token."""
    joined = "".join(p for p in parts if p)
    return joined.replace(" ", "").replace("+", "plus")


def _iphone_key(m: re.Match[str]) -> str:
    return _compact("iphone", m.group("gen"), m.group("tier"))


def _galaxy_key(m: re.Match[str]) -> str:
    return _compact("galaxy", m.group("line"), m.group("gen"), m.group("tier"))


def _pixel_key(m: re.Match[str]) -> str:
    return _compact("pixel", m.group("gen"), m.group("tier"))


def _ipad_key(m: re.Match[str]) -> str | None:
    line, gen, chip = m.group("line"), m.group("gen"), m.group("chip")
    # A bare "ipad" says nothing about the generation.
    if not (line or gen or chip):
        return None
    return _compact("ipad", line, gen, chip)


def _macbook_key(m: re.Match[str]) -> str | None:
    size, chip = m.group("size"), m.group("chip")
    if not (size or chip):
        return None
    return _compact("macbook", m.group("line"), size, chip, m.group("tier"))


def _airpods_key(m: re.Match[str]) -> str | None:
    line, gen = m.group("line"), m.group("gen")
    if not (line or gen):
        return None
    return _compact("airpods", line, gen)


def _watch_key(m: re.Match[str]) -> str:
    if m.group("series"):
        return _compact("watchseries", m.group("series"))
    if m.group("ultra"):
        return _compact("watchultra", m.group("ultra_gen"))
    return "watchse"


def _storage_gb(m: re.Match[str]) -> int:
    size = int(m.group("size"))
    return size * 1024 if m.group("unit") == "tb" else size


# Ordered most specific first; alternations list the longest variant first.
MODEL_RULES: tuple[SpecRule, ...] = (
    SpecRule(
        "iphone",
        re.compile(
            _START + r"iphone\s?(?P<gen>\d{1,2}|se|xr|xs|x)"
            r"(?:\s?(?P<tier>pro\s?max|pro|plus|max|mini|e))?" + _END
        ),
        _iphone_key,
    ),
    SpecRule(
        "galaxy",
        re.compile(
            _START + r"galaxy\s?(?P<line>z\s?fold|z\s?flip|tab\s?s|tab\s?a|note|s|a|m)"
            r"\s?(?P<gen>\d{1,2})"
            r"(?:\s?(?P<tier>ultra|plus|fe|lite|\+))?" + _END
        ),
        _galaxy_key,
    ),
    SpecRule(
        "pixel",
        re.compile(
            _START + r"pixel\s?(?P<gen>\d{1,2})"
            r"(?:\s?(?P<tier>pro\s?xl|pro\s?fold|pro|a))?" + _END
        ),
        _pixel_key,
    ),
    SpecRule(
        "ipad",
        re.compile(
            _START + r"ipad(?:\s?(?P<line>pro|air|mini))?"
            r"(?:\s?(?P<gen>\d{1,2})(?:th|rd|nd|st)?)?"
            r"(?:\s?(?:gen|generation))?"
            r"(?:\s?(?P<chip>m\d))?" + _END
        ),
        _ipad_key,
    ),
    SpecRule(
        "macbook",
        re.compile(
            _START + r"macbook\s?(?P<line>air|pro)"
            r"(?:\s?(?P<size>\d{2}))?(?:\s?(?:inch|in))?"
            r"(?:\s?(?P<chip>m\d)(?:\s?(?P<tier>pro|max|ultra))?)?" + _END
        ),
        _macbook_key,
    ),
    SpecRule(
        "airpods",
        re.compile(
            _START + r"airpods(?:\s?(?P<line>pro|max))?"
            r"(?:\s?(?P<gen>\d)(?:th|rd|nd|st)?)?"
            r"(?:\s?(?:gen|generation))?" + _END
        ),
        _airpods_key,
    ),
    SpecRule(
        "watch",
        re.compile(
            _START + r"watch\s?(?:series\s?(?P<series>\d{1,2})"
            r"|(?P<ultra>ultra)(?:\s?(?P<ultra_gen>\d))?"
            r"|(?P<se>se))" + _END
        ),
        _watch_key,
    ),
)

STORAGE_RULES: tuple[SpecRule, ...] = (
    SpecRule(
        "capacity",
        re.compile(
            _START + r"(?P<size>\d{1,4})\s?(?P<unit>gb|tb)" + _END
            + r"(?!\s(?:ram|memory|unified))"
        ),
        _storage_gb,
    ),
)

# (keywords, category) checked in order against the lowercased raw name.
CATEGORY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("iphone",), "iPhone"),
    (("macbook", "imac", "mac mini", "mac studio"), "MacBook"),
    (("ipad",), "iPad"),
    (("watch",), "Apple Watch"),
    (("airpods",), "AirPods"),
    (("samsung", "galaxy"), "Samsung"),
    (("pixel",), "Google Pixel"),
    (("laptop", "notebook"), "Laptop"),
    (("tablet",), "Tablet"),
    (("headphone", "earbud", "earphone"), "Audio"),
)


def normalize(
    raw_name: str | None,
    noise_words: Iterable[str] | None = None,
) -> str:
    """Reduce a listing name to its canonical, comparable form.

    Lowercases, replaces characters outside ``[a-z0-9+]`` with spaces,
    drops brand noise tokens and collapses whitespace.  The result is a
    fixed point: ``normalize(normalize(x)) == normalize(x)``.
    """
    if not raw_name:
        return ""
    noise = frozenset(
        Settings.BRAND_NOISE_WORDS if noise_words is None else noise_words
    )
    spaced = _NON_RETAINED_RE.sub(" ", str(raw_name).lower())
    return " ".join(t for t in spaced.split() if t not in noise)


def first_match(rules: Iterable[SpecRule], text: str) -> Any:
    """Evaluate ``rules`` in order and return the first non-``None`` value."""
    for rule in rules:
        value = rule.apply(text)
        if value is not None:
            return value
    return None


def extract_spec(canonical_name: str) -> dict[str, Any]:
    """Pull ``modelKey`` and ``storageGb`` out of a canonical name.

    Returns an empty mapping when no model rule matches, so the listing
    is excluded from clustering.
    """
    if not canonical_name:
        return {}
    model_key = first_match(MODEL_RULES, canonical_name)
    if model_key is None:
        return {}
    spec: dict[str, Any] = {"modelKey": model_key}
    storage = first_match(STORAGE_RULES, canonical_name)
    if storage is not None:
        spec["storageGb"] = storage
    return spec


def detect_category(name: str | None) -> str:
    """Map a listing name to a coarse category."""
    lowered = (name or "").lower()
    for keywords, category in CATEGORY_RULES:
        if any(kw in lowered for kw in keywords):
            return category
    return "Other"


def slugify(text: str) -> str:
    """Lowercase ``text`` and join its alphanumeric runs with underscores."""
    return _SLUG_RE.sub("_", text.lower().replace("+", " plus ")).strip("_")


def listing_id(store: str, canonical_name: str) -> str:
    """Stable listing id derived from the store and canonical name only."""
    return f"{slugify(store)}_{slugify(canonical_name)}"
