# src/filters/price_parser.py

"""Free-form currency text to decimal price."""

import logging
import re
from decimal import Decimal, InvalidOperation

logger = logging.getLogger("price_tracker.price_parser")

# First digit run with optional "," / "." grouping, e.g. "1,299.00" or "1.234".
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")

DEFAULT_PRICE_FLOOR = Decimal("50")


def _to_decimal(number: str) -> Decimal:
    """Resolve separators in a digit run and return its value.

    Exactly two digits after the final separator mark a decimal point;
    any other separator is thousands grouping.
    """
    last_sep = max(number.rfind("."), number.rfind(","))
    if last_sep == -1:
        return Decimal(number)
    tail = number[last_sep + 1:]
    head = re.sub(r"[.,]", "", number[:last_sep])
    if len(tail) == 2:
        return Decimal(f"{head}.{tail}")
    return Decimal(head + tail)


def extract_amount(text: str | None) -> Decimal | None:
    """Return the first number in ``text`` without applying any floor."""
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if match is None:
        return None
    try:
        return _to_decimal(match.group(0))
    except InvalidOperation:
        logger.debug("Unparseable price text: %r", text)
        return None


def below_floor(amount: Decimal, floor: Decimal) -> bool:
    """True when ``amount`` is at or below ``floor`` and must be rejected."""
    return amount <= floor


def parse_price(
    text: str | None,
    floor: Decimal = DEFAULT_PRICE_FLOOR,
) -> Decimal | None:
    """Extract a price from ``text``.

    Returns ``None`` when the text holds no digits or when the parsed
    value is at or below ``floor`` (accessories and placeholder prices).
    """
    value = extract_amount(text)
    if value is None or below_floor(value, floor):
        return None
    return value
