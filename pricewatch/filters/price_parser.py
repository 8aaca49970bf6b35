# pricewatch/filters/price_parser.py

"""Conversion between localized price strings and numbers."""

import re

from pricewatch.config.settings import Settings

# Currency names / labels that may prefix a price ("Rs. 999", "INR 1,299")
_CURRENCY_WORDS_RE = re.compile(
    r"(?i)\b(?:rs\.?|inr|mrp\s*:?|price\s*:?)"
)
_CURRENCY_SYMBOLS_RE = re.compile(r"[₹$€£¥]")
_SEPARATORS_RE = re.compile(r"[,\s]")
_DECIMAL_RE = re.compile(r"^\d+(?:\.\d*)?$")


def parse_price(text: str | None) -> float | None:
    """Parse a string like ``'₹1,234'`` or ``'Rs. 999'`` to a float.

    Returns ``None`` when anything other than a plain decimal number
    remains after stripping currency markers and separators.
    """
    if not text:
        return None
    cleaned = _CURRENCY_WORDS_RE.sub("", str(text))
    cleaned = _CURRENCY_SYMBOLS_RE.sub("", cleaned)
    cleaned = _SEPARATORS_RE.sub("", cleaned)
    if not _DECIMAL_RE.match(cleaned):
        return None
    return float(cleaned)


def format_price(value: float) -> str:
    """Render a number as an Indian rupee string (``₹1,234`` / ``₹1,234.50``)."""
    symbol = Settings.CURRENCY_SYMBOL
    if float(value).is_integer():
        return f"{symbol}{value:,.0f}"
    return f"{symbol}{value:,.2f}"
