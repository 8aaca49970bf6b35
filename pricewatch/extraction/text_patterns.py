# pricewatch/extraction/text_patterns.py

"""Regex fallbacks for prices buried in inline scripts or page text.

Everything regex-based in the extraction cascade lives here so that the
patterns can be tested on their own.
"""

import re
from collections.abc import Iterable

# Key/value pairs retailers embed in inline JSON state. Group 1 is the value.
SCRIPT_PRICE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r'"priceAmount"\s*:\s*"?(\d[\d,]*(?:\.\d+)?)'),
    re.compile(
        r'"displayPrice"\s*:\s*"((?:₹|Rs\.?|INR)?\s?\d[\d,]*(?:\.\d+)?)"'
    ),
    re.compile(
        r'"finalPrice"\s*:\s*\{[^{}]*?"(?:value|decimalValue)"\s*:\s*"?(\d[\d,]*(?:\.\d+)?)'
    ),
    re.compile(
        r'"sellingPrice"\s*:\s*\{[^{}]*?"(?:value|decimalValue)"\s*:\s*"?(\d[\d,]*(?:\.\d+)?)'
    ),
    re.compile(r'"sellingPrice"\s*:\s*"?(\d[\d,]*(?:\.\d+)?)'),
    re.compile(r'"buyingPrice"\s*:\s*"?(\d[\d,]*(?:\.\d+)?)'),
]

# "₹1,23,456.00", "Rs. 999", "INR 1,299"
CURRENCY_TEXT_RE = re.compile(
    r"(?:₹|\bRs\.?|\bINR)\s?\d[\d,]*(?:\.\d{1,2})?",
    re.IGNORECASE,
)


def find_script_price(scripts: Iterable[str]) -> str | None:
    """Return the first price-like value in the inline *scripts*.

    Patterns are tried in priority order across all scripts before the
    next pattern is considered.
    """
    texts = [s for s in scripts if s]
    for pattern in SCRIPT_PRICE_PATTERNS:
        for text in texts:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
    return None


def find_currency_text(text: str) -> str | None:
    """Return the first currency-formatted substring of *text*."""
    if not text:
        return None
    match = CURRENCY_TEXT_RE.search(text)
    return match.group(0).strip() if match else None
