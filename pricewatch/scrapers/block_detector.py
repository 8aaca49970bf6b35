# pricewatch/scrapers/block_detector.py

"""Bot-challenge / CAPTCHA page detection."""

import logging

from bs4 import BeautifulSoup

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.block_detector")

# Cloudflare challenge page markers (checked in the raw markup)
_CF_CHALLENGE_MARKERS: list[str] = [
    "challenges.cloudflare.com",
    "cdn-cgi/challenge-platform",
    "cf-turnstile",
    "cf_chl_opt",
]

# Elements that only appear on challenge pages
_CAPTCHA_ELEMENT_SELECTORS: list[str] = [
    "form[action*='validateCaptcha']",
    "input#captchacharacters",
    "img[src*='captcha']",
    "div.g-recaptcha",
    "iframe[src*='recaptcha']",
    "div.h-captcha",
]


def find_block_signature(markup: str) -> str | None:
    """Return the first challenge signature found in *markup*, if any."""
    if not markup:
        return None
    lower = markup.lower()

    for marker in _CF_CHALLENGE_MARKERS:
        if marker in lower:
            return marker

    soup = BeautifulSoup(markup, "lxml")
    for selector in _CAPTCHA_ELEMENT_SELECTORS:
        if soup.select_one(selector) is not None:
            return selector

    text = soup.get_text(" ", strip=True).lower()
    for keyword in Settings.CAPTCHA_KEYWORDS:
        if keyword in text or keyword in lower:
            return keyword
    return None


def is_blocked(markup: str) -> bool:
    """Return True when *markup* looks like a bot-challenge page."""
    signature = find_block_signature(markup)
    if signature is None:
        return False
    logger.warning("Challenge page detected (signature: '%s')", signature)
    return True
