# pricewatch/extraction/strategies.py

"""Single-purpose extraction strategies.

Every strategy is a pure function of the parsed document. Text strategies
return one candidate string (or ``None``); image strategies return an
ordered list of candidate URLs. The engine decides the order they run in
and which candidates are valid.
"""

import json
import re
from collections.abc import Callable
from typing import Any, cast

from bs4 import BeautifulSoup, Tag

from pricewatch.extraction.image_candidates import candidate_urls
from pricewatch.extraction.text_patterns import (
    find_currency_text,
    find_script_price,
)
from pricewatch.filters.price_parser import format_price, parse_price

TextStrategy = Callable[[BeautifulSoup], str | None]
ImageStrategy = Callable[[BeautifulSoup], list[str]]

_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_SUFFIX_RE = re.compile(
    r"\s*[:|\-–]\s*(?:Buy .*|Amazon\.[a-z.]+.*|Flipkart(?:\.com)?.*)$",
    re.IGNORECASE,
)


def clean_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


# ── Structural selectors ─────────────────────────────────


def css_text(selector: str) -> TextStrategy:
    """Strategy returning the text of the first match for *selector*."""

    def strategy(soup: BeautifulSoup) -> str | None:
        el = soup.select_one(selector)
        if el is None:
            return None
        text = clean_text(el.get_text(" ", strip=True))
        return text or None

    strategy.__name__ = f"css_text({selector})"
    return strategy


def css_images(selector: str) -> ImageStrategy:
    """Strategy collecting image URLs inside elements matching *selector*."""

    def strategy(soup: BeautifulSoup) -> list[str]:
        urls: list[str] = []
        for el in soup.select(selector):
            imgs = [el] if el.name == "img" else el.select("img")
            for img in imgs:
                urls.extend(candidate_urls(img))
        return urls

    strategy.__name__ = f"css_images({selector})"
    return strategy


# ── Structured metadata (JSON-LD) ────────────────────────


def _walk_json_ld(node: Any) -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    if isinstance(node, list):
        for item in cast(list[Any], node):
            found.extend(_walk_json_ld(item))
    elif isinstance(node, dict):
        obj = cast(dict[str, Any], node)
        node_type = obj.get("@type", "")
        types = node_type if isinstance(node_type, list) else [node_type]
        if "Product" in types:
            found.append(obj)
        if "@graph" in obj:
            found.extend(_walk_json_ld(obj["@graph"]))
    return found


def json_ld_products(soup: BeautifulSoup) -> list[dict[str, Any]]:
    """Return every schema.org ``Product`` node embedded as JSON-LD."""
    products: list[dict[str, Any]] = []
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data: Any = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            continue
        products.extend(_walk_json_ld(data))
    return products


def json_ld_price(soup: BeautifulSoup) -> str | None:
    """Price from ``offers.price`` / ``offers.lowPrice``, as a rupee string."""
    for product in json_ld_products(soup):
        offers: Any = product.get("offers")
        offer_list = offers if isinstance(offers, list) else [offers]
        for offer in offer_list:
            if not isinstance(offer, dict):
                continue
            offer_d = cast(dict[str, Any], offer)
            raw = offer_d.get("price") or offer_d.get("lowPrice")
            value = parse_price(str(raw)) if raw is not None else None
            if value:
                return format_price(value)
    return None


def json_ld_title(soup: BeautifulSoup) -> str | None:
    for product in json_ld_products(soup):
        name = product.get("name")
        if isinstance(name, str) and name.strip():
            return clean_text(name)
    return None


def json_ld_images(soup: BeautifulSoup) -> list[str]:
    urls: list[str] = []
    for product in json_ld_products(soup):
        image: Any = product.get("image")
        items = image if isinstance(image, list) else [image]
        for item in items:
            if isinstance(item, str):
                urls.append(item)
            elif isinstance(item, dict):
                url = cast(dict[str, Any], item).get("url")
                if isinstance(url, str):
                    urls.append(url)
    return urls


# ── Inline script data / free text ───────────────────────


def script_price(soup: BeautifulSoup) -> str | None:
    """Price-like key/value pairs inside inline ``<script>`` payloads."""
    scripts = [
        s.string or s.get_text()
        for s in soup.find_all("script")
        if s.get("type") != "application/ld+json"
    ]
    return find_script_price(scripts)


def text_price(soup: BeautifulSoup) -> str | None:
    """First currency-formatted substring of the visible page text."""
    return find_currency_text(soup.get_text(" ", strip=True))


# ── Titles from document metadata ────────────────────────


def og_title(soup: BeautifulSoup) -> str | None:
    meta = soup.find("meta", attrs={"property": "og:title"})
    if isinstance(meta, Tag) and meta.get("content"):
        return clean_text(str(meta["content"]))
    return None


def document_title(soup: BeautifulSoup) -> str | None:
    """The ``<title>`` text with the retailer suffix removed."""
    if soup.title is None:
        return None
    title = clean_text(soup.title.get_text())
    title = _TITLE_SUFFIX_RE.sub("", title).strip()
    return title or None


# ── Images from the whole document / meta tags ───────────


def document_images(soup: BeautifulSoup) -> list[str]:
    urls: list[str] = []
    for img in soup.find_all("img"):
        urls.extend(candidate_urls(img))
    return urls


def meta_images(soup: BeautifulSoup) -> list[str]:
    """``og:image`` then ``link[rel=image_src]``."""
    urls: list[str] = []
    og = soup.find("meta", attrs={"property": "og:image"})
    if isinstance(og, Tag) and og.get("content"):
        urls.append(str(og["content"]))
    link = soup.select_one("link[rel='image_src'][href]")
    if link is not None:
        urls.append(str(link["href"]))
    return urls
