# pricewatch/extraction/image_candidates.py

"""Image URL harvesting and plausibility checks for product images."""

import json
import re
from typing import Any
from urllib.parse import urljoin

from bs4 import Tag

from pricewatch.config.settings import Settings

_DENYLIST: tuple[str, ...] = (
    "placeholder",
    "logo",
    "icon",
    "banner",
    "sprite",
    "data:",
    "transparent-pixel",
    "grey-pixel",
)

_IMAGE_EXT_RE = re.compile(r"\.(?:jpe?g|png|webp|gif|avif)(?:[?#]|$)", re.IGNORECASE)

_CDN_FRAGMENTS: tuple[str, ...] = (
    "m.media-amazon.com/images",
    "images-amazon.com/images",
    "ssl-images-amazon.com",
    "rukminim",
    "img.fkcdn.com",
    "flixcart.com/image",
)


def _dynamic_image_urls(raw: str) -> list[str]:
    """Keys of Amazon's ``data-a-dynamic-image`` map, largest first."""
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    if not isinstance(data, dict):
        return []

    def area(item: tuple[str, Any]) -> int:
        size = item[1]
        if isinstance(size, list) and len(size) >= 2:
            try:
                return int(size[0]) * int(size[1])
            except (TypeError, ValueError):
                return 0
        return 0

    ranked = sorted(data.items(), key=area, reverse=True)
    return [str(url) for url, _ in ranked]


def candidate_urls(img: Tag) -> list[str]:
    """Collect image URLs from an ``<img>`` tag, best source first."""
    urls: list[str] = []
    hires = img.get("data-old-hires")
    if hires:
        urls.append(str(hires))
    dynamic = img.get("data-a-dynamic-image")
    if dynamic:
        urls.extend(_dynamic_image_urls(str(dynamic)))
    for attr in ("src", "data-src"):
        value = img.get(attr)
        if value:
            urls.append(str(value))
    srcset = img.get("srcset")
    if srcset:
        first = str(srcset).split(",")[0].strip().split(" ")[0]
        if first:
            urls.append(first)
    return [u.strip() for u in urls if u and u.strip()]


def absolutize(url: str, origin: str) -> str:
    """Rewrite protocol-relative and relative URLs against *origin*."""
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(origin.rstrip("/") + "/", url)


def is_plausible_image_url(url: str) -> bool:
    """Reject known non-product images; accept plausible image URLs."""
    if not url:
        return False
    lower = url.lower()
    if any(bad in lower for bad in _DENYLIST):
        return False
    if _IMAGE_EXT_RE.search(lower):
        return True
    if any(cdn in lower for cdn in _CDN_FRAGMENTS):
        return True
    return (
        lower.startswith(("http://", "https://"))
        and len(url) >= Settings.MIN_IMAGE_URL_LENGTH
    )


def pick_image(candidates: list[str], origin: str) -> str | None:
    """Return the first candidate that survives the checks, made absolute."""
    for raw in candidates:
        if raw.lower().startswith("data:"):
            continue
        url = absolutize(raw, origin)
        if is_plausible_image_url(url):
            return url
    return None
