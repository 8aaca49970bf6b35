# pricewatch/scrapers/url_resolver.py

"""Short-link resolution and URL canonicalisation."""

import logging
import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.filters.url_normalizer import is_short_url, normalize_url
from pricewatch.scrapers.browser_identity import pick_identity

logger = logging.getLogger("pricewatch.url_resolver")

_META_REFRESH_URL_RE = re.compile(r"url\s*=\s*['\"]?([^'\"]+)", re.IGNORECASE)


def _target_from_markup(markup: str, base_url: str) -> str | None:
    """Find a canonical link or meta-refresh target in *markup*."""
    soup = BeautifulSoup(markup, "lxml")
    canonical = soup.select_one("link[rel='canonical'][href]")
    if canonical is not None:
        return urljoin(base_url, str(canonical["href"]))
    refresh = soup.find(
        "meta",
        attrs={"http-equiv": re.compile(r"^refresh$", re.IGNORECASE)},
    )
    if refresh is not None:
        content = str(refresh.get("content", ""))
        match = _META_REFRESH_URL_RE.search(content)
        if match:
            return urljoin(base_url, match.group(1).strip())
    return None


class UrlResolver:
    """Follow retailer short links to their product URL."""

    def __init__(self) -> None:
        self.settings = Settings()
        identity = pick_identity(mobile=False)
        self._headers = identity.headers()
        self.session = curl_requests.Session(
            impersonate=identity.impersonate
        )

    def _probe_redirects(self, url: str) -> str | None:
        """HEAD request that only follows redirects."""
        resp: Any = self.session.head(
            url,
            headers=self._headers,
            timeout=self.settings.RESOLVE_TIMEOUT,
            allow_redirects=True,
            max_redirects=self.settings.MAX_REDIRECTS,
        )
        final = str(resp.url or "")
        if final and not is_short_url(final):
            return final
        return None

    def _resolve_from_page(self, url: str) -> str | None:
        """Full GET, then the final URL or a target found in the markup."""
        resp: Any = self.session.get(
            url,
            headers=self._headers,
            timeout=self.settings.RESOLVE_TIMEOUT,
            allow_redirects=True,
            max_redirects=self.settings.MAX_REDIRECTS,
        )
        final = str(resp.url or url)
        if not is_short_url(final):
            return final
        return _target_from_markup(str(resp.text or ""), final)

    def resolve_short_url(self, url: str) -> str:
        """Return the product URL behind a short link.

        Non-short URLs are returned as-is; any failure returns *url*.
        """
        if not is_short_url(url):
            return url
        resolved: str | None = None
        try:
            resolved = self._probe_redirects(url)
        except Exception as exc:
            logger.debug("HEAD probe failed for %s: %s", url, exc)
        try:
            if resolved is None:
                resolved = self._resolve_from_page(url)
        except Exception as exc:
            logger.warning(
                "Short link resolution failed for %s: %s", url, exc,
            )
            return url
        if not resolved:
            logger.info("Short link %s did not resolve, keeping it", url)
            return url
        logger.info("Resolved short link %s -> %s", url, resolved)
        return resolved

    def canonicalize(self, url: str) -> str:
        """Resolve short links and strip tracking params."""
        return normalize_url(self.resolve_short_url(url.strip()))

    def close(self) -> None:
        self.session.close()
