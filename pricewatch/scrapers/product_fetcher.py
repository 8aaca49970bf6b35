# pricewatch/scrapers/product_fetcher.py

"""Outbound product-page fetching with identity rotation and site variants."""

import logging
import random
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlparse, urlunparse

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException, Timeout

from pricewatch.config.settings import Settings
from pricewatch.errors import FetchError
from pricewatch.scrapers.browser_identity import (
    BrowserIdentity,
    pick_identity,
)

_ASIN_PATH_RE = re.compile(
    r"/(?:dp|gp/product|gp/aw/d)/([A-Z0-9]{5,10})(?=[/?]|$)",
    re.IGNORECASE,
)


class SiteVariant(Enum):
    """Which rendering of the retailer site an attempt targets."""

    MOBILE = "mobile"
    DESKTOP = "desktop"


@dataclass
class FetchResult:
    """Body and effective URL of a successful fetch."""

    body: str
    final_url: str
    status_code: int
    variant: SiteVariant


def plan_attempts(
    retailer: str | None,
    max_retries: int = Settings.MAX_RETRIES,
) -> list[SiteVariant]:
    """Return the site variant for every attempt, in order.

    Block-prone retailers start on the mobile site and alternate with
    desktop on each retry; everything else stays on desktop.
    """
    entry = Settings.retailer(retailer) if retailer else None
    if entry is None:
        return [SiteVariant.DESKTOP]
    total = 1 + max(max_retries, 0)
    if entry.block_prone:
        return [
            SiteVariant.MOBILE if i % 2 == 0 else SiteVariant.DESKTOP
            for i in range(total)
        ]
    return [SiteVariant.DESKTOP] * total


def variant_url(
    url: str, retailer: str | None, variant: SiteVariant,
) -> str:
    """Rewrite an Amazon product URL to its mobile or desktop page.

    Other retailers, and URLs without a recognisable ASIN, are returned
    unchanged.
    """
    if retailer != "amazon":
        return url
    parsed = urlparse(url)
    match = _ASIN_PATH_RE.search(parsed.path)
    if not match:
        return url
    asin = match.group(1).upper()
    if variant is SiteVariant.MOBILE:
        path = f"/gp/aw/d/{asin}"
    else:
        path = f"/dp/{asin}"
    return urlunparse((
        parsed.scheme or "https",
        parsed.netloc,
        path,
        "",
        parsed.query,
        "",
    ))


class ProductFetcher:
    """Fetch product pages through curl_cffi, falling back to cloudscraper."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("pricewatch.fetcher")
        self.settings = Settings()
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def jitter(self) -> None:
        """Sleep for a random interval before the first request."""
        low, high = self.settings.JITTER_DELAY_RANGE
        delay = random.uniform(low, high)
        self.logger.debug("Jitter delay %.2fs", delay)
        time.sleep(delay)

    @staticmethod
    def _referer(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}/"

    def _new_session(
        self, identity: BrowserIdentity,
    ) -> curl_requests.Session:
        return curl_requests.Session(impersonate=identity.impersonate)

    def _timeout(self, target: str, deadline: float | None) -> float:
        """Per-request timeout, capped at what is left before *deadline*."""
        if deadline is None:
            return self._request_timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchError(
                FetchError.TIMEOUT, target, detail="scrape deadline passed"
            )
        return min(self._request_timeout, remaining)

    def _fetch_cloudscraper(
        self,
        url: str,
        headers: dict[str, str],
        identity: BrowserIdentity,
        timeout: float,
    ) -> Any | None:
        """GET through cloudscraper (JS challenge solver)."""
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper(
                browser={
                    "browser": "chrome",
                    "platform": (
                        "android" if identity.mobile else "windows"
                    ),
                    "mobile": identity.mobile,
                    "desktop": not identity.mobile,
                }
            )
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=timeout,
            )
            if resp.status_code == 200:
                return resp
            self.logger.warning(
                "cloudscraper fallback HTTP %d for %s",
                resp.status_code,
                url,
            )
        except Exception as exc:
            self.logger.error(
                "cloudscraper fallback failed for %s: %s",
                url,
                exc,
                exc_info=True,
            )
        return None

    def fetch(
        self,
        url: str,
        retailer: str | None,
        variant: SiteVariant,
        deadline: float | None = None,
    ) -> FetchResult:
        """Fetch one site variant of *url* with a fresh browser identity.

        *deadline* is a :func:`time.monotonic` instant; every request
        timeout, including the cloudscraper fallback, is capped at the
        time left before it.

        Raises:
            FetchError: classified as network, timeout, access_denied,
                not_found or http_status.
        """
        target = variant_url(url, retailer, variant)
        timeout = self._timeout(target, deadline)
        identity = pick_identity(mobile=variant is SiteVariant.MOBILE)
        headers = identity.headers(referer=self._referer(target))
        self.logger.info(
            "Fetching %s (%s, %s)",
            target,
            variant.value,
            identity.impersonate,
        )

        session = self._new_session(identity)
        try:
            resp = session.get(
                target,
                headers=headers,
                timeout=timeout,
                allow_redirects=True,
                max_redirects=self.settings.MAX_REDIRECTS,
            )
        except Timeout as exc:
            raise FetchError(
                FetchError.TIMEOUT, target, detail=str(exc)
            ) from exc
        except RequestException as exc:
            raise FetchError(
                FetchError.NETWORK, target, detail=str(exc)
            ) from exc
        finally:
            session.close()

        status = resp.status_code
        if status == 200:
            return FetchResult(
                body=resp.text,
                final_url=str(resp.url or target),
                status_code=status,
                variant=variant,
            )
        if status == 404:
            raise FetchError(FetchError.NOT_FOUND, target, status)
        if status == 403:
            self.logger.info(
                "curl_cffi got 403, falling back to cloudscraper"
            )
            fallback = self._fetch_cloudscraper(
                target,
                headers,
                identity,
                self._timeout(target, deadline),
            )
            if fallback is not None:
                return FetchResult(
                    body=str(fallback.text),
                    final_url=str(fallback.url or target),
                    status_code=200,
                    variant=variant,
                )
            raise FetchError(FetchError.ACCESS_DENIED, target, status)
        raise FetchError(FetchError.HTTP_STATUS, target, status)
