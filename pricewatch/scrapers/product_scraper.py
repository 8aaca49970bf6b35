# pricewatch/scrapers/product_scraper.py

"""Single-URL scrape pipeline: canonicalise, fetch, detect blocks, extract."""

import logging
import threading
import time

from pricewatch.config.settings import Settings
from pricewatch.errors import ExtractionFailure, FetchError
from pricewatch.extraction.extraction_engine import ExtractionEngine
from pricewatch.filters.url_normalizer import classify_retailer
from pricewatch.models.product_snapshot import ProductSnapshot
from pricewatch.scrapers.block_detector import is_blocked
from pricewatch.scrapers.product_fetcher import (
    ProductFetcher,
    SiteVariant,
    plan_attempts,
)
from pricewatch.scrapers.url_resolver import UrlResolver


class ProductScraper:
    """Scrape one product page into a :class:`ProductSnapshot`.

    Each attempt in the plan from :func:`plan_attempts` targets one site
    variant. Fetch errors, challenge pages and missing prices move on to
    the next attempt; a 404 ends the scrape immediately. When the last
    attempt lands on a challenge page, extraction still runs because the
    signature may be a false positive.

    Scrapes are serialised on an instance lock: at most one runs per
    scraper at any time. An optional deadline bounds the whole attempt
    plan.
    """

    def __init__(
        self,
        fetcher: ProductFetcher | None = None,
        resolver: UrlResolver | None = None,
        engine: ExtractionEngine | None = None,
    ) -> None:
        self.logger = logging.getLogger("pricewatch.scraper")
        self.settings = Settings()
        self.fetcher = fetcher or ProductFetcher()
        self.resolver = resolver or UrlResolver()
        self.engine = engine or ExtractionEngine()
        self._lock = threading.Lock()

    def canonicalize(self, url: str) -> str:
        return self.resolver.canonicalize(url)

    def _attempt(
        self,
        url: str,
        retailer: str,
        variant: SiteVariant,
        retries_left: int,
        deadline: float | None,
    ) -> ProductSnapshot:
        result = self.fetcher.fetch(url, retailer, variant, deadline=deadline)
        if is_blocked(result.body):
            if retries_left > 0:
                raise FetchError(FetchError.BLOCKED, result.final_url)
            self.logger.warning(
                "[%s] Still challenged on last attempt, "
                "extracting best-effort",
                retailer,
            )
        snapshot = self.engine.extract(result.body, retailer)
        if snapshot is None:
            raise ExtractionFailure(
                f"no price on {variant.value} page {result.final_url}"
            )
        return snapshot

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return deadline - time.monotonic()

    def _scrape(
        self, url: str, deadline: float | None = None,
    ) -> ProductSnapshot | None:
        canonical = self.canonicalize(url)
        retailer = classify_retailer(canonical)
        if retailer is None:
            self.logger.info("Unsupported retailer for %s", canonical)
            return None

        plan = plan_attempts(retailer, self.settings.MAX_RETRIES)
        self.fetcher.jitter()
        for index, variant in enumerate(plan):
            backoff = self.settings.RETRY_BACKOFF * index
            remaining = self._remaining(deadline)
            if remaining is not None and remaining <= backoff:
                self.logger.error(
                    "[%s] Out of time for %s before attempt %d/%d",
                    retailer,
                    canonical,
                    index + 1,
                    len(plan),
                )
                return None
            if backoff:
                time.sleep(backoff)
            retries_left = len(plan) - index - 1
            try:
                snapshot = self._attempt(
                    canonical, retailer, variant, retries_left, deadline
                )
            except FetchError as exc:
                self.logger.warning(
                    "[%s] Attempt %d/%d failed: %s",
                    retailer,
                    index + 1,
                    len(plan),
                    exc,
                )
                if not exc.retryable:
                    return None
                continue
            except ExtractionFailure as exc:
                self.logger.warning(
                    "[%s] Attempt %d/%d extracted nothing: %s",
                    retailer,
                    index + 1,
                    len(plan),
                    exc,
                )
                continue
            self.logger.info(
                "[%s] Scraped %s on attempt %d: %s",
                retailer,
                canonical,
                index + 1,
                snapshot.price,
            )
            return snapshot

        self.logger.error(
            "[%s] Giving up on %s after %d attempts",
            retailer,
            canonical,
            len(plan),
        )
        return None

    def scrape_product(
        self, url: str, deadline: float | None = None,
    ) -> ProductSnapshot | None:
        """Scrape *url*; returns ``None`` on any failure, never raises.

        *deadline* is a :func:`time.monotonic` instant after which no new
        request starts.
        """
        if not url or not url.strip():
            return None
        try:
            with self._lock:
                return self._scrape(url, deadline)
        except Exception as exc:
            self.logger.error(
                "Scrape failed for %s: %s", url, exc, exc_info=True
            )
            return None
