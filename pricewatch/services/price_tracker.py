# pricewatch/services/price_tracker.py

"""Async service behind every tracker entry point."""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime

from pricewatch.config.settings import Settings
from pricewatch.errors import (
    DuplicateError,
    NotFoundError,
    ScrapeFailedError,
    ValidationError,
)
from pricewatch.filters.price_parser import parse_price
from pricewatch.filters.url_normalizer import classify_retailer
from pricewatch.models.product_snapshot import ProductSnapshot
from pricewatch.models.tracked_product import (
    PriceHistoryEntry,
    TrackedProduct,
)
from pricewatch.notify.notifier import Notifier
from pricewatch.scrapers.product_scraper import ProductScraper
from pricewatch.services.notification_engine import (
    apply_refresh,
    coerce_threshold,
)
from pricewatch.storage.product_store import ProductStore

logger = logging.getLogger("pricewatch.tracker")


@dataclass
class BatchReport:
    """Outcome of one check-all run."""

    checked: int = 0
    updated: int = 0
    notified: int = 0
    failed: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


class PriceTracker:
    """Coordinates scraping, persistence and notifications.

    The scraper, store and notifier are built by the entry point and
    passed in. Blocking work (HTTP, SQLite) runs in worker threads.
    """

    def __init__(
        self,
        scraper: ProductScraper,
        store: ProductStore,
        notifier: Notifier,
    ) -> None:
        self.settings = Settings()
        self.scraper = scraper
        self.store = store
        self.notifier = notifier
        self._background: set[asyncio.Task[BatchReport]] = set()
        self._pushes: set[asyncio.Task[None]] = set()

    # ── Private helpers ──────────────────────────────────

    async def _owned_product(
        self, product_id: int | None, owner_id: str,
    ) -> TrackedProduct:
        if product_id is None:
            msg = "Product id is required"
            raise ValidationError(msg)
        product = await asyncio.to_thread(self.store.get, product_id)
        if product is None or product.owner_id != owner_id:
            msg = f"Product {product_id} not found"
            raise NotFoundError(msg)
        return product

    async def _dispatch(self, product: TrackedProduct) -> None:
        """Push the product's notification; failures never propagate."""
        try:
            await asyncio.to_thread(self.notifier.notify_product, product)
        except Exception as exc:
            logger.error(
                "Notification dispatch failed for product %s: %s",
                product.id,
                exc,
                exc_info=True,
            )

    def _schedule_dispatch(self, product: TrackedProduct) -> None:
        """Push a copy of the product's notification without waiting."""
        task = asyncio.create_task(self._dispatch(replace(product)))
        self._pushes.add(task)
        task.add_done_callback(self._pushes.discard)

    async def drain_notifications(self) -> None:
        """Wait for every scheduled push to finish."""
        while True:
            pending = [t for t in self._pushes if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    @staticmethod
    def _validate_threshold(value: object, current_price: str) -> float:
        threshold = coerce_threshold(value)
        if threshold is None:
            msg = "Threshold must be a positive number"
            raise ValidationError(msg)
        current = parse_price(current_price)
        if current is not None and threshold >= current:
            msg = (
                f"Threshold {threshold:g} must be below the current "
                f"price {current_price}"
            )
            raise ValidationError(msg)
        return threshold

    # ── Scraping ─────────────────────────────────────────

    async def scrape_product(self, url: str) -> ProductSnapshot | None:
        """Scrape *url* within ``SCRAPE_TIMEOUT``; ``None`` on failure.

        The budget is handed to the scraper as a deadline and the worker
        thread is always awaited, so a slow scrape has finished before
        the next one starts.
        """
        deadline = time.monotonic() + self.settings.SCRAPE_TIMEOUT
        snapshot = await asyncio.to_thread(
            self.scraper.scrape_product, url, deadline
        )
        if snapshot is None and time.monotonic() >= deadline:
            logger.error(
                "Scrape of %s exceeded %.0fs",
                url,
                self.settings.SCRAPE_TIMEOUT,
            )
        return snapshot

    # ── Tracking ─────────────────────────────────────────

    async def track_product(
        self,
        url: str,
        owner_id: str,
        threshold: object = None,
    ) -> TrackedProduct:
        """Start tracking *url* for *owner_id*.

        Raises:
            ValidationError: missing URL/owner, unsupported retailer or
                a bad threshold.
            DuplicateError: the owner already tracks this URL.
            ScrapeFailedError: the page could not be scraped.
        """
        if not url or not url.strip():
            msg = "URL is required"
            raise ValidationError(msg)
        if not owner_id:
            msg = "Owner id is required"
            raise ValidationError(msg)

        canonical = await asyncio.to_thread(
            self.scraper.canonicalize, url
        )
        if classify_retailer(canonical) is None:
            msg = "Only Amazon and Flipkart product URLs are supported"
            raise ValidationError(msg)

        existing = await asyncio.to_thread(
            self.store.find_by_owner_and_url, owner_id, canonical
        )
        if existing is not None:
            msg = f"Already tracking this product (id {existing.id})"
            raise DuplicateError(msg)

        snapshot = await self.scrape_product(canonical)
        if snapshot is None:
            msg = f"Could not fetch product details from {canonical}"
            raise ScrapeFailedError(msg)

        threshold_value: float | None = None
        if threshold is not None and threshold != "":
            threshold_value = self._validate_threshold(
                threshold, snapshot.price
            )

        now = datetime.now().isoformat()
        product = TrackedProduct(
            owner_id=owner_id,
            url=canonical,
            price=snapshot.price,
            title=snapshot.title,
            image=snapshot.image,
            created_at=now,
            last_checked=now,
            price_history=[
                PriceHistoryEntry(price=snapshot.price, date=now)
            ],
            threshold_price=threshold_value,
            threshold_reached=False,
        )
        return await asyncio.to_thread(self.store.add, product)

    async def refresh_product(
        self, product_id: int, owner_id: str,
    ) -> TrackedProduct:
        """Re-scrape a product, update history and notify if warranted."""
        product = await self._owned_product(product_id, owner_id)
        snapshot = await self.scrape_product(product.url)
        if snapshot is None:
            msg = f"Could not refresh product {product_id}"
            raise ScrapeFailedError(msg)

        decision = apply_refresh(product, snapshot)
        await asyncio.to_thread(self.store.update, product)
        if decision.fired:
            self._schedule_dispatch(product)
        return product

    async def set_threshold(
        self, product_id: int, owner_id: str, value: object,
    ) -> TrackedProduct:
        product = await self._owned_product(product_id, owner_id)
        product.threshold_price = self._validate_threshold(
            value, product.price
        )
        product.threshold_reached = False
        await asyncio.to_thread(self.store.update, product)
        logger.info(
            "Threshold for product %s set to %s",
            product_id,
            product.threshold_price,
        )
        return product

    async def remove_threshold(
        self, product_id: int, owner_id: str,
    ) -> TrackedProduct:
        product = await self._owned_product(product_id, owner_id)
        product.threshold_price = None
        product.threshold_reached = False
        await asyncio.to_thread(self.store.update, product)
        return product

    async def clear_notification(
        self, product_id: int, owner_id: str,
    ) -> TrackedProduct:
        product = await self._owned_product(product_id, owner_id)
        product.clear_notification()
        await asyncio.to_thread(self.store.update, product)
        return product

    async def get_product(
        self, product_id: int, owner_id: str,
    ) -> TrackedProduct:
        return await self._owned_product(product_id, owner_id)

    async def list_products(self, owner_id: str) -> list[TrackedProduct]:
        if not owner_id:
            msg = "Owner id is required"
            raise ValidationError(msg)
        return await asyncio.to_thread(self.store.find_by_owner, owner_id)

    async def remove_product(self, product_id: int, owner_id: str) -> None:
        await self._owned_product(product_id, owner_id)
        await asyncio.to_thread(self.store.delete, product_id)
        logger.info("Removed product %s", product_id)

    async def mark_as_bought(self, product_id: int, owner_id: str) -> None:
        """Stop tracking a purchased product (history is not kept)."""
        await self.remove_product(product_id, owner_id)

    async def register_device(self, owner_id: str, token: str) -> None:
        if not owner_id or not token:
            msg = "Owner id and device token are required"
            raise ValidationError(msg)
        await asyncio.to_thread(
            self.store.add_device_token, owner_id, token
        )

    # ── Batch refresh ────────────────────────────────────

    async def check_all_products(self) -> BatchReport:
        """Refresh every tracked product, one at a time.

        Items are spaced by ``BATCH_ITEM_DELAY`` to stay under retailer
        rate limits. A failing item is recorded and the batch moves on.
        """
        report = BatchReport()
        products = await asyncio.to_thread(self.store.all_products)
        logger.info("Checking %d tracked products", len(products))

        for index, product in enumerate(products):
            if index:
                await asyncio.sleep(self.settings.BATCH_ITEM_DELAY)
            report.checked += 1
            try:
                previous = product.price
                refreshed = await self.refresh_product(
                    product.id or 0, product.owner_id
                )
            except Exception as exc:
                report.failed += 1
                report.errors.append(f"{product.id}: {exc}")
                logger.warning(
                    "Batch refresh failed for product %s: %s",
                    product.id,
                    exc,
                )
                continue
            if refreshed.price != previous:
                report.updated += 1
            if refreshed.has_notification:
                report.notified += 1

        logger.info(
            "Batch done: %d checked, %d updated, %d notified, %d failed",
            report.checked,
            report.updated,
            report.notified,
            report.failed,
        )
        return report

    def launch_check_all(self) -> asyncio.Task[BatchReport]:
        """Start :meth:`check_all_products` in the background and return."""
        task = asyncio.create_task(self.check_all_products())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
