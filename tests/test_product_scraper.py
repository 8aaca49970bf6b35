# tests/test_product_scraper.py

"""Tests for the scrape pipeline's escalation and failure handling."""

import threading
import time
import unittest
from unittest.mock import MagicMock, patch

from pricewatch.errors import FetchError
from pricewatch.extraction.extraction_engine import ExtractionEngine
from pricewatch.scrapers.product_fetcher import FetchResult, SiteVariant
from pricewatch.scrapers.product_scraper import ProductScraper

AMAZON_URL = "https://www.amazon.in/dp/B0ABCDE123"
FLIPKART_URL = "https://www.flipkart.com/x/p/itm1?pid=MOB1"

PRICED_PAGE = (
    "<html><body><span id='productTitle'>Some Phone</span>"
    "<span id='priceblock_ourprice'>₹12,999</span></body></html>"
)
FLIPKART_PAGE = (
    "<html><body><span class='VU-ZEz'>Some Phone</span>"
    "<div class='Nx9bqj CxhGGd'>₹54,999</div></body></html>"
)
CAPTCHA_PAGE = (
    "<html><body><form action='/errors/validateCaptcha'>"
    "<input id='captchacharacters'></form></body></html>"
)
CAPTCHA_WITH_PRICE = (
    "<html><body><form action='/errors/validateCaptcha'></form>"
    "<span id='priceblock_ourprice'>₹499</span></body></html>"
)
EMPTY_PAGE = "<html><body><p>Nothing here</p></body></html>"


def _result(body: str, variant: SiteVariant = SiteVariant.DESKTOP) -> FetchResult:
    return FetchResult(
        body=body, final_url=AMAZON_URL, status_code=200, variant=variant,
    )


class TestProductScraper(unittest.TestCase):
    """Attempt plan execution over a stubbed fetcher."""

    def setUp(self) -> None:
        self.fetcher = MagicMock()
        self.resolver = MagicMock()
        self.resolver.canonicalize.side_effect = lambda url: url.strip()
        self.scraper = ProductScraper(
            fetcher=self.fetcher,
            resolver=self.resolver,
            engine=ExtractionEngine(),
        )

    def _variants(self) -> list[SiteVariant]:
        return [c.args[2] for c in self.fetcher.fetch.call_args_list]

    def test_first_attempt_success(self) -> None:
        self.fetcher.fetch.return_value = _result(FLIPKART_PAGE)

        snapshot = self.scraper.scrape_product(FLIPKART_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.price, "₹54,999")
        self.assertEqual(snapshot.title, "Some Phone")
        self.assertEqual(self._variants(), [SiteVariant.DESKTOP])
        self.fetcher.jitter.assert_called_once()

    def test_blocked_mobile_escalates_to_desktop(self) -> None:
        self.fetcher.fetch.side_effect = [
            _result(CAPTCHA_PAGE, SiteVariant.MOBILE),
            _result(PRICED_PAGE),
        ]

        snapshot = self.scraper.scrape_product(AMAZON_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.price, "₹12,999")
        self.assertEqual(
            self._variants(), [SiteVariant.MOBILE, SiteVariant.DESKTOP]
        )

    def test_blocked_last_attempt_extracts_best_effort(self) -> None:
        self.fetcher.fetch.side_effect = [
            _result(CAPTCHA_PAGE, SiteVariant.MOBILE),
            _result(CAPTCHA_PAGE),
            _result(CAPTCHA_WITH_PRICE, SiteVariant.MOBILE),
        ]

        snapshot = self.scraper.scrape_product(AMAZON_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.price, "₹499")
        self.assertEqual(self.fetcher.fetch.call_count, 3)

    def test_blocked_everywhere_returns_none(self) -> None:
        self.fetcher.fetch.return_value = _result(CAPTCHA_PAGE)
        self.assertIsNone(self.scraper.scrape_product(AMAZON_URL))
        self.assertEqual(self.fetcher.fetch.call_count, 3)

    def test_not_found_stops_immediately(self) -> None:
        self.fetcher.fetch.side_effect = FetchError(
            FetchError.NOT_FOUND, AMAZON_URL, 404
        )
        self.assertIsNone(self.scraper.scrape_product(AMAZON_URL))
        self.assertEqual(self.fetcher.fetch.call_count, 1)

    def test_network_errors_retry_then_give_up(self) -> None:
        self.fetcher.fetch.side_effect = FetchError(
            FetchError.NETWORK, FLIPKART_URL
        )
        self.assertIsNone(self.scraper.scrape_product(FLIPKART_URL))
        self.assertEqual(self.fetcher.fetch.call_count, 3)

    def test_missing_price_retries(self) -> None:
        self.fetcher.fetch.side_effect = [
            _result(EMPTY_PAGE),
            _result(FLIPKART_PAGE),
        ]
        snapshot = self.scraper.scrape_product(FLIPKART_URL)
        assert snapshot is not None
        self.assertEqual(snapshot.price, "₹54,999")

    @patch("pricewatch.scrapers.product_scraper.time.sleep")
    def test_backoff_grows_per_retry(self, mock_sleep: MagicMock) -> None:
        self.fetcher.fetch.side_effect = FetchError(
            FetchError.TIMEOUT, FLIPKART_URL
        )
        self.scraper.scrape_product(FLIPKART_URL)
        backoff = self.scraper.settings.RETRY_BACKOFF
        self.assertEqual(
            [c.args[0] for c in mock_sleep.call_args_list],
            [backoff, backoff * 2],
        )

    def test_unsupported_retailer_skips_fetch(self) -> None:
        self.assertIsNone(
            self.scraper.scrape_product("https://www.ebay.com/itm/1")
        )
        self.fetcher.fetch.assert_not_called()

    def test_blank_url(self) -> None:
        self.assertIsNone(self.scraper.scrape_product("   "))
        self.resolver.canonicalize.assert_not_called()

    def test_unexpected_error_never_raises(self) -> None:
        self.fetcher.fetch.side_effect = RuntimeError("boom")
        self.assertIsNone(self.scraper.scrape_product(FLIPKART_URL))

    def test_scrapes_canonical_url(self) -> None:
        self.resolver.canonicalize.side_effect = None
        self.resolver.canonicalize.return_value = FLIPKART_URL
        self.fetcher.fetch.return_value = _result(FLIPKART_PAGE)

        self.scraper.scrape_product("https://fkrt.it/abc")

        self.assertEqual(self.fetcher.fetch.call_args.args[0], FLIPKART_URL)


    def test_deadline_forwarded_to_fetch(self) -> None:
        self.fetcher.fetch.return_value = _result(FLIPKART_PAGE)
        deadline = time.monotonic() + 60

        self.scraper.scrape_product(FLIPKART_URL, deadline)

        self.assertEqual(
            self.fetcher.fetch.call_args.kwargs["deadline"], deadline
        )

    def test_passed_deadline_skips_fetch(self) -> None:
        self.assertIsNone(
            self.scraper.scrape_product(FLIPKART_URL, time.monotonic() - 1)
        )
        self.fetcher.fetch.assert_not_called()

    def test_no_retry_when_backoff_outlasts_deadline(self) -> None:
        self.fetcher.fetch.side_effect = FetchError(
            FetchError.TIMEOUT, FLIPKART_URL
        )
        deadline = time.monotonic() + self.scraper.settings.RETRY_BACKOFF / 2

        self.assertIsNone(self.scraper.scrape_product(FLIPKART_URL, deadline))
        self.assertEqual(self.fetcher.fetch.call_count, 1)

    def test_concurrent_callers_run_one_at_a_time(self) -> None:
        guard = threading.Lock()
        active = 0
        peak = 0

        def slow_fetch(*args: object, **kwargs: object) -> FetchResult:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            threading.Event().wait(0.05)
            with guard:
                active -= 1
            return _result(FLIPKART_PAGE)

        self.fetcher.fetch.side_effect = slow_fetch
        workers = [
            threading.Thread(
                target=self.scraper.scrape_product, args=(FLIPKART_URL,)
            )
            for _ in range(3)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(5)

        self.assertEqual(self.fetcher.fetch.call_count, 3)
        self.assertEqual(peak, 1)


if __name__ == "__main__":
    unittest.main()
