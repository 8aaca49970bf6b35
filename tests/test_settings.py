# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from pricewatch.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants and the retailer registry."""

    def test_request_timeout_is_positive_int(self) -> None:
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_max_retries_gives_three_attempts(self) -> None:
        """One initial attempt plus two escalation retries."""
        self.assertEqual(Settings.MAX_RETRIES, 2)

    def test_scrape_timeout_covers_all_attempts(self) -> None:
        """The overall scrape bound exceeds one request timeout."""
        self.assertGreater(Settings.SCRAPE_TIMEOUT, Settings.REQUEST_TIMEOUT)

    def test_jitter_range_is_ordered(self) -> None:
        low, high = Settings.JITTER_DELAY_RANGE
        self.assertGreater(low, 0)
        self.assertLessEqual(low, high)

    def test_history_limit(self) -> None:
        self.assertEqual(Settings.HISTORY_LIMIT, 30)

    def test_selectors_file_exists(self) -> None:
        self.assertIsInstance(Settings.SELECTORS_PATH, Path)
        self.assertTrue(Settings.SELECTORS_PATH.exists())

    def test_supported_retailers_are_complete(self) -> None:
        for entry in Settings.SUPPORTED_RETAILERS:
            self.assertTrue(entry.id)
            self.assertTrue(entry.label)
            self.assertTrue(entry.origin.startswith("https://"))
            self.assertIsInstance(entry.block_prone, bool)

    def test_retailer_lookup(self) -> None:
        amazon = Settings.retailer("amazon")
        self.assertIsNotNone(amazon)
        assert amazon is not None
        self.assertIs(amazon.block_prone, True)
        flipkart = Settings.retailer("flipkart")
        assert flipkart is not None
        self.assertIs(flipkart.block_prone, False)

    def test_unknown_retailer_is_none(self) -> None:
        self.assertIsNone(Settings.retailer("ebay"))

    def test_default_headers_have_accept(self) -> None:
        self.assertIn("Accept", Settings.DEFAULT_HEADERS)
        self.assertIn("Accept-Language", Settings.DEFAULT_HEADERS)


if __name__ == "__main__":
    unittest.main()
