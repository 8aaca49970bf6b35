# pricewatch/config/settings.py

"""Central configuration for the pricewatch tracker."""

import os
from dataclasses import dataclass
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Retailer:
    """A supported retailer and how its site should be approached."""

    id: str
    label: str
    origin: str
    block_prone: bool = False


class Settings:
    """Central configuration for the pricewatch tracker."""

    # --- Scraping ---
    REQUEST_TIMEOUT: int = 20           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Escalation retries after the first attempt
    SCRAPE_TIMEOUT: float = 90.0        # Upper bound for one scrape_product call
    JITTER_DELAY_RANGE: tuple[float, float] = (1.0, 3.0)
    RETRY_BACKOFF: float = 2.0          # Seconds, multiplied by the retry number
    RESOLVE_TIMEOUT: int = 10           # Short-link redirect probe
    MAX_REDIRECTS: int = 5

    # --- Block detection ---
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
        "enter the characters you see below",
    ]

    # --- Tracking ---
    HISTORY_LIMIT: int = 30             # Max price history entries per product
    BATCH_ITEM_DELAY: float = 5.0       # Seconds between products in check-all
    PLACEHOLDER_TITLE: str = "Unknown Product"
    CURRENCY_SYMBOL: str = "₹"

    # --- Extraction ---
    MIN_IMAGE_URL_LENGTH: int = 30

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-IN,en-GB;q=0.9,en;q=0.8",
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Push notifications (FCM HTTP v1) ---
    FCM_PROJECT_ID: str = os.getenv("FCM_PROJECT_ID", "")
    FCM_ACCESS_TOKEN: str = os.getenv("FCM_ACCESS_TOKEN", "")
    FCM_ACCESS_TOKEN_FILE: str = os.getenv("FCM_ACCESS_TOKEN_FILE", "")
    PUSH_TIMEOUT: int = 10

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "pricewatch" / "config" / "selectors.json"
    LOGS_DIR: Path = BASE_DIR / "logs"
    LOG_RETENTION: int = 50             # Newest run logs kept in LOGS_DIR
    DB_PATH: Path = Path(
        os.getenv(
            "PRICEWATCH_DB_PATH",
            str(BASE_DIR / "data" / "pricewatch.db"),
        )
    )

    # --- Retailers (registry for future extensibility) ---
    SUPPORTED_RETAILERS: list[Retailer] = [
        Retailer(
            id="amazon",
            label="Amazon",
            origin="https://www.amazon.in",
            block_prone=True,
        ),
        Retailer(
            id="flipkart",
            label="Flipkart",
            origin="https://www.flipkart.com",
        ),
    ]

    @classmethod
    def retailer(cls, retailer_id: str) -> Retailer | None:
        """Return the registry entry for *retailer_id*, if supported."""
        for entry in cls.SUPPORTED_RETAILERS:
            if entry.id == retailer_id:
                return entry
        return None
