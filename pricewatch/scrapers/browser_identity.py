# pricewatch/scrapers/browser_identity.py

"""Realistic browser identities rotated per fetch attempt.

Each identity pairs a curl_cffi impersonation target with the user agent
and client hints that browser actually sends, so the TLS fingerprint and
the headers tell the same story.
"""

import random
from dataclasses import dataclass

from curl_cffi.requests import BrowserTypeLiteral

from pricewatch.config.settings import Settings


@dataclass(frozen=True)
class BrowserIdentity:
    """User agent, client hints and matching TLS impersonation target."""

    impersonate: BrowserTypeLiteral
    user_agent: str
    mobile: bool
    platform: str
    sec_ch_ua: str = ""

    def headers(self, referer: str = "") -> dict[str, str]:
        """Build request headers for this identity."""
        headers: dict[str, str] = {
            **Settings.DEFAULT_HEADERS,
            "User-Agent": self.user_agent,
            "sec-ch-ua-mobile": "?1" if self.mobile else "?0",
            "sec-ch-ua-platform": f'"{self.platform}"',
        }
        # Safari and Firefox do not send sec-ch-ua
        if self.sec_ch_ua:
            headers["sec-ch-ua"] = self.sec_ch_ua
        if referer:
            headers["Referer"] = referer
            headers["sec-fetch-site"] = "same-origin"
        return headers


_CHROME_131_HINTS = (
    '"Google Chrome";v="131", '
    '"Chromium";v="131", '
    '"Not_A Brand";v="24"'
)
_CHROME_124_HINTS = (
    '"Google Chrome";v="124", '
    '"Chromium";v="124", '
    '"Not-A.Brand";v="99"'
)
_EDGE_101_HINTS = (
    '" Not A;Brand";v="99", '
    '"Chromium";v="101", '
    '"Microsoft Edge";v="101"'
)

DESKTOP_IDENTITIES: list[BrowserIdentity] = [
    BrowserIdentity(
        impersonate="chrome131",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        mobile=False,
        platform="Windows",
        sec_ch_ua=_CHROME_131_HINTS,
    ),
    BrowserIdentity(
        impersonate="chrome124",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0.0.0 Safari/537.36"
        ),
        mobile=False,
        platform="macOS",
        sec_ch_ua=_CHROME_124_HINTS,
    ),
    BrowserIdentity(
        impersonate="edge101",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/101.0.4951.64 Safari/537.36 Edg/101.0.1210.53"
        ),
        mobile=False,
        platform="Windows",
        sec_ch_ua=_EDGE_101_HINTS,
    ),
    BrowserIdentity(
        impersonate="safari17_0",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.0 Safari/605.1.15"
        ),
        mobile=False,
        platform="macOS",
    ),
]

MOBILE_IDENTITIES: list[BrowserIdentity] = [
    BrowserIdentity(
        impersonate="chrome131_android",
        user_agent=(
            "Mozilla/5.0 (Linux; Android 10; K) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Mobile Safari/537.36"
        ),
        mobile=True,
        platform="Android",
        sec_ch_ua=_CHROME_131_HINTS,
    ),
    BrowserIdentity(
        impersonate="safari17_2_ios",
        user_agent=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.2 Mobile/15E148 Safari/604.1"
        ),
        mobile=True,
        platform="iOS",
    ),
]


def pick_identity(mobile: bool) -> BrowserIdentity:
    """Return a random identity from the mobile or desktop pool."""
    pool = MOBILE_IDENTITIES if mobile else DESKTOP_IDENTITIES
    return random.choice(pool)
