# pricewatch/services/health_checker.py

"""Retailer connectivity health checker."""

import asyncio
import logging
import time
from dataclasses import dataclass

from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Retailer, Settings
from pricewatch.scrapers.block_detector import find_block_signature
from pricewatch.scrapers.browser_identity import pick_identity

logger = logging.getLogger("pricewatch.health")

_HEALTH_TIMEOUT = 10  # seconds per retailer
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single retailer health check."""

    retailer_id: str
    status: str  # "ok", "slow", "blocked", "down"
    latency_ms: float
    message: str


def probe_retailer(retailer: Retailer) -> HealthResult:
    """Fetch a retailer homepage and classify the response."""
    retailer_id = retailer.id
    homepage = retailer.origin + "/"
    identity = pick_identity(mobile=False)

    start = time.monotonic()
    try:
        session = curl_requests.Session(impersonate=identity.impersonate)
        try:
            resp = session.get(
                homepage,
                headers=identity.headers(),
                timeout=_HEALTH_TIMEOUT,
            )
        finally:
            session.close()
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                retailer_id=retailer_id,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )

        signature = find_block_signature(resp.text)
        if signature:
            return HealthResult(
                retailer_id=retailer_id,
                status="blocked",
                latency_ms=elapsed_ms,
                message=f"Challenge page ({signature})",
            )

        if elapsed_ms > _SLOW_MS:
            return HealthResult(
                retailer_id=retailer_id,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )

        return HealthResult(
            retailer_id=retailer_id,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            retailer_id=retailer_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )


class HealthChecker:
    """Runs concurrent health probes against all supported retailers."""

    def __init__(self) -> None:
        self.retailers = Settings.SUPPORTED_RETAILERS

    async def check_all(self) -> list[HealthResult]:
        tasks = [
            asyncio.to_thread(probe_retailer, r)
            for r in self.retailers
        ]
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.retailer_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
