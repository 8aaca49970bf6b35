# pricewatch/filters/url_normalizer.py

"""Product URL normalisation and retailer classification."""

import logging
import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

logger = logging.getLogger("pricewatch.filters")

# Referral / affiliate / session params that never change the product
_TRACKING_PARAMS: frozenset[str] = frozenset({
    # Amazon
    "ref", "ref_", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "aref", "sp_cr", "psc", "crid",
    "keywords", "sprefix", "pd_rd_i", "pd_rd_r", "pd_rd_w",
    "pd_rd_wg", "pf_rd_i", "pf_rd_m", "pf_rd_p",
    "pf_rd_r", "pf_rd_s", "pf_rd_t", "th", "tag",
    "linkcode", "linkid", "language", "smid", "content-id",
    "_encoding", "camp", "creative", "creativeasin", "ascsubtag",
    # Flipkart
    "lid", "marketplace", "store", "srno", "otracker",
    "otracker1", "fm", "iid", "ssid", "ppt", "ppn",
    "spotlighttagid", "q", "affid", "affextparam1",
    "affextparam2", "cmpid", "_appid", "_refid",
    # Generic
    "gclid", "fbclid", "msclkid", "mc_cid", "mc_eid",
})

_TRACKING_PREFIXES: tuple[str, ...] = ("utm_",)

# Hostname patterns for the supported retailers
_RETAILER_HOSTS: list[tuple[str, re.Pattern[str]]] = [
    (
        "amazon",
        re.compile(
            r"(^|\.)(amazon\.[a-z.]+|amzn\.[a-z]+|a\.co)$"
        ),
    ),
    (
        "flipkart",
        re.compile(r"(^|\.)(flipkart\.com|fkrt\.[a-z]+)$"),
    ),
]

_SHORTENER_HOSTS: frozenset[str] = frozenset({
    "amzn.in", "amzn.to", "amzn.eu", "amzn.com", "a.co",
    "fkrt.it", "fkrt.co", "fkrt.cc",
})

_AMAZON_PATH_REF_RE = re.compile(r"/ref=[^/]*")


def _hostname(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host.lower()


def classify_retailer(url: str) -> str | None:
    """Return ``"amazon"``, ``"flipkart"`` or ``None`` for *url*."""
    host = _hostname(url)
    if not host:
        return None
    for retailer_id, pattern in _RETAILER_HOSTS:
        if pattern.search(host):
            return retailer_id
    return None


def is_short_url(url: str) -> bool:
    """Return True when *url* points at a retailer link shortener."""
    host = _hostname(url)
    if host.startswith("www."):
        host = host[4:]
    if host in _SHORTENER_HOSTS:
        return True
    if host == "dl.flipkart.com":
        try:
            return urlparse(url).path.startswith("/s/")
        except ValueError:
            return False
    return False


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in _TRACKING_PARAMS or lowered.startswith(
        _TRACKING_PREFIXES
    )


def normalize_url(raw_url: str) -> str:
    """Strip tracking/session query params to get a stable product URL.

    Returns *raw_url* unchanged when it cannot be parsed.
    """
    try:
        parsed = urlparse(raw_url)
    except ValueError:
        logger.debug("Could not parse URL for normalisation: %s", raw_url)
        return raw_url

    # Strip Amazon path-based tracking (e.g. /ref=sr_1_243)
    path = _AMAZON_PATH_REF_RE.sub("", parsed.path)

    params = parse_qsl(parsed.query, keep_blank_values=True)
    cleaned = [(k, v) for k, v in params if not _is_tracking_param(k)]
    new_query = urlencode(cleaned) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))
