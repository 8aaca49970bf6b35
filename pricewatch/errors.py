# pricewatch/errors.py

"""Exception hierarchy shared by the scraper and tracker layers."""


class PriceWatchError(Exception):
    """Base class for every error raised by pricewatch."""


class ValidationError(PriceWatchError):
    """Bad caller input: missing URL/id, bad threshold, unsupported site."""


class DuplicateError(PriceWatchError):
    """The owner already tracks this canonical URL."""


class NotFoundError(PriceWatchError):
    """Unknown product id, or the product belongs to another owner."""


class NetworkError(PriceWatchError):
    """A retryable transport-level failure."""


class FetchError(NetworkError):
    """An outbound fetch failed.

    ``kind`` is one of ``network``, ``timeout``, ``access_denied``,
    ``not_found``, ``http_status`` or ``blocked``.
    """

    NETWORK = "network"
    TIMEOUT = "timeout"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    HTTP_STATUS = "http_status"
    BLOCKED = "blocked"

    def __init__(
        self,
        kind: str,
        url: str,
        status_code: int | None = None,
        detail: str = "",
    ) -> None:
        self.kind = kind
        self.url = url
        self.status_code = status_code
        message = f"{kind} fetching {url}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """A 404 will not improve on another site variant."""
        return self.kind != self.NOT_FOUND


class ExtractionFailure(PriceWatchError):
    """The full price cascade ran without finding a price."""


class ScrapeFailedError(PriceWatchError):
    """A scrape yielded no snapshot after every attempt."""
