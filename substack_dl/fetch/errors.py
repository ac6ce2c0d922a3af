"""Error taxonomy for fetching and extraction."""
from typing import Optional


class SubstackDLError(Exception):
    """Base class for all errors raised by substack_dl."""


class FetchError(SubstackDLError):
    """A request could not produce a usable response."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class InvalidURLError(FetchError):
    """URL is malformed or uses an unsupported scheme."""


class TransportError(FetchError):
    """DNS or connection failure."""


class FetchTimeoutError(FetchError):
    """Request or total retry time exceeded."""


class CancellationError(FetchError):
    """The run was cancelled before the operation completed."""


class HTTPStatusError(FetchError):
    """Server answered with a non-2xx status."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: int = 0):
        super().__init__(message, url)
        self.status_code = status_code


class NotFoundError(HTTPStatusError):
    """Server answered 404."""


class RetryableStatusError(HTTPStatusError):
    """429 or 5xx; retried by the fetch client and never seen by callers."""


class RetriesExhaustedError(HTTPStatusError):
    """429 or 5xx persisted until the backoff policy gave up."""


class ExtractionError(SubstackDLError):
    """Embedded payload could not be located or un-escaped."""


class SitemapError(ExtractionError):
    """Sitemap document could not be parsed."""


class DecodeError(SubstackDLError):
    """Payload JSON is invalid or does not match the post shape."""
