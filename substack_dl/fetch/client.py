"""HTTP client with rate limiting, retries and error classification."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    retry_if_exception_type,
)

from substack_dl.config import config, VALID_COOKIE_NAMES
from substack_dl.fetch.errors import (
    CancellationError,
    FetchTimeoutError,
    HTTPStatusError,
    InvalidURLError,
    NotFoundError,
    RetriesExhaustedError,
    RetryableStatusError,
    TransportError,
)
from substack_dl.fetch.rate_limit import RateLimiter
from substack_dl.jobs.run_control import RunControl
from substack_dl.parse.redact import redact_string

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (TransportError, FetchTimeoutError, RetryableStatusError)


def is_retryable_status(status_code: int) -> bool:
    """Check if status code is retryable."""
    return status_code == 429 or 500 <= status_code <= 599


@dataclass(frozen=True)
class SessionCookie:
    """Substack session cookie sent with every request."""

    name: str
    value: str

    def __post_init__(self):
        if self.name not in VALID_COOKIE_NAMES:
            raise ValueError(
                f"invalid cookie name {self.name!r}, expected one of {', '.join(VALID_COOKIE_NAMES)}"
            )

    def header(self) -> str:
        return f"{self.name}={self.value}"

    @classmethod
    def from_config(cls) -> Optional["SessionCookie"]:
        if config.COOKIE_NAME and config.COOKIE_VALUE:
            return cls(config.COOKIE_NAME, config.COOKIE_VALUE)
        return None


class FetchClient:
    """HTTP client with rate limiting, retries, and cancellation.

    One RateLimiter may be shared by several clients to keep them in the same
    rate domain. Callers only ever see the bytes of a successful response or
    one of the FetchError subclasses.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        control: Optional[RunControl] = None,
        cookie: Optional[SessionCookie] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_initial: Optional[float] = None,
        backoff_max: Optional[float] = None,
        max_elapsed: Optional[float] = None,
        max_connections: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else config.TIMEOUT
        self.max_retries = max_retries if max_retries is not None else config.MAX_RETRIES
        self.backoff_initial = backoff_initial if backoff_initial is not None else config.BACKOFF_INITIAL
        self.backoff_max = backoff_max if backoff_max is not None else config.BACKOFF_MAX
        self.max_elapsed = max_elapsed if max_elapsed is not None else config.MAX_ELAPSED
        self.rate_limiter = rate_limiter or RateLimiter(config.RATE_PER_SECOND)
        self.control = control or RunControl()
        self.cookie = cookie if cookie is not None else SessionCookie.from_config()

        headers = {
            "User-Agent": config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if self.cookie:
            headers["Cookie"] = self.cookie.header()

        # Configure connection pool
        connections = max_connections or max(config.MAX_WORKERS, 10)
        limits = httpx.Limits(
            max_connections=connections,
            max_keepalive_connections=connections,
        )
        client_kwargs = dict(
            http2=True,
            timeout=self.timeout,
            follow_redirects=True,
            limits=limits,
            headers=headers,
        )
        proxy = proxy or config.PROXY_URL
        if proxy:
            client_kwargs["proxy"] = proxy
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.AsyncClient(**client_kwargs)

        self.retry_count = 0
        self.backoff_time_total = 0.0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def fetch(self, url: str) -> bytes:
        """Fetch a URL with rate limiting and retries, returning the response body."""
        validate_url(url)
        self.control.raise_if_cancelled()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1) | stop_after_delay(self.max_elapsed),
            wait=wait_exponential(multiplier=self.backoff_initial, min=self.backoff_initial, max=self.backoff_max),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=self.control.sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._get_once(url)
        except RetryableStatusError as e:
            raise RetriesExhaustedError(
                f"{e.status_code} from {url}, retries exhausted",
                url=url,
                status_code=e.status_code,
            ) from e

    async def _get_once(self, url: str) -> bytes:
        """Single attempt: wait for a token, send the request, classify the response."""
        await self.rate_limiter.acquire(self.control)
        try:
            response = await self._until_cancelled(self.client.get(url))
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"timeout fetching {url}: {e!r}", url=url) from e
        except httpx.TransportError as e:
            raise TransportError(f"transport error fetching {url}: {e!r}", url=url) from e

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"not found: {url}", url=url, status_code=status)
        if is_retryable_status(status):
            raise RetryableStatusError(f"{status} from {url}", url=url, status_code=status)
        if status >= 400:
            raise HTTPStatusError(f"{status} from {url}", url=url, status_code=status)
        return response.content

    async def _until_cancelled(self, coro):
        """Run a request, abandoning it as soon as the run is cancelled."""
        request = asyncio.ensure_future(coro)
        cancelled = asyncio.ensure_future(self.control.wait_cancelled())
        try:
            done, _ = await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not request.done():
                request.cancel()
                await asyncio.gather(request, return_exceptions=True)
        if request in done:
            return request.result()
        raise CancellationError(f"request cancelled: {self.control.cancel_reason}")

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self.retry_count += 1
        self.backoff_time_total += wait
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({redact_string(str(exc))}), "
            f"retrying in {wait:.1f}s"
        )


def validate_url(url: str) -> None:
    """Reject URLs that cannot be fetched without issuing a request."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidURLError(f"invalid URL {url!r}: {e}", url=url) from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidURLError(f"invalid URL {url!r}: expected an absolute http(s) URL", url=url)
