"""Discover post URLs and extract posts, one at a time or through a worker pool."""
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from selectolax.parser import HTMLParser

from substack_dl.fetch.client import FetchClient
from substack_dl.fetch.errors import CancellationError
from substack_dl.parse.models import Post
from substack_dl.parse.preload import parse_preloaded_post
from substack_dl.parse.sitemap import POST_PATH_MARKER, DateFilter, iter_sitemap_entries, sitemap_url

logger = logging.getLogger(__name__)

MAX_WORKERS = 10

# Closes the result queue once every worker is done
_DONE = object()


@dataclass(frozen=True)
class ExtractResult:
    """Outcome of extracting one URL: exactly one of post / error is set."""

    url: str
    post: Optional[Post] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_text_by_selector(parser: HTMLParser, selector: str, default: str = "") -> str:
    """Extract text from first matching element."""
    node = parser.css_first(selector)
    return node.text(deep=True, strip=False).strip() if node else default


def extract_attribute_by_selector(parser: HTMLParser, selector: str, attribute: str) -> str:
    """Extract an attribute from first matching element."""
    node = parser.css_first(selector)
    if not node:
        return ""
    return (node.attributes.get(attribute) or "").strip()


def enrich_post(post: Post, parser: HTMLParser) -> Post:
    """Fill an empty subtitle or cover image from the page markup."""
    updates = {}
    if not post.subtitle:
        subtitle = extract_text_by_selector(parser, ".subtitle")
        if subtitle:
            updates["subtitle"] = subtitle
    if not post.cover_image:
        og_image = extract_attribute_by_selector(parser, 'meta[property="og:image"]', "content")
        if og_image:
            updates["cover_image"] = og_image
    return post.model_copy(update=updates) if updates else post


class Extractor:
    """Extracts Substack posts through a FetchClient."""

    def __init__(self, client: FetchClient, max_workers: int = MAX_WORKERS):
        self.client = client
        self.control = client.control
        self.max_workers = max_workers

    async def list_post_urls(
        self,
        publication_url: str,
        date_filter: Optional[DateFilter] = None,
    ) -> list[str]:
        """Return every post URL listed in the publication sitemap, in document order."""
        url = sitemap_url(publication_url)
        logger.info(f"Fetching sitemap {url}")
        content = await self.client.fetch(url)

        urls: list[str] = []
        seen: set[str] = set()
        for entry in iter_sitemap_entries(content):
            self.control.raise_if_cancelled()
            if POST_PATH_MARKER not in entry.loc:
                continue
            if date_filter is not None and not date_filter(entry.lastmod):
                continue
            if entry.loc in seen:
                continue
            seen.add(entry.loc)
            urls.append(entry.loc)

        logger.info(f"Found {len(urls)} post URLs in sitemap")
        return urls

    async def extract_post(self, page_url: str) -> Post:
        """Fetch a post page and build the Post from its embedded payload."""
        content = await self.client.fetch(page_url)
        parser = HTMLParser(content)
        post = parse_preloaded_post(parser)
        return enrich_post(post, parser)

    async def extract_one(self, page_url: str) -> ExtractResult:
        """Extract a single URL, capturing the failure instead of raising it."""
        try:
            post = await self.extract_post(page_url)
        except Exception as e:
            logger.debug(f"Extraction failed for {page_url}: {e}")
            return ExtractResult(url=page_url, error=e)
        return ExtractResult(url=page_url, post=post)

    async def extract_all(self, urls: Sequence[str]) -> AsyncIterator[ExtractResult]:
        """Extract many URLs concurrently, yielding one result per URL as each completes.

        Results arrive in completion order. Once the run is cancelled, workers
        stop starting new extractions and report a CancellationError for each
        URL still queued. Closing the iterator early cancels the workers.
        """
        if not urls:
            return

        work: asyncio.Queue[str] = asyncio.Queue()
        for url in urls:
            work.put_nowait(url)
        results: asyncio.Queue = asyncio.Queue()
        worker_count = min(self.max_workers, len(urls))

        async def worker() -> None:
            while True:
                try:
                    url = work.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if self.control.cancelled:
                    error = CancellationError(f"operation cancelled: {self.control.cancel_reason}", url=url)
                    await results.put(ExtractResult(url=url, error=error))
                    continue
                await results.put(await self.extract_one(url))

        async def run_pool() -> None:
            try:
                await asyncio.gather(*(worker() for _ in range(worker_count)))
            finally:
                await results.put(_DONE)

        pool = asyncio.create_task(run_pool())
        try:
            while True:
                item = await results.get()
                if item is _DONE:
                    break
                yield item
        finally:
            if not pool.done():
                pool.cancel()
            await asyncio.gather(pool, return_exceptions=True)
