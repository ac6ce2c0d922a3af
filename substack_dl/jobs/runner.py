"""Job runner orchestrating discovery, extraction, writing and indexing."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from substack_dl.config import config
from substack_dl.fetch.client import FetchClient, SessionCookie
from substack_dl.fetch.errors import CancellationError, NotFoundError
from substack_dl.fetch.rate_limit import RateLimiter
from substack_dl.jobs.metrics import Metrics
from substack_dl.jobs.run_control import RunControl
from substack_dl.parse.extractor import ExtractResult, Extractor
from substack_dl.parse.sitemap import date_range_filter
from substack_dl.store.archive import Archive
from substack_dl.store.post_writer import post_path, write_post

logger = logging.getLogger(__name__)

REPORT_EVERY = 25


class DownloadRunner:
    """Downloads a publication (or explicit post URLs) into output_dir."""

    def __init__(
        self,
        publication_url: Optional[str] = None,
        urls: Optional[Sequence[str]] = None,
        output_dir: Optional[Path] = None,
        fmt: Optional[str] = None,
        archive: bool = False,
        add_source_url: bool = False,
        overwrite: bool = False,
        dry_run: bool = False,
        after: Optional[str] = None,
        before: Optional[str] = None,
        max_workers: Optional[int] = None,
        stop_after_minutes: Optional[float] = None,
        max_errors: Optional[int] = None,
        max_consecutive_errors: Optional[int] = None,
        client: Optional[FetchClient] = None,
    ):
        if not publication_url and not urls:
            raise ValueError("Either publication_url or urls is required")
        self.publication_url = publication_url
        self.urls = list(urls) if urls else None
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)
        self.fmt = fmt or config.OUTPUT_FORMAT
        self.add_source_url = add_source_url
        self.overwrite = overwrite
        self.dry_run = dry_run
        self.date_filter = date_range_filter(after, before)
        self.max_workers = max_workers or config.MAX_WORKERS

        if client is not None:
            self.client = client
            self.control = client.control
            self.control.stop_after_minutes = stop_after_minutes
            self.control.max_errors = max_errors
            self.control.max_consecutive_errors = max_consecutive_errors
        else:
            self.control = RunControl(
                stop_after_minutes=stop_after_minutes,
                max_errors=max_errors,
                max_consecutive_errors=max_consecutive_errors,
            )
            self.client = FetchClient(
                rate_limiter=RateLimiter(config.RATE_PER_SECOND),
                control=self.control,
                cookie=SessionCookie.from_config(),
            )
        self.extractor = Extractor(self.client, max_workers=self.max_workers)
        self.archive: Optional[Archive] = Archive() if archive else None
        self.metrics = Metrics(0)

    async def run(self) -> dict:
        """Run the download job. Sitemap failures propagate and abort the run."""
        async with self.client:
            urls = await self._collect_urls()
            self.metrics = Metrics(len(urls))

            if self.dry_run:
                for url in urls:
                    logger.info(f"[DRY-RUN] {url}")
                return self.metrics.get_summary()

            async for result in self.extractor.extract_all(urls):
                await self._handle_result(result)
                if self.metrics.counters["processed"] % REPORT_EVERY == 0:
                    self.metrics.report()
                self.control.check()

        if self.archive is not None:
            self.archive.render(self.output_dir, self.fmt)

        self._final_report()
        return self.metrics.get_summary()

    async def _collect_urls(self) -> list[str]:
        if self.urls:
            logger.info(f"Downloading {len(self.urls)} explicit URL(s)")
            return self.urls
        return await self.extractor.list_post_urls(self.publication_url, self.date_filter)

    async def _handle_result(self, result: ExtractResult) -> None:
        """Write one extracted post and register it in the archive."""
        self.metrics.increment("processed")

        if result.error is not None:
            if isinstance(result.error, CancellationError):
                self.metrics.increment("cancelled")
                return
            if isinstance(result.error, NotFoundError):
                self.metrics.increment("not_found")
            self.metrics.increment("failed")
            self.control.record_error()
            logger.error(f"Failed to extract {result.url}: {result.error}")
            return

        post = result.post
        path = post_path(self.output_dir, post, self.fmt)
        if path.exists() and not self.overwrite:
            self.metrics.increment("skipped")
            download_time = datetime.fromtimestamp(path.stat().st_mtime)
            logger.debug(f"Already downloaded {post.slug}, keeping {path}")
        else:
            try:
                await write_post(path, post, self.fmt, add_source_url=self.add_source_url)
            except OSError as e:
                self.metrics.increment("failed")
                self.control.record_error()
                logger.error(f"Failed to write {post.slug} to {path}: {e}")
                return
            self.metrics.increment("written")
            download_time = datetime.now()
            logger.info(f"Downloaded {post.title or post.slug} -> {path}")

        self.control.record_success()
        if self.archive is not None:
            self.archive.add_entry(post, path, download_time)

    def _final_report(self) -> None:
        """Log final report."""
        summary = self.metrics.get_summary()
        run_summary = self.control.get_summary()

        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Elapsed: {run_summary['elapsed_minutes']:.2f} minutes")
        logger.info(f"Processed: {summary['processed']}/{summary['total']}")
        logger.info(f"Written: {summary['written']}")
        logger.info(f"Skipped (already on disk): {summary['skipped']}")
        logger.info(f"Failed: {summary['failed']}")
        logger.info(f"Not found: {summary['not_found']}")
        if run_summary["cancelled"]:
            logger.info(f"Cancelled: {summary['cancelled']} ({run_summary['cancel_reason']})")
        logger.info(f"Retries: {self.client.retry_count}")
        logger.info("=" * 60)
