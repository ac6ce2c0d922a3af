"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from substack_dl.config import config, Config, VALID_COOKIE_NAMES, VALID_FORMATS
from substack_dl.fetch.errors import SubstackDLError
from substack_dl.jobs.runner import DownloadRunner
from substack_dl.logging_conf import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Download a Substack publication")

    # Source
    parser.add_argument(
        "--url",
        default=None,
        help="Publication URL (whole sitemap) or a single post URL containing /p/",
    )
    parser.add_argument(
        "--after",
        default=None,
        help="Only posts modified after this date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--before",
        default=None,
        help="Only posts modified before this date (YYYY-MM-DD)",
    )

    # Output
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=f"Output directory (default: {config.OUTPUT_DIR})",
    )
    parser.add_argument(
        "--format",
        choices=VALID_FORMATS,
        default=None,
        help=f"Output format (default: {config.OUTPUT_FORMAT})",
    )
    parser.add_argument(
        "--archive",
        action="store_true",
        help="Write an index.<format> archive page listing every downloaded post",
    )
    parser.add_argument(
        "--add-source-url",
        action="store_true",
        help="Append the original post URL to each file",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Rewrite posts that already exist on disk",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the posts that would be downloaded",
    )

    # Fetcher
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help=f"Requests per second (default: {config.RATE_PER_SECOND})",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help=f"Concurrent extractions (default: {config.MAX_WORKERS})",
    )
    parser.add_argument(
        "--proxy",
        default=None,
        help="Proxy URL for all requests",
    )
    parser.add_argument(
        "--cookie-name",
        choices=VALID_COOKIE_NAMES,
        default=None,
        help="Session cookie name for paid posts",
    )
    parser.add_argument(
        "--cookie-val",
        default=None,
        help="Session cookie value for paid posts",
    )

    # Run control
    parser.add_argument(
        "--stop-after-minutes",
        type=float,
        default=None,
        help="Stop after M minutes",
    )
    parser.add_argument(
        "--max-errors",
        type=int,
        default=None,
        help="Stop if total errors reach N",
    )
    parser.add_argument(
        "--max-consecutive-errors",
        type=int,
        default=None,
        help="Stop after N consecutive errors",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser.parse_args(argv)


def apply_overrides(args: argparse.Namespace) -> None:
    """Override config from args."""
    if args.url:
        Config.SUBSTACK_URL = args.url
    if args.output_dir:
        Config.OUTPUT_DIR = args.output_dir
    if args.format:
        Config.OUTPUT_FORMAT = args.format
    if args.rate:
        Config.RATE_PER_SECOND = args.rate
    if args.workers:
        Config.MAX_WORKERS = args.workers
    if args.proxy:
        Config.PROXY_URL = args.proxy
    if args.cookie_name:
        Config.COOKIE_NAME = args.cookie_name
    if args.cookie_val:
        Config.COOKIE_VALUE = args.cookie_val


def is_post_url(url: str) -> bool:
    return "/p/" in url


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)
    apply_overrides(args)

    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    url = config.SUBSTACK_URL
    logger.info("=" * 60)
    logger.info("Substack downloader starting")
    logger.info(f"Source: {url}")
    logger.info(f"Output: {config.OUTPUT_DIR} ({config.OUTPUT_FORMAT})")
    logger.info(f"Rate: {config.RATE_PER_SECOND} req/s | Workers: {config.MAX_WORKERS}")
    logger.info(f"Authenticated: {bool(config.COOKIE_VALUE)}")
    logger.info(f"Archive: {args.archive} | Dry-run: {args.dry_run}")
    logger.info("=" * 60)

    single_post = is_post_url(url)
    runner = DownloadRunner(
        publication_url=None if single_post else url,
        urls=[url] if single_post else None,
        output_dir=config.OUTPUT_DIR,
        fmt=config.OUTPUT_FORMAT,
        archive=args.archive,
        add_source_url=args.add_source_url,
        overwrite=args.overwrite,
        dry_run=args.dry_run,
        after=args.after,
        before=args.before,
        max_workers=config.MAX_WORKERS,
        stop_after_minutes=args.stop_after_minutes,
        max_errors=args.max_errors,
        max_consecutive_errors=args.max_consecutive_errors,
    )
    try:
        asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except SubstackDLError as e:
        logger.error(f"Download failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
