"""Logging setup."""
import logging
from typing import Optional

from substack_dl.config import config

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Chatty third-party loggers
QUIET_LOGGERS = ("httpx", "httpcore", "hpack")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the whole process."""
    level_name = (level or config.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
