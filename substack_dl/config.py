"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()


VALID_FORMATS = ("html", "md", "txt")
VALID_COOKIE_NAMES = ("substack.sid", "connect.sid")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class Config:
    """Application configuration."""

    # Substack
    SUBSTACK_URL: str | None = os.getenv("SUBSTACK_URL")
    COOKIE_NAME: str | None = os.getenv("COOKIE_NAME")
    COOKIE_VALUE: str | None = os.getenv("COOKIE_VALUE")

    # Output
    OUTPUT_DIR: Path = Path(os.getenv("OUTPUT_DIR", "./downloads"))
    OUTPUT_FORMAT: str = os.getenv("OUTPUT_FORMAT", "html")

    # Fetcher
    RATE_PER_SECOND: float = float(os.getenv("RATE_PER_SECOND", "2"))
    MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "10"))
    TIMEOUT: float = float(os.getenv("TIMEOUT", "30"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "5"))
    BACKOFF_INITIAL: float = float(os.getenv("BACKOFF_INITIAL", "1"))
    BACKOFF_MAX: float = float(os.getenv("BACKOFF_MAX", "30"))
    MAX_ELAPSED: float = float(os.getenv("MAX_ELAPSED", "120"))
    PROXY_URL: str | None = os.getenv("PROXY_URL")
    USER_AGENT: str = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls, require_url: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if require_url and not cls.SUBSTACK_URL:
            errors.append("SUBSTACK_URL is required")
        if cls.OUTPUT_FORMAT not in VALID_FORMATS:
            errors.append(f"OUTPUT_FORMAT must be one of {', '.join(VALID_FORMATS)}")
        if cls.COOKIE_VALUE and cls.COOKIE_NAME not in VALID_COOKIE_NAMES:
            errors.append(f"COOKIE_NAME must be one of {', '.join(VALID_COOKIE_NAMES)}")
        if cls.COOKIE_NAME and not cls.COOKIE_VALUE:
            errors.append("COOKIE_VALUE is required when COOKIE_NAME is set")
        if cls.RATE_PER_SECOND <= 0:
            errors.append("RATE_PER_SECOND must be positive")
        if cls.MAX_WORKERS < 1:
            errors.append("MAX_WORKERS must be at least 1")
        if cls.TIMEOUT <= 0:
            errors.append("TIMEOUT must be positive")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
