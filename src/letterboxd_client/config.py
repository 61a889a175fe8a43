"""
Configuration constants for the Letterboxd client.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Site
BASE_URL = os.environ.get("LETTERBOXD_BASE_URL", "https://letterboxd.com").rstrip("/")
USER_AGENT = "Mozilla/5.0 (compatible; letterboxd-client/0.1)"
LETTERBOXD_COOKIE = os.environ.get("LETTERBOXD_COOKIE")

# HTTP
HTTP_TIMEOUT = _get_float_env("LETTERBOXD_HTTP_TIMEOUT", 10.0, min_val=1.0)
HTTP2_ENABLED = _get_bool_env("LETTERBOXD_HTTP2", False)
MAX_HTTP_RETRIES = _get_int_env("LETTERBOXD_MAX_HTTP_RETRIES", 3, min_val=1)
RETRY_INITIAL_DELAY = 1.0
RETRY_BACKOFF_FACTOR = 2.0
DEFAULT_RETRY_AFTER = 60  # Seconds, used when a 429 carries no Retry-After header

# Concurrency
DEFAULT_MAX_CONCURRENT_PAGES = _get_int_env("LETTERBOXD_MAX_CONCURRENT", 5, min_val=1)
DEFAULT_ENHANCE_CONCURRENCY = _get_int_env("LETTERBOXD_ENHANCE_CONCURRENCY", 5, min_val=1)
# Page results buffered between middle-page workers and the consumer
STREAM_BUFFER_PAGES = 1

# Pagination
HEADING_ITEMS_PER_PAGE = 72  # Page size of the "There are N films" browse pages
PAGINATION_ELLIPSIS = ("…", "...", "&hellip;")

# Cache
CACHE_BACKEND = os.environ.get("LETTERBOXD_CACHE", "none").strip().lower()
CACHE_PATH = Path(os.environ.get("LETTERBOXD_CACHE_PATH", "data/letterboxd-cache.db"))
PAGE_CACHE_KEY_PREFIX = "/letterboxd/fullpage"
FILM_CACHE_KEY_PREFIX = "/letterboxd/film"
PAGE_CACHE_MIN_HOURS = 24
PAGE_CACHE_MAX_HOURS = 72
FILM_CACHE_TTL_SECONDS = 60 * 60 * 24 * 7

# Filmography
FILMOGRAPHY_PROFESSIONS = ("actor", "director", "producer", "writer")
