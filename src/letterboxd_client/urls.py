import logging
import random
import re
from urllib.parse import urlparse

from .errors import ValidationError
from .models import ListID

logger = logging.getLogger(__name__)


def normalize_url_path(url: str) -> str:
    """
    Reduce a letterboxd.com URL (or bare path) to its path without a trailing slash.

    Raises ValidationError for URLs on any other host.
    """
    url = url.strip().rstrip("/")
    if url.startswith("/"):
        return url
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host != "letterboxd.com" and not host.endswith(".letterboxd.com"):
        raise ValidationError(f"not a letterboxd URL: '{url}'")
    return parsed.path.rstrip("/")


def normalize_slug(slug: str) -> str:
    """'/film/some-film/' -> 'some-film'"""
    slug = slug.strip()
    if slug.startswith("/film/"):
        slug = slug[len("/film/"):]
    return slug.strip("/")


def validate_slug(slug: str | None) -> str | None:
    """
    Validate film slug format to prevent injection or malformed data.

    Returns cleaned slug or None if invalid.
    Letterboxd slugs are typically lowercase alphanumeric with hyphens, but
    some endpoints emit a namespaced format like 'film:482919'. We allow
    that prefix while still validating the core slug characters.
    """
    if not slug:
        return None

    cleaned = normalize_slug(slug).lower()

    prefix = ""
    core = cleaned
    if core.startswith("film:"):
        prefix = "film:"
        core = core.split(":", 1)[1]

    if not core or not re.match(r'^[a-z0-9-]+$', core):
        logger.warning(f"Invalid slug format (contains disallowed characters): '{slug}'")
        return None

    full_slug = prefix + core
    if len(full_slug) > 200:
        logger.warning(f"Slug exceeds maximum length: '{slug[:50]}...'")
        return None

    return full_slug


def page_from_url(url: str) -> int:
    """
    Return the page number a paginated URL ends with.

    '/films/popular/page/4/' -> 4. Raises ValueError when the last path
    segment is not a number.
    """
    last = url.rstrip("/").split("/")[-1]
    return int(last)


def parse_list_args(args: list[str]) -> list[ListID]:
    """Turn ['owner/slug', ...] into ListIDs."""
    return [ListID.parse(arg) for arg in args]


def remaining_pages(page_count: int, total_pages: int, shuffle: bool = False) -> list[int]:
    """
    Pages to fetch after page 1 when only `page_count` pages are wanted.

    With shuffle, a random sample of pages 2..total_pages is picked instead
    of the leading ones.
    """
    wanted = min(page_count, total_pages) - 1
    if wanted <= 0:
        return []
    if shuffle:
        return random.sample(range(2, total_pages + 1), wanted)
    return list(range(2, wanted + 2))
