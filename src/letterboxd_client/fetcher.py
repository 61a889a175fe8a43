import logging

import httpx
from selectolax.parser import HTMLParser

from .config import (
    BASE_URL,
    DEFAULT_RETRY_AFTER,
    HTTP2_ENABLED,
    HTTP_TIMEOUT,
    LETTERBOXD_COOKIE,
    MAX_HTTP_RETRIES,
    RETRY_BACKOFF_FACTOR,
    RETRY_INITIAL_DELAY,
    USER_AGENT,
)
from .errors import (
    HTTPStatusError,
    NotFoundError,
    RateLimitedError,
    SoftBlockError,
    TransportError,
)
from .utils import async_retry_with_backoff

logger = logging.getLogger(__name__)

SOFT_BLOCK_PHRASES = (
    "please wait",
    "too many requests",
    "try again later",
    "access denied",
)
# Real list pages are far larger than a block notice; phrase matching only applies below this
SOFT_BLOCK_MAX_BYTES = 8192


def _parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    """
    Convert a raw Cookie header string into a dict for httpx.

    Accepts the full "key=value; key2=value2" header; ignores malformed pairs.
    """
    if not cookie_header:
        return {}

    cookie_jar: dict[str, str] = {}
    for part in cookie_header.split(";"):
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        name = name.strip()
        value = value.strip()
        if name:
            cookie_jar[name] = value
    return cookie_jar


def detect_soft_block(text: str) -> bool:
    """
    Detect if we're being soft-blocked (page loads but with limited/no content).
    """
    if not text:
        return False

    tree = HTMLParser(text)
    if tree.css_first("form[action*='captcha'], .captcha-container"):
        return True

    if len(text) > SOFT_BLOCK_MAX_BYTES:
        return False
    body_el = tree.css_first("body")
    body_text = body_el.text() if body_el else ""
    return any(phrase in body_text.lower() for phrase in SOFT_BLOCK_PHRASES)


def check_response(resp: httpx.Response, url: str) -> None:
    """Raise the typed error matching a non-2xx response."""
    status = resp.status_code
    if 200 <= status < 300:
        return

    # A JSON "errors" body only replaces the message; the status picks the type.
    message = None
    if "json" in resp.headers.get("content-type", ""):
        try:
            errors = resp.json().get("errors")
        except (ValueError, AttributeError):
            errors = None
        if errors:
            message = str(errors)

    if status == 429:
        try:
            retry_after = int(resp.headers.get("Retry-After", DEFAULT_RETRY_AFTER))
        except ValueError:
            retry_after = DEFAULT_RETRY_AFTER
        raise RateLimitedError(
            message or "too many requests. Check rate limit and make sure the User-Agent is set right",
            url=url,
            retry_after=retry_after,
        )
    if status == 404:
        raise NotFoundError(
            message or "that entry was not found, are you sure it exists?", url=url, status_code=404
        )
    raise HTTPStatusError(message or f"error, status code: {status}", url=url, status_code=status)


class Fetcher:
    """
    Fetches raw pages from Letterboxd.

    Use as an async context manager, or pass an existing httpx.AsyncClient
    (which the caller keeps ownership of). Timeouts are retried with
    exponential backoff; every other failure is raised as a typed error.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = MAX_HTTP_RETRIES,
        retry_delay: float = RETRY_INITIAL_DELAY,
        cookie: str | None = LETTERBOXD_COOKIE,
        http2: bool = HTTP2_ENABLED,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.http2 = http2
        self.cookies = _parse_cookie_header(cookie)
        self._get = async_retry_with_backoff(
            max_retries=max_retries,
            initial_delay=retry_delay,
            backoff_factor=RETRY_BACKOFF_FACTOR,
            exceptions=(httpx.TimeoutException,),
        )(self._send)

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=self.timeout,
            http2=self.http2,
            cookies=self.cookies or None,
        )

    async def __aenter__(self):
        if self.client is None:
            self.client = self._make_client()
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    def url_for(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    async def _send(self, url: str) -> httpx.Response:
        return await self.client.get(url)

    async def fetch(self, url: str) -> bytes:
        """GET a page (absolute URL or site path) and return its body."""
        if self.client is None:
            raise RuntimeError("Fetcher must be used as an async context manager or given a client")

        url = self.url_for(url)
        try:
            resp = await self._get(url)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out fetching {url}: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request error on {url}: {type(e).__name__}: {e}", url=url) from e

        check_response(resp, url)

        body = resp.content
        if not body:
            logger.warning(f"Empty body found for {url} (status {resp.status_code}). Check reader...")
        elif detect_soft_block(resp.text):
            raise SoftBlockError(f"Soft block detected on {url}", url=url, status_code=resp.status_code)
        logger.debug(f"Fetched {url} ({len(body)} bytes)")
        return body
