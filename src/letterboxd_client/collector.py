"""
Concurrent collection of every item behind a paginated listing.

Page 1 is fetched first: it tells us how many pages exist, and if it fails
there is nothing to collect so the stream fails with it. The last page comes
next, then every page in between is fetched by a small pool of worker tasks
pulling page numbers off a queue. Items are emitted page by page as pages
complete, so only items from the same page keep their relative order.

A middle or last page that fails is logged, recorded in ``failed_pages`` and
skipped; the stream still finishes normally with whatever was collected.
"""
import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Generic, TypeVar

from .config import DEFAULT_MAX_CONCURRENT_PAGES, STREAM_BUFFER_PAGES
from .errors import ValidationError
from .models import PageResult, Pagination
from .streams import ItemStream

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[str], Awaitable[PageResult[T]]]

# Put on the results queue by each worker once the page queue is empty
_WORKER_DONE = object()


class PageStream(ItemStream[T]):
    """
    Items from every page of one listing.

    After iteration, ``pagination`` holds page 1's pagination, ``total_items``
    the advisory item estimate and ``failed_pages`` the pages that were skipped.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        url_template: str,
        max_concurrent: int,
        buffer_pages: int = STREAM_BUFFER_PAGES,
    ):
        super().__init__()
        self._fetch_page = fetch_page
        self.url_template = url_template
        self.max_concurrent = max_concurrent
        self.buffer_pages = buffer_pages
        self.pagination: Pagination | None = None
        self.total_items = 0
        self.failed_pages: list[int] = []

    def page_url(self, page: int) -> str:
        return self.url_template.format(page=page)

    async def _fetch_or_record(self, page: int) -> PageResult[T] | None:
        url = self.page_url(page)
        try:
            return await self._fetch_page(url)
        except Exception as e:
            logger.warning(f"Skipping page {page} ({url}): {type(e).__name__}: {e}")
            self.failed_pages.append(page)
            return None

    async def _worker(self, page_queue: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            try:
                page = page_queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            result = await self._fetch_or_record(page)
            if result is not None:
                # Blocks while the consumer is behind, before taking another page
                await results.put(result)
        await results.put(_WORKER_DONE)

    async def _produce(self) -> AsyncIterator[T]:
        first = await self._fetch_page(self.page_url(1))
        pagination = first.pagination
        if pagination is None:
            pagination = Pagination.single_page()
        self.pagination = pagination
        total = pagination.total_pages
        logger.debug(f"{self.url_template}: {total} page(s)")

        for item in first.items:
            yield item

        if total <= 1:
            self.total_items = len(first.items)
            return

        last_count = 0
        last = await self._fetch_or_record(total)
        if last is not None:
            last_count = len(last.items)
            for item in last.items:
                yield item

        per_page = len(first.items)
        self.total_items = per_page * max(total - 2, 0) + per_page + last_count
        if total == 2:
            return

        page_queue: asyncio.Queue = asyncio.Queue()
        for page in range(2, total):
            page_queue.put_nowait(page)
        results: asyncio.Queue = asyncio.Queue(maxsize=self.buffer_pages)

        n_workers = min(self.max_concurrent, total - 2)
        workers = [
            asyncio.create_task(self._worker(page_queue, results))
            for _ in range(n_workers)
        ]
        try:
            finished = 0
            while finished < n_workers:
                result = await results.get()
                if result is _WORKER_DONE:
                    finished += 1
                    continue
                for item in result.items:
                    yield item
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if self.failed_pages:
            logger.warning(
                f"{self.url_template}: {len(self.failed_pages)} of {total} pages failed: "
                f"{sorted(self.failed_pages)}"
            )


class PaginatedCollector(Generic[T]):
    """
    Builds PageStreams over a page fetcher.

    ``fetch_page`` takes a page URL and returns that page's PageResult; the
    first page's result must carry pagination (or none, for a single page).
    At most ``max_concurrent`` middle pages are fetched at once.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_PAGES,
        buffer_pages: int = STREAM_BUFFER_PAGES,
    ):
        if max_concurrent < 1:
            raise ValidationError("max_concurrent must be at least 1")
        if buffer_pages < 1:
            raise ValidationError("buffer_pages must be at least 1")
        self.fetch_page = fetch_page
        self.max_concurrent = max_concurrent
        self.buffer_pages = buffer_pages

    def stream(self, url_template: str) -> PageStream[T]:
        """Stream every item behind ``url_template``, which must contain ``{page}``."""
        if "{page}" not in url_template:
            raise ValidationError(f"url template has no {{page}} placeholder: '{url_template}'")
        return PageStream(self.fetch_page, url_template, self.max_concurrent, self.buffer_pages)

    async def collect(self, url_template: str) -> list[T]:
        return await self.stream(url_template).collect()
