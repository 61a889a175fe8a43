"""
Stream several collections back as one.

Watched films come first, then lists, then watchlists, in the order the
BatchSpec names them. Each entry opens its own stream only when the batch
reaches it.
"""
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Generic, TypeVar

from .errors import BatchError
from .models import BatchSpec, ListID
from .streams import ItemStream

logger = logging.getLogger(__name__)

T = TypeVar("T")

Source = tuple[str, Callable[[], ItemStream[T]]]


class BatchErrorPolicy(Enum):
    CONTINUE = "continue"  # record the failure and move on to the next entry
    ABORT = "abort"  # raise the first failure, start nothing else


class BatchStream(ItemStream[T]):
    """
    Relays every item of its sources in order.

    Under CONTINUE, failed sources end up in ``errors`` once iteration is done.
    Items relayed before a failure stay delivered under either policy.
    """

    def __init__(self, sources: list[Source], on_error: BatchErrorPolicy = BatchErrorPolicy.CONTINUE):
        super().__init__()
        self.sources = sources
        self.on_error = on_error
        self.errors: list[BatchError] = []
        self.completed: list[str] = []

    async def _produce(self) -> AsyncIterator[T]:
        for label, open_stream in self.sources:
            logger.info(f"Fetching {label}")
            try:
                async with open_stream() as stream:
                    async for item in stream:
                        yield item
            except Exception as e:
                error = BatchError(f"Failed to get {label}: {e}", source=label, cause=e)
                if self.on_error is BatchErrorPolicy.ABORT:
                    raise error from e
                logger.error(f"{error} (continuing with the rest of the batch)")
                self.errors.append(error)
                continue
            self.completed.append(label)
        logger.debug(f"Completed batch: {len(self.completed)} ok, {len(self.errors)} failed")


class BatchMultiplexer(Generic[T]):
    """Turns a BatchSpec into one BatchStream using a stream opener per category."""

    def __init__(
        self,
        watched: Callable[[str], ItemStream[T]],
        lists: Callable[[ListID], ItemStream[T]],
        watchlist: Callable[[str], ItemStream[T]],
    ):
        self._watched = watched
        self._lists = lists
        self._watchlist = watchlist

    def sources(self, spec: BatchSpec) -> list[Source]:
        sources: list[Source] = []
        for username in spec.watched:
            sources.append((f"watched films of {username}", lambda u=username: self._watched(u)))
        for list_id in spec.lists:
            sources.append((f"list {list_id}", lambda l=list_id: self._lists(l)))
        for username in spec.watchlist:
            sources.append((f"watchlist of {username}", lambda u=username: self._watchlist(u)))
        return sources

    def stream(self, spec: BatchSpec, on_error: BatchErrorPolicy = BatchErrorPolicy.CONTINUE) -> BatchStream[T]:
        if spec.is_empty():
            logger.warning("Batch has nothing to fetch")
        return BatchStream(self.sources(spec), on_error=on_error)
