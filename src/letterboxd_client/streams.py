"""
Pull-based item streams.

A stream is consumed with ``async for``. Running out of items means the
producer finished; an exception raised out of the loop means it failed.
A consumer that stops early should close the stream (``await stream.aclose()``
or ``async with stream:``) so background fetches are cancelled instead of
waiting on a reader that is gone.
"""
import logging
from typing import AsyncIterator, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ItemStream(Generic[T]):
    """Base class: subclasses implement ``_produce`` as an async generator."""

    def __init__(self):
        self._gen: AsyncIterator[T] | None = None
        self.closed = False

    def _produce(self) -> AsyncIterator[T]:
        raise NotImplementedError

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        if self.closed:
            raise StopAsyncIteration
        if self._gen is None:
            self._gen = self._produce()
        return await self._gen.__anext__()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._gen is not None:
            await self._gen.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def collect(self) -> list[T]:
        """Drain the stream into a list, closing it afterwards."""
        async with self:
            return [item async for item in self]
