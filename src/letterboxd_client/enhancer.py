"""
Fill in partially known entities with a secondary lookup.

Listing pages only carry a preview of each film (slug, maybe a title); the
film's own page has the rest. The enhancer looks each entity up by its key
and copies over only the fields the entity does not have yet, so anything
the caller already set is never overwritten.
"""
import asyncio
import logging
from dataclasses import fields, is_dataclass
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from .config import DEFAULT_ENHANCE_CONCURRENCY
from .errors import EnhancementError

logger = logging.getLogger(__name__)

E = TypeVar("E")


def _is_unset(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)) and not value:
        return True
    # bool is an int subclass, but False is a real answer, not a missing one
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def merge_missing(target: E, source: Any) -> E:
    """
    Copy fields from ``source`` into ``target`` where ``target`` has none.

    Nested dataclasses are merged field by field. Returns ``target``.
    """
    for f in fields(target):
        incoming = getattr(source, f.name, None)
        if _is_unset(incoming):
            continue
        current = getattr(target, f.name)
        if is_dataclass(current) and is_dataclass(incoming):
            merge_missing(current, incoming)
        elif _is_unset(current):
            setattr(target, f.name, incoming)
    return target


def _slug_key(entity: Any) -> str | None:
    return getattr(entity, "slug", None)


class Enhancer(Generic[E]):
    """
    Runs ``lookup(key)`` for entities and merges the result into them.

    One semaphore per enhancer caps concurrent lookups across every batch
    it runs.
    """

    def __init__(
        self,
        lookup: Callable[[str], Awaitable[Any]],
        key: Callable[[E], str | None] = _slug_key,
        max_concurrent: int = DEFAULT_ENHANCE_CONCURRENCY,
    ):
        self._lookup = lookup
        self._key = key
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def enhance(self, entity: E) -> E:
        key = self._key(entity)
        if not key:
            raise EnhancementError(f"Cannot enhance {type(entity).__name__} without a key")
        try:
            details = await self._lookup(key)
        except Exception as e:
            raise EnhancementError(f"Lookup for '{key}' failed: {type(e).__name__}: {e}") from e
        return merge_missing(entity, details)

    async def _enhance_one(self, entity: E) -> bool:
        async with self._semaphore:
            try:
                await self.enhance(entity)
                return True
            except EnhancementError as e:
                logger.warning(f"Could not enhance: {e}")
                return False

    async def enhance_batch(self, entities: Iterable[E]) -> None:
        """
        Enhance every entity, at most ``max_concurrent`` at a time.

        Returns once all of them have been attempted. Failures are logged
        and leave that entity as it was.
        """
        entities = list(entities)
        if not entities:
            return

        results = await asyncio.gather(
            *(self._enhance_one(entity) for entity in entities),
            return_exceptions=True,
        )
        successful = 0
        for entity, result in zip(entities, results):
            if result is True:
                successful += 1
            elif isinstance(result, Exception):
                logger.error(f"Error enhancing {self._key(entity)}: {result}")

        logger.debug(f"Batch complete: {successful}/{len(entities)} enhanced")
