"""
High level Letterboxd client.

Every operation is built from the same pieces: the Fetcher gets a page, an
extractor turns it into a PageResult, the PaginatedCollector walks all pages
of a listing and the Enhancer fills in film details from each film's page.
The fetcher, cache and concurrency limits are passed in, so nothing here
holds global state.
"""
import logging
from datetime import date
from typing import Any, Callable

from .batch import BatchErrorPolicy, BatchMultiplexer, BatchStream
from .cache import Cache, NullCache, film_cache_key, page_cache_key, random_page_ttl
from .collector import PageStream, PaginatedCollector
from .config import (
    DEFAULT_ENHANCE_CONCURRENCY,
    DEFAULT_MAX_CONCURRENT_PAGES,
    FILM_CACHE_TTL_SECONDS,
    FILMOGRAPHY_PROFESSIONS,
)
from .enhancer import Enhancer
from .errors import LetterboxdError, ValidationError
from .extractors import (
    extract_diary_entries,
    extract_film,
    extract_filmography,
    extract_films,
    extract_people,
    extract_user,
)
from .fetcher import Fetcher
from .models import (
    BatchSpec,
    DiaryEntry,
    Film,
    FilmListOpts,
    FilmographyOpts,
    PageResult,
    User,
    imdb_ids,
)
from .urls import normalize_url_path, remaining_pages, validate_slug

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], PageResult]


def _encode_item(item: Any) -> Any:
    return item.to_dict() if hasattr(item, "to_dict") else item


def _identity(item: Any) -> Any:
    return item


def _page_template(path: str) -> str:
    return f"{path.rstrip('/')}/page/{{page}}/"


class LetterboxdClient:
    """
    Async client for Letterboxd pages.

    Usage:
        async with LetterboxdClient() as client:
            async for film in client.stream_watched("dave"):
                ...
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        cache: Cache | None = None,
        max_concurrent_pages: int = DEFAULT_MAX_CONCURRENT_PAGES,
        max_concurrent_lookups: int = DEFAULT_ENHANCE_CONCURRENCY,
    ):
        self.fetcher = fetcher if fetcher is not None else Fetcher()
        self.cache = cache if cache is not None else NullCache()
        self.max_concurrent_pages = max_concurrent_pages
        self.film_enhancer: Enhancer[Film] = Enhancer(self.get_film, max_concurrent=max_concurrent_lookups)
        self.batch = BatchMultiplexer(
            watched=self.stream_watched,
            lists=lambda list_id: self.stream_list(list_id.owner, list_id.slug),
            watchlist=self.stream_watchlist,
        )

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.fetcher.aclose()
        return False

    # --- pages -----------------------------------------------------------

    async def fetch_page(
        self,
        path: str,
        extractor: Extractor,
        decode: Callable[[Any], Any] | None = None,
    ) -> PageResult:
        """
        Fetch one page and extract it, going through the page cache.

        ``decode`` rebuilds an item from its cached dict form; items without
        a dict form (usernames) are cached as they are.
        """
        decode = decode or _identity
        key = page_cache_key(path)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                logger.debug(f"Cache hit for {path}")
                return PageResult.from_dict(cached, decode)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable cache entry for {path}: {e}")

        body = await self.fetcher.fetch(path)
        result = extractor(body)
        self.cache.set(key, result.to_dict(_encode_item), random_page_ttl())
        return result

    def _collector(self, extractor: Extractor, decode: Callable[[Any], Any] | None = None) -> PaginatedCollector:
        async def fetch(path: str) -> PageResult:
            return await self.fetch_page(path, extractor, decode)

        return PaginatedCollector(fetch, max_concurrent=self.max_concurrent_pages)

    def _film_collector(self, enhance: bool) -> PaginatedCollector[Film]:
        if not enhance:
            return self._collector(extract_films, Film.from_dict)

        async def fetch_enhanced(path: str) -> PageResult[Film]:
            result = await self.fetch_page(path, extract_films, Film.from_dict)
            await self.enhance_films(result.items)
            return result

        return PaginatedCollector(fetch_enhanced, max_concurrent=self.max_concurrent_pages)

    # --- films -----------------------------------------------------------

    async def get_film(self, slug: str) -> Film:
        """Full details for one film, from its own page or the film cache."""
        clean = validate_slug(slug)
        if not clean:
            raise ValidationError(f"invalid film slug '{slug}'")

        key = film_cache_key(clean)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return Film.from_dict(cached)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable cache entry for film {clean}: {e}")

        body = await self.fetcher.fetch(f"/film/{clean}/")
        film = extract_film(body, slug=clean).items[0]
        self.cache.set(key, film.to_dict(), FILM_CACHE_TTL_SECONDS)
        return film

    async def enhance_film(self, film: Film) -> Film:
        return await self.film_enhancer.enhance(film)

    async def enhance_films(self, films: list[Film]) -> None:
        await self.film_enhancer.enhance_batch(films)

    async def films_with_path(self, path: str) -> list[Film]:
        """Film previews from every page of the listing at ``path``."""
        return await self._film_collector(enhance=False).collect(_page_template(path))

    async def enhanced_films_with_path(self, path: str) -> list[Film]:
        return await self._film_collector(enhance=True).collect(_page_template(path))

    async def filmography(self, opts: FilmographyOpts) -> list[Film]:
        opts.validate()
        result = await self.fetch_page(
            f"/{opts.profession}/{opts.person}/", extract_filmography, Film.from_dict
        )
        films = result.items
        await self.enhance_films(films)
        logger.info(f"Found {len(films)} films for {opts.profession} {opts.person}")
        return films

    async def films(self, opts: FilmListOpts | None = None) -> list[Film]:
        """
        Site-wide films in ``opts.sort_by`` order.

        Page 1 is always fetched; ``page_count - 1`` more pages follow, the
        leading ones or a random sample when ``shuffle_pages`` is set.
        """
        opts = opts or FilmListOpts()
        sort_by = opts.sort_by or "popular"
        page_count = opts.page_count or 1
        if page_count < 1:
            raise ValidationError("page_count must be at least 1")

        def path_for(page: int) -> str:
            return f"/films/ajax/{sort_by}/size/small/page/{page}/"

        first = await self.fetch_page(path_for(1), extract_films, Film.from_dict)
        films = list(first.items)
        total_pages = first.pagination.total_pages if first.pagination else 1
        for page in remaining_pages(page_count, total_pages, opts.shuffle_pages):
            result = await self.fetch_page(path_for(page), extract_films, Film.from_dict)
            films.extend(result.items)
        await self.enhance_films(films)
        return films

    # --- user collections --------------------------------------------------

    def stream_watched(self, username: str, enhance: bool = True) -> PageStream[Film]:
        return self._film_collector(enhance).stream(_page_template(f"/{username}/films"))

    def stream_list(self, owner: str, slug: str, enhance: bool = True) -> PageStream[Film]:
        return self._film_collector(enhance).stream(_page_template(f"/{owner}/list/{slug}"))

    def stream_watchlist(self, username: str, enhance: bool = True) -> PageStream[Film]:
        return self._film_collector(enhance).stream(_page_template(f"/{username}/watchlist"))

    def stream_diary(self, username: str) -> PageStream[DiaryEntry]:
        collector = self._collector(extract_diary_entries, DiaryEntry.from_dict)
        return collector.stream(_page_template(f"/{username}/films/diary"))

    async def watched(self, username: str, enhance: bool = True) -> list[Film]:
        return await self.stream_watched(username, enhance).collect()

    async def watchlist(self, username: str, enhance: bool = True) -> list[Film]:
        return await self.stream_watchlist(username, enhance).collect()

    async def list_films(self, owner: str, slug: str, enhance: bool = True) -> list[Film]:
        return await self.stream_list(owner, slug, enhance).collect()

    async def diary(self, username: str, enhance: bool = False) -> list[DiaryEntry]:
        """Every diary entry, most recent watch first."""
        entries = await self.stream_diary(username).collect()
        if enhance:
            await self.enhance_films([entry.film for entry in entries if entry.film is not None])
        entries.sort(key=lambda entry: entry.watched or date.min, reverse=True)
        return entries

    def stream_batch(
        self,
        spec: BatchSpec,
        on_error: BatchErrorPolicy = BatchErrorPolicy.CONTINUE,
    ) -> BatchStream[Film]:
        return self.batch.stream(spec, on_error=on_error)

    async def watched_imdb_ids(self, username: str) -> list[str]:
        films = await self.watched(username, enhance=True)
        return imdb_ids(films)

    # --- people ------------------------------------------------------------

    async def _people(self, username: str, kind: str, limit: int | None = None) -> list[str]:
        names: list[str] = []
        page = 1
        while True:
            result = await self.fetch_page(f"/{username}/{kind}/page/{page}/", extract_people)
            names.extend(result.items)
            if limit is not None and len(names) >= limit:
                names = names[:limit]
                break
            if not result.has_next or not result.items:
                break
            page += 1
        logger.info(f"Found {len(names)} {kind} for {username}")
        return names

    async def followers(self, username: str, limit: int | None = None) -> list[str]:
        return await self._people(username, "followers", limit)

    async def following(self, username: str, limit: int | None = None) -> list[str]:
        return await self._people(username, "following", limit)

    async def profile(self, username: str) -> User:
        """A user's profile, with followers and following when those can be fetched."""
        result = await self.fetch_page(f"/{username}/", extract_user, User.from_dict)
        user = result.items[0]
        try:
            user.followers = await self.followers(username)
        except LetterboxdError as e:
            logger.warning(f"Could not get followers for {username}: {e}")
        try:
            user.following = await self.following(username)
        except LetterboxdError as e:
            logger.warning(f"Could not get following for {username}: {e}")
        return user

    # --- urls --------------------------------------------------------------

    async def items_for_url(self, url: str) -> list[Film]:
        """
        Films behind a letterboxd.com URL.

        Recognises filmographies (/director/<name>/), watchlists
        (/<user>/watchlist/), lists (/<user>/list/<slug>/) and watched
        films (/<user>/films/).
        """
        path = normalize_url_path(url)
        parts = path.split("/")

        for profession in FILMOGRAPHY_PROFESSIONS:
            if path.startswith(f"/{profession}/") and len(parts) > 2 and parts[2]:
                logger.debug(f"Detected filmography of {profession} {parts[2]}")
                return await self.filmography(FilmographyOpts(person=parts[2], profession=profession))

        if path.endswith("/watchlist") and len(parts) > 2:
            logger.debug(f"Detected watchlist of {parts[1]}")
            return await self.watchlist(parts[1])

        if "/list/" in path and len(parts) > 3:
            logger.info(f"Detected list {parts[1]}/{parts[3]}")
            return await self.list_films(parts[1], parts[3])

        if path.endswith("/films") and len(parts) == 3:
            logger.debug(f"Detected watched films of {parts[1]}")
            return await self.watched(parts[1])

        raise ValidationError(f"Could not find a match for that URL: '{url}'")
