from datetime import date

import httpx
import pytest

from html_builders import (
    diary_html,
    diary_row_html,
    film_grid_html,
    film_page_html,
    people_html,
    profile_html,
)
from letterboxd_client.batch import BatchErrorPolicy
from letterboxd_client.cache import MemoryCache
from letterboxd_client.client import LetterboxdClient
from letterboxd_client.errors import BatchError, NotFoundError, ValidationError
from letterboxd_client.fetcher import Fetcher
from letterboxd_client.models import BatchSpec, Film, FilmListOpts, FilmographyOpts, ListID

FILMS = {
    "the-matrix": ("The Matrix", 1999, "tt0133093", "603"),
    "cure": ("Cure", 1997, "tt0123948", "36095"),
    "barbie": ("Barbie", 2023, "tt1517268", "346698"),
    "face-off": ("Face/Off", 1997, "tt0119094", "754"),
    "con-air": ("Con Air", 1997, "tt0118880", "1701"),
}


class FakeLetterboxd:
    """Routes request paths to canned pages; unknown paths are 404s."""

    def __init__(self, pages: dict[str, str] | None = None):
        self.pages = dict(pages or {})
        self.requests: list[str] = []
        for slug, (title, year, imdb, tmdb) in FILMS.items():
            self.pages.setdefault(f"/film/{slug}/", film_page_html(slug, title, year, imdb=imdb, tmdb=tmdb))

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        if path in self.pages:
            return httpx.Response(200, text=self.pages[path])
        return httpx.Response(404, text="<html><body>Not found</body></html>")

    def client(self, **kwargs) -> LetterboxdClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return LetterboxdClient(fetcher=Fetcher(client=http, retry_delay=0.0), **kwargs)


def _grid_pages(base: str, pages: list[list[str]]) -> dict[str, str]:
    total = len(pages)
    return {
        f"{base}/page/{n}/": film_grid_html(slugs, current=n, total=total, base=base)
        for n, slugs in enumerate(pages, start=1)
    }


@pytest.mark.asyncio
async def test_get_film_uses_film_cache():
    site = FakeLetterboxd()
    client = site.client(cache=MemoryCache())

    first = await client.get_film("the-matrix")
    second = await client.get_film("/film/the-matrix/")

    assert first.title == "The Matrix"
    assert first.external_ids.imdb == "tt0133093"
    assert second == first
    assert site.requests == ["/film/the-matrix/"]


@pytest.mark.asyncio
async def test_get_film_rejects_bad_slug_without_request():
    site = FakeLetterboxd()

    with pytest.raises(ValidationError):
        await site.client().get_film("not a slug!")

    assert site.requests == []


@pytest.mark.asyncio
async def test_stream_watched_enhances_each_film():
    site = FakeLetterboxd(_grid_pages("/dave/films", [["the-matrix", "cure"], ["barbie"], ["face-off"]]))
    client = site.client()

    stream = client.stream_watched("dave")
    films = [film async for film in stream]

    assert sorted(f.slug for f in films) == ["barbie", "cure", "face-off", "the-matrix"]
    assert all(f.external_ids and f.external_ids.imdb for f in films)
    assert [f.slug for f in films[:2]] == ["the-matrix", "cure"]
    assert stream.failed_pages == []


@pytest.mark.asyncio
async def test_watched_without_enhancement_makes_no_film_requests():
    site = FakeLetterboxd(_grid_pages("/dave/films", [["the-matrix", "cure"]]))

    films = await site.client().watched("dave", enhance=False)

    assert [f.slug for f in films] == ["the-matrix", "cure"]
    assert films[0].external_ids is None
    assert site.requests == ["/dave/films/page/1/"]


@pytest.mark.asyncio
async def test_watched_imdb_ids():
    site = FakeLetterboxd(_grid_pages("/dave/films", [["the-matrix"], ["cure"]]))

    ids = await site.client().watched_imdb_ids("dave")

    assert sorted(ids) == ["tt0123948", "tt0133093"]


@pytest.mark.asyncio
async def test_missing_film_page_leaves_preview_intact():
    pages = _grid_pages("/dave/watchlist", [["cure", "unknown-film"]])
    site = FakeLetterboxd(pages)

    films = await site.client().watchlist("dave")

    by_slug = {f.slug: f for f in films}
    assert by_slug["cure"].year == 1997
    assert by_slug["unknown-film"].year is None


@pytest.mark.asyncio
async def test_list_films_and_page_cache():
    pages = _grid_pages("/dave/list/imdb-top-250", [["the-matrix"], ["cure"]])
    site = FakeLetterboxd(pages)
    client = site.client(cache=MemoryCache())

    first = await client.list_films("dave", "imdb-top-250", enhance=False)
    requests_after_first = len(site.requests)
    second = await client.list_films("dave", "imdb-top-250", enhance=False)

    assert [f.slug for f in first] == [f.slug for f in second] == ["the-matrix", "cure"]
    assert len(site.requests) == requests_after_first


@pytest.mark.asyncio
async def test_diary_sorted_most_recent_first():
    pages = {
        "/dave/films/diary/page/1/": diary_html([
            diary_row_html("cure", "2021-03-04", rating=7),
            diary_row_html("barbie", "2023-07-21", rating=8),
        ], current=1, total=2),
        "/dave/films/diary/page/2/": diary_html([
            diary_row_html("the-matrix", "2022-01-01", rewatch=True),
        ], current=2, total=2),
    }
    site = FakeLetterboxd(pages)

    entries = await site.client().diary("dave", enhance=True)

    assert [e.slug for e in entries] == ["barbie", "the-matrix", "cure"]
    assert entries[0].watched == date(2023, 7, 21)
    assert entries[0].film.title == "Barbie"


@pytest.mark.asyncio
async def test_filmography_validates_before_any_request():
    site = FakeLetterboxd()
    client = site.client()

    with pytest.raises(ValidationError):
        await client.filmography(FilmographyOpts(person="", profession="actor"))
    with pytest.raises(ValidationError):
        await client.filmography(FilmographyOpts(person="nicolas-cage", profession="gaffer"))

    assert site.requests == []


@pytest.mark.asyncio
async def test_filmography_fetches_and_enhances():
    site = FakeLetterboxd({"/actor/nicolas-cage/": film_grid_html(["face-off", "con-air"])})

    films = await site.client().filmography(FilmographyOpts(person="nicolas-cage", profession="actor"))

    assert [f.title for f in films] == ["Face/Off", "Con Air"]
    # One page fetch plus one lookup per film, no second enhancement pass
    assert sorted(site.requests) == sorted(["/actor/nicolas-cage/", "/film/face-off/", "/film/con-air/"])


@pytest.mark.asyncio
async def test_films_browse_fetches_requested_page_count():
    base = "/films/ajax/popular/size/small"
    pages = _grid_pages(base, [["the-matrix"], ["cure"], ["barbie"], ["face-off"]])
    site = FakeLetterboxd(pages)

    films = await site.client().films(FilmListOpts(sort_by="popular", page_count=2))

    assert [f.slug for f in films] == ["the-matrix", "cure"]
    assert f"{base}/page/3/" not in site.requests


@pytest.mark.asyncio
async def test_followers_follow_next_links():
    pages = {
        "/dave/followers/page/1/": people_html(["alice", "bob"], next_href="/dave/followers/page/2/"),
        "/dave/followers/page/2/": people_html(["carol"]),
    }
    site = FakeLetterboxd(pages)

    assert await site.client().followers("dave") == ["alice", "bob", "carol"]
    assert await site.client().followers("dave", limit=1) == ["alice"]


@pytest.mark.asyncio
async def test_profile_tolerates_missing_follow_pages():
    pages = {
        "/dave/": profile_html("dave"),
        "/dave/following/page/1/": people_html(["erin"]),
    }
    site = FakeLetterboxd(pages)

    user = await site.client().profile("dave")

    assert user.username == "dave"
    assert user.watched_film_count == 1234
    assert user.followers == []
    assert user.following == ["erin"]


@pytest.mark.asyncio
async def test_missing_user_raises_not_found():
    site = FakeLetterboxd()

    with pytest.raises(NotFoundError):
        await site.client().watched("nobody")


@pytest.mark.asyncio
async def test_items_for_url_dispatch():
    pages = {
        **_grid_pages("/dave/list/imdb-top-250", [["the-matrix"]]),
        **_grid_pages("/dave/watchlist", [["cure"]]),
        **_grid_pages("/dave/films", [["barbie"]]),
        "/director/john-woo/": film_grid_html(["face-off"]),
    }
    site = FakeLetterboxd(pages)
    client = site.client()

    assert [f.slug for f in await client.items_for_url("https://letterboxd.com/dave/list/imdb-top-250/")] == ["the-matrix"]
    assert [f.slug for f in await client.items_for_url("https://letterboxd.com/dave/watchlist/")] == ["cure"]
    assert [f.slug for f in await client.items_for_url("https://letterboxd.com/dave/films/")] == ["barbie"]
    assert [f.slug for f in await client.items_for_url("https://letterboxd.com/director/john-woo/")] == ["face-off"]


@pytest.mark.asyncio
async def test_items_for_url_rejects_unknown_urls():
    site = FakeLetterboxd()
    client = site.client()

    with pytest.raises(ValidationError):
        await client.items_for_url("https://example.com/dave/films/")
    with pytest.raises(ValidationError):
        await client.items_for_url("https://letterboxd.com/dave/")

    assert site.requests == []


@pytest.mark.asyncio
async def test_stream_batch_continues_past_missing_user():
    pages = {
        **_grid_pages("/alice/films", [["the-matrix"]]),
        **_grid_pages("/dave/list/imdb-top-250", [["cure"]]),
        **_grid_pages("/carol/watchlist", [["barbie"]]),
    }
    site = FakeLetterboxd(pages)
    spec = BatchSpec(
        watched=("alice", "ghost"),
        lists=(ListID("dave", "imdb-top-250"),),
        watchlist=("carol",),
    )

    stream = site.client().stream_batch(spec)
    films = [f async for f in stream]

    assert [f.slug for f in films] == ["the-matrix", "cure", "barbie"]
    assert len(stream.errors) == 1
    assert isinstance(stream.errors[0].cause, NotFoundError)


@pytest.mark.asyncio
async def test_stream_batch_abort_policy():
    site = FakeLetterboxd(_grid_pages("/carol/watchlist", [["barbie"]]))
    spec = BatchSpec(watched=("ghost",), watchlist=("carol",))

    with pytest.raises(BatchError):
        await site.client().stream_batch(spec, on_error=BatchErrorPolicy.ABORT).collect()

    assert "/carol/watchlist/page/1/" not in site.requests


@pytest.mark.asyncio
async def test_enhance_film_keeps_caller_fields():
    site = FakeLetterboxd()
    film = Film(slug="cure", title="Kyua")

    await site.client().enhance_film(film)

    assert film.title == "Kyua"
    assert film.year == 1997
