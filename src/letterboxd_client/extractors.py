"""
Page extractors: raw page body in, typed PageResult out.

Each extractor handles one page template and never touches the network.
List-style extractors attach pagination, falling back to a single page when the
template carries no paging controls.
"""
import logging
import re
from datetime import date

from selectolax.parser import HTMLParser, Node

from .errors import ExtractionError
from .models import DiaryEntry, ExternalFilmIDs, Film, PageResult, Pagination, User
from .pagination import detect_pagination, has_next
from .urls import validate_slug

logger = logging.getLogger(__name__)

_TITLE_YEAR_RE = re.compile(r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)$")
_POSTER_SELECTOR = "[data-item-slug], [data-film-slug]"


def parse_html(body: bytes | str) -> HTMLParser:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return HTMLParser(body)


def title_and_year(full_title: str) -> tuple[str, int | None]:
    """Split 'Barbie (2023)' into ('Barbie', 2023); titles without a year keep year None."""
    full_title = full_title.strip()
    match = _TITLE_YEAR_RE.match(full_title)
    if not match:
        return full_title, None
    return match.group("title").strip(), int(match.group("year"))


def external_id_from_url(url: str) -> str | None:
    """
    Pull the id out of an IMDb or TMDb link.

    https://www.imdb.com/title/tt0133093/maindetails -> tt0133093
    https://www.themoviedb.org/movie/603/ -> 603
    """
    if "imdb.com" not in url and "themoviedb.org" not in url:
        return None
    parts = url.split("/")
    if len(parts) < 5 or not parts[4]:
        return None
    return parts[4]


def _pagination_or_single_page(tree: HTMLParser) -> Pagination:
    pagination = detect_pagination(tree)
    if pagination is None:
        logger.warning("No pagination data found, assuming it to be a single page")
        return Pagination.single_page()
    return pagination


def film_from_poster(node: Node) -> Film | None:
    """Build a preview Film from a poster element's data attributes."""
    attrs = node.attributes
    slug = validate_slug(attrs.get("data-item-slug") or attrs.get("data-film-slug"))
    if not slug:
        return None

    film = Film(
        slug=slug,
        id=attrs.get("data-film-id") or None,
        target=attrs.get("data-target-link") or attrs.get("data-item-link") or None,
    )

    name = attrs.get("data-item-name") or attrs.get("data-film-name")
    if name:
        film.title, film.year = title_and_year(name)
    else:
        # Real film name appears in the alt attribute for the poster
        img = node.css_first("img")
        if img is not None and img.attributes.get("alt"):
            film.title = img.attributes["alt"].strip()
    return film


def _films_from_posters(tree: HTMLParser) -> list[Film]:
    films = []
    for item in tree.css("li.griditem, li.poster-container"):
        poster = item.css_first(_POSTER_SELECTOR)
        if poster is None:
            continue
        film = film_from_poster(poster)
        if film is not None:
            films.append(film)
    return films


def extract_films(body: bytes | str) -> PageResult[Film]:
    """Film previews from a poster grid (watched, watchlist, list and browse pages)."""
    tree = parse_html(body)
    return PageResult(items=_films_from_posters(tree), pagination=_pagination_or_single_page(tree))


def extract_filmography(body: bytes | str) -> PageResult[Film]:
    """Film previews from a person's filmography page, which is never paginated."""
    tree = parse_html(body)
    return PageResult(items=_films_from_posters(tree))


def extract_film(body: bytes | str, slug: str | None = None) -> PageResult[Film]:
    """
    A single film from its own page.

    `slug` is the slug the page was requested with and is only used when the
    page does not name one itself.
    """
    tree = parse_html(body)

    title = None
    year = None
    og_title = tree.css_first("meta[property='og:title']")
    if og_title is not None:
        title, year = title_and_year(og_title.attributes.get("content") or "")
    if not title:
        headline = tree.css_first("h1.headline-1")
        if headline is not None:
            title = headline.text(strip=True) or None

    film_id = None
    target = None
    page_slug = None
    poster = tree.css_first("div.film-poster")
    if poster is None:
        poster = tree.css_first(_POSTER_SELECTOR)
    if poster is not None:
        attrs = poster.attributes
        page_slug = validate_slug(attrs.get("data-film-slug") or attrs.get("data-item-slug"))
        film_id = attrs.get("data-film-id") or None
        target = attrs.get("data-target-link") or attrs.get("data-item-link") or None

    final_slug = page_slug or validate_slug(slug)
    if not final_slug:
        raise ExtractionError("film page has no slug")

    external_ids = ExternalFilmIDs()
    for link in tree.css("a[data-track-action]"):
        action = link.attributes.get("data-track-action")
        href = link.attributes.get("href") or ""
        if action == "IMDb":
            external_ids.imdb = external_id_from_url(href)
        elif action == "TMDb":
            external_ids.tmdb = external_id_from_url(href)

    film = Film(
        slug=final_slug,
        id=film_id,
        title=title,
        target=target,
        year=year,
        external_ids=external_ids,
    )
    return PageResult(items=[film])


def extract_people(body: bytes | str) -> PageResult[str]:
    """Usernames from a followers/following table; only has_next is known about paging."""
    tree = parse_html(body)
    links = tree.css("td.table-person a.name") or tree.css("a.name")
    names = []
    for link in links:
        name = (link.attributes.get("href") or "").strip("/")
        if name and name not in names:
            names.append(name)
    return PageResult(items=names, has_next=has_next(tree))


def extract_user(body: bytes | str) -> PageResult[User]:
    tree = parse_html(body)

    header = tree.css_first("section.js-profile-header")
    username = (header.attributes.get("data-person") or "") if header is not None else ""
    if not username:
        raise ExtractionError("failed to extract user")

    bio = None
    bio_el = tree.css_first("section#person-bio div.collapsible-text")
    if bio_el is not None:
        bio = bio_el.text(strip=True) or None

    count_el = tree.css_first(f"div.profile-stats a[href='/{username}/films/'] span.value")
    if count_el is None:
        count_el = tree.css_first("a.thousands[href$='/films/'] span")
    watched_film_count = None
    if count_el is not None:
        try:
            watched_film_count = int(count_el.text(strip=True).replace(",", ""))
        except ValueError:
            logger.warning(f"Failed to parse film count for {username}: '{count_el.text(strip=True)}'")

    user = User(username=username, bio=bio, watched_film_count=watched_film_count)
    return PageResult(items=[user])


def diary_entry_from_row(row: Node) -> DiaryEntry:
    entry = DiaryEntry()
    link = row.css_first("a")
    if link is None:
        return entry
    attrs = link.attributes

    viewing_date = attrs.get("data-viewing-date")
    if viewing_date:
        try:
            entry.watched = date.fromisoformat(viewing_date)
        except ValueError:
            logger.warning(f"Unexpected viewing date '{viewing_date}'")

    entry.specified_date = attrs.get("data-specified-date") == "true"
    entry.rewatch = attrs.get("data-rewatch") == "true"

    rating = attrs.get("data-rating")
    if rating:
        try:
            entry.rating = int(rating)
        except ValueError:
            logger.warning(f"Error getting rating from '{rating}'")

    poster = attrs.get("data-film-poster")
    if poster:
        # '/film/cure/image-150/' -> 'cure'
        parts = poster.split("/")
        if len(parts) != 5:
            logger.warning(f"Unexpected film poster path '{poster}'")
        else:
            entry.slug = validate_slug(parts[2])

    if entry.slug:
        entry.film = Film(slug=entry.slug)
    return entry


def extract_diary_entries(body: bytes | str) -> PageResult[DiaryEntry]:
    tree = parse_html(body)
    entries = [diary_entry_from_row(row) for row in tree.css(".diary-entry-edit")]
    return PageResult(items=entries, pagination=_pagination_or_single_page(tree))
