from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Callable, Generic, Iterable, TypeVar

from .config import FILMOGRAPHY_PROFESSIONS
from .errors import ValidationError

T = TypeVar("T")


@dataclass
class ExternalFilmIDs:
    imdb: str | None = None
    tmdb: str | None = None


@dataclass
class Film:
    slug: str
    id: str | None = None
    title: str | None = None
    target: str | None = None
    year: int | None = None
    external_ids: ExternalFilmIDs | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Film:
        ext = data.get("external_ids")
        return cls(
            slug=data.get("slug", ""),
            id=data.get("id"),
            title=data.get("title"),
            target=data.get("target"),
            year=data.get("year"),
            external_ids=ExternalFilmIDs(**ext) if ext else None,
        )


@dataclass
class User:
    username: str
    bio: str | None = None
    watched_film_count: int | None = None
    following: list[str] = field(default_factory=list)
    followers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> User:
        return cls(
            username=data["username"],
            bio=data.get("bio"),
            watched_film_count=data.get("watched_film_count"),
            following=list(data.get("following") or []),
            followers=list(data.get("followers") or []),
        )


@dataclass
class DiaryEntry:
    """
    One row of a user's diary.

    Rating is stored in half stars (1-10) the way the site renders it.
    The attached film starts out as a slug-only preview and is filled in
    by the enhancer.
    """
    slug: str | None = None
    watched: date | None = None
    rating: int | None = None
    rewatch: bool = False
    specified_date: bool = False
    film: Film | None = None

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "watched": self.watched.isoformat() if self.watched else None,
            "rating": self.rating,
            "rewatch": self.rewatch,
            "specified_date": self.specified_date,
            "film": self.film.to_dict() if self.film else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DiaryEntry:
        watched = data.get("watched")
        film = data.get("film")
        return cls(
            slug=data.get("slug"),
            watched=date.fromisoformat(watched) if watched else None,
            rating=data.get("rating"),
            rewatch=bool(data.get("rewatch")),
            specified_date=bool(data.get("specified_date")),
            film=Film.from_dict(film) if film else None,
        )


@dataclass(frozen=True)
class ListID:
    """The minimum needed to find a list: its owner and its slug."""
    owner: str
    slug: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.slug}"

    @classmethod
    def parse(cls, arg: str) -> ListID:
        """Parse 'username/list-slug'."""
        if "/" not in arg:
            raise ValidationError("List arg must contain a '/' (example: username/list-slug)")
        parts = arg.strip().strip("/").split("/", 1)
        if len(parts) != 2 or not parts[0] or not parts[1].strip("/"):
            raise ValidationError(f"Invalid list arg '{arg}'")
        return cls(owner=parts[0], slug=parts[1].strip("/"))

    @classmethod
    def from_dict(cls, data: dict | str) -> ListID:
        if isinstance(data, str):
            return cls.parse(data)
        owner = data.get("owner") or data.get("user")
        slug = data.get("slug")
        if not owner or not slug:
            raise ValidationError(f"List entry needs an owner and a slug: {data}")
        return cls(owner=owner, slug=slug)


@dataclass
class Pagination:
    current_page: int = 0
    next_page: int = 0
    total_pages: int = 0
    total_items: int = 0
    items_per_page: int = 0
    is_last: bool = False

    def set_total_items(self, count: int) -> None:
        """Set the item count and, when the page size is known, the page count."""
        self.total_items = count
        if self.items_per_page:
            self.total_pages = max(1, math.ceil(count / self.items_per_page))

    def finalize(self) -> Pagination:
        """Derive is_last/next_page from current_page and total_pages."""
        if self.total_pages < self.current_page:
            self.total_pages = self.current_page
        if self.current_page == self.total_pages:
            self.is_last = True
            self.next_page = 0
        else:
            self.is_last = False
            self.next_page = self.current_page + 1
        return self

    @classmethod
    def single_page(cls) -> Pagination:
        return cls(current_page=1, total_pages=1).finalize()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Pagination:
        return cls(**data)


@dataclass
class PageResult(Generic[T]):
    """Items extracted from one fetched page plus whatever paging info it carried."""
    items: list[T] = field(default_factory=list)
    pagination: Pagination | None = None
    has_next: bool | None = None

    def to_dict(self, encode: Callable[[T], Any]) -> dict:
        return {
            "items": [encode(item) for item in self.items],
            "pagination": self.pagination.to_dict() if self.pagination else None,
            "has_next": self.has_next,
        }

    @classmethod
    def from_dict(cls, data: dict, decode: Callable[[Any], T]) -> PageResult[T]:
        pagination = data.get("pagination")
        return cls(
            items=[decode(item) for item in data.get("items") or []],
            pagination=Pagination.from_dict(pagination) if pagination else None,
            has_next=data.get("has_next"),
        )


def _unique(values: Iterable) -> tuple:
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class BatchSpec:
    """Several independent collections to stream back as one."""
    watched: tuple[str, ...] = ()
    lists: tuple[ListID, ...] = ()
    watchlist: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "watched", _unique(self.watched))
        object.__setattr__(self, "lists", _unique(self.lists))
        object.__setattr__(self, "watchlist", _unique(self.watchlist))

    @classmethod
    def from_dict(cls, data: dict) -> BatchSpec:
        lists = data.get("lists", data.get("list")) or []
        return cls(
            watched=tuple(data.get("watched") or []),
            lists=tuple(ListID.from_dict(item) for item in lists),
            watchlist=tuple(data.get("watchlist") or []),
        )

    def is_empty(self) -> bool:
        return not (self.watched or self.lists or self.watchlist)


@dataclass
class FilmographyOpts:
    person: str = ""
    profession: str = ""

    def validate(self) -> None:
        if not self.person:
            raise ValidationError("person is required")
        if not self.profession:
            raise ValidationError("profession is required")
        if self.profession not in FILMOGRAPHY_PROFESSIONS:
            raise ValidationError(f"profession must be one of {list(FILMOGRAPHY_PROFESSIONS)}")


@dataclass
class FilmListOpts:
    sort_by: str = "popular"
    page_count: int = 1
    shuffle_pages: bool = False


def imdb_ids(films: Iterable[Film]) -> list[str]:
    return [f.external_ids.imdb for f in films if f.external_ids and f.external_ids.imdb]


def tmdb_ids(films: Iterable[Film]) -> list[str]:
    return [f.external_ids.tmdb for f in films if f.external_ids and f.external_ids.tmdb]
