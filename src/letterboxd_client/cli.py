import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from .batch import BatchErrorPolicy
from .cache import cache_from_config
from .client import LetterboxdClient
from .config import (
    CACHE_BACKEND,
    CACHE_PATH,
    DEFAULT_MAX_CONCURRENT_PAGES,
    FILMOGRAPHY_PROFESSIONS,
)
from .diary import add_diary_filter_arguments, apply_diary_filters, diary_filter_opts_from_args
from .errors import LetterboxdError, ValidationError
from .lists import OFFICIAL_LISTS
from .models import BatchSpec, FilmListOpts, FilmographyOpts, ListID
from .streams import ItemStream
from .urls import parse_list_args

logger = logging.getLogger(__name__)


def _emit(item) -> None:
    """Write one result as a JSON line on stdout."""
    data = item.to_dict() if hasattr(item, "to_dict") else item
    print(json.dumps(data, default=str), flush=True)


def _make_client(args: argparse.Namespace) -> LetterboxdClient:
    cache = cache_from_config(args.cache, args.cache_path)
    return LetterboxdClient(cache=cache, max_concurrent_pages=args.concurrency)


async def _drain(stream: ItemStream, desc: str, progress: bool = True) -> int:
    count = 0
    with tqdm(desc=desc, unit=" items", file=sys.stderr, disable=not progress) as bar:
        async with stream:
            async for item in stream:
                _emit(item)
                count += 1
                bar.update(1)
                # Advisory; becomes known once the first and last pages are in
                total = getattr(stream, "total_items", 0)
                if total and bar.total is None:
                    bar.total = total
                    bar.refresh()
    return count


def _run_stream(args: argparse.Namespace, open_stream, desc: str):
    async def run():
        async with _make_client(args) as client:
            stream = open_stream(client)
            count = await _drain(stream, desc, progress=not args.no_progress)
            failed = getattr(stream, "failed_pages", None)
            if failed:
                logger.warning(f"{len(failed)} page(s) could not be fetched: {sorted(failed)}")
            return stream, count

    return asyncio.run(run())


def _run_call(args: argparse.Namespace, call):
    async def run():
        async with _make_client(args) as client:
            return await call(client)

    return asyncio.run(run())


def cmd_film(args: argparse.Namespace) -> None:
    """Print full details for one film."""
    _emit(_run_call(args, lambda client: client.get_film(args.slug)))


def cmd_watched(args: argparse.Namespace) -> None:
    _, count = _run_stream(
        args, lambda client: client.stream_watched(args.username, enhance=not args.no_enhance), "Watched"
    )
    logger.info(f"Got {count} watched films for {args.username}")


def cmd_watchlist(args: argparse.Namespace) -> None:
    _, count = _run_stream(
        args, lambda client: client.stream_watchlist(args.username, enhance=not args.no_enhance), "Watchlist"
    )
    logger.info(f"Got {count} watchlist films for {args.username}")


def cmd_list(args: argparse.Namespace) -> None:
    list_id = ListID.parse(args.list)
    _, count = _run_stream(
        args,
        lambda client: client.stream_list(list_id.owner, list_id.slug, enhance=not args.no_enhance),
        str(list_id),
    )
    logger.info(f"Got {count} films from {list_id}")


def cmd_diary(args: argparse.Namespace) -> None:
    """Print diary entries, most recent first, after applying the filter flags."""
    opts = diary_filter_opts_from_args(args)
    entries = _run_call(args, lambda client: client.diary(args.username, enhance=args.enhance))
    kept = apply_diary_filters(entries, opts)
    for entry in kept:
        _emit(entry)
    logger.info(f"Kept {len(kept)}/{len(entries)} diary entries for {args.username}")


def batch_spec_from_args(args: argparse.Namespace) -> BatchSpec:
    """Combine --file (JSON) with --watched/--list/--watchlist flags."""
    watched: list[str] = []
    lists: list[ListID] = []
    watchlist: list[str] = []
    if args.file:
        try:
            data = json.loads(Path(args.file).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Could not read batch file {args.file}: {e}") from e
        from_file = BatchSpec.from_dict(data)
        watched.extend(from_file.watched)
        lists.extend(from_file.lists)
        watchlist.extend(from_file.watchlist)

    watched.extend(args.watched or [])
    lists.extend(parse_list_args(args.lists or []))
    watchlist.extend(args.watchlist or [])
    spec = BatchSpec(watched=tuple(watched), lists=tuple(lists), watchlist=tuple(watchlist))
    if spec.is_empty():
        raise ValidationError("Nothing to fetch: give --file, --watched, --list or --watchlist")
    return spec


def cmd_batch(args: argparse.Namespace) -> None:
    spec = batch_spec_from_args(args)
    policy = BatchErrorPolicy.ABORT if args.abort_on_error else BatchErrorPolicy.CONTINUE
    stream, count = _run_stream(args, lambda client: client.stream_batch(spec, on_error=policy), "Batch")
    for error in stream.errors:
        logger.error(f"  {error.source}: {error.cause}")
    logger.info(f"Batch complete: {count} films, {len(stream.errors)} failed sources")


def cmd_filmography(args: argparse.Namespace) -> None:
    opts = FilmographyOpts(person=args.person, profession=args.profession)
    opts.validate()
    for film in _run_call(args, lambda client: client.filmography(opts)):
        _emit(film)


def cmd_films(args: argparse.Namespace) -> None:
    opts = FilmListOpts(sort_by=args.sort_by, page_count=args.pages, shuffle_pages=args.shuffle)
    for film in _run_call(args, lambda client: client.films(opts)):
        _emit(film)


def cmd_followers(args: argparse.Namespace) -> None:
    for name in _run_call(args, lambda client: client.followers(args.username, limit=args.limit)):
        _emit(name)


def cmd_following(args: argparse.Namespace) -> None:
    for name in _run_call(args, lambda client: client.following(args.username, limit=args.limit)):
        _emit(name)


def cmd_profile(args: argparse.Namespace) -> None:
    _emit(_run_call(args, lambda client: client.profile(args.username)))


def cmd_url(args: argparse.Namespace) -> None:
    """Print the films behind any supported letterboxd.com URL."""
    for film in _run_call(args, lambda client: client.items_for_url(args.url)):
        _emit(film)


def cmd_official_lists(args: argparse.Namespace) -> None:
    for list_id in OFFICIAL_LISTS:
        _emit({"owner": list_id.owner, "slug": list_id.slug})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Letterboxd client")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_MAX_CONCURRENT_PAGES,
                        help=f"Pages fetched at once per listing (default: {DEFAULT_MAX_CONCURRENT_PAGES})")
    parser.add_argument("--cache", choices=["none", "memory", "sqlite"], default=CACHE_BACKEND or "none",
                        help="Page/film cache backend")
    parser.add_argument("--cache-path", type=Path, default=CACHE_PATH, help="SQLite cache file")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    subparsers = parser.add_subparsers(dest="command", required=True)

    film_parser = subparsers.add_parser("film", help="Get one film by slug")
    film_parser.add_argument("slug", help="Film slug, e.g. 'everything-everywhere-all-at-once'")
    film_parser.set_defaults(func=cmd_film)

    for name, func, help_text in (
        ("watched", cmd_watched, "Stream a user's watched films"),
        ("watchlist", cmd_watchlist, "Stream a user's watchlist"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("username", help="Letterboxd username")
        sub.add_argument("--no-enhance", action="store_true", help="Skip per-film detail lookups")
        sub.set_defaults(func=func)

    list_parser = subparsers.add_parser("list", help="Stream the films of a list")
    list_parser.add_argument("list", help="List as owner/slug")
    list_parser.add_argument("--no-enhance", action="store_true", help="Skip per-film detail lookups")
    list_parser.set_defaults(func=cmd_list)

    diary_parser = subparsers.add_parser("diary", help="Get a user's diary entries")
    diary_parser.add_argument("username", help="Letterboxd username")
    diary_parser.add_argument("--enhance", action="store_true", help="Fill in film details")
    add_diary_filter_arguments(diary_parser)
    diary_parser.set_defaults(func=cmd_diary)

    batch_parser = subparsers.add_parser("batch", help="Stream several collections as one")
    batch_parser.add_argument("--file", help='JSON file: {"watched": [...], "lists": [...], "watchlist": [...]}')
    batch_parser.add_argument("--watched", nargs="+", metavar="USER", help="Users whose watched films to include")
    batch_parser.add_argument("--list", dest="lists", nargs="+", metavar="OWNER/SLUG", help="Lists to include")
    batch_parser.add_argument("--watchlist", nargs="+", metavar="USER", help="Users whose watchlists to include")
    batch_parser.add_argument("--abort-on-error", action="store_true",
                              help="Stop at the first collection that fails instead of skipping it")
    batch_parser.set_defaults(func=cmd_batch)

    filmography_parser = subparsers.add_parser("filmography", help="Films of an actor, director, ...")
    filmography_parser.add_argument("person", help="Person slug, e.g. 'nicolas-cage'")
    filmography_parser.add_argument("--profession", default="actor", choices=list(FILMOGRAPHY_PROFESSIONS))
    filmography_parser.set_defaults(func=cmd_filmography)

    films_parser = subparsers.add_parser("films", help="Browse films site-wide")
    films_parser.add_argument("--sort-by", default="popular", help="Sort order (default: popular)")
    films_parser.add_argument("--pages", type=int, default=1, help="Number of pages to fetch")
    films_parser.add_argument("--shuffle", action="store_true", help="Pick random pages after the first")
    films_parser.set_defaults(func=cmd_films)

    for name, func in (("followers", cmd_followers), ("following", cmd_following)):
        sub = subparsers.add_parser(name, help=f"List a user's {name}")
        sub.add_argument("username", help="Letterboxd username")
        sub.add_argument("--limit", type=int, default=None, help="Stop after this many users")
        sub.set_defaults(func=func)

    profile_parser = subparsers.add_parser("profile", help="Get a user's profile")
    profile_parser.add_argument("username", help="Letterboxd username")
    profile_parser.set_defaults(func=cmd_profile)

    url_parser = subparsers.add_parser("url", help="Get the films behind a letterboxd.com URL")
    url_parser.add_argument("url", help="e.g. https://letterboxd.com/dave/list/imdb-top-250/")
    url_parser.set_defaults(func=cmd_url)

    official_parser = subparsers.add_parser("official-lists", help="Show the official lists")
    official_parser.set_defaults(func=cmd_official_lists)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except LetterboxdError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
