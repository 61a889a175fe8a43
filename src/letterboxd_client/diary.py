"""Filters over diary entries, plus the argparse flags that build them."""
import argparse
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from .errors import ValidationError
from .models import DiaryEntry

logger = logging.getLogger(__name__)


@dataclass
class DiaryFilterOpts:
    """Every option left as None lets all entries through."""
    earliest: date | None = None
    latest: date | None = None
    min_rating: int | None = None
    max_rating: int | None = None
    rewatch: bool | None = None
    specified_date: bool | None = None


DiaryFilter = Callable[[DiaryEntry, DiaryFilterOpts], bool]


def filter_earliest(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.earliest is None:
        return True
    return entry.watched is not None and entry.watched >= opts.earliest


def filter_latest(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.latest is None:
        return True
    return entry.watched is not None and entry.watched <= opts.latest


def filter_min_rating(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.min_rating is None:
        return True
    return entry.rating is not None and entry.rating >= opts.min_rating


def filter_max_rating(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.max_rating is None:
        return True
    return entry.rating is not None and entry.rating <= opts.max_rating


def filter_rewatch(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.rewatch is None:
        return True
    return entry.rewatch == opts.rewatch


def filter_specified_date(entry: DiaryEntry, opts: DiaryFilterOpts) -> bool:
    if opts.specified_date is None:
        return True
    return entry.specified_date == opts.specified_date


ALL_FILTERS: tuple[DiaryFilter, ...] = (
    filter_earliest,
    filter_latest,
    filter_min_rating,
    filter_max_rating,
    filter_rewatch,
    filter_specified_date,
)


def apply_diary_filters(
    entries: Iterable[DiaryEntry],
    opts: DiaryFilterOpts,
    *filters: DiaryFilter,
) -> list[DiaryEntry]:
    """Keep the entries every filter accepts. With no filters given, all of them apply."""
    filters = filters or ALL_FILTERS
    return [entry for entry in entries if all(f(entry, opts) for f in filters)]


def _flag(prefix: str, name: str) -> str:
    return f"--{prefix}-{name}" if prefix else f"--{name}"


def _dest(prefix: str, name: str) -> str:
    return _flag(prefix, name)[2:].replace("-", "_")


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def add_diary_filter_arguments(parser: argparse.ArgumentParser, prefix: str = "") -> None:
    """Register the diary filter flags, optionally namespaced as --<prefix>-<flag>."""
    group = parser.add_argument_group("diary filters")
    group.add_argument(_flag(prefix, "earliest"), type=_parse_date, help="Only entries watched on or after this date")
    group.add_argument(_flag(prefix, "latest"), type=_parse_date, help="Only entries watched on or before this date")
    group.add_argument(_flag(prefix, "min-rating"), type=int, help="Minimum rating, in half stars (1-10)")
    group.add_argument(_flag(prefix, "max-rating"), type=int, help="Maximum rating, in half stars (1-10)")
    group.add_argument(
        _flag(prefix, "rewatch"), action=argparse.BooleanOptionalAction, default=None,
        help="Only rewatches (or, with --no-..., only first watches)",
    )
    group.add_argument(
        _flag(prefix, "specified-date"), action=argparse.BooleanOptionalAction, default=None,
        help="Only entries with (or without) an explicit watch date",
    )


def diary_filter_opts_from_args(args: argparse.Namespace, prefix: str = "") -> DiaryFilterOpts:
    opts = DiaryFilterOpts(
        earliest=getattr(args, _dest(prefix, "earliest"), None),
        latest=getattr(args, _dest(prefix, "latest"), None),
        min_rating=getattr(args, _dest(prefix, "min_rating"), None),
        max_rating=getattr(args, _dest(prefix, "max_rating"), None),
        rewatch=getattr(args, _dest(prefix, "rewatch"), None),
        specified_date=getattr(args, _dest(prefix, "specified_date"), None),
    )
    if opts.earliest and opts.latest and opts.earliest > opts.latest:
        raise ValidationError("earliest date must not be after latest date")
    if opts.min_rating is not None and opts.max_rating is not None and opts.min_rating > opts.max_rating:
        raise ValidationError("min rating must not be greater than max rating")
    return opts
