import argparse
from datetime import date

import pytest

from letterboxd_client import diary
from letterboxd_client.diary import DiaryFilterOpts
from letterboxd_client.errors import ValidationError
from letterboxd_client.models import DiaryEntry


def test_unset_options_let_everything_through():
    empty = DiaryEntry()
    opts = DiaryFilterOpts()

    for f in diary.ALL_FILTERS:
        assert f(empty, opts) is True


def test_filter_earliest_and_latest():
    entry = DiaryEntry(watched=date(2020, 1, 29))

    assert diary.filter_earliest(entry, DiaryFilterOpts(earliest=date(2021, 1, 29))) is False
    assert diary.filter_earliest(entry, DiaryFilterOpts(earliest=date(2020, 1, 29))) is True
    assert diary.filter_latest(entry, DiaryFilterOpts(latest=date(2019, 1, 29))) is False
    assert diary.filter_latest(entry, DiaryFilterOpts(latest=date(2020, 2, 1))) is True


def test_filter_ratings():
    entry = DiaryEntry(rating=7)

    assert diary.filter_min_rating(entry, DiaryFilterOpts(min_rating=5)) is True
    assert diary.filter_min_rating(entry, DiaryFilterOpts(min_rating=8)) is False
    assert diary.filter_max_rating(entry, DiaryFilterOpts(max_rating=7)) is True
    assert diary.filter_max_rating(entry, DiaryFilterOpts(max_rating=5)) is False
    # Unrated entries never satisfy a rating bound
    assert diary.filter_min_rating(DiaryEntry(), DiaryFilterOpts(min_rating=1)) is False


def test_filter_rewatch_and_specified_date():
    entry = DiaryEntry(rewatch=True, specified_date=False)

    assert diary.filter_rewatch(entry, DiaryFilterOpts(rewatch=True)) is True
    assert diary.filter_rewatch(entry, DiaryFilterOpts(rewatch=False)) is False
    assert diary.filter_specified_date(entry, DiaryFilterOpts(specified_date=True)) is False


def test_apply_diary_filters():
    entries = [DiaryEntry(watched=date(2019, 1, 29)), DiaryEntry(watched=date(2021, 1, 29))]
    opts = DiaryFilterOpts(earliest=date(2020, 1, 29))

    assert diary.apply_diary_filters(entries, opts, diary.filter_earliest) == [entries[1]]
    assert diary.apply_diary_filters(entries, opts) == [entries[1]]
    assert diary.apply_diary_filters(entries, DiaryFilterOpts()) == entries


def test_filter_arguments_roundtrip():
    parser = argparse.ArgumentParser()
    diary.add_diary_filter_arguments(parser)

    args = parser.parse_args(["--earliest", "2020-01-01", "--min-rating", "6", "--no-rewatch"])
    opts = diary.diary_filter_opts_from_args(args)

    assert opts.earliest == date(2020, 1, 1)
    assert opts.min_rating == 6
    assert opts.rewatch is False
    assert opts.specified_date is None


def test_filter_arguments_with_prefix():
    parser = argparse.ArgumentParser()
    diary.add_diary_filter_arguments(parser, prefix="foo")

    args = parser.parse_args(["--foo-latest", "2021-05-05", "--foo-specified-date"])
    opts = diary.diary_filter_opts_from_args(args, prefix="foo")

    assert opts.latest == date(2021, 5, 5)
    assert opts.specified_date is True


def test_filter_arguments_reject_bad_ranges():
    parser = argparse.ArgumentParser()
    diary.add_diary_filter_arguments(parser)
    args = parser.parse_args(["--min-rating", "8", "--max-rating", "2"])

    with pytest.raises(ValidationError):
        diary.diary_filter_opts_from_args(args)
