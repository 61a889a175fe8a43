import pytest

from letterboxd_client import urls
from letterboxd_client.errors import ValidationError
from letterboxd_client.lists import OFFICIAL_LISTS, official_list_map
from letterboxd_client.models import ListID


def test_normalize_url_path():
    assert urls.normalize_url_path("https://letterboxd.com/dave/list/imdb-top-250/") == "/dave/list/imdb-top-250"
    assert urls.normalize_url_path("https://www.letterboxd.com/dave/films/") == "/dave/films"
    assert urls.normalize_url_path("/dave/watchlist/") == "/dave/watchlist"

    with pytest.raises(ValidationError):
        urls.normalize_url_path("https://notletterboxd.com/dave/")
    with pytest.raises(ValidationError):
        urls.normalize_url_path("https://example.com/dave/films/")


def test_validate_slug():
    assert urls.validate_slug("the-matrix") == "the-matrix"
    assert urls.validate_slug("/film/the-matrix/") == "the-matrix"
    assert urls.validate_slug("film:482919") == "film:482919"
    assert urls.validate_slug("Film:482919") == "film:482919"
    assert urls.validate_slug("The Matrix") is None
    assert urls.validate_slug("x" * 300) is None
    assert urls.validate_slug(None) is None


def test_page_from_url():
    assert urls.page_from_url("/films/popular/page/4/") == 4
    assert urls.page_from_url("https://letterboxd.com/dave/films/page/12") == 12
    with pytest.raises(ValueError):
        urls.page_from_url("/films/popular/")


def test_parse_list_args():
    assert urls.parse_list_args(["dave/imdb-top-250", "/jack/official-top-250-documentary-films/"]) == [
        ListID("dave", "imdb-top-250"),
        ListID("jack", "official-top-250-documentary-films"),
    ]
    with pytest.raises(ValidationError):
        urls.parse_list_args(["no-slash"])


def test_remaining_pages():
    assert urls.remaining_pages(1, 10) == []
    assert urls.remaining_pages(3, 10) == [2, 3]
    assert urls.remaining_pages(20, 4) == [2, 3, 4]


def test_remaining_pages_shuffled_are_unique_and_in_range():
    pages = urls.remaining_pages(5, 50, shuffle=True)

    assert len(pages) == 4
    assert len(set(pages)) == 4
    assert all(2 <= p <= 50 for p in pages)


def test_official_lists():
    mapping = official_list_map()

    assert len(mapping) == len(OFFICIAL_LISTS)
    assert mapping["imdb-top-250"] == "dave"
    assert mapping["letterboxd-100-animation"] == "lifeasfiction"
