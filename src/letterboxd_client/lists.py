from .models import ListID

# Curated lists maintained by Letterboxd staff and well-known members
OFFICIAL_LISTS: tuple[ListID, ...] = (
    ListID("dave", "official-top-250-narrative-feature-films"),
    ListID("dave", "letterboxd-top-250-films-history-collected"),
    ListID("jake_ziegler", "academy-award-winners-for-best-picture"),
    ListID("dave", "imdb-top-250"),
    ListID("matthew", "box-office-mojo-all-time-worldwide"),
    ListID("bfi", "sight-and-sounds-greatest-films-of-all-time"),
    ListID("moseschan", "afi-100-years-100-movies"),
    ListID("crew", "edgar-wrights-1000-favorite-movies"),
    ListID("gubarenko", "1001-movies-you-must-see-before-you-die-2021"),
    ListID("jack", "official-top-250-documentary-films"),
    ListID("darrencb", "letterboxds-top-250-horror-films"),
    ListID("jack", "women-directors-the-official-top-250-narrative"),
    ListID("lifeasfiction", "letterboxd-100-animation"),
)


def official_list_map() -> dict[str, str]:
    """Official lists keyed by slug, mapping to the owning username."""
    return {list_id.slug: list_id.owner for list_id in OFFICIAL_LISTS}
