"""
Pagination detection for Letterboxd list pages.

The site renders paging two different ways depending on the template:

1. A numbered page list (``div.paginate-pages``) where the current page is a
   ``li.paginate-current`` and the highest ``li.paginate-page`` is the last page.
2. Browse pages that only announce "There are N films" in a
   ``p.ui-block-heading`` and offer Next/Previous links. The page count is
   derived from a fixed page size and the current page is recovered from the
   page number in a navigation link.

Strategies are tried in that order; the first one that finds a current page
wins.
"""
import logging
import re

from selectolax.parser import HTMLParser, Node

from .config import HEADING_ITEMS_PER_PAGE, PAGINATION_ELLIPSIS
from .errors import PaginationNotFoundError
from .models import Pagination
from .urls import page_from_url

logger = logging.getLogger(__name__)

_ITEM_COUNT_RE = re.compile(r"There are\s*(\d+)")


def _classes(node: Node) -> set[str]:
    return set((node.attributes.get("class") or "").split())


def _parse_page_number(text: str) -> int | None:
    if not text or text in PAGINATION_ELLIPSIS:
        return None
    try:
        return int(text)
    except ValueError:
        logger.debug(f"Ignoring non-numeric pagination entry '{text}'")
        return None


def pagination_from_page_list(tree: HTMLParser) -> Pagination:
    """Read the numbered page list. current_page stays 0 when none is marked current."""
    p = Pagination()
    for container in tree.css("div.paginate-pages"):
        for li in container.css("li"):
            classes = _classes(li)
            number = _parse_page_number(li.text(strip=True))
            if number is None:
                continue
            if "paginate-current" in classes:
                p.current_page = number
                # Provisional; any later page link raises it
                p.total_pages = max(p.total_pages, number)
            elif "paginate-page" in classes:
                p.total_pages = max(p.total_pages, number)
    return p


def _link_page(link: Node) -> int | None:
    href = link.attributes.get("href")
    if not href:
        return None
    try:
        return page_from_url(href)
    except ValueError:
        logger.debug(f"No page number at the end of '{href}'")
        return None


def apply_next_link(container: Node, p: Pagination) -> None:
    """Set current_page from a "Next" link, leaving it alone when the link is unusable."""
    link = container.css_first("a.next")
    if link is None or link.text(strip=True) != "Next":
        return
    page = _link_page(link)
    if page is not None:
        p.current_page = page - 1


def apply_previous_link(container: Node, p: Pagination) -> None:
    """Set current_page from a "Previous" link, leaving it alone when the link is unusable."""
    link = container.css_first("a.previous")
    if link is None or link.text(strip=True) != "Previous":
        return
    page = _link_page(link)
    if page is not None:
        p.current_page = page + 1


def pagination_from_block_heading(tree: HTMLParser) -> Pagination:
    """Derive paging from an item-count heading plus the Next/Previous links."""
    p = Pagination(items_per_page=HEADING_ITEMS_PER_PAGE)
    for heading in tree.css("p.ui-block-heading"):
        text = heading.text(separator=" ", strip=True).replace(",", "")
        match = _ITEM_COUNT_RE.search(text)
        if not match:
            continue
        p.set_total_items(int(match.group(1)))
        for nav in tree.css("div.pagination"):
            apply_next_link(nav, p)
            apply_previous_link(nav, p)
    return p


def detect_pagination(tree: HTMLParser) -> Pagination | None:
    """Return the page's pagination, or None when neither strategy finds a current page."""
    for strategy in (pagination_from_page_list, pagination_from_block_heading):
        p = strategy(tree)
        if p.current_page:
            return p.finalize()
    return None


def extract_pagination(tree: HTMLParser) -> Pagination:
    p = detect_pagination(tree)
    if p is None:
        raise PaginationNotFoundError("could not extract pagination, no current page")
    return p


def extract_pagination_from_bytes(body: bytes | str) -> Pagination:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return extract_pagination(HTMLParser(body))


def has_next(tree: HTMLParser) -> bool:
    """True when the page offers a "Next" link, for templates that only have next/previous."""
    for nav in tree.css("div.pagination"):
        link = nav.css_first("a.next")
        if link is not None:
            return link.text(strip=True) == "Next"
    return False
