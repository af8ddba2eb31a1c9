"""Drain page-numbered GitHub list endpoints into one collection.

GitHub's REST list endpoints are paginated with a ``Link`` header. Every
list-returning operation shares :func:`collect_all_pages` rather than
re-deriving the loop per call site.
"""

from __future__ import annotations

import collections.abc as cabc
import re
import typing as typ
import urllib.parse

MAX_PER_PAGE = 100

_LINK_PART = re.compile(r'<(?P<url>[^>]+)>\s*;\s*rel="(?P<rel>[^"]+)"')

T = typ.TypeVar("T")

PageFetcher = cabc.Callable[[int], cabc.Awaitable[tuple[list[T], int | None]]]


def next_page_from_link(link_header: str | None) -> int | None:
    """Return the ``page`` query value of the ``rel="next"`` link, if any.

    >>> next_page_from_link(
    ...     '<https://api.github.com/user/teams?page=3>; rel="next", '
    ...     '<https://api.github.com/user/teams?page=9>; rel="last"'
    ... )
    3
    >>> next_page_from_link(None) is None
    True

    """
    if not link_header:
        return None
    for match in _LINK_PART.finditer(link_header):
        if match.group("rel") != "next":
            continue
        query = urllib.parse.urlsplit(match.group("url")).query
        pages = urllib.parse.parse_qs(query).get("page")
        if pages and pages[0].isascii() and pages[0].isdigit():
            return int(pages[0])
    return None


async def collect_all_pages(
    fetch_page: PageFetcher[T],
    *,
    first_page: int = 1,
) -> list[T]:
    """Drain a paginated source into a single list.

    ``fetch_page(page)`` returns the items on ``page`` together with the next
    page number, or ``None`` once the source is exhausted. The loop blocks
    until every page is read; errors from ``fetch_page`` propagate unchanged.
    """
    items: list[T] = []
    page: int | None = first_page
    seen: set[int] = set()
    while page is not None and page not in seen:
        seen.add(page)
        page_items, page = await fetch_page(page)
        items.extend(page_items)
    return items


__all__ = ["MAX_PER_PAGE", "PageFetcher", "collect_all_pages", "next_page_from_link"]
