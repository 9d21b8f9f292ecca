"""
Cursor-based pagination over remote listing calls.

Every listing call in the remote API takes an opaque page token (empty for
the first page) and an optional page-size hint, and returns a Page whose
next_page_token is empty once the listing is exhausted.
"""
import logging
from typing import Any, Callable, Iterator, List, NamedTuple, Optional

logger = logging.getLogger(__name__)


class Page(NamedTuple):
    """One page of a listing."""
    items: List[Any]
    next_page_token: str = ""


# list_page(page_token, page_size) -> Page
PageFn = Callable[[str, Optional[int]], Page]


def iter_pages(list_page: PageFn, page_size: Optional[int] = None) -> Iterator[Page]:
    """
    Yield pages from list_page until the continuation token is empty.

    Errors from any page call propagate; there is no resuming mid-list.
    """
    page_token = ""
    page_number = 0
    while True:
        page = list_page(page_token, page_size)
        page_number += 1
        logger.debug(f"Fetched page {page_number} ({len(page.items)} items)")
        yield page
        page_token = page.next_page_token or ""
        if not page_token:
            break


def paginate(list_page: PageFn, page_size: Optional[int] = None) -> List:
    """
    Return every item of a listing, in page order.

    Args:
        list_page: Callable taking (page_token, page_size) and returning a Page
        page_size: Page-size hint passed through to every call

    Returns:
        Concatenation of all pages' items. An empty first page with no
        continuation token yields an empty list.
    """
    items: List = []
    for page in iter_pages(list_page, page_size):
        items.extend(page.items)
    return items
