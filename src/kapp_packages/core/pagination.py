"""Offset-based page tokens."""

from typing import List, Sequence, Tuple, TypeVar

from kapp_packages.exception import InvalidArgumentError, InvalidPageTokenError

T = TypeVar("T")


def page_offset_from_token(page_token: str) -> int:
    """Decode a page token into an item offset; an empty token means 0.

    Raises:
        InvalidPageTokenError: If the token is not a non-negative integer
    """
    if not page_token:
        return 0
    try:
        offset = int(page_token)
    except ValueError:
        raise InvalidPageTokenError(page_token) from None
    if offset < 0:
        raise InvalidPageTokenError(page_token)
    return offset


def page_token_from_offset(offset: int) -> str:
    return str(offset)


def paginate(items: Sequence[T], offset: int, page_size: int) -> Tuple[List[T], str]:
    """Slice one page out of items.

    Args:
        items: Full, stably ordered collection
        offset: Index of the first item of the page
        page_size: Maximum page length, 0 for no paging

    Returns:
        Tuple of (page items, next page token). The token is empty unless the
        page is full.

    Raises:
        InvalidArgumentError: If offset lies past the end of items
    """
    if offset > len(items):
        raise InvalidArgumentError(
            f"page offset {offset} is beyond the {len(items)} available items",
            code="INVALID_PAGE_OFFSET",
        )
    if page_size == 0:
        return list(items[offset:]), ""

    page = list(items[offset : offset + page_size])
    next_page_token = ""
    if len(page) == page_size:
        next_page_token = page_token_from_offset(offset + page_size)
    return page, next_page_token
