"""Unit tests for kapp_packages.core.pagination."""

import pytest

from kapp_packages.core.pagination import (
    page_offset_from_token,
    page_token_from_offset,
    paginate,
)
from kapp_packages.exception import InvalidArgumentError, InvalidPageTokenError

ITEMS = list("abcdefg")


class TestPageTokens:
    """Tests for token decoding and encoding."""

    def test_empty_token_is_offset_zero(self) -> None:
        """An empty page token starts at the first item."""
        assert page_offset_from_token("") == 0

    def test_round_trips_offset(self) -> None:
        """A token produced from an offset decodes to the same offset."""
        assert page_offset_from_token(page_token_from_offset(14)) == 14

    @pytest.mark.parametrize("token", ["abc", "-1", "1.5"])
    def test_rejects_malformed_tokens(self, token: str) -> None:
        """Non-integer and negative tokens raise InvalidPageTokenError."""
        with pytest.raises(InvalidPageTokenError):
            page_offset_from_token(token)


class TestPaginate:
    """Tests for paginate."""

    def test_full_page_emits_next_token(self) -> None:
        """A full page carries the offset of the next page."""
        page, token = paginate(ITEMS, 0, 3)

        assert page == ["a", "b", "c"]
        assert token == "3"

    def test_partial_last_page_has_no_token(self) -> None:
        """A short last page ends the iteration."""
        page, token = paginate(ITEMS, 6, 3)

        assert page == ["g"]
        assert token == ""

    def test_exact_last_page_still_emits_token(self) -> None:
        """A full last page emits a token that yields an empty page."""
        page, token = paginate(ITEMS[:6], 3, 3)
        assert token == "6"

        page, token = paginate(ITEMS[:6], 6, 3)
        assert page == []
        assert token == ""

    def test_page_size_zero_returns_everything(self) -> None:
        """Page size 0 disables paging."""
        assert paginate(ITEMS, 2, 0) == (ITEMS[2:], "")

    def test_offset_past_end_raises(self) -> None:
        """An offset past the end of the collection is invalid."""
        with pytest.raises(InvalidArgumentError, match="beyond the 7 available items"):
            paginate(ITEMS, 8, 3)

    def test_pages_cover_collection_once(self) -> None:
        """Following tokens visits every item exactly once."""
        seen = []
        token = ""
        while True:
            page, token = paginate(ITEMS, page_offset_from_token(token), 2)
            seen.extend(page)
            if not token:
                break

        assert seen == ITEMS
