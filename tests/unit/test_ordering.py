"""
Unit tests for ordering and pagination.

Tests cover:
- orderBy value parsing
- Root ORDER BY / SKIP / LIMIT clauses
- Nested list sorting and slicing
- Pagination validation
"""

import pytest

from cypherql.errors import InvalidPaginationError, TranslationError
from cypherql.translate import RequestScope, SortKey, parse_order_by
from cypherql.translate.ordering import (
    check_pagination,
    helper_projection,
    root_clauses,
    slice_list,
    sort_list,
    with_tie_breaker,
)


class TestParseOrderBy:
    """Tests for orderBy parsing."""

    def test_single_value(self):
        """A single enum value is accepted."""
        assert parse_order_by("title_asc") == [SortKey("title")]

    def test_list_keeps_order(self):
        """The first value is the primary key."""
        keys = parse_order_by(["year_desc", "title_asc"])
        assert keys == [SortKey("year", descending=True), SortKey("title")]

    def test_field_with_underscore(self):
        """Only the last underscore separates the direction."""
        assert parse_order_by("release_year_desc") == [SortKey("release_year", True)]

    def test_none(self):
        """No orderBy means no keys."""
        assert parse_order_by(None) == []

    def test_invalid_value(self):
        """Values without a direction suffix raise."""
        with pytest.raises(TranslationError):
            parse_order_by("title")
        with pytest.raises(TranslationError):
            parse_order_by("title_up")


class TestRootClauses:
    """Tests for root-level ordering and paging."""

    def test_order_and_page(self):
        """ORDER BY precedes SKIP and LIMIT; values are parameters."""
        scope = RequestScope()
        clause = root_clauses("m", [SortKey("year", True), SortKey("title")], 10, 5, scope)
        assert clause == "WITH m ORDER BY m.year DESC, m.title ASC SKIP $offset_1 LIMIT $first_2"
        assert scope.params == {"offset_1": 5, "first_2": 10}

    def test_nothing_requested(self):
        """Unordered, unpaged fields add no clause."""
        assert root_clauses("m", [], None, None, RequestScope()) == ""

    def test_first_zero(self):
        """``first: 0`` is a valid page size."""
        scope = RequestScope()
        assert root_clauses("m", [], 0, None, scope) == "WITH m LIMIT $first_1"
        assert scope.params == {"first_1": 0}

    def test_negative_first(self):
        """Negative values raise before any clause is built."""
        with pytest.raises(InvalidPaginationError) as exc_info:
            root_clauses("m", [], -1, None, RequestScope())
        assert exc_info.value.argument == "first"

    def test_negative_offset(self):
        """Negative offsets raise."""
        with pytest.raises(InvalidPaginationError):
            check_pagination(None, -3)

    def test_tie_breaker_appended(self):
        """The identity sorts last, ascending."""
        keys = with_tie_breaker([SortKey("year", True)], "movieId")
        assert keys == [SortKey("year", True), SortKey("movieId")]

    def test_tie_breaker_not_repeated(self):
        keys = [SortKey("movieId", True)]
        assert with_tie_breaker(keys, "movieId") == keys
        assert with_tie_breaker(keys, None) == keys


class TestNestedLists:
    """Tests for nested sorting and slicing."""

    def test_sort_multi(self):
        """Ascending keys are prefixed with ``^``."""
        expression = sort_list("xs", [SortKey("title"), SortKey("year", True)])
        assert expression == "apoc.coll.sortMulti(xs, ['^__order_title', '__order_year'])"

    def test_no_sort(self):
        """Without keys the list is unchanged."""
        assert sort_list("xs", []) == "xs"

    def test_slice_first(self):
        scope = RequestScope()
        assert slice_list("xs", 2, None, scope) == "xs[..$first_1]"

    def test_slice_offset(self):
        scope = RequestScope()
        assert slice_list("xs", None, 3, scope) == "xs[$offset_1..]"

    def test_slice_both(self):
        """Offset applies before first."""
        scope = RequestScope()
        assert slice_list("xs", 2, 3, scope) == "xs[$offset_2..($offset_2 + $first_1)]"
        assert scope.params == {"first_1": 2, "offset_2": 3}

    def test_helper_projection(self):
        """Helper keys carry the sorted values."""
        assert helper_projection("g", [SortKey("name")]) == ["__order_name: g.name"]
