"""
Unit tests for root field composition.

Tests cover:
- Generated query statements
- Exact-match arguments combined with filters
- Root ordering and paging
- Root @cypher fields
"""

import pytest

from cypherql.errors import InvalidFilterOperatorError, InvalidPaginationError
from cypherql.execution import AccessMode
from cypherql.translate import Cardinality, SelectionNode, compile_custom_field, compile_query


def sel(name, *children):
    return SelectionNode(field_name=name, response_key=name, children=list(children))


class TestCompileQuery:
    """Tests for generated query fields."""

    def test_exact_match(self, model):
        """Scalar arguments match exactly, one statement per field."""
        compiled = compile_query(
            model, "Movie", {"title": "River Runs"}, [sel("title"), sel("genres", sel("name"))]
        )
        assert compiled.text == (
            "MATCH (movie_1:Movie)\n"
            "WHERE movie_1.title = $title_2\n"
            "RETURN movie_1 {.title, genres: [(movie_1)-[:IN_GENRE]->(genre_3:Genre) | "
            "genre_3 {.name}]} AS value"
        )
        assert compiled.params == {"title_2": "River Runs"}
        assert compiled.mode is AccessMode.READ
        assert compiled.cardinality is Cardinality.LIST

    def test_no_arguments(self, model):
        """Without arguments every node of the type matches."""
        compiled = compile_query(model, "Genre", {}, [sel("name")])
        assert compiled.text == "MATCH (genre_1:Genre)\nRETURN genre_1 {.name} AS value"

    def test_null_arguments_ignored(self, model):
        """Arguments given as null do not constrain the match."""
        compiled = compile_query(model, "Movie", {"title": None}, [sel("title")])
        assert "WHERE" not in compiled.text

    def test_filter_and_arguments(self, model):
        """Filters are ANDed with exact-match arguments."""
        compiled = compile_query(
            model, "Movie", {"year": 1995, "filter": {"title_contains": "Heat"}}, [sel("title")]
        )
        assert "WHERE movie_1.year = $year_2 AND (movie_1.title CONTAINS $title_contains_3)" in compiled.text

    def test_order_and_page(self, model):
        """Ordering and paging happen before projection."""
        compiled = compile_query(
            model,
            "Movie",
            {"orderBy": ["year_desc"], "first": 10, "offset": 20},
            [sel("title")],
        )
        lines = compiled.text.split("\n")
        assert lines[1] == (
            "WITH movie_1 ORDER BY movie_1.year DESC, movie_1.movieId ASC "
            "SKIP $offset_2 LIMIT $first_3"
        )
        assert compiled.params == {"offset_2": 20, "first_3": 10}

    def test_identity_breaks_ties(self, model):
        """Sorting on the identity itself adds no second key."""
        compiled = compile_query(model, "Movie", {"orderBy": "movieId_desc"}, [sel("title")])
        assert "ORDER BY movie_1.movieId DESC\n" in compiled.text

    def test_paging_without_order(self, model):
        """Pages are ordered by identity when no orderBy is given."""
        compiled = compile_query(model, "Genre", {"first": 5}, [sel("name")])
        assert "WITH genre_1 ORDER BY genre_1.name ASC LIMIT $first_2" in compiled.text

    def test_consecutive_pages(self, model):
        """Offsets 0, k and 2k bind as parameters of the same statement."""
        pages = [
            compile_query(
                model, "Movie", {"orderBy": ["title_asc"], "first": 2, "offset": offset}, [sel("title")]
            )
            for offset in (0, 2, 4)
        ]
        assert len({page.text for page in pages}) == 1
        assert "SKIP $offset_2 LIMIT $first_3" in pages[0].text
        assert [dict(page.params) for page in pages] == [
            {"offset_2": 0, "first_3": 2},
            {"offset_2": 2, "first_3": 2},
            {"offset_2": 4, "first_3": 2},
        ]

    def test_invalid_filter_operator(self, model):
        """Unsupported operators fail before a statement exists."""
        with pytest.raises(InvalidFilterOperatorError):
            compile_query(model, "Movie", {"filter": {"title_gt": "A"}}, [sel("title")])

    def test_negative_first(self, model):
        """Negative paging fails before a statement exists."""
        with pytest.raises(InvalidPaginationError):
            compile_query(model, "Movie", {"first": -1}, [sel("title")])


class TestCompileCustomField:
    """Tests for root @cypher fields."""

    def test_query(self, model):
        """Root queries unwind the statement's first column."""
        field_decl = model.get_type("Query").get_field("moviesBySubstring")
        compiled = compile_custom_field(
            model, field_decl, {"substring": "Heat"}, [sel("title")], AccessMode.READ
        )
        assert compiled.text == (
            "UNWIND apoc.cypher.runFirstColumnMany("
            "'MATCH (m:Movie) WHERE m.title CONTAINS $substring RETURN m', "
            "{substring: $substring_1}) AS movie_2\n"
            "RETURN movie_2 {.title} AS value"
        )
        assert compiled.params == {"substring_1": "Heat"}
        assert compiled.cardinality is Cardinality.LIST

    def test_mutation(self, model):
        """Root mutations run through apoc.cypher.doIt in write mode."""
        field_decl = model.get_type("Mutation").get_field("rateMovie")
        compiled = compile_custom_field(
            model,
            field_decl,
            {"userId": "u1", "movieId": "m1", "rating": 4.0},
            [sel("title")],
            AccessMode.WRITE,
        )
        assert compiled.text.startswith("CALL apoc.cypher.doIt(")
        assert "{userId: $userId}" in compiled.text
        assert "{userId: $userId_1, movieId: $movieId_2, rating: $rating_3}" in compiled.text
        assert compiled.mode is AccessMode.WRITE
        assert compiled.cardinality is Cardinality.SINGLE
