"""
Unit tests for the filter compiler.

Tests cover:
- Operator parsing and validation
- Scalar predicates and null operands
- AND / OR / NOT combinators
- Relationship quantifiers
- Reified relationship filters
- Operand parameterization
"""

import pytest

from cypherql.errors import InvalidFilterOperatorError
from cypherql.translate import FilterCompiler, RequestScope, parse_filter
from cypherql.translate.filters import (
    AllOf,
    FieldPredicate,
    Negation,
    RelationPredicate,
    operators_for,
)


@pytest.fixture
def scope():
    return RequestScope()


@pytest.fixture
def compiler(model, scope):
    return FilterCompiler(model, scope)


def compile_filter(model, compiler, type_name, value, var="m"):
    return compiler.compile(parse_filter(model, type_name, value), var)


class TestParsing:
    """Tests for filter key parsing."""

    def test_equality_key(self, model):
        """A bare field name is equality."""
        expr = parse_filter(model, "Movie", {"title": "Heat"})
        assert expr == AllOf((FieldPredicate("title", "", "Heat"),))

    def test_longest_field_prefix(self, model):
        """Operator suffixes are split after the field name."""
        expr = parse_filter(model, "Movie", {"year_not_in": [1999]})
        assert expr.children[0] == FieldPredicate("year", "_not_in", [1999])

    def test_not_combinator(self, model):
        """NOT wraps its filter in a negation."""
        expr = parse_filter(model, "Movie", {"NOT": {"title": "Heat"}})
        assert isinstance(expr.children[0], Negation)

    def test_relationship_quantifier(self, model):
        """Relationship keys map to quantifiers."""
        expr = parse_filter(model, "Movie", {"genres_every": {"name": "Drama"}})
        predicate = expr.children[0]
        assert isinstance(predicate, RelationPredicate)
        assert predicate.quantifier == "every"

    def test_string_has_no_ordering_operators(self, model):
        """String fields reject range operators."""
        with pytest.raises(InvalidFilterOperatorError) as exc_info:
            parse_filter(model, "Movie", {"title_gt": "A"})
        assert exc_info.value.key == "title_gt"
        assert "title_contains" in exc_info.value.allowed
        assert exc_info.value.code == "INVALID_FILTER_OPERATOR"

    def test_unknown_field(self, model):
        """Keys naming no field are rejected."""
        with pytest.raises(InvalidFilterOperatorError):
            parse_filter(model, "Movie", {"budget": 1})

    def test_single_relationship_has_no_quantifiers(self, model):
        """Single relationship fields only take equality."""
        with pytest.raises(InvalidFilterOperatorError):
            parse_filter(model, "Movie", {"director_some": {"name": "X"}})

    def test_operators_by_type(self, model):
        """Operator sets follow the named type."""
        movie = model.get_type("Movie")
        assert "_gt" in operators_for(movie.get_field("year"))
        assert "_contains" not in operators_for(movie.get_field("year"))
        assert "_starts_with" in operators_for(movie.get_field("movieId"))


class TestScalarPredicates:
    """Tests for scalar predicate compilation."""

    def test_contains(self, model, compiler, scope):
        """Operands become parameters."""
        clause = compile_filter(model, compiler, "Movie", {"title_contains": "Matrix"})
        assert clause == "(m.title CONTAINS $title_contains_1)"
        assert scope.params == {"title_contains_1": "Matrix"}

    def test_negated_operator(self, model, compiler):
        """``_not_*`` operators negate the base comparison."""
        clause = compile_filter(model, compiler, "Movie", {"title_not_starts_with": "The"})
        assert clause == "(NOT m.title STARTS WITH $title_not_starts_with_1)"

    def test_not_equal(self, model, compiler):
        """``_not`` compiles to inequality."""
        assert compile_filter(model, compiler, "Movie", {"year_not": 1999}) == "(m.year <> $year_not_1)"

    def test_in(self, model, compiler, scope):
        """``_in`` binds the whole list as one parameter."""
        clause = compile_filter(model, compiler, "Movie", {"year_in": [1999, 2003]})
        assert clause == "(m.year IN $year_in_1)"
        assert scope.params["year_in_1"] == [1999, 2003]

    def test_null_equality(self, model, compiler, scope):
        """null tests for absence without a parameter."""
        assert compile_filter(model, compiler, "Movie", {"title": None}) == "(m.title IS NULL)"
        assert scope.params == {}

    def test_null_not(self, model, compiler):
        """null with ``_not`` tests for presence."""
        assert compile_filter(model, compiler, "Movie", {"title_not": None}) == "(m.title IS NOT NULL)"

    def test_keys_are_combined_with_and(self, model, compiler):
        """Several keys in one object are ANDed."""
        clause = compile_filter(model, compiler, "Movie", {"title": "Heat", "year_gt": 1990})
        assert clause == "(m.title = $title_1 AND m.year > $year_gt_2)"

    def test_operand_never_in_text(self, model, compiler):
        """Operand values never appear in clause text."""
        clause = compile_filter(model, compiler, "Movie", {"title": "'; DETACH DELETE m //"})
        assert "DETACH" not in clause


class TestCombinators:
    """Tests for AND / OR / NOT."""

    def test_empty_and_is_true(self, model, compiler):
        """An empty AND list matches everything."""
        assert compile_filter(model, compiler, "Movie", {"AND": []}) == "(true)"

    def test_empty_or_is_false(self, model, compiler):
        """An empty OR list matches nothing."""
        assert compile_filter(model, compiler, "Movie", {"OR": []}) == "(false)"

    def test_or(self, model, compiler):
        """OR joins its filters."""
        clause = compile_filter(
            model, compiler, "Movie", {"OR": [{"title": "Heat"}, {"year_lt": 1980}]}
        )
        assert clause == "(((m.title = $title_1) OR (m.year < $year_lt_2)))"

    def test_not(self, model, compiler):
        """NOT negates its filter."""
        clause = compile_filter(model, compiler, "Movie", {"NOT": {"title": "Heat"}})
        assert clause == "(NOT (m.title = $title_1))"

    def test_double_negation(self, model, compiler, scope):
        """NOT inside NOT wraps the plain filter and binds the same operands."""
        plain_scope = RequestScope()
        plain = FilterCompiler(model, plain_scope).compile(
            parse_filter(model, "Movie", {"title_contains": "Heat", "year_gte": 1990}), "m"
        )
        clause = compile_filter(
            model, compiler, "Movie", {"NOT": {"NOT": {"title_contains": "Heat", "year_gte": 1990}}}
        )
        assert clause == f"(NOT (NOT {plain}))"
        assert scope.params == plain_scope.params

    def test_double_negation_tree(self, model):
        """The parsed tree keeps both negations around the original filter."""
        inner = parse_filter(model, "Movie", {"title": "Heat"})
        expr = parse_filter(model, "Movie", {"NOT": {"NOT": {"title": "Heat"}}})
        assert expr == AllOf((Negation(AllOf((Negation(inner),))),))


class TestRelationshipPredicates:
    """Tests for relationship quantifiers."""

    def test_some(self, model, compiler):
        """``_some`` counts matching related nodes."""
        clause = compile_filter(model, compiler, "Movie", {"genres_some": {"name": "Drama"}})
        assert clause == (
            "(size([(m)-[:IN_GENRE]->(genre_1:Genre) WHERE (genre_1.name = $name_2) | 1]) > 0)"
        )

    def test_plain_key_is_some(self, model, compiler):
        """The bare relationship key behaves like ``_some``."""
        clause = compile_filter(model, compiler, "Movie", {"genres": {"name": "Drama"}})
        assert clause.endswith("| 1]) > 0)")

    def test_none(self, model, compiler):
        """``_none`` requires no match."""
        clause = compile_filter(model, compiler, "Movie", {"genres_none": {"name": "Drama"}})
        assert clause.endswith("| 1]) = 0)")

    def test_single(self, model, compiler):
        """``_single`` requires exactly one match."""
        clause = compile_filter(model, compiler, "Movie", {"genres_single": {"name": "Drama"}})
        assert clause.endswith("| 1]) = 1)")

    def test_every(self, model, compiler):
        """``_every`` counts violations."""
        clause = compile_filter(model, compiler, "Movie", {"genres_every": {"name": "Drama"}})
        assert "WHERE NOT (genre_1.name = $name_2)" in clause
        assert clause.endswith("| 1]) = 0)")

    def test_null_relationship(self, model, compiler):
        """A null operand tests for absence of related nodes."""
        clause = compile_filter(model, compiler, "Movie", {"genres": None})
        assert clause == "(size([(m)-[:IN_GENRE]->(genre_1:Genre) | 1]) = 0)"

    def test_null_relationship_not(self, model, compiler):
        """A null operand with ``_not`` tests for presence."""
        clause = compile_filter(model, compiler, "Movie", {"genres_not": None})
        assert clause == "(size([(m)-[:IN_GENRE]->(genre_1:Genre) | 1]) > 0)"

    def test_null_quantifiers(self, model, compiler):
        """Quantified keys with null count related nodes without a condition."""
        pattern = "(m)-[:IN_GENRE]->(genre_1:Genre) | 1]"
        assert compile_filter(model, compiler, "Movie", {"genres_none": None}) == (
            f"(size([{pattern}) = 0)"
        )
        assert compile_filter(model, compiler, "Movie", {"genres_some": None}) == (
            f"(size([{pattern}) > 0)"
        )
        assert compile_filter(model, compiler, "Movie", {"genres_single": None}) == (
            f"(size([{pattern}) = 1)"
        )

    def test_null_every(self, model, compiler, scope):
        """``_every: null`` holds for any node."""
        assert compile_filter(model, compiler, "Movie", {"genres_every": None}) == "(true)"
        assert scope.params == {}

    def test_incoming_direction(self, model, compiler):
        """Incoming relationships traverse against the arrow."""
        clause = compile_filter(model, compiler, "Movie", {"director": {"name": "Mann"}})
        assert "(m)<-[:DIRECTED]-(person_1:Person)" in clause

    def test_nested_filters(self, model, compiler):
        """Related node filters may traverse further."""
        clause = compile_filter(
            model,
            compiler,
            "Person",
            {"directed_some": {"genres_some": {"name": "Crime"}}},
            var="p",
        )
        assert "(p)-[:DIRECTED]->(movie_1:Movie)" in clause
        assert "(movie_1)-[:IN_GENRE]->(genre_2:Genre)" in clause


class TestReifiedFilters:
    """Tests for relationship type filters."""

    def test_properties_and_endpoint(self, model, compiler, scope):
        """Edge properties and endpoint filters compile on the edge pattern."""
        clause = compile_filter(
            model,
            compiler,
            "User",
            {"ratings_some": {"rating_gte": 4.0, "to": {"title": "Heat"}}},
            var="u",
        )
        assert clause == (
            "(size([(u)-[rated_2:RATED]->(movie_1:Movie) "
            "WHERE (rated_2.rating >= $rating_gte_3 AND (movie_1.title = $title_4)) | 1]) > 0)"
        )
        assert scope.params == {"rating_gte_3": 4.0, "title_4": "Heat"}

    def test_from_endpoint_on_incoming_side(self, model, compiler):
        """``from`` names the start node when the owner is the end."""
        clause = compile_filter(
            model, compiler, "Movie", {"ratings_some": {"from": {"name": "Ann"}}}
        )
        assert "(m)<-[rated_2:RATED]-(user_1:User)" in clause
        assert "(user_1.name = $name_3)" in clause
