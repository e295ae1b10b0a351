"""
Filter Compiler.

Turns a ``filter`` argument value into a FilterExpression tree, then into
a predicate clause whose operands are all statement parameters.

Filter keys are field names with an optional operator suffix
(``title_contains``), relationship keys with a quantifier suffix
(``genres_some``), the endpoint keys ``from`` / ``to`` of relationship
type filters, or the combinators ``AND`` / ``OR`` / ``NOT``.

Invariants:
    - ``AND: []`` compiles to ``true`` and ``OR: []`` to ``false``
    - Several keys in one filter object are combined with AND
    - No operand value appears in clause text
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from ..errors import InvalidFilterOperatorError, TranslationError
from ..schema.model import SchemaModel
from ..schema.types import FieldDecl, FieldKind, RelationField, TypeDecl
from .context import RequestScope, prop, relationship_pattern

EQUALITY_OPERATORS = ("", "_not")
LIST_OPERATORS = ("_in", "_not_in")
NUMERIC_OPERATORS = EQUALITY_OPERATORS + LIST_OPERATORS + ("_lt", "_lte", "_gt", "_gte")
STRING_OPERATORS = EQUALITY_OPERATORS + LIST_OPERATORS + (
    "_contains",
    "_not_contains",
    "_starts_with",
    "_not_starts_with",
    "_ends_with",
    "_not_ends_with",
)
BOOLEAN_OPERATORS = EQUALITY_OPERATORS
DEFAULT_OPERATORS = EQUALITY_OPERATORS + LIST_OPERATORS

LIST_RELATION_OPERATORS = ("", "_not", "_some", "_none", "_single", "_every")
SINGLE_RELATION_OPERATORS = ("", "_not")

COMBINATORS = ("AND", "OR", "NOT")
ENDPOINT_KEYS = ("from", "to")

_COMPARISONS = {
    "": "=",
    "_not": "<>",
    "_lt": "<",
    "_lte": "<=",
    "_gt": ">",
    "_gte": ">=",
    "_in": "IN",
    "_contains": "CONTAINS",
    "_starts_with": "STARTS WITH",
    "_ends_with": "ENDS WITH",
}

# Quantifier per relationship operator
_QUANTIFIERS = {
    "": "some",
    "_some": "some",
    "_not": "none",
    "_none": "none",
    "_single": "single",
    "_every": "every",
}


def operators_for(field_decl: FieldDecl) -> tuple[str, ...]:
    """Operator suffixes a scalar field accepts, empty string for equality."""
    if field_decl.is_list:
        return EQUALITY_OPERATORS
    named = field_decl.named_type
    if named in ("Int", "Float"):
        return NUMERIC_OPERATORS
    if named in ("String", "ID"):
        return STRING_OPERATORS
    if named == "Boolean":
        return BOOLEAN_OPERATORS
    return DEFAULT_OPERATORS


def relation_operators_for(relation: RelationField) -> tuple[str, ...]:
    return LIST_RELATION_OPERATORS if relation.is_list else SINGLE_RELATION_OPERATORS


# =============================================================================
# Expression tree
# =============================================================================


@dataclass(frozen=True)
class FieldPredicate:
    """Compare one property with an operand."""

    field: str
    operator: str
    operand: Any


@dataclass(frozen=True)
class RelationPredicate:
    """Quantified check over the nodes (or edges) behind a relationship field.

    ``child`` is None when the operand was null; the quantifier then
    applies to every related node.
    """

    relation: RelationField
    quantifier: str
    child: FilterExpression | None


@dataclass(frozen=True)
class EndpointPredicate:
    """Filter on the ``from`` or ``to`` node of a relationship type."""

    endpoint: str
    child: FilterExpression


@dataclass(frozen=True)
class AllOf:
    children: tuple[FilterExpression, ...]


@dataclass(frozen=True)
class AnyOf:
    children: tuple[FilterExpression, ...]


@dataclass(frozen=True)
class Negation:
    child: FilterExpression


FilterExpression = Union[
    FieldPredicate, RelationPredicate, EndpointPredicate, AllOf, AnyOf, Negation
]


# =============================================================================
# Parsing
# =============================================================================


def parse_filter(model: SchemaModel, type_name: str, value: Mapping[str, Any]) -> AllOf:
    """Parse a filter argument against a node or relationship type.

    Raises:
        InvalidFilterOperatorError: If a key names an unknown field or an
            operator the field's type does not support
    """
    type_decl = model.get_type(type_name)
    if type_decl is None:
        raise TranslationError(f"Cannot filter unknown type '{type_name}'")
    if not isinstance(value, Mapping):
        raise TranslationError(f"Filter for '{type_name}' must be an object")

    children: list[FilterExpression] = []
    for key, operand in value.items():
        children.append(_parse_key(model, type_decl, key, operand))
    return AllOf(tuple(children))


def _parse_key(model: SchemaModel, type_decl: TypeDecl, key: str, operand: Any) -> FilterExpression:
    if key == "AND" or key == "OR":
        parts = tuple(parse_filter(model, type_decl.name, item) for item in operand or ())
        return AllOf(parts) if key == "AND" else AnyOf(parts)
    if key == "NOT":
        if operand is None:
            return AllOf(())
        return Negation(parse_filter(model, type_decl.name, operand))

    if type_decl.is_relation_type and key in ENDPOINT_KEYS:
        relationship = model.relationship_for_type(type_decl.name)
        assert relationship is not None
        endpoint_type = relationship.start_type if key == "from" else relationship.end_type
        if operand is None:
            return AllOf(())
        return EndpointPredicate(key, parse_filter(model, endpoint_type, operand))

    field_decl, suffix = _match_field(type_decl, key)
    if field_decl is None:
        raise InvalidFilterOperatorError(type_decl.name, key)

    if field_decl.kind is FieldKind.RELATIONSHIP:
        relation = model.relation_field(type_decl.name, field_decl.name)
        if relation is None:
            raise InvalidFilterOperatorError(type_decl.name, key)
        allowed = relation_operators_for(relation)
        if suffix not in allowed:
            raise InvalidFilterOperatorError(type_decl.name, key, _display(field_decl, allowed))
        quantifier = _QUANTIFIERS[suffix]
        if operand is None:
            return _null_relation(relation, suffix)
        target = relation.field.named_type if relation.is_reified else relation.target
        return RelationPredicate(relation, quantifier, parse_filter(model, target, operand))

    if field_decl.kind is not FieldKind.SCALAR:
        raise InvalidFilterOperatorError(type_decl.name, key)
    allowed = operators_for(field_decl)
    if suffix not in allowed:
        raise InvalidFilterOperatorError(type_decl.name, key, _display(field_decl, allowed))
    return FieldPredicate(field_decl.name, suffix, operand)


def _null_relation(relation: RelationField, suffix: str) -> FilterExpression:
    """A null operand places no condition on the related nodes.

    The plain key tests for absence and ``_not`` for presence, as null does
    for scalars; quantified keys count related nodes without a condition.
    ``_every`` is then always true.
    """
    if suffix == "":
        return RelationPredicate(relation, "none", None)
    if suffix == "_not":
        return RelationPredicate(relation, "some", None)
    if suffix == "_every":
        return AllOf(())
    return RelationPredicate(relation, _QUANTIFIERS[suffix], None)


def _match_field(type_decl: TypeDecl, key: str) -> tuple[FieldDecl | None, str]:
    """Split ``key`` into the longest matching field name and its suffix."""
    best: FieldDecl | None = None
    for f in type_decl.fields:
        if f.kind not in (FieldKind.SCALAR, FieldKind.RELATIONSHIP):
            continue
        if key == f.name:
            return f, ""
        if key.startswith(f.name + "_") and (best is None or len(f.name) > len(best.name)):
            best = f
    if best is None:
        return None, ""
    return best, key[len(best.name):]


def _display(field_decl: FieldDecl, allowed: tuple[str, ...]) -> list[str]:
    return [field_decl.name + suffix for suffix in allowed]


# =============================================================================
# Compilation
# =============================================================================


class FilterCompiler:
    """Compiles FilterExpressions into predicate text for one request.

    Example:
        >>> scope = RequestScope()
        >>> compiler = FilterCompiler(model, scope)
        >>> expr = parse_filter(model, "Movie", {"title_contains": "Matrix"})
        >>> compiler.compile(expr, "movie_1")
        '(movie_1.title CONTAINS $title_contains_1)'
    """

    def __init__(self, model: SchemaModel, scope: RequestScope) -> None:
        self.model = model
        self.scope = scope

    def compile_argument(
        self,
        type_name: str,
        var: str,
        value: Mapping[str, Any] | None,
        endpoints: Mapping[str, str] | None = None,
    ) -> str | None:
        """Parse and compile a filter argument; None when no filter was given."""
        if value is None:
            return None
        return self.compile(parse_filter(self.model, type_name, value), var, endpoints)

    def compile(
        self,
        expr: FilterExpression,
        var: str,
        endpoints: Mapping[str, str] | None = None,
    ) -> str:
        if isinstance(expr, AllOf):
            return self._join(expr.children, " AND ", "true", var, endpoints)
        if isinstance(expr, AnyOf):
            return self._join(expr.children, " OR ", "false", var, endpoints)
        if isinstance(expr, Negation):
            return f"NOT {self.compile(expr.child, var, endpoints)}"
        if isinstance(expr, FieldPredicate):
            return self._field(expr, var)
        if isinstance(expr, EndpointPredicate):
            if not endpoints or expr.endpoint not in endpoints:
                raise TranslationError(f"'{expr.endpoint}' is only valid in relationship filters")
            return self.compile(expr.child, endpoints[expr.endpoint], None)
        if isinstance(expr, RelationPredicate):
            return self._relation(expr, var)
        raise TranslationError(f"Unsupported filter expression {type(expr).__name__}")

    def _join(
        self,
        children: tuple[FilterExpression, ...],
        glue: str,
        empty: str,
        var: str,
        endpoints: Mapping[str, str] | None,
    ) -> str:
        if not children:
            return empty
        return "(" + glue.join(self.compile(c, var, endpoints) for c in children) + ")"

    def _field(self, expr: FieldPredicate, var: str) -> str:
        target = prop(var, expr.field)
        if expr.operand is None:
            if expr.operator == "":
                return f"{target} IS NULL"
            if expr.operator == "_not":
                return f"{target} IS NOT NULL"
        param = self.scope.param(f"{expr.field}{expr.operator}", expr.operand)

        negated = expr.operator.startswith("_not_")
        base = "_" + expr.operator[len("_not_"):] if negated else expr.operator
        clause = f"{target} {_COMPARISONS[base]} {param}"
        return f"NOT {clause}" if negated else clause

    def _relation(self, expr: RelationPredicate, var: str) -> str:
        relation = expr.relation
        relationship = relation.relationship
        other = self.scope.variable(relation.target)

        if relation.is_reified:
            edge = self.scope.variable(relationship.label)
            pattern = relationship_pattern(
                var, relation.label, other, relation.direction, edge, relation.target
            )
            if relation.owner_is_start:
                endpoints = {"from": var, "to": other}
            else:
                endpoints = {"from": other, "to": var}
            subject, child_endpoints = edge, endpoints
        else:
            pattern = relationship_pattern(
                var, relation.label, other, relation.direction, end_label=relation.target
            )
            subject, child_endpoints = other, None

        predicate = ""
        if expr.child is not None:
            inner = self.compile(expr.child, subject, child_endpoints)
            if expr.quantifier == "every":
                inner = f"NOT {inner}"
            predicate = f" WHERE {inner}"

        count = f"size([{pattern}{predicate} | 1])"
        if expr.quantifier == "some":
            return f"{count} > 0"
        if expr.quantifier == "single":
            return f"{count} = 1"
        # none / every
        return f"{count} = 0"


__all__ = [
    "AllOf",
    "AnyOf",
    "EndpointPredicate",
    "FieldPredicate",
    "FilterCompiler",
    "FilterExpression",
    "Negation",
    "RelationPredicate",
    "operators_for",
    "parse_filter",
    "relation_operators_for",
]
