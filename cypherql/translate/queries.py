"""
Root field composition.

Combines the Selection, Filter and Order/Pagination Compilers into the
single statement behind a generated query field, and compiles root
fields backed by a declared ``@cypher`` statement.

Statement shape of a generated query field:

    MATCH (movie_1:Movie)
    WHERE movie_1.movieId = $movieId_2 AND (<filter>)
    WITH movie_1 ORDER BY movie_1.title ASC, movie_1.movieId ASC SKIP $offset_3 LIMIT $first_4
    RETURN movie_1 {...} AS value

Sorted or paged fields always end their ORDER BY with the identity field.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from ..errors import TranslationError
from ..execution import AccessMode
from ..schema.model import SchemaModel
from ..schema.types import FieldDecl, FieldKind
from .context import Cardinality, CompiledStatement, RequestScope, escape_name, prop
from .ordering import parse_order_by, root_clauses, with_tie_breaker
from .selection import SelectionCompiler, SelectionNode

logger = logging.getLogger(__name__)

# Arguments of generated query fields that are not exact-match shorthands
QUERY_CONTROL_ARGUMENTS = ("first", "offset", "orderBy", "filter")

RESULT_COLUMN = "value"


def compile_query(
    model: SchemaModel,
    type_name: str,
    arguments: Mapping[str, Any],
    selection: Sequence[SelectionNode],
) -> CompiledStatement:
    """Compile a generated ``<Type>(...)`` query field.

    Raises:
        InvalidFilterOperatorError: If the filter uses an unsupported key
        InvalidPaginationError: If ``first`` or ``offset`` is negative
    """
    type_decl = model.get_type(type_name)
    if type_decl is None or not type_decl.is_node_type:
        raise TranslationError(f"'{type_name}' is not a node type")

    scope = RequestScope()
    compiler = SelectionCompiler(model, scope)
    var = scope.variable(type_name)

    predicates = []
    for name, value in arguments.items():
        if name in QUERY_CONTROL_ARGUMENTS or value is None:
            continue
        field_decl = type_decl.get_field(name)
        if field_decl is None or field_decl.kind is not FieldKind.SCALAR:
            raise TranslationError(f"'{name}' is not a scalar field of '{type_name}'")
        predicates.append(f"{prop(var, name)} = {scope.param(name, value)}")

    filter_clause = compiler.filters.compile_argument(type_name, var, arguments.get("filter"))
    if filter_clause:
        predicates.append(filter_clause)

    first, offset = arguments.get("first"), arguments.get("offset")
    keys = parse_order_by(arguments.get("orderBy"))
    if keys or first is not None or offset is not None:
        identity = type_decl.identity_field
        keys = with_tie_breaker(keys, identity.name if identity else None)
    paging = root_clauses(var, keys, first, offset, scope)
    projection, manifest = compiler.project(type_name, var, selection)

    lines = [f"MATCH ({var}:{escape_name(type_name)})"]
    if predicates:
        lines.append("WHERE " + " AND ".join(predicates))
    if paging:
        lines.append(paging)
    lines.append(f"RETURN {projection} AS {RESULT_COLUMN}")

    compiled = CompiledStatement(
        text="\n".join(lines),
        params=scope.params,
        mode=AccessMode.READ,
        manifest=manifest,
        cardinality=Cardinality.LIST,
        column=RESULT_COLUMN,
    )
    logger.debug(f"Compiled query {type_name}: {compiled.text}")
    return compiled


def compile_custom_field(
    model: SchemaModel,
    field_decl: FieldDecl,
    arguments: Mapping[str, Any],
    selection: Sequence[SelectionNode],
    mode: AccessMode,
) -> CompiledStatement:
    """Compile a root Query / Mutation field declared with ``@cypher``.

    Queries read the first column of the statement's rows; mutations run
    the statement through ``apoc.cypher.doIt`` in a write transaction.
    """
    if field_decl.kind is not FieldKind.COMPUTED:
        raise TranslationError(f"Field '{field_decl.name}' has no statement")

    scope = RequestScope()
    compiler = SelectionCompiler(model, scope)
    statement, params = compiler.statement_call(field_decl, None, arguments)
    var = scope.variable(field_decl.named_type)

    if mode is AccessMode.WRITE:
        source = (
            f"CALL apoc.cypher.doIt({statement}, {params}) YIELD value\n"
            f"WITH apoc.map.values(value, [keys(value)[0]])[0] AS {var}"
        )
    else:
        source = f"UNWIND apoc.cypher.runFirstColumnMany({statement}, {params}) AS {var}"

    target = model.get_type(field_decl.named_type)
    manifest = None
    if target is not None and target.is_node_type:
        projection, manifest = compiler.project(target.name, var, selection)
    else:
        projection = var

    compiled = CompiledStatement(
        text=f"{source}\nRETURN {projection} AS {RESULT_COLUMN}",
        params=scope.params,
        mode=mode,
        manifest=manifest,
        cardinality=Cardinality.LIST if field_decl.is_list else Cardinality.SINGLE,
        column=RESULT_COLUMN,
    )
    logger.debug(f"Compiled custom field {field_decl.name}: {compiled.text}")
    return compiled
