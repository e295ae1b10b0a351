"""
Request translation for cypherql.

Per resolved root field, these compilers produce exactly one
parameterized Cypher statement and map its rows back:
- selection: selection trees and map projections
- filters: filter arguments to predicate clauses
- ordering: orderBy / first / offset
- mutations: write plans and statements
- queries: generated and ``@cypher`` root fields
- results: rows to response values

All state is request-local; nothing here is shared between requests.
"""

from .context import Cardinality, CompiledStatement, RequestScope
from .filters import FilterCompiler, parse_filter
from .mutations import (
    MutationCompiler,
    MutationKind,
    MutationPlan,
    compile_mutation,
    plan_node_mutation,
    plan_relationship_mutation,
)
from .ordering import SortKey, parse_order_by
from .queries import compile_custom_field, compile_query
from .results import map_result
from .selection import Manifest, SelectionCompiler, SelectionNode, selection_from_info

__all__ = [
    "Cardinality",
    "CompiledStatement",
    "FilterCompiler",
    "Manifest",
    "MutationCompiler",
    "MutationKind",
    "MutationPlan",
    "RequestScope",
    "SelectionCompiler",
    "SelectionNode",
    "SortKey",
    "compile_custom_field",
    "compile_mutation",
    "compile_query",
    "map_result",
    "parse_filter",
    "parse_order_by",
    "plan_node_mutation",
    "plan_relationship_mutation",
    "selection_from_info",
]
