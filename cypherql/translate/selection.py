"""
Selection Compiler.

Walks the selection tree requested on a root field and compiles it into
one Cypher map projection, folding nested relationship hops and computed
fields into the same expression. A Manifest records which response keys
the projection produces and how the Result Mapper must treat them.

Per field kind:
- SCALAR: ``.name`` (or ``alias: v.name``)
- RELATIONSHIP: a pattern comprehension, wrapped in ``head()`` for single
  fields; reified relationship fields project the edge with ``from`` /
  ``to`` sub-projections
- COMPUTED: an ``apoc.cypher.runFirstColumn*`` call over the declared
  statement; object results are projected, scalar results are opaque
- IGNORED: nothing; the parent's identity is kept for the external
  resolver

Invariants:
    - The root projection is emitted even when no field is selected
    - Every node and relationship variable is unique in the statement
    - Argument values only reach the statement through parameters
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from graphql import (
    FieldNode,
    FragmentSpreadNode,
    GraphQLIncludeDirective,
    GraphQLObjectType,
    GraphQLResolveInfo,
    GraphQLSchema,
    GraphQLSkipDirective,
    InlineFragmentNode,
    get_named_type,
    is_abstract_type,
    is_object_type,
)
from graphql.execution.values import get_argument_values, get_directive_values
from graphql.utilities import type_from_ast

from ..errors import TranslationError
from ..schema.model import SchemaModel
from ..schema.types import FieldDecl, FieldKind, RelationField
from .context import RequestScope, escape_name, prop, relationship_pattern, string_literal
from .filters import FilterCompiler
from .ordering import helper_projection, parse_order_by, slice_list, sort_list

# =============================================================================
# Selection tree
# =============================================================================


@dataclass
class SelectionNode:
    """One requested field with its coerced arguments and sub-selections."""

    field_name: str
    response_key: str
    arguments: dict[str, Any] = field(default_factory=dict)
    children: list[SelectionNode] = field(default_factory=list)

    def child(self, response_key: str) -> SelectionNode | None:
        for c in self.children:
            if c.response_key == response_key:
                return c
        return None


def selection_from_info(info: GraphQLResolveInfo) -> list[SelectionNode]:
    """Build the selection tree below the field being resolved.

    Fragments and inline fragments are flattened, ``@skip`` / ``@include``
    honored, aliases kept as response keys and arguments coerced with the
    request's variables.
    """
    return_type = get_named_type(info.return_type)
    if not is_object_type(return_type):
        return []
    return _collect(info, return_type, info.field_nodes)


def _collect(
    info: GraphQLResolveInfo,
    parent_type: GraphQLObjectType,
    field_nodes: Sequence[FieldNode],
) -> list[SelectionNode]:
    nodes: dict[str, SelectionNode] = {}
    for field_node in field_nodes:
        if field_node.selection_set is None:
            continue
        _collect_set(info, parent_type, field_node.selection_set.selections, nodes, set())
    return list(nodes.values())


def _collect_set(
    info: GraphQLResolveInfo,
    parent_type: GraphQLObjectType,
    selections: Sequence[Any],
    nodes: dict[str, SelectionNode],
    visited_fragments: set[str],
) -> None:
    variables = info.variable_values
    for selection in selections:
        if not _included(selection, variables):
            continue
        if isinstance(selection, FieldNode):
            name = selection.name.value
            if name.startswith("__"):
                continue
            field_def = parent_type.fields.get(name)
            if field_def is None:
                continue
            key = selection.alias.value if selection.alias else name
            node = nodes.get(key)
            if node is None:
                node = nodes[key] = SelectionNode(
                    field_name=name,
                    response_key=key,
                    arguments=get_argument_values(field_def, selection, variables),
                )
            named = get_named_type(field_def.type)
            if selection.selection_set is not None and is_object_type(named):
                merged = {c.response_key: c for c in node.children}
                _collect_set(info, named, selection.selection_set.selections, merged, set())
                node.children = list(merged.values())
        elif isinstance(selection, InlineFragmentNode):
            if _fragment_applies(info.schema, selection.type_condition, parent_type):
                _collect_set(
                    info, parent_type, selection.selection_set.selections, nodes, visited_fragments
                )
        elif isinstance(selection, FragmentSpreadNode):
            name = selection.name.value
            fragment = info.fragments.get(name)
            if fragment is None or name in visited_fragments:
                continue
            visited_fragments.add(name)
            if _fragment_applies(info.schema, fragment.type_condition, parent_type):
                _collect_set(
                    info, parent_type, fragment.selection_set.selections, nodes, visited_fragments
                )


def _included(selection: Any, variables: Mapping[str, Any]) -> bool:
    skip = get_directive_values(GraphQLSkipDirective, selection, variables)
    if skip and skip.get("if") is True:
        return False
    include = get_directive_values(GraphQLIncludeDirective, selection, variables)
    if include and include.get("if") is False:
        return False
    return True


def _fragment_applies(schema: GraphQLSchema, condition: Any, parent_type: GraphQLObjectType) -> bool:
    if condition is None:
        return True
    condition_type = type_from_ast(schema, condition)
    if condition_type is parent_type:
        return True
    if condition_type is not None and is_abstract_type(condition_type):
        return schema.is_sub_type(condition_type, parent_type)
    return False


# =============================================================================
# Manifest
# =============================================================================


class ValueKind(Enum):
    """How the Result Mapper treats a projected key."""

    SCALAR = "scalar"
    OBJECT = "object"
    OPAQUE = "opaque"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ManifestEntry:
    key: str
    kind: ValueKind
    child: Manifest | None = None


@dataclass(frozen=True)
class Manifest:
    """Response keys of one projected map.

    Attributes:
        entries: Requested keys in selection order
        retained: Helper keys kept in the response value (parent identity
            for external resolvers)
    """

    entries: tuple[ManifestEntry, ...] = ()
    retained: tuple[str, ...] = ()

    def keys(self) -> tuple[str, ...]:
        return tuple(e.key for e in self.entries) + self.retained

    def entry(self, key: str) -> ManifestEntry | None:
        for e in self.entries:
            if e.key == key:
                return e
        return None


# =============================================================================
# Projection compilation
# =============================================================================


class SelectionCompiler:
    """Compiles selection trees into map projections for one request.

    Example:
        >>> compiler = SelectionCompiler(model, RequestScope())
        >>> text, manifest = compiler.project("Movie", "movie_1", selection)
        >>> text
        'movie_1 {.title, genres: [(movie_1)-[:IN_GENRE]->(genre_1:Genre) | genre_1 {.name}]}'
    """

    def __init__(self, model: SchemaModel, scope: RequestScope) -> None:
        self.model = model
        self.scope = scope
        self.filters = FilterCompiler(model, scope)

    def project(
        self,
        type_name: str,
        var: str,
        selection: Sequence[SelectionNode],
        extra: Sequence[str] = (),
    ) -> tuple[str, Manifest]:
        """Project node ``var`` of ``type_name`` as a map.

        Args:
            extra: Additional projection entries (sort helper keys)
        """
        entries, manifest = self._entries(type_name, var, selection)
        return f"{var} {{{', '.join(list(entries) + list(extra))}}}", manifest

    def _entries(
        self,
        type_name: str,
        var: str,
        selection: Sequence[SelectionNode],
    ) -> tuple[list[str], Manifest]:
        type_decl = self.model.get_type(type_name)
        if type_decl is None:
            raise TranslationError(f"Cannot project unknown type '{type_name}'")

        parts: list[str] = []
        manifest_entries: list[ManifestEntry] = []
        needs_identity = False

        for node in selection:
            field_decl = type_decl.get_field(node.field_name)
            if field_decl is None:
                continue
            key = node.response_key

            if field_decl.kind is FieldKind.SCALAR:
                if key == field_decl.name:
                    parts.append(f".{escape_name(field_decl.name)}")
                else:
                    parts.append(f"{escape_name(key)}: {prop(var, field_decl.name)}")
                manifest_entries.append(ManifestEntry(key, ValueKind.SCALAR))

            elif field_decl.kind is FieldKind.RELATIONSHIP:
                relation = self.model.relation_field(type_name, field_decl.name)
                if relation is None:
                    raise TranslationError(
                        f"Field '{type_name}.{field_decl.name}' has no relationship model"
                    )
                expression, child = self.relation(relation, var, node)
                parts.append(f"{escape_name(key)}: {expression}")
                manifest_entries.append(ManifestEntry(key, ValueKind.OBJECT, child))

            elif field_decl.kind is FieldKind.COMPUTED:
                expression, entry = self.computed(field_decl, var, node)
                parts.append(f"{escape_name(key)}: {expression}")
                manifest_entries.append(entry)

            else:
                manifest_entries.append(ManifestEntry(key, ValueKind.EXTERNAL))
                needs_identity = True

        retained: tuple[str, ...] = ()
        identity = type_decl.identity_field
        if needs_identity and identity is not None:
            taken = {e.key for e in manifest_entries}
            if identity.name not in taken:
                parts.append(f".{escape_name(identity.name)}")
                retained = (identity.name,)
        return parts, Manifest(tuple(manifest_entries), retained)

    # -------------------------------------------------------------------------
    # Relationship hops
    # -------------------------------------------------------------------------

    def relation(
        self,
        relation: RelationField,
        var: str,
        node: SelectionNode,
    ) -> tuple[str, Manifest]:
        """Pattern comprehension for a relationship field of node ``var``."""
        args = node.arguments
        other = self.scope.variable(relation.target)

        if relation.is_reified:
            relationship = relation.relationship
            edge = self.scope.variable(relationship.label)
            pattern = relationship_pattern(
                var, relation.label, other, relation.direction, edge, relation.target
            )
            if relation.owner_is_start:
                endpoints = {"from": var, "to": other}
            else:
                endpoints = {"from": other, "to": var}
            where = self.filters.compile_argument(
                relation.field.named_type, edge, args.get("filter"), endpoints
            )
            keys = parse_order_by(args.get("orderBy"))
            body, manifest = self.edge_projection(
                relationship.type_name or "",
                edge,
                endpoints,
                node.children,
                extra=helper_projection(edge, keys),
            )
        else:
            pattern = relationship_pattern(
                var, relation.label, other, relation.direction, end_label=relation.target
            )
            where = self.filters.compile_argument(relation.target, other, args.get("filter"))
            keys = parse_order_by(args.get("orderBy"))
            body, manifest = self.project(
                relation.target, other, node.children, extra=helper_projection(other, keys)
            )

        predicate = f" WHERE {where}" if where else ""
        expression = f"[{pattern}{predicate} | {body}]"
        if not relation.is_list:
            return f"head({expression})", manifest

        expression = sort_list(expression, keys)
        expression = slice_list(expression, args.get("first"), args.get("offset"), self.scope)
        return expression, manifest

    def edge_projection(
        self,
        relation_type: str,
        edge: str,
        endpoints: Mapping[str, str],
        selection: Sequence[SelectionNode],
        extra: Sequence[str] = (),
    ) -> tuple[str, Manifest]:
        """Project an edge of a relationship type with its endpoints."""
        parts: list[str] = []
        entries: list[ManifestEntry] = []
        relationship = self.model.relationship_for_type(relation_type)
        if relationship is None:
            raise TranslationError(f"'{relation_type}' is not a relationship type")

        for node in selection:
            key = node.response_key
            if node.field_name in endpoints:
                endpoint_type = (
                    relationship.start_type if node.field_name == "from" else relationship.end_type
                )
                body, child = self.project(endpoint_type, endpoints[node.field_name], node.children)
                parts.append(f"{escape_name(key)}: {body}")
                entries.append(ManifestEntry(key, ValueKind.OBJECT, child))
            elif any(p.name == node.field_name for p in relationship.properties):
                parts.append(f"{escape_name(key)}: {prop(edge, node.field_name)}")
                entries.append(ManifestEntry(key, ValueKind.SCALAR))
        return f"{edge} {{{', '.join(parts + list(extra))}}}", Manifest(tuple(entries))

    def payload(
        self,
        relationship_type: str | None,
        start_type: str,
        end_type: str,
        start: str,
        end: str,
        edge: str | None,
        selection: Sequence[SelectionNode],
        properties: Sequence[str] = (),
    ) -> tuple[str, Manifest]:
        """Map literal for a relationship mutation payload."""
        parts: list[str] = []
        entries: list[ManifestEntry] = []
        for node in selection:
            key = node.response_key
            if node.field_name in ("from", "to"):
                node_type, node_var = (
                    (start_type, start) if node.field_name == "from" else (end_type, end)
                )
                body, child = self.project(node_type, node_var, node.children)
                parts.append(f"{escape_name(key)}: {body}")
                entries.append(ManifestEntry(key, ValueKind.OBJECT, child))
            elif edge is not None and node.field_name in properties:
                parts.append(f"{escape_name(key)}: {prop(edge, node.field_name)}")
                entries.append(ManifestEntry(key, ValueKind.SCALAR))
        return "{" + ", ".join(parts) + "}", Manifest(tuple(entries))

    # -------------------------------------------------------------------------
    # Computed fields
    # -------------------------------------------------------------------------

    def computed(
        self,
        field_decl: FieldDecl,
        var: str | None,
        node: SelectionNode,
    ) -> tuple[str, ManifestEntry]:
        """Splice a computed statement in as a nested call."""
        statement, params = self.statement_call(field_decl, var, node.arguments)
        target = field_decl.named_type
        target_decl = self.model.get_type(target)
        is_node = target_decl is not None and target_decl.is_node_type
        key = node.response_key

        if not is_node:
            function = "runFirstColumnMany" if field_decl.is_list else "runFirstColumnSingle"
            return (
                f"apoc.cypher.{function}({statement}, {params})",
                ManifestEntry(key, ValueKind.OPAQUE),
            )

        item = self.scope.variable(target)
        body, manifest = self.project(target, item, node.children)
        if field_decl.is_list:
            expression = f"[{item} IN apoc.cypher.runFirstColumnMany({statement}, {params}) | {body}]"
            paging = {
                name: node.arguments.get(name)
                for name in ("first", "offset")
                if name not in field_decl.placeholders
            }
            expression = slice_list(
                expression, paging.get("first"), paging.get("offset"), self.scope
            )
        else:
            expression = (
                f"head([{item} IN [apoc.cypher.runFirstColumnSingle({statement}, {params})] "
                f"WHERE {item} IS NOT NULL | {body}])"
            )
        return expression, ManifestEntry(key, ValueKind.OBJECT, manifest)

    def statement_call(
        self,
        field_decl: FieldDecl,
        var: str | None,
        arguments: Mapping[str, Any],
    ) -> tuple[str, str]:
        """Return the statement literal and its parameter map.

        ``{name}`` placeholders become ``$name`` inside the statement and
        are bound from the field's own arguments (null when omitted);
        ``this`` is the parent node.
        """
        statement = field_decl.statement or ""
        entries = []
        for placeholder in field_decl.placeholders:
            statement = statement.replace("{" + placeholder + "}", "$" + placeholder)
            if placeholder == "this":
                continue
            param = self.scope.param(placeholder, arguments.get(placeholder))
            entries.append(f"{escape_name(placeholder)}: {param}")
        if var is not None:
            entries.insert(0, f"this: {var}")
        elif "this" in field_decl.placeholders:
            entries.insert(0, "this: null")
        return string_literal(statement), "{" + ", ".join(entries) + "}"
