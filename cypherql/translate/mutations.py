"""
Mutation Compiler.

Turns generated mutation arguments into a MutationPlan and the plan into
exactly one write statement.

Node mutations address nodes by their type's identity field:
- Create: ``CREATE (v:T) SET v = $props``
- Update: ``MATCH (v:T {id: $id}) SET v += $props``
- Delete: project, then ``DETACH DELETE``
- Merge:  ``MERGE (v:T {id: $id}) SET v += $props``

Relationship mutations match both endpoints by their selector inputs and
work on the edge between them. ``from`` / ``to`` always follow the
stored orientation of the edge. Add rejects parallel edges: the
statement only creates the edge when none exists and reports a
``_duplicate`` flag otherwise.

Invariants:
    - One statement per mutation, run in one write transaction
    - Only explicitly supplied properties are written on Update / Merge
    - An omitted ``ID`` identity on Create gets a fresh uuid4; Merge
      requires its identity so repeating it matches the same node
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from ..errors import TranslationError
from ..execution import AccessMode
from ..schema.model import SchemaModel
from ..schema.types import Direction, FieldDecl, RelationField, TypeDecl
from .context import Cardinality, CompiledStatement, RequestScope, escape_name
from .selection import SelectionCompiler, SelectionNode

logger = logging.getLogger(__name__)

RESULT_COLUMN = "value"

# Key of the Add payload that flags an already existing edge
DUPLICATE_KEY = "_duplicate"


class MutationKind(Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    MERGE = "Merge"
    ADD_RELATIONSHIP = "Add"
    REMOVE_RELATIONSHIP = "Remove"
    UPDATE_RELATIONSHIP = "UpdateRelationship"
    MERGE_RELATIONSHIP = "MergeRelationship"

    @property
    def is_relationship(self) -> bool:
        return self in RELATIONSHIP_KINDS

    @property
    def requires_match(self) -> bool:
        """Whether zero result rows mean the target was not found."""
        return self not in (MutationKind.CREATE, MutationKind.MERGE)


RELATIONSHIP_KINDS = frozenset(
    {
        MutationKind.ADD_RELATIONSHIP,
        MutationKind.REMOVE_RELATIONSHIP,
        MutationKind.UPDATE_RELATIONSHIP,
        MutationKind.MERGE_RELATIONSHIP,
    }
)


@dataclass(frozen=True)
class MutationPlan:
    """What one mutation writes.

    Attributes:
        kind: Operation kind
        type_name: Node type (node mutations) or owner type (relationship
            mutations)
        relation: Declaring field view of the relationship
        identity_field: Identity field of ``type_name`` (node mutations)
        identity_value: Value addressing the node
        properties: Properties to write on the node
        from_selector: Identity input of the start node
        to_selector: Identity input of the end node
        data: Properties to write on the edge
    """

    kind: MutationKind
    type_name: str
    relation: Optional[RelationField] = None
    identity_field: Optional[str] = None
    identity_value: Any = None
    properties: Mapping[str, Any] = field(default_factory=dict)
    from_selector: Mapping[str, Any] = field(default_factory=dict)
    to_selector: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("properties", "from_selector", "to_selector", "data"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def label(self) -> str:
        return self.relation.label if self.relation else ""


def generated_identity(field_decl: FieldDecl) -> Optional[str]:
    """A fresh identifier for an omitted identity of type ``ID``."""
    if field_decl.named_type == "ID":
        return str(uuid.uuid4())
    return None


def _identity(type_decl: TypeDecl) -> FieldDecl:
    identity = type_decl.identity_field
    if identity is None:
        raise TranslationError(f"Type '{type_decl.name}' has no identity field")
    return identity


def plan_node_mutation(
    model: SchemaModel,
    kind: MutationKind,
    type_name: str,
    arguments: Mapping[str, Any],
) -> MutationPlan:
    """Build the plan of a Create/Update/Delete/Merge mutation.

    Raises:
        TranslationError: If the identity value is missing where required
    """
    type_decl = model.get_type(type_name)
    if type_decl is None or not type_decl.is_node_type:
        raise TranslationError(f"'{type_name}' is not a node type")
    identity = _identity(type_decl)
    args = dict(arguments)
    value = args.pop(identity.name, None)

    if kind is MutationKind.CREATE and value is None:
        value = generated_identity(identity)
    if value is None and kind is not MutationKind.CREATE:
        raise TranslationError(f"{kind.value}{type_name} requires '{identity.name}'")

    if kind is MutationKind.CREATE:
        properties = dict(args)
        if value is not None:
            properties[identity.name] = value
    elif kind is MutationKind.DELETE:
        properties = {}
    else:
        properties = args

    return MutationPlan(
        kind=kind,
        type_name=type_name,
        identity_field=identity.name,
        identity_value=value,
        properties=properties,
    )


def plan_relationship_mutation(
    model: SchemaModel,
    kind: MutationKind,
    owner: str,
    field_name: str,
    arguments: Mapping[str, Any],
) -> MutationPlan:
    """Build the plan of an Add/Remove/Update/Merge relationship mutation."""
    relation = model.relation_field(owner, field_name)
    if relation is None:
        raise TranslationError(f"'{owner}.{field_name}' is not a relationship field")
    if not kind.is_relationship:
        raise TranslationError(f"{kind.value} is not a relationship mutation")
    return MutationPlan(
        kind=kind,
        type_name=owner,
        relation=relation,
        from_selector=arguments.get("from") or {},
        to_selector=arguments.get("to") or {},
        data=arguments.get("data") or {},
    )


class MutationCompiler:
    """Compiles MutationPlans into write statements for one request."""

    def __init__(self, model: SchemaModel) -> None:
        self.model = model
        self.scope = RequestScope()
        self.selection = SelectionCompiler(model, self.scope)

    def compile(
        self, plan: MutationPlan, selection: Sequence[SelectionNode]
    ) -> CompiledStatement:
        if plan.kind.is_relationship:
            lines, manifest = self._relationship(plan, selection)
        else:
            lines, manifest = self._node(plan, selection)
        compiled = CompiledStatement(
            text="\n".join(lines),
            params=self.scope.params,
            mode=AccessMode.WRITE,
            manifest=manifest,
            cardinality=Cardinality.SINGLE,
            column=RESULT_COLUMN,
        )
        logger.debug(f"Compiled {plan.kind.value} mutation on {plan.type_name}: {compiled.text}")
        return compiled

    # -------------------------------------------------------------------------
    # Node mutations
    # -------------------------------------------------------------------------

    def _node(self, plan: MutationPlan, selection: Sequence[SelectionNode]) -> tuple[list[str], Any]:
        type_name = plan.type_name
        label = escape_name(type_name)
        var = self.scope.variable(type_name)

        if plan.kind is MutationKind.CREATE:
            props = self.scope.param("props", dict(plan.properties))
            lines = [f"CREATE ({var}:{label})", f"SET {var} = {props}"]
        else:
            match = self._match_identity(var, type_name, plan.identity_field or "", plan.identity_value)
            keyword = "MERGE" if plan.kind is MutationKind.MERGE else "MATCH"
            lines = [f"{keyword} {match}"]
            if plan.kind in (MutationKind.UPDATE, MutationKind.MERGE) and plan.properties:
                props = self.scope.param("props", dict(plan.properties))
                lines.append(f"SET {var} += {props}")

        projection, manifest = self.selection.project(type_name, var, selection)
        if plan.kind is MutationKind.DELETE:
            lines += [
                f"WITH {var}, {projection} AS {RESULT_COLUMN}",
                f"DETACH DELETE {var}",
                f"RETURN {RESULT_COLUMN}",
            ]
        else:
            lines.append(f"RETURN {projection} AS {RESULT_COLUMN}")
        return lines, manifest

    def _match_identity(self, var: str, type_name: str, field_name: str, value: Any) -> str:
        param = self.scope.param(field_name, value)
        return f"({var}:{escape_name(type_name)} {{{escape_name(field_name)}: {param}}})"

    # -------------------------------------------------------------------------
    # Relationship mutations
    # -------------------------------------------------------------------------

    def _endpoint(self, type_name: str, hint: str, selector: Mapping[str, Any]) -> tuple[str, str]:
        type_decl = self.model.get_type(type_name)
        if type_decl is None:
            raise TranslationError(f"Unknown endpoint type '{type_name}'")
        identity = _identity(type_decl)
        value = selector.get(identity.name)
        if value is None:
            raise TranslationError(f"'{hint}' requires '{identity.name}' of {type_name}")
        var = self.scope.variable(hint)
        return var, f"MATCH {self._match_identity(var, type_name, identity.name, value)}"

    def _relationship(
        self, plan: MutationPlan, selection: Sequence[SelectionNode]
    ) -> tuple[list[str], Any]:
        relation = plan.relation
        assert relation is not None
        relationship = relation.relationship
        label = escape_name(relationship.label)
        arrow = "-" if relationship.direction is Direction.BOTH else "->"

        start, match_start = self._endpoint(relationship.start_type, "from", plan.from_selector)
        end, match_end = self._endpoint(relationship.end_type, "to", plan.to_selector)
        lines = [match_start, match_end]
        edge = self.scope.variable(relationship.label)
        data = dict(plan.data)
        properties = [p.name for p in relationship.properties]

        if plan.kind is MutationKind.ADD_RELATIONSHIP:
            existing = self.scope.variable("existing")
            count = self.scope.variable("existing_count")
            created = self.scope.variable("created")
            item = self.scope.variable("x")
            create = f"CREATE ({start})-[{created}:{label}]->({end})"
            if data:
                create += f" SET {created} = {self.scope.param('data', data)}"
            lines += [
                f"OPTIONAL MATCH ({start})-[{existing}:{label}]{arrow}({end})",
                f"WITH {start}, {end}, count({existing}) AS {count}",
                f"FOREACH ({item} IN CASE WHEN {count} = 0 THEN [1] ELSE [] END | {create})",
                f"WITH {start}, {end}, {count} > 0 AS duplicate",
                f"MATCH ({start})-[{edge}:{label}]{arrow}({end})",
                f"WITH {start}, {end}, {edge}, duplicate LIMIT 1",
            ]
        elif plan.kind is MutationKind.REMOVE_RELATIONSHIP:
            lines += [
                f"MATCH ({start})-[{edge}:{label}]{arrow}({end})",
                f"WITH {start}, {end}, collect({edge}) AS edges",
                "FOREACH (e IN edges | DELETE e)",
            ]
            payload, manifest = self.selection.payload(
                relationship.type_name,
                relationship.start_type,
                relationship.end_type,
                start,
                end,
                None,
                selection,
            )
            lines.append(f"RETURN {payload} AS {RESULT_COLUMN}")
            return lines, manifest
        elif plan.kind is MutationKind.UPDATE_RELATIONSHIP:
            lines += [
                f"MATCH ({start})-[{edge}:{label}]{arrow}({end})",
                f"WITH {start}, {end}, {edge} LIMIT 1",
            ]
            if data:
                lines.append(f"SET {edge} += {self.scope.param('data', data)}")
        else:
            lines.append(f"MERGE ({start})-[{edge}:{label}]{arrow}({end})")
            if data:
                lines.append(f"SET {edge} += {self.scope.param('data', data)}")

        payload, manifest = self.selection.payload(
            relationship.type_name,
            relationship.start_type,
            relationship.end_type,
            start,
            end,
            edge,
            selection,
            properties,
        )
        if plan.kind is MutationKind.ADD_RELATIONSHIP:
            payload = payload[:-1] + (", " if payload != "{}" else "") + f"{DUPLICATE_KEY}: duplicate}}"
        lines.append(f"RETURN {payload} AS {RESULT_COLUMN}")
        return lines, manifest


def compile_mutation(
    model: SchemaModel,
    plan: MutationPlan,
    selection: Sequence[SelectionNode],
) -> CompiledStatement:
    """Compile a mutation plan into one write statement."""
    return MutationCompiler(model).compile(plan, selection)
