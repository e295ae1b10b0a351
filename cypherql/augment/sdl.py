"""
SDL generation for augmented schema elements.

Each builder returns SDL lines for one generated definition; the engine
decides which ones to emit and joins them. Generated names:

- ``_<Type>Ordering``  enum of ``<field>_asc`` / ``<field>_desc``
- ``_<Type>Filter``    filter input (operators, relationship keys, AND/OR/NOT)
- ``_<Type>Input``     identity selector of a node type, or property
                       input of a relationship type
- ``_<Mutation>Payload`` result of a relationship mutation
"""

from __future__ import annotations

from typing import Sequence

from ..schema.model import SchemaModel
from ..schema.types import ArgumentDecl, FieldDecl, FieldKind, TypeDecl, TypeRef
from ..translate.filters import operators_for, relation_operators_for

DIRECTIVE_DEFINITIONS = {
    "relation": (
        "directive @relation(name: String, direction: String = \"OUT\") "
        "on FIELD_DEFINITION | OBJECT"
    ),
    "cypher": "directive @cypher(statement: String) on FIELD_DEFINITION",
    "id": "directive @id on FIELD_DEFINITION",
    "neo4j_ignore": "directive @neo4j_ignore on FIELD_DEFINITION",
}


def ordering_name(type_name: str) -> str:
    return f"_{type_name}Ordering"


def filter_name(type_name: str) -> str:
    return f"_{type_name}Filter"


def input_name(type_name: str) -> str:
    return f"_{type_name}Input"


def payload_name(mutation_name: str) -> str:
    return f"_{mutation_name}Payload"


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def orderable_fields(type_decl: TypeDecl) -> list[FieldDecl]:
    """Non-list scalar fields, in declaration order."""
    return [f for f in type_decl.scalar_fields() if not f.is_list]


def ordering_values(type_decl: TypeDecl) -> list[str]:
    values = []
    for f in orderable_fields(type_decl):
        values.append(f"{f.name}_asc")
        values.append(f"{f.name}_desc")
    return values


def ordering_enum(type_decl: TypeDecl) -> list[str]:
    lines = [f"enum {ordering_name(type_decl.name)} {{"]
    lines.extend(f"  {value}" for value in ordering_values(type_decl))
    lines.append("}")
    return lines


def _operand_type(field_decl: FieldDecl, operator: str) -> str:
    named = field_decl.named_type
    if field_decl.is_list:
        return f"[{named}]"
    if operator in ("_in", "_not_in"):
        return f"[{named}!]"
    return named


def filter_input(model: SchemaModel, type_decl: TypeDecl) -> list[str]:
    """Filter input of a node type or a relationship type."""
    name = filter_name(type_decl.name)
    lines = [
        f"input {name} {{",
        f"  AND: [{name}!]",
        f"  OR: [{name}!]",
        f"  NOT: {name}",
    ]
    relationship = model.relationship_for_type(type_decl.name) if type_decl.is_relation_type else None
    if relationship is not None:
        lines.append(f"  from: {filter_name(relationship.start_type)}")
        lines.append(f"  to: {filter_name(relationship.end_type)}")

    for f in type_decl.fields:
        if f.kind is FieldKind.SCALAR:
            for operator in operators_for(f):
                lines.append(f"  {f.name}{operator}: {_operand_type(f, operator)}")
        elif f.kind is FieldKind.RELATIONSHIP and not type_decl.is_relation_type:
            relation = model.relation_field(type_decl.name, f.name)
            if relation is None:
                continue
            target = f.named_type if relation.is_reified else relation.target
            for operator in relation_operators_for(relation):
                lines.append(f"  {f.name}{operator}: {filter_name(target)}")
    lines.append("}")
    return lines


def selector_input(type_decl: TypeDecl) -> list[str]:
    """``_<Type>Input`` holding the identity field of a node type."""
    identity = type_decl.identity_field
    assert identity is not None
    return [
        f"input {input_name(type_decl.name)} {{",
        f"  {identity.name}: {TypeRef.non_null(identity.type_ref.nullable()).to_sdl()}",
        "}",
    ]


def properties_input(type_name: str, properties: Sequence[FieldDecl]) -> list[str]:
    """``_<RelType>Input`` with the relationship's property fields."""
    lines = [f"input {input_name(type_name)} {{"]
    lines.extend(f"  {p.name}: {p.type_ref.nullable().to_sdl()}" for p in properties)
    lines.append("}")
    return lines


def payload_type(
    mutation_name: str,
    start_type: str,
    end_type: str,
    properties: Sequence[FieldDecl] = (),
) -> list[str]:
    lines = [
        f"type {payload_name(mutation_name)} {{",
        f"  from: {start_type}",
        f"  to: {end_type}",
    ]
    lines.extend(f"  {p.name}: {p.type_ref.nullable().to_sdl()}" for p in properties)
    lines.append("}")
    return lines


def argument(name: str, type_sdl: str) -> ArgumentDecl:
    return ArgumentDecl(name, TypeRef.parse(type_sdl))
