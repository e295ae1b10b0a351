"""
Schema model for cypherql.

The SchemaModel is the builder's output and the single source of truth
for both compilers. It provides:
- Lookup of declared types by name
- Resolution of relationship fields to RelationshipModels
- Schema fingerprinting for consistency checks
- SDL printing of the merged declarations

Invariants:
    - The model is immutable once constructed
    - Type names are unique
    - Fingerprint changes when the declarations change

How to change safely:
    - Rebuild the model from declarations; never patch a built model
    - Keep to_dict() canonical (sorted keys) so fingerprints stay stable
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

from .types import (
    BUILTIN_SCALARS,
    FieldDecl,
    RelationField,
    RelationshipModel,
    TypeDecl,
    TypeKind,
)


@dataclass(frozen=True)
class SchemaModel:
    """Immutable set of merged type declarations and their relationships.

    Thread-safety:
        - The model is never mutated after construction; concurrent
          reads need no synchronization

    Attributes:
        types: Declared types in declaration order
        relationships: Relationship models derived from the declarations
        relation_fields: Per declaring field views of the relationships
        directive_definitions: (name, SDL) of directives the caller declared
        fingerprint: SHA-256 hash of the canonical model

    Example:
        >>> model = build_schema_model(type_defs)
        >>> model.get_type("Movie").identity_field.name
        'movieId'
        >>> model.relation_field("Movie", "genres").label
        'IN_GENRE'
    """

    types: tuple[TypeDecl, ...]
    relationships: tuple[RelationshipModel, ...] = ()
    relation_fields: tuple[RelationField, ...] = ()
    directive_definitions: tuple[tuple[str, str], ...] = ()
    fingerprint: str = field(default="", init=False)
    _types_by_name: Mapping[str, TypeDecl] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _relation_index: Mapping[tuple[str, str], RelationField] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        by_name = {t.name: t for t in self.types}
        index = {(rf.owner, rf.field.name): rf for rf in self.relation_fields}
        object.__setattr__(self, "_types_by_name", MappingProxyType(by_name))
        object.__setattr__(self, "_relation_index", MappingProxyType(index))
        object.__setattr__(self, "fingerprint", self._compute_fingerprint())

    def get_type(self, name: str) -> Optional[TypeDecl]:
        return self._types_by_name.get(name)

    def has_type(self, name: str) -> bool:
        return name in self._types_by_name

    def node_types(self) -> Iterator[TypeDecl]:
        """Iterate over object types that map to graph nodes."""
        for t in self.types:
            if t.is_node_type:
                yield t

    def relation_types(self) -> Iterator[TypeDecl]:
        """Iterate over reified relationship types."""
        for t in self.types:
            if t.is_relation_type:
                yield t

    def identity_field(self, type_name: str) -> Optional[FieldDecl]:
        type_decl = self.get_type(type_name)
        return type_decl.identity_field if type_decl else None

    def relation_field(self, type_name: str, field_name: str) -> Optional[RelationField]:
        return self._relation_index.get((type_name, field_name))

    def relation_fields_of(self, type_name: str) -> list[RelationField]:
        return [rf for rf in self.relation_fields if rf.owner == type_name]

    def relationship_for_type(self, type_name: str) -> Optional[RelationshipModel]:
        """The model backing a reified relationship type."""
        for rel in self.relationships:
            if rel.type_name == type_name:
                return rel
        return None

    def declares_directive(self, name: str) -> bool:
        return any(n == name for n, _ in self.directive_definitions)

    def is_enum(self, name: str) -> bool:
        type_decl = self.get_type(name)
        return type_decl is not None and type_decl.kind is TypeKind.ENUM

    def is_leaf_type(self, name: str) -> bool:
        """Builtin scalars, declared scalars and enums."""
        if name in BUILTIN_SCALARS:
            return True
        type_decl = self.get_type(name)
        return type_decl is not None and type_decl.kind in (TypeKind.SCALAR, TypeKind.ENUM)

    def to_sdl(self) -> str:
        """Render every declaration (extensions merged) as SDL."""
        return "\n\n".join(t.to_sdl() for t in self.types)

    def to_dict(self) -> dict[str, Any]:
        """Canonical dictionary representation, sorted by name."""
        return {
            "types": [
                _type_to_dict(self._types_by_name[name])
                for name in sorted(self._types_by_name)
            ],
            "relationships": sorted(
                (
                    {
                        "label": r.label,
                        "start_type": r.start_type,
                        "end_type": r.end_type,
                        "direction": r.direction.value,
                        "properties": [p.name for p in r.properties],
                        "type_name": r.type_name,
                    }
                    for r in self.relationships
                ),
                key=lambda d: (d["label"], d["start_type"], d["end_type"]),
            ),
        }

    def _compute_fingerprint(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"


def _type_to_dict(type_decl: TypeDecl) -> dict[str, Any]:
    result: dict[str, Any] = {"name": type_decl.name, "kind": type_decl.kind.value}
    if type_decl.fields:
        result["fields"] = [
            {
                "name": f.name,
                "type": f.type_ref.to_sdl(),
                "kind": f.kind.value,
                "relation": f.relation_name,
                "direction": f.direction.value if f.direction else None,
                "statement": f.statement,
                "identity": f.is_identity,
            }
            for f in type_decl.fields
        ]
    if type_decl.interfaces:
        result["interfaces"] = list(type_decl.interfaces)
    if type_decl.members:
        result["members"] = list(type_decl.members)
    if type_decl.enum_values:
        result["enum_values"] = [v.name for v in type_decl.enum_values]
    if type_decl.relation_name:
        result["relation_name"] = type_decl.relation_name
    return result
