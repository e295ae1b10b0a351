"""
Schema module for cypherql.

This module turns GraphQL type declarations into the directive-free
model both compilers read:
- Type definitions (TypeDecl, FieldDecl, TypeRef, RelationshipModel)
- The immutable SchemaModel and its builder
- Loading of SDL files and augmentation config documents

Invariants:
    - A SchemaModel is built once and never mutated
    - Extensions are merged into their base declaration, never duplicated
    - Every node-type field resolves to exactly one FieldKind
"""

from .builder import SchemaModelBuilder, build_schema_model, extract_placeholders
from .loader import find_sdl_files, load_config, load_type_defs, parse_config
from .model import SchemaModel
from .types import (
    ArgumentDecl,
    Direction,
    DirectiveUse,
    FieldDecl,
    FieldKind,
    RelationField,
    RelationshipModel,
    TypeDecl,
    TypeKind,
    TypeRef,
)

__all__ = [
    # Types
    "ArgumentDecl",
    "Direction",
    "DirectiveUse",
    "FieldDecl",
    "FieldKind",
    "RelationField",
    "RelationshipModel",
    "TypeDecl",
    "TypeKind",
    "TypeRef",
    # Model
    "SchemaModel",
    "SchemaModelBuilder",
    "build_schema_model",
    "extract_placeholders",
    # Loading
    "find_sdl_files",
    "load_config",
    "load_type_defs",
    "parse_config",
]
