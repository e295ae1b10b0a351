"""
cypherql - GraphQL schema augmentation and GraphQL-to-Cypher translation.

This package turns annotated GraphQL type declarations into an
executable API over a property-graph store:
- Type declarations with @relation / @cypher / @id / @neo4j_ignore
- Generated query and mutation fields, filter / ordering inputs and
  relationship payload types
- One parameterized Cypher statement per resolved root field

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────────┐
    │ Type         │────▶│ Schema Model │────▶│ Augmentation     │
    │ declarations │     │ Builder      │     │ Engine           │
    └──────────────┘     └──────────────┘     └────────┬─────────┘
                                                       │ AugmentedSchema
                                                       ▼
    ┌──────────────┐     ┌──────────────────────────────────────────┐
    │ GraphQL      │────▶│ Selection / Filter / Order / Mutation    │
    │ request      │     │ Compilers  ->  one CompiledStatement     │
    └──────────────┘     └────────────────────┬─────────────────────┘
                                              ▼
                         ┌──────────────┐     ┌──────────────┐
                         │ StoreAccess  │────▶│ Result       │
                         │ (injected)   │     │ Mapper       │
                         └──────────────┘     └──────────────┘

Invariants:
    - The augmented schema is built once and shared read-only
    - Every root field compiles to exactly one statement
    - Operand values only reach the store as statement parameters

Example:
    >>> augmented = make_augmented_schema(type_defs)
    >>> result = await augmented.execute(
    ...     "{ Movie(movieId: \\"1\\") { title genres { name } } }",
    ...     context_value={"store": store},
    ... )
"""

from .augment import (
    AugmentationEngine,
    AugmentedSchema,
    ResolverRegistry,
    augment_type_defs,
    make_augmented_schema,
)
from .config import AugmentationConfig, OperationConfig
from .errors import (
    AugmentationConfigError,
    ConstraintViolationError,
    CypherQLError,
    DuplicateFieldError,
    DuplicateRelationshipError,
    FatalStoreError,
    InvalidFilterOperatorError,
    InvalidPaginationError,
    MutationError,
    NotFoundError,
    RegistryFrozenError,
    ResolverError,
    SchemaModelError,
    StoreError,
    TransientStoreError,
    TranslationError,
)
from .execution import AccessMode, StoreAccess
from .schema import SchemaModel, build_schema_model, load_config, load_type_defs
from .translate import CompiledStatement

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Schema
    "SchemaModel",
    "build_schema_model",
    "load_config",
    "load_type_defs",
    # Augmentation
    "AugmentationConfig",
    "AugmentationEngine",
    "AugmentedSchema",
    "OperationConfig",
    "ResolverRegistry",
    "augment_type_defs",
    "make_augmented_schema",
    # Execution
    "AccessMode",
    "CompiledStatement",
    "StoreAccess",
    # Errors
    "AugmentationConfigError",
    "ConstraintViolationError",
    "CypherQLError",
    "DuplicateFieldError",
    "DuplicateRelationshipError",
    "FatalStoreError",
    "InvalidFilterOperatorError",
    "InvalidPaginationError",
    "MutationError",
    "NotFoundError",
    "RegistryFrozenError",
    "ResolverError",
    "SchemaModelError",
    "StoreError",
    "TransientStoreError",
    "TranslationError",
]
