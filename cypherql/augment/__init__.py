"""
Schema augmentation for cypherql.

Builds the executable schema from a SchemaModel:
- engine: generated query / mutation fields and the AugmentedSchema
- sdl: SDL of generated enums, inputs and payload types
- resolvers: resolver registry and resolver binding
"""

from .engine import (
    AugmentationEngine,
    AugmentedSchema,
    augment_type_defs,
    make_augmented_schema,
)
from .resolvers import GeneratedField, ResolverRegistry, projection_resolver

__all__ = [
    "AugmentationEngine",
    "AugmentedSchema",
    "GeneratedField",
    "ResolverRegistry",
    "augment_type_defs",
    "make_augmented_schema",
    "projection_resolver",
]
