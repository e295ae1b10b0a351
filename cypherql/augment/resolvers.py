"""
Resolver registry and resolver binding.

Generated root fields get async resolvers that compile one statement,
run it through the store found on the context, and map the rows back.
Fields of node, relationship and payload types read their value from the
projected parent map. Ignored fields call an externally registered
function with ``(parent, arguments)``.

Invariants:
    - The registry is mutable during startup, frozen once the augmented
      schema is built
    - Resolvers hold no per-request state; each call compiles afresh
"""

from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from graphql import GraphQLObjectType, GraphQLResolveInfo, GraphQLSchema

from ..errors import RegistryFrozenError, ResolverError
from ..execution import AccessMode, run_statement, store_from_context
from ..schema.model import SchemaModel
from ..schema.types import FieldDecl, FieldKind
from ..translate.mutations import (
    MutationKind,
    compile_mutation,
    plan_node_mutation,
    plan_relationship_mutation,
)
from ..translate.queries import compile_custom_field, compile_query
from ..translate.results import map_result
from ..translate.selection import selection_from_info

logger = logging.getLogger(__name__)

ResolverFn = Callable[[Any, Dict[str, Any]], Any]


class ResolverRegistry:
    """External resolvers for ignored fields, keyed by (type, field).

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free

    Example:
        >>> registry = ResolverRegistry()
        >>> @registry.resolver("Movie", "poster")
        ... def poster(movie, args):
        ...     return f"https://img.example/{movie['movieId']}.png"
        >>> registry.get("Movie", "poster") is poster
        True
    """

    def __init__(self) -> None:
        self._resolvers: Dict[Tuple[str, str], ResolverFn] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @classmethod
    def from_mapping(cls, resolvers: Mapping[str, Mapping[str, ResolverFn]]) -> ResolverRegistry:
        """Create from ``{"Type": {"field": fn}}``."""
        registry = cls()
        for type_name, fields in resolvers.items():
            for field_name, fn in fields.items():
                registry.register(type_name, field_name, fn)
        return registry

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, type_name: str, field_name: str, fn: ResolverFn) -> None:
        """Register ``fn(parent, arguments)`` for ``type_name.field_name``.

        Raises:
            RegistryFrozenError: If the registry is frozen
            ResolverError: If the field already has a resolver
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register resolver for '{type_name}.{field_name}': registry is frozen"
                )
            key = (type_name, field_name)
            if key in self._resolvers:
                raise ResolverError(f"Resolver for '{type_name}.{field_name}' already registered")
            self._resolvers[key] = fn
            logger.debug(f"Registered resolver for {type_name}.{field_name}")

    def resolver(self, type_name: str, field_name: str) -> Callable[[ResolverFn], ResolverFn]:
        """Decorator form of register()."""

        def decorator(fn: ResolverFn) -> ResolverFn:
            self.register(type_name, field_name, fn)
            return fn

        return decorator

    def get(self, type_name: str, field_name: str) -> Optional[ResolverFn]:
        return self._resolvers.get((type_name, field_name))

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._resolvers

    def __len__(self) -> int:
        return len(self._resolvers)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True


@dataclass(frozen=True)
class GeneratedField:
    """A generated root field and what its resolver does.

    Attributes:
        name: Root field name
        operation: "query" or "mutation"
        type_name: Node type queried / mutated, or owner of the
            relationship field
        kind: Mutation kind (mutations only)
        field_name: Relationship field (relationship mutations only)
    """

    name: str
    operation: str
    type_name: str
    kind: Optional[MutationKind] = None
    field_name: Optional[str] = None


# =============================================================================
# Resolver factories
# =============================================================================


def projection_resolver(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
    """Read a field from the projected parent, by response key first."""
    if parent is None:
        return None
    if isinstance(parent, Mapping):
        key = info.path.key
        if key in parent:
            return parent[key]
        return parent.get(info.field_name)
    return getattr(parent, info.field_name, None)


def make_query_resolver(model: SchemaModel, type_name: str) -> Callable[..., Any]:
    async def resolve(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        compiled = compile_query(model, type_name, args, selection_from_info(info))
        rows = await run_statement(store_from_context(info.context), compiled, type_name)
        return map_result(rows, compiled)

    return resolve


def make_mutation_resolver(model: SchemaModel, generated: GeneratedField) -> Callable[..., Any]:
    kind = generated.kind
    assert kind is not None

    async def resolve(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        if kind.is_relationship:
            plan = plan_relationship_mutation(
                model, kind, generated.type_name, generated.field_name or "", args
            )
        else:
            plan = plan_node_mutation(model, kind, generated.type_name, args)
        compiled = compile_mutation(model, plan, selection_from_info(info))
        rows = await run_statement(store_from_context(info.context), compiled, generated.type_name)
        return map_result(rows, compiled, plan)

    return resolve


def make_custom_resolver(
    model: SchemaModel, field_decl: FieldDecl, mode: AccessMode
) -> Callable[..., Any]:
    """Resolver of a root field declared with ``@cypher``."""

    async def resolve(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        compiled = compile_custom_field(model, field_decl, args, selection_from_info(info), mode)
        rows = await run_statement(store_from_context(info.context), compiled)
        return map_result(rows, compiled)

    return resolve


def make_external_resolver(
    registry: ResolverRegistry, type_name: str, field_name: str
) -> Callable[..., Any]:
    """Call the registered ``fn(parent, arguments)``, sync or async."""

    async def resolve(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        fn = registry.get(type_name, field_name)
        if fn is None:
            raise ResolverError(f"No resolver registered for '{type_name}.{field_name}'")
        result = fn(parent, args)
        if inspect.isawaitable(result):
            result = await result
        return result

    return resolve


# =============================================================================
# Binding
# =============================================================================


def bind_resolvers(
    schema: GraphQLSchema,
    model: SchemaModel,
    generated: Mapping[str, GeneratedField],
    registry: ResolverRegistry,
    payload_types: Tuple[str, ...] = (),
) -> None:
    """Attach resolvers to the fields of an executable schema.

    Called once while the augmented schema is built, before it is shared.
    """
    for operation, root_name, mode in (
        ("query", "Query", AccessMode.READ),
        ("mutation", "Mutation", AccessMode.WRITE),
    ):
        root = schema.type_map.get(root_name)
        if not isinstance(root, GraphQLObjectType):
            continue
        declared = model.get_type(root_name)
        for name, gql_field in root.fields.items():
            entry = generated.get(name)
            if entry is not None and entry.operation == operation:
                if operation == "query":
                    gql_field.resolve = make_query_resolver(model, entry.type_name)
                else:
                    gql_field.resolve = make_mutation_resolver(model, entry)
                continue
            field_decl = declared.get_field(name) if declared else None
            if field_decl is None:
                continue
            if field_decl.kind is FieldKind.COMPUTED:
                gql_field.resolve = make_custom_resolver(model, field_decl, mode)
            elif (root_name, name) in registry:
                gql_field.resolve = make_external_resolver(registry, root_name, name)
            else:
                logger.warning(f"Root field '{root_name}.{name}' has no statement or resolver")

    for type_decl in model.types:
        if not (type_decl.is_node_type or type_decl.is_relation_type):
            continue
        gql_type = schema.type_map.get(type_decl.name)
        if not isinstance(gql_type, GraphQLObjectType):
            continue
        for name, gql_field in gql_type.fields.items():
            field_decl = type_decl.get_field(name)
            if field_decl is not None and field_decl.kind is FieldKind.IGNORED:
                if (type_decl.name, name) not in registry:
                    logger.warning(f"Ignored field '{type_decl.name}.{name}' has no resolver")
                gql_field.resolve = make_external_resolver(registry, type_decl.name, name)
            else:
                gql_field.resolve = projection_resolver

    for type_name in payload_types:
        gql_type = schema.type_map.get(type_name)
        if isinstance(gql_type, GraphQLObjectType):
            for gql_field in gql_type.fields.values():
                gql_field.resolve = projection_resolver
