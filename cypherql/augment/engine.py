"""
Augmentation Engine.

Consumes a SchemaModel and an AugmentationConfig and produces the
AugmentedSchema: the caller's declarations plus generated query fields,
mutation fields, ordering enums, filter inputs, selector / property
inputs and relationship payload types, compiled into an executable
graphql-core schema with resolvers bound.

Merge rule:
    A generated root field or type whose name the caller already
    declared is not generated; the caller's definition wins and gets no
    generated resolver (root ``@cypher`` fields get the computed-statement
    resolver instead).

Invariants:
    - Built once per declaration set and configuration; immutable after
    - Rebuilding requires re-running the whole pass

How to change safely:
    - Keep generated names stable; clients depend on them
    - New generated arguments must be optional
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Union

from graphql import ExecutionResult, GraphQLSchema, build_ast_schema, graphql, parse

from ..config import AugmentationConfig
from ..schema.builder import TypeDefs, build_schema_model
from ..schema.model import SchemaModel
from ..schema.types import ArgumentDecl, FieldDecl, FieldKind, TypeDecl, TypeKind, TypeRef
from ..translate.mutations import MutationKind
from . import sdl
from .resolvers import GeneratedField, ResolverFn, ResolverRegistry, bind_resolvers

logger = logging.getLogger(__name__)

NODE_MUTATIONS = (
    MutationKind.CREATE,
    MutationKind.UPDATE,
    MutationKind.DELETE,
    MutationKind.MERGE,
)

# (name prefix, kind) of relationship mutations
RELATIONSHIP_MUTATIONS = (
    ("Add", MutationKind.ADD_RELATIONSHIP),
    ("Remove", MutationKind.REMOVE_RELATIONSHIP),
    ("Update", MutationKind.UPDATE_RELATIONSHIP),
    ("Merge", MutationKind.MERGE_RELATIONSHIP),
)


@dataclass(frozen=True)
class AugmentedSchema:
    """The executable schema shared read-only by all requests.

    Attributes:
        model: Schema model of the caller's declarations
        config: Configuration the schema was built with
        sdl: Augmented SDL text
        schema: Executable graphql-core schema, resolvers bound
        query_fields: Names of generated query fields
        mutation_fields: Names of generated mutation fields
        registry: External resolvers for ignored fields

    Example:
        >>> augmented = make_augmented_schema(type_defs)
        >>> result = await augmented.execute(
        ...     "{ Movie(title: \\"X\\") { title } }", context_value={"store": store}
        ... )
    """

    model: SchemaModel
    config: AugmentationConfig
    sdl: str
    schema: GraphQLSchema
    query_fields: frozenset[str]
    mutation_fields: frozenset[str]
    registry: ResolverRegistry

    @property
    def fingerprint(self) -> str:
        return self.model.fingerprint

    async def execute(
        self,
        source: str,
        context_value: Any = None,
        variable_values: Optional[dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> ExecutionResult:
        """Run a GraphQL request against the augmented schema."""
        return await graphql(
            self.schema,
            source,
            context_value=context_value,
            variable_values=variable_values,
            operation_name=operation_name,
        )


class AugmentationEngine:
    """Builds an AugmentedSchema from a SchemaModel.

    Example:
        >>> engine = AugmentationEngine(model, AugmentationConfig.from_dict(
        ...     {"mutation": {"exclude": ["Genre"]}}))
        >>> "CreateGenre" in engine.build().mutation_fields
        False
    """

    def __init__(
        self,
        model: SchemaModel,
        config: Optional[AugmentationConfig] = None,
        registry: Optional[ResolverRegistry] = None,
    ) -> None:
        self.model = model
        self.config = config or AugmentationConfig()
        self.registry = registry or ResolverRegistry()
        self._declared = {t.name for t in model.types}

    def build(self) -> AugmentedSchema:
        """
        Raises:
            AugmentationConfigError: In strict mode, if an exclusion names
                an undeclared type
        """
        self.config.check_exclusions(self._declared)
        text, generated, payloads = self.render()
        schema = build_ast_schema(parse(text))
        bind_resolvers(schema, self.model, generated, self.registry, payloads)
        self.registry.freeze()

        query_fields = frozenset(n for n, g in generated.items() if g.operation == "query")
        mutation_fields = frozenset(n for n, g in generated.items() if g.operation == "mutation")
        logger.info(
            f"Augmented schema with {len(query_fields)} query and "
            f"{len(mutation_fields)} mutation fields"
        )
        return AugmentedSchema(
            model=self.model,
            config=self.config,
            sdl=text,
            schema=schema,
            query_fields=query_fields,
            mutation_fields=mutation_fields,
            registry=self.registry,
        )

    # -------------------------------------------------------------------------
    # SDL rendering
    # -------------------------------------------------------------------------

    def render(self) -> tuple[str, dict[str, GeneratedField], tuple[str, ...]]:
        """Render augmented SDL.

        Returns:
            Tuple of (SDL text, generated root fields by name, generated
            payload type names)
        """
        blocks: list[list[str]] = []
        generated: dict[str, GeneratedField] = {}
        payloads: list[str] = []

        for name, definition in sdl.DIRECTIVE_DEFINITIONS.items():
            if not self.model.declares_directive(name):
                blocks.append([definition])
        for _, definition in self.model.directive_definitions:
            blocks.append([definition])

        for type_decl in self.model.types:
            if type_decl.name in ("Query", "Mutation"):
                continue
            if type_decl.is_node_type:
                blocks.append(self._with_nested_arguments(type_decl).to_sdl().splitlines())
            else:
                blocks.append(type_decl.to_sdl().splitlines())

        for type_decl in self.model.node_types():
            if sdl.ordering_values(type_decl):
                self._add_type(blocks, sdl.ordering_name(type_decl.name), sdl.ordering_enum(type_decl))
            self._add_type(blocks, sdl.filter_name(type_decl.name), sdl.filter_input(self.model, type_decl))
            if type_decl.identity_field is not None:
                self._add_type(blocks, sdl.input_name(type_decl.name), sdl.selector_input(type_decl))

        for type_decl in self.model.relation_types():
            relationship = self.model.relationship_for_type(type_decl.name)
            self._add_type(blocks, sdl.filter_name(type_decl.name), sdl.filter_input(self.model, type_decl))
            if relationship is not None and relationship.has_properties:
                self._add_type(blocks, sdl.ordering_name(type_decl.name), sdl.ordering_enum(type_decl))
                self._add_type(
                    blocks,
                    sdl.input_name(type_decl.name),
                    sdl.properties_input(type_decl.name, relationship.properties),
                )

        query_fields = self._query_fields(generated)
        mutation_fields = self._mutation_fields(generated, blocks, payloads)

        for root_name, fields in (("Query", query_fields), ("Mutation", mutation_fields)):
            declared = self.model.get_type(root_name)
            if declared is None and not fields:
                continue
            base = declared or TypeDecl(name=root_name, kind=TypeKind.OBJECT)
            blocks.append(replace(base, fields=base.fields + tuple(fields)).to_sdl().splitlines())

        return "\n\n".join("\n".join(block) for block in blocks) + "\n", generated, tuple(payloads)

    def _add_type(self, blocks: list[list[str]], name: str, lines: list[str]) -> bool:
        if name in self._declared:
            logger.debug(f"Keeping declared type '{name}' instead of generating it")
            return False
        blocks.append(lines)
        return True

    def _root_declares(self, root_name: str, field_name: str) -> bool:
        declared = self.model.get_type(root_name)
        return declared is not None and declared.get_field(field_name) is not None

    def _with_nested_arguments(self, type_decl: TypeDecl) -> TypeDecl:
        """Add first/offset/orderBy/filter to relationship and computed fields."""
        fields = []
        for f in type_decl.fields:
            extra: list[ArgumentDecl] = []
            if f.kind is FieldKind.RELATIONSHIP:
                relation = self.model.relation_field(type_decl.name, f.name)
                if relation is not None:
                    target_name = f.named_type if relation.is_reified else relation.target
                    target = self.model.get_type(target_name)
                    if f.is_list:
                        extra += [sdl.argument("first", "Int"), sdl.argument("offset", "Int")]
                        if target is not None and sdl.ordering_values(target):
                            extra.append(
                                sdl.argument("orderBy", f"[{sdl.ordering_name(target_name)}]")
                            )
                    extra.append(sdl.argument("filter", sdl.filter_name(target_name)))
            elif f.kind is FieldKind.COMPUTED and f.is_list:
                target = self.model.get_type(f.named_type)
                if target is not None and target.is_node_type:
                    extra += [sdl.argument("first", "Int"), sdl.argument("offset", "Int")]
            missing = tuple(a for a in extra if f.get_argument(a.name) is None)
            fields.append(replace(f, arguments=f.arguments + missing) if missing else f)
        return replace(type_decl, fields=tuple(fields))

    # -------------------------------------------------------------------------
    # Generated root fields
    # -------------------------------------------------------------------------

    def _query_fields(self, generated: dict[str, GeneratedField]) -> list[FieldDecl]:
        fields = []
        for type_decl in self.model.node_types():
            name = type_decl.name
            if not self.config.query.includes(name) or self._root_declares("Query", name):
                continue
            arguments = [
                ArgumentDecl(f.name, f.type_ref.nullable()) for f in type_decl.scalar_fields()
            ]
            arguments += [sdl.argument("first", "Int"), sdl.argument("offset", "Int")]
            if sdl.ordering_values(type_decl):
                arguments.append(sdl.argument("orderBy", f"[{sdl.ordering_name(name)}]"))
            arguments.append(sdl.argument("filter", sdl.filter_name(name)))
            fields.append(FieldDecl(name, TypeRef.parse(f"[{name}]"), arguments=tuple(arguments)))
            generated[name] = GeneratedField(name=name, operation="query", type_name=name)
        return fields

    def _mutation_fields(
        self,
        generated: dict[str, GeneratedField],
        blocks: list[list[str]],
        payloads: list[str],
    ) -> list[FieldDecl]:
        fields: list[FieldDecl] = []

        for type_decl in self.model.node_types():
            if not self.config.mutation.includes(type_decl.name):
                continue
            identity = type_decl.identity_field
            if identity is None:
                continue
            for kind in NODE_MUTATIONS:
                arguments = _node_mutation_arguments(type_decl, identity, kind)
                if arguments is None:
                    continue
                name = f"{kind.value}{type_decl.name}"
                if self._root_declares("Mutation", name):
                    continue
                fields.append(FieldDecl(name, TypeRef.named(type_decl.name), arguments=arguments))
                generated[name] = GeneratedField(
                    name=name, operation="mutation", type_name=type_decl.name, kind=kind
                )

        for relation in self.model.relation_fields:
            relationship = relation.relationship
            start = self.model.get_type(relationship.start_type)
            end = self.model.get_type(relationship.end_type)
            if start is None or end is None:
                continue
            if not (
                self.config.mutation.includes(start.name)
                and self.config.mutation.includes(end.name)
            ):
                continue
            if start.identity_field is None or end.identity_field is None:
                continue
            data_type = sdl.input_name(relationship.type_name or "")
            for prefix, kind in RELATIONSHIP_MUTATIONS:
                if kind is MutationKind.UPDATE_RELATIONSHIP and not relationship.has_properties:
                    continue
                name = f"{prefix}{relation.owner}{sdl.capitalize(relation.field.name)}"
                if self._root_declares("Mutation", name):
                    continue
                arguments = [
                    sdl.argument("from", f"{sdl.input_name(start.name)}!"),
                    sdl.argument("to", f"{sdl.input_name(end.name)}!"),
                ]
                if relationship.has_properties and kind is not MutationKind.REMOVE_RELATIONSHIP:
                    required = "!" if kind is MutationKind.UPDATE_RELATIONSHIP else ""
                    arguments.append(sdl.argument("data", f"{data_type}{required}"))
                properties = () if kind is MutationKind.REMOVE_RELATIONSHIP else relationship.properties
                payload = sdl.payload_name(name)
                if self._add_type(
                    blocks, payload, sdl.payload_type(name, start.name, end.name, properties)
                ):
                    payloads.append(payload)
                fields.append(
                    FieldDecl(name, TypeRef.named(payload), arguments=tuple(arguments))
                )
                generated[name] = GeneratedField(
                    name=name,
                    operation="mutation",
                    type_name=relation.owner,
                    kind=kind,
                    field_name=relation.field.name,
                )
        return fields


def _node_mutation_arguments(
    type_decl: TypeDecl, identity: FieldDecl, kind: MutationKind
) -> Optional[tuple[ArgumentDecl, ...]]:
    """Arguments of a node mutation, or None if it is not generated."""
    identity_required = TypeRef.non_null(identity.type_ref.nullable())
    identity_defaulted = identity.named_type == "ID"
    others = [f for f in type_decl.scalar_fields() if f is not identity]

    if kind is MutationKind.CREATE:
        identity_type = identity.type_ref.nullable() if identity_defaulted else identity_required
        return (ArgumentDecl(identity.name, identity_type),) + tuple(
            ArgumentDecl(f.name, f.type_ref) for f in others
        )
    if kind is MutationKind.UPDATE:
        if not others:
            return None
        return (ArgumentDecl(identity.name, identity_required),) + tuple(
            ArgumentDecl(f.name, f.type_ref.nullable()) for f in others
        )
    if kind is MutationKind.DELETE:
        return (ArgumentDecl(identity.name, identity_required),)
    return (ArgumentDecl(identity.name, identity_required),) + tuple(
        ArgumentDecl(f.name, f.type_ref.nullable()) for f in others
    )


def augment_type_defs(
    type_defs: TypeDefs,
    config: Union[AugmentationConfig, Mapping[str, Any], None] = None,
) -> str:
    """Return the augmented SDL of ``type_defs`` without building resolvers."""
    model = build_schema_model(type_defs)
    text, _, _ = AugmentationEngine(model, _as_config(config)).render()
    return text


def make_augmented_schema(
    type_defs: TypeDefs,
    config: Union[AugmentationConfig, Mapping[str, Any], None] = None,
    resolvers: Union[ResolverRegistry, Mapping[str, Mapping[str, ResolverFn]], None] = None,
) -> AugmentedSchema:
    """Build the executable, augmented schema for ``type_defs``.

    Args:
        type_defs: SDL string, DocumentNode, or a sequence of either
        config: AugmentationConfig or its ``{query, mutation}`` mapping
        resolvers: External resolvers for ignored fields

    Raises:
        SchemaModelError: If the declarations are malformed
        AugmentationConfigError: If the configuration is invalid
    """
    model = build_schema_model(type_defs)
    if resolvers is None or isinstance(resolvers, ResolverRegistry):
        registry = resolvers
    else:
        registry = ResolverRegistry.from_mapping(resolvers)
    return AugmentationEngine(model, _as_config(config), registry).build()


def _as_config(config: Union[AugmentationConfig, Mapping[str, Any], None]) -> AugmentationConfig:
    if config is None:
        return AugmentationConfig()
    if isinstance(config, AugmentationConfig):
        return config
    return AugmentationConfig.from_dict(config)
