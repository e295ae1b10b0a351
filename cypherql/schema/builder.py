"""
Schema Model Builder.

Turns GraphQL type declarations (SDL text or graphql-core documents,
including ``extend`` forms) into an immutable SchemaModel:
- Merges every extension into its base declaration
- Interprets @relation, @cypher, @id and @neo4j_ignore into FieldKinds
- Pairs relationship fields into RelationshipModels
- Chooses a default identity field per node type

Invariants:
    - The returned model contains no unresolved extension
    - Every node-type field has exactly one FieldKind
    - Build errors are raised as SchemaModelError before any model exists

How to change safely:
    - New directives must map onto the closed FieldKind variant
    - Keep error messages naming the type and field involved
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Sequence, Union

from graphql import (
    DirectiveDefinitionNode,
    DirectiveNode,
    DocumentNode,
    EnumTypeDefinitionNode,
    EnumTypeExtensionNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InputValueDefinitionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    ListTypeNode,
    NamedTypeNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    ScalarTypeExtensionNode,
    SchemaDefinitionNode,
    SchemaExtensionNode,
    TypeNode,
    UnionTypeDefinitionNode,
    UnionTypeExtensionNode,
    parse,
    print_ast,
    value_from_ast_untyped,
)

from ..errors import DuplicateFieldError, SchemaModelError
from .model import SchemaModel
from .types import (
    BUILTIN_SCALARS,
    ROOT_TYPE_NAMES,
    ArgumentDecl,
    Direction,
    DirectiveUse,
    EnumValueDecl,
    FieldDecl,
    FieldKind,
    RelationField,
    RelationshipModel,
    TypeDecl,
    TypeKind,
    TypeRef,
)

logger = logging.getLogger(__name__)

TypeDefs = Union[str, DocumentNode, Sequence[Union[str, DocumentNode]]]

RELATION_DIRECTIVE = "relation"
CYPHER_DIRECTIVE = "cypher"
ID_DIRECTIVE = "id"
IGNORE_DIRECTIVE = "neo4j_ignore"

# Placeholders a computed statement may use besides the field's own arguments
IMPLICIT_PLACEHOLDERS = ("this", "first", "offset")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

_DEFINITION_KINDS = {
    ObjectTypeDefinitionNode: TypeKind.OBJECT,
    InterfaceTypeDefinitionNode: TypeKind.INTERFACE,
    UnionTypeDefinitionNode: TypeKind.UNION,
    EnumTypeDefinitionNode: TypeKind.ENUM,
    InputObjectTypeDefinitionNode: TypeKind.INPUT,
    ScalarTypeDefinitionNode: TypeKind.SCALAR,
}

_EXTENSION_KINDS = {
    ObjectTypeExtensionNode: TypeKind.OBJECT,
    InterfaceTypeExtensionNode: TypeKind.INTERFACE,
    UnionTypeExtensionNode: TypeKind.UNION,
    EnumTypeExtensionNode: TypeKind.ENUM,
    InputObjectTypeExtensionNode: TypeKind.INPUT,
    ScalarTypeExtensionNode: TypeKind.SCALAR,
}


def extract_placeholders(statement: str) -> tuple[str, ...]:
    """Return the distinct ``{name}`` placeholders of a statement, in order.

    Example:
        >>> extract_placeholders("MATCH (m) RETURN m LIMIT {first}")
        ('first',)
    """
    seen: list[str] = []
    for name in _PLACEHOLDER_RE.findall(statement):
        if name not in seen:
            seen.append(name)
    return tuple(seen)


@dataclass
class _TypeDraft:
    """Mutable accumulator for a type while extensions are merged."""

    name: str
    kind: TypeKind
    fields: list[Any] = field(default_factory=list)
    directives: list[DirectiveNode] = field(default_factory=list)
    interfaces: list[str] = field(default_factory=list)
    members: list[str] = field(default_factory=list)
    enum_values: list[Any] = field(default_factory=list)
    description: str = ""

    def absorb(self, node: Any) -> None:
        """Append the fields, directives and memberships of ``node``."""
        for f in getattr(node, "fields", None) or ():
            if any(existing.name.value == f.name.value for existing in self.fields):
                raise DuplicateFieldError(self.name, f.name.value)
            self.fields.append(f)
        for value in getattr(node, "values", None) or ():
            if any(existing.name.value == value.name.value for existing in self.enum_values):
                raise DuplicateFieldError(self.name, value.name.value)
            self.enum_values.append(value)
        self.directives.extend(getattr(node, "directives", None) or ())
        for interface in getattr(node, "interfaces", None) or ():
            if interface.name.value not in self.interfaces:
                self.interfaces.append(interface.name.value)
        for member in getattr(node, "types", None) or ():
            if member.name.value not in self.members:
                self.members.append(member.name.value)


class SchemaModelBuilder:
    """Builds a SchemaModel from type declarations.

    Example:
        >>> builder = SchemaModelBuilder()
        >>> model = builder.build('''
        ...     type Movie { movieId: ID! title: String
        ...       genres: [Genre] @relation(name: "IN_GENRE", direction: "OUT") }
        ...     type Genre { name: String
        ...       movies: [Movie] @relation(name: "IN_GENRE", direction: "IN") }
        ... ''')
        >>> len(model.relationships)
        1
    """

    def build(self, type_defs: TypeDefs) -> SchemaModel:
        document = _as_document(type_defs)
        drafts, directive_definitions = self._collect(document)

        types = tuple(self._finalize(draft, drafts) for draft in drafts.values())
        relationships, relation_fields = _resolve_relationships(types)

        model = SchemaModel(
            types=types,
            relationships=relationships,
            relation_fields=relation_fields,
            directive_definitions=tuple(directive_definitions.items()),
        )
        logger.info(
            f"Built schema model with {len(types)} types, "
            f"{len(relationships)} relationships, fingerprint={model.fingerprint}"
        )
        return model

    # -------------------------------------------------------------------------
    # Collection and extension merging
    # -------------------------------------------------------------------------

    def _collect(
        self, document: DocumentNode
    ) -> tuple[dict[str, _TypeDraft], dict[str, str]]:
        drafts: dict[str, _TypeDraft] = {}
        directive_definitions: dict[str, str] = {}
        extensions: list[Any] = []

        for definition in document.definitions:
            kind = _DEFINITION_KINDS.get(type(definition))
            if kind is not None:
                name = definition.name.value
                if name in drafts:
                    raise SchemaModelError(
                        f"Type '{name}' is declared more than once; use 'extend' to add to it",
                        type_name=name,
                    )
                draft = _TypeDraft(
                    name=name,
                    kind=kind,
                    description=definition.description.value if definition.description else "",
                )
                draft.absorb(definition)
                drafts[name] = draft
            elif type(definition) in _EXTENSION_KINDS:
                extensions.append(definition)
            elif isinstance(definition, DirectiveDefinitionNode):
                directive_definitions[definition.name.value] = print_ast(definition)
            elif isinstance(definition, (SchemaDefinitionNode, SchemaExtensionNode)):
                _check_root_operation_names(definition)
            else:
                logger.warning(f"Ignoring unsupported definition {type(definition).__name__}")

        for extension in extensions:
            kind = _EXTENSION_KINDS[type(extension)]
            name = extension.name.value
            draft = drafts.get(name)
            if draft is None:
                if kind is TypeKind.OBJECT and name in ROOT_TYPE_NAMES:
                    draft = drafts[name] = _TypeDraft(name=name, kind=kind)
                else:
                    raise SchemaModelError(
                        f"Cannot extend undeclared type '{name}'", type_name=name
                    )
            if draft.kind is not kind:
                raise SchemaModelError(
                    f"Cannot extend {draft.kind.value} '{name}' with a {kind.value} extension",
                    type_name=name,
                )
            draft.absorb(extension)

        return drafts, directive_definitions

    # -------------------------------------------------------------------------
    # Directive interpretation
    # -------------------------------------------------------------------------

    def _finalize(self, draft: _TypeDraft, drafts: dict[str, _TypeDraft]) -> TypeDecl:
        directives = tuple(_directive_use(d) for d in draft.directives)
        relation_name = None
        type_relation = _find(directives, RELATION_DIRECTIVE)
        if type_relation is not None:
            if draft.kind is not TypeKind.OBJECT:
                raise SchemaModelError(
                    f"@relation on type '{draft.name}' requires an object type",
                    type_name=draft.name,
                )
            relation_name = type_relation.get("name") or draft.name

        if draft.kind is TypeKind.INPUT:
            fields = tuple(_input_field(draft.name, node) for node in draft.fields)
        else:
            fields = tuple(
                self._field(draft, node, drafts, relation_name) for node in draft.fields
            )

        type_decl = TypeDecl(
            name=draft.name,
            kind=draft.kind,
            fields=fields,
            directives=directives,
            interfaces=tuple(draft.interfaces),
            members=tuple(draft.members),
            enum_values=tuple(
                EnumValueDecl(
                    name=v.name.value,
                    directives=tuple(_directive_use(d) for d in v.directives or ()),
                    description=v.description.value if v.description else "",
                )
                for v in draft.enum_values
            ),
            description=draft.description,
            relation_name=relation_name,
        )
        if type_decl.is_node_type and type_decl.identity_field is None:
            type_decl = _with_default_identity(type_decl)
        return type_decl

    def _field(
        self,
        draft: _TypeDraft,
        node: FieldDefinitionNode,
        drafts: dict[str, _TypeDraft],
        type_relation: str | None,
    ) -> FieldDecl:
        type_name = draft.name
        name = node.name.value
        type_ref = _type_ref(node.type)
        named = type_ref.named_type
        target = drafts.get(named)
        if named not in BUILTIN_SCALARS and target is None:
            raise SchemaModelError(
                f"Field '{type_name}.{name}' references unknown type '{named}'",
                type_name=type_name,
                field_name=name,
            )
        is_leaf = named in BUILTIN_SCALARS or target.kind in (TypeKind.SCALAR, TypeKind.ENUM)

        directives = tuple(_directive_use(d) for d in node.directives or ())
        relation = _find(directives, RELATION_DIRECTIVE)
        cypher = _find(directives, CYPHER_DIRECTIVE)
        ignored = _find(directives, IGNORE_DIRECTIVE) is not None
        identity = _find(directives, ID_DIRECTIVE) is not None
        arguments = tuple(_argument(a) for a in node.arguments or ())

        def fail(message: str) -> SchemaModelError:
            return SchemaModelError(
                f"Field '{type_name}.{name}': {message}", type_name=type_name, field_name=name
            )

        base = dict(
            name=name,
            type_ref=type_ref,
            arguments=arguments,
            directives=directives,
            description=node.description.value if node.description else "",
        )

        if relation is not None and cypher is not None:
            raise fail("@relation and @cypher cannot be combined")
        if ignored and (relation is not None or cypher is not None):
            raise fail("@neo4j_ignore cannot be combined with @relation or @cypher")
        if identity and (not is_leaf or type_ref.is_list):
            raise fail("@id requires a non-list scalar field")
        if identity and (relation is not None or cypher is not None or ignored):
            raise fail("@id cannot be combined with @relation, @cypher or @neo4j_ignore")

        if ignored:
            return FieldDecl(**base, kind=FieldKind.IGNORED)

        if cypher is not None:
            statement = cypher.get("statement")
            if not isinstance(statement, str) or not statement.strip():
                raise fail("@cypher requires a non-empty 'statement' argument")
            placeholders = extract_placeholders(statement)
            known = {a.name for a in arguments} | set(IMPLICIT_PLACEHOLDERS)
            unknown = [p for p in placeholders if p not in known]
            if unknown:
                raise fail(f"statement uses undeclared placeholders {unknown}")
            return FieldDecl(
                **base,
                kind=FieldKind.COMPUTED,
                statement=statement,
                placeholders=placeholders,
            )

        if type_name in ROOT_TYPE_NAMES:
            # Root fields without a statement belong to the caller.
            return FieldDecl(**base, kind=FieldKind.IGNORED)

        if type_relation is not None and name in ("from", "to"):
            if is_leaf or target.kind is not TypeKind.OBJECT:
                raise fail("relationship endpoints must be object types")
            return FieldDecl(**base, kind=FieldKind.RELATIONSHIP, relation_name=type_relation)

        if relation is not None:
            if is_leaf:
                raise fail(f"@relation is not supported on {named} fields")
            if draft.kind is TypeKind.OBJECT and type_relation is not None:
                raise fail("relationship types cannot declare relationship fields")
            label = relation.get("name")
            if not isinstance(label, str) or not label:
                raise fail("@relation requires a 'name' argument")
            if target.kind is TypeKind.OBJECT and _find(
                tuple(_directive_use(d) for d in target.directives), RELATION_DIRECTIVE
            ):
                raise fail(f"'{named}' is a relationship type; drop @relation on the field")
            try:
                direction = Direction.from_str(relation.get("direction") or "OUT")
            except ValueError as e:
                raise fail(str(e)) from e
            return FieldDecl(
                **base,
                kind=FieldKind.RELATIONSHIP,
                relation_name=label,
                direction=direction,
            )

        if is_leaf:
            return FieldDecl(**base, kind=FieldKind.SCALAR, is_identity=identity)

        if draft.kind is TypeKind.INTERFACE:
            return FieldDecl(**base, kind=FieldKind.IGNORED)

        target_relation = _find(
            tuple(_directive_use(d) for d in target.directives), RELATION_DIRECTIVE
        )
        if target.kind is TypeKind.OBJECT and target_relation is not None:
            return FieldDecl(
                **base,
                kind=FieldKind.RELATIONSHIP,
                relation_name=target_relation.get("name") or named,
            )
        if type_relation is not None:
            raise fail("relationship property fields must be scalars")
        raise fail(f"object field of type '{named}' needs @relation, @cypher or @neo4j_ignore")


# =============================================================================
# Relationship resolution
# =============================================================================


@dataclass
class _Declaration:
    owner: str
    field: FieldDecl
    target: str
    direction: Direction
    partner: _Declaration | None = None


def _resolve_relationships(
    types: Iterable[TypeDecl],
) -> tuple[tuple[RelationshipModel, ...], tuple[RelationField, ...]]:
    index = {t.name: t for t in types}
    reified = {t.name: _reified_model(t, index) for t in index.values() if t.is_relation_type}

    declarations: list[_Declaration] = []
    reified_users: dict[str, list[_Declaration]] = {name: [] for name in reified}

    for type_decl in index.values():
        if not type_decl.is_node_type:
            continue
        for f in type_decl.fields_of_kind(FieldKind.RELATIONSHIP):
            if f.named_type in reified:
                model = reified[f.named_type]
                if type_decl.name == model.start_type:
                    declaration = _Declaration(type_decl.name, f, model.end_type, Direction.OUT)
                elif type_decl.name == model.end_type:
                    declaration = _Declaration(type_decl.name, f, model.start_type, Direction.IN)
                else:
                    raise SchemaModelError(
                        f"Type '{type_decl.name}' is not an endpoint of relationship "
                        f"type '{f.named_type}'",
                        type_name=type_decl.name,
                        field_name=f.name,
                    )
                reified_users[f.named_type].append(declaration)
                continue
            target = index[f.named_type]
            if not target.is_node_type:
                raise SchemaModelError(
                    f"Field '{type_decl.name}.{f.name}' must target a node type, "
                    f"'{target.name}' is not one",
                    type_name=type_decl.name,
                    field_name=f.name,
                )
            declarations.append(
                _Declaration(type_decl.name, f, target.name, f.direction or Direction.OUT)
            )

    _pair(declarations)

    relationships: list[RelationshipModel] = []
    relation_fields: list[RelationField] = []

    emitted: set[int] = set()
    for declaration in declarations:
        if id(declaration) in emitted:
            continue
        group = [declaration] + ([declaration.partner] if declaration.partner else [])
        if declaration.direction is Direction.IN:
            start, end = declaration.target, declaration.owner
        else:
            start, end = declaration.owner, declaration.target
        model = RelationshipModel(
            label=declaration.field.relation_name or "",
            start_type=start,
            end_type=end,
            direction=Direction.BOTH if declaration.direction is Direction.BOTH else Direction.OUT,
            declared_by=tuple((d.owner, d.field.name) for d in group),
        )
        relationships.append(model)
        for d in group:
            emitted.add(id(d))
            relation_fields.append(RelationField(d.owner, d.field, d.target, d.direction, model))

    for type_name, model in reified.items():
        users = reified_users[type_name]
        model = replace(model, declared_by=tuple((d.owner, d.field.name) for d in users))
        relationships.append(model)
        for d in users:
            relation_fields.append(RelationField(d.owner, d.field, d.target, d.direction, model))

    return tuple(relationships), tuple(relation_fields)


def _pair(declarations: list[_Declaration]) -> None:
    """Link each relationship field with its reverse field, if any.

    Raises:
        SchemaModelError: If reverse fields on different types disagree
            on direction
    """
    for declaration in declarations:
        if declaration.partner is not None:
            continue
        candidates = [
            other
            for other in declarations
            if other is not declaration
            and other.partner is None
            and other.field.relation_name == declaration.field.relation_name
            and other.owner == declaration.target
            and other.target == declaration.owner
        ]
        if not candidates:
            continue
        matching = [c for c in candidates if c.direction is declaration.direction.inverse]
        if matching:
            declaration.partner = matching[0]
            matching[0].partner = declaration
        elif declaration.owner != declaration.target:
            other = candidates[0]
            raise SchemaModelError(
                f"Relationship '{declaration.field.relation_name}' direction mismatch: "
                f"{declaration.owner}.{declaration.field.name} is {declaration.direction.value} "
                f"but {other.owner}.{other.field.name} is {other.direction.value}",
                type_name=declaration.owner,
                field_name=declaration.field.name,
            )


def _reified_model(type_decl: TypeDecl, index: dict[str, TypeDecl]) -> RelationshipModel:
    endpoints = {}
    for endpoint in ("from", "to"):
        f = type_decl.get_field(endpoint)
        if f is None:
            raise SchemaModelError(
                f"Relationship type '{type_decl.name}' must declare a '{endpoint}' field",
                type_name=type_decl.name,
            )
        target = index.get(f.named_type)
        if f.is_list or target is None or not target.is_node_type:
            raise SchemaModelError(
                f"'{type_decl.name}.{endpoint}' must reference a single node type",
                type_name=type_decl.name,
                field_name=endpoint,
            )
        endpoints[endpoint] = target.name

    properties = tuple(f for f in type_decl.fields if f.name not in ("from", "to"))
    for p in properties:
        if p.kind is not FieldKind.SCALAR:
            raise SchemaModelError(
                f"Relationship property '{type_decl.name}.{p.name}' must be a scalar field",
                type_name=type_decl.name,
                field_name=p.name,
            )
    return RelationshipModel(
        label=type_decl.relation_name or type_decl.name,
        start_type=endpoints["from"],
        end_type=endpoints["to"],
        properties=properties,
        type_name=type_decl.name,
    )


# =============================================================================
# AST helpers
# =============================================================================


def _as_document(type_defs: TypeDefs) -> DocumentNode:
    if isinstance(type_defs, DocumentNode):
        return type_defs
    if isinstance(type_defs, str):
        return parse(type_defs)
    definitions: list[Any] = []
    for part in type_defs:
        document = part if isinstance(part, DocumentNode) else parse(part)
        definitions.extend(document.definitions)
    return DocumentNode(definitions=tuple(definitions))


def _check_root_operation_names(node: Any) -> None:
    for operation_type in node.operation_types or ():
        operation = operation_type.operation.value.capitalize()
        if operation_type.type.name.value != operation:
            raise SchemaModelError(
                f"Custom root type name '{operation_type.type.name.value}' for {operation} "
                "is not supported",
                type_name=operation_type.type.name.value,
            )


def _type_ref(node: TypeNode) -> TypeRef:
    if isinstance(node, NonNullTypeNode):
        return TypeRef.non_null(_type_ref(node.type))
    if isinstance(node, ListTypeNode):
        return TypeRef.list_of(_type_ref(node.type))
    assert isinstance(node, NamedTypeNode)
    return TypeRef.named(node.name.value)


def _directive_use(node: DirectiveNode) -> DirectiveUse:
    return DirectiveUse(
        name=node.name.value,
        arguments=tuple(
            (a.name.value, value_from_ast_untyped(a.value)) for a in node.arguments or ()
        ),
        sdl_arguments=tuple((a.name.value, print_ast(a.value)) for a in node.arguments or ()),
    )


def _argument(node: InputValueDefinitionNode) -> ArgumentDecl:
    return ArgumentDecl(
        name=node.name.value,
        type_ref=_type_ref(node.type),
        default_sdl=print_ast(node.default_value) if node.default_value else None,
        directives=tuple(_directive_use(d) for d in node.directives or ()),
        description=node.description.value if node.description else "",
    )


def _input_field(type_name: str, node: InputValueDefinitionNode) -> FieldDecl:
    return FieldDecl(
        name=node.name.value,
        type_ref=_type_ref(node.type),
        directives=tuple(_directive_use(d) for d in node.directives or ()),
        description=node.description.value if node.description else "",
        default_sdl=print_ast(node.default_value) if node.default_value else None,
    )


def _find(directives: tuple[DirectiveUse, ...], name: str) -> DirectiveUse | None:
    for directive in directives:
        if directive.name == name:
            return directive
    return None


def _with_default_identity(type_decl: TypeDecl) -> TypeDecl:
    """Flag the first ID field, else the first scalar field, as identity."""
    candidates = [f for f in type_decl.scalar_fields() if not f.is_list]
    chosen = next((f for f in candidates if f.named_type == "ID"), None)
    if chosen is None and candidates:
        chosen = candidates[0]
    if chosen is None:
        logger.warning(f"Type '{type_decl.name}' has no scalar field to use as identity")
        return type_decl
    fields = tuple(replace(f, is_identity=True) if f is chosen else f for f in type_decl.fields)
    return replace(type_decl, fields=fields)


def build_schema_model(type_defs: TypeDefs) -> SchemaModel:
    """Build a SchemaModel from SDL text or graphql-core documents.

    Args:
        type_defs: SDL string, DocumentNode, or a sequence of either

    Returns:
        Immutable SchemaModel

    Raises:
        SchemaModelError: If the declarations are malformed
        graphql.GraphQLSyntaxError: If SDL text does not parse
    """
    return SchemaModelBuilder().build(type_defs)
