"""
Core type definitions for the cypherql schema model.

This module defines the directive-free model the builder produces from
GraphQL type declarations:
- TypeRef: Named type plus list / non-null wrappers
- DirectiveUse: A directive applied to a type or field
- FieldDecl: A field and the behavior its directives select
- TypeDecl: A declared type (object, interface, union, enum, input, scalar)
- RelationshipModel: An edge label between two node types
- RelationField: One declaring field's view of a RelationshipModel

Invariants:
    - Every field of a node type has exactly one FieldKind
    - A field carries at most one of {relationship, computed statement}
    - Field names are unique within a type
    - All values are immutable once constructed

Example:
    >>> movie = TypeDecl(
    ...     name="Movie",
    ...     kind=TypeKind.OBJECT,
    ...     fields=(
    ...         FieldDecl("movieId", TypeRef.parse("ID!"), is_identity=True),
    ...         FieldDecl("title", TypeRef.parse("String")),
    ...     ),
    ... )
    >>> movie.identity_field.name
    'movieId'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any

from ..errors import DuplicateFieldError, SchemaModelError

BUILTIN_SCALARS = ("Int", "Float", "String", "Boolean", "ID")

ROOT_TYPE_NAMES = ("Query", "Mutation", "Subscription")


class TypeKind(Enum):
    """Kinds of declared types."""

    OBJECT = "object"
    INTERFACE = "interface"
    UNION = "union"
    ENUM = "enum"
    INPUT = "input"
    SCALAR = "scalar"

    @property
    def keyword(self) -> str:
        """SDL keyword introducing a definition of this kind."""
        return "type" if self is TypeKind.OBJECT else self.value


class FieldKind(Enum):
    """How a field is resolved.

    SCALAR fields are read from the node, RELATIONSHIP fields traverse an
    edge, COMPUTED fields run their own statement and IGNORED fields are
    left to an externally registered resolver.
    """

    SCALAR = "scalar"
    RELATIONSHIP = "relationship"
    COMPUTED = "computed"
    IGNORED = "ignored"


class Direction(Enum):
    """Traversal direction of a relationship, seen from the declaring type."""

    OUT = "OUT"
    IN = "IN"
    BOTH = "BOTH"

    @classmethod
    def from_str(cls, value: str) -> Direction:
        """Convert a directive argument to a Direction.

        Accepts OUT/IN/BOTH and OUTGOING/INCOMING/UNDIRECTED in any case.

        Raises:
            ValueError: If value is not a known direction
        """
        normalized = value.strip().upper()
        aliases = {"OUTGOING": "OUT", "INCOMING": "IN", "UNDIRECTED": "BOTH"}
        normalized = aliases.get(normalized, normalized)
        for direction in cls:
            if direction.value == normalized:
                return direction
        valid = [d.value for d in cls]
        raise ValueError(f"Invalid direction '{value}'. Valid directions: {valid}")

    @property
    def inverse(self) -> Direction:
        if self is Direction.OUT:
            return Direction.IN
        if self is Direction.IN:
            return Direction.OUT
        return Direction.BOTH


@dataclass(frozen=True)
class TypeRef:
    """A type reference: a named type wrapped in list / non-null markers.

    Attributes:
        wrapper: "named", "list" or "non_null"
        name: Type name (only for "named")
        of_type: Wrapped reference (only for "list" and "non_null")
    """

    wrapper: str
    name: str | None = None
    of_type: TypeRef | None = None

    @classmethod
    def named(cls, name: str) -> TypeRef:
        return cls("named", name=name)

    @classmethod
    def list_of(cls, of_type: TypeRef) -> TypeRef:
        return cls("list", of_type=of_type)

    @classmethod
    def non_null(cls, of_type: TypeRef) -> TypeRef:
        if of_type.wrapper == "non_null":
            return of_type
        return cls("non_null", of_type=of_type)

    @classmethod
    def parse(cls, text: str) -> TypeRef:
        """Parse an SDL type reference such as ``[String!]!``."""
        text = text.strip()
        if text.endswith("!"):
            return cls.non_null(cls.parse(text[:-1]))
        if text.startswith("[") and text.endswith("]"):
            return cls.list_of(cls.parse(text[1:-1]))
        return cls.named(text)

    @property
    def named_type(self) -> str:
        """Name of the innermost named type."""
        ref: TypeRef = self
        while ref.of_type is not None:
            ref = ref.of_type
        return ref.name or ""

    @property
    def is_non_null(self) -> bool:
        return self.wrapper == "non_null"

    @property
    def is_list(self) -> bool:
        """Whether a list wrapper appears anywhere in the chain."""
        ref: TypeRef | None = self
        while ref is not None:
            if ref.wrapper == "list":
                return True
            ref = ref.of_type
        return False

    def nullable(self) -> TypeRef:
        """This reference without its outermost non-null marker."""
        if self.is_non_null and self.of_type is not None:
            return self.of_type
        return self

    def to_sdl(self) -> str:
        if self.wrapper == "non_null":
            return f"{self.of_type.to_sdl()}!"  # type: ignore[union-attr]
        if self.wrapper == "list":
            return f"[{self.of_type.to_sdl()}]"  # type: ignore[union-attr]
        return self.name or ""

    def __str__(self) -> str:
        return self.to_sdl()


@dataclass(frozen=True)
class DirectiveUse:
    """A directive applied to a type or field.

    Attributes:
        name: Directive name without the ``@``
        arguments: Argument values as python values
        sdl_arguments: Argument values as SDL text, for printing
    """

    name: str
    arguments: tuple[tuple[str, Any], ...] = ()
    sdl_arguments: tuple[tuple[str, str], ...] = ()

    @classmethod
    def create(cls, name: str, **arguments: Any) -> DirectiveUse:
        """Build a directive from python values (strings, numbers, bools)."""
        return cls(
            name=name,
            arguments=tuple(arguments.items()),
            sdl_arguments=tuple((k, json.dumps(v)) for k, v in arguments.items()),
        )

    def get(self, argument: str, default: Any = None) -> Any:
        for key, value in self.arguments:
            if key == argument:
                return value
        return default

    def to_sdl(self) -> str:
        if not self.sdl_arguments:
            return f"@{self.name}"
        args = ", ".join(f"{k}: {v}" for k, v in self.sdl_arguments)
        return f"@{self.name}({args})"


def _directives_sdl(directives: tuple[DirectiveUse, ...]) -> str:
    if not directives:
        return ""
    return " " + " ".join(d.to_sdl() for d in directives)


def _description_sdl(description: str, indent: str = "") -> list[str]:
    if not description:
        return []
    escaped = description.replace('"""', '\\"""')
    return [f'{indent}"""', *(f"{indent}{line}" for line in escaped.splitlines()), f'{indent}"""']


@dataclass(frozen=True)
class ArgumentDecl:
    """An argument of a field (or a field of an input type)."""

    name: str
    type_ref: TypeRef
    default_sdl: str | None = None
    directives: tuple[DirectiveUse, ...] = ()
    description: str = ""

    def to_sdl(self) -> str:
        text = f"{self.name}: {self.type_ref.to_sdl()}"
        if self.default_sdl is not None:
            text += f" = {self.default_sdl}"
        return text + _directives_sdl(self.directives)


@dataclass(frozen=True)
class FieldDecl:
    """Definition of a single field within a type.

    Attributes:
        name: Field name
        type_ref: Declared type reference
        arguments: Declared arguments
        directives: Directives as written (kept for printing)
        description: Human-readable description
        kind: Resolution behavior selected by the directives
        relation_name: Edge label from ``@relation`` (RELATIONSHIP fields)
        direction: Traversal direction (RELATIONSHIP fields)
        statement: Statement template from ``@cypher`` (COMPUTED fields)
        placeholders: Placeholder names found in ``statement``
        is_identity: Whether this field addresses one node of its type
        default_sdl: Default value as SDL text (input type fields)

    Invariants:
        - relation_name/direction are only set for RELATIONSHIP fields
        - statement/placeholders are only set for COMPUTED fields
    """

    name: str
    type_ref: TypeRef
    arguments: tuple[ArgumentDecl, ...] = ()
    directives: tuple[DirectiveUse, ...] = ()
    description: str = ""
    kind: FieldKind = FieldKind.SCALAR
    relation_name: str | None = None
    direction: Direction | None = None
    statement: str | None = None
    placeholders: tuple[str, ...] = ()
    is_identity: bool = False
    default_sdl: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaModelError("Field name cannot be empty")
        if self.relation_name is not None and self.statement is not None:
            raise SchemaModelError(
                f"Field '{self.name}' cannot carry both a relationship and a computed statement",
                field_name=self.name,
            )

    @property
    def named_type(self) -> str:
        return self.type_ref.named_type

    @property
    def is_list(self) -> bool:
        return self.type_ref.is_list

    def get_argument(self, name: str) -> ArgumentDecl | None:
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None

    def get_directive(self, name: str) -> DirectiveUse | None:
        for directive in self.directives:
            if directive.name == name:
                return directive
        return None

    def to_sdl(self, extra_arguments: tuple[ArgumentDecl, ...] = ()) -> list[str]:
        """Render the field as SDL lines (two-space indented)."""
        lines = _description_sdl(self.description, "  ")
        arguments = self.arguments + tuple(
            a for a in extra_arguments if self.get_argument(a.name) is None
        )
        args = ""
        if arguments:
            args = "(" + ", ".join(a.to_sdl() for a in arguments) + ")"
        default = f" = {self.default_sdl}" if self.default_sdl is not None else ""
        lines.append(
            f"  {self.name}{args}: {self.type_ref.to_sdl()}{default}"
            f"{_directives_sdl(self.directives)}"
        )
        return lines


@dataclass(frozen=True)
class EnumValueDecl:
    """A value of an enum type."""

    name: str
    directives: tuple[DirectiveUse, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class TypeDecl:
    """Definition of a declared type.

    Attributes:
        name: Type name (unique within a schema)
        kind: Kind of type
        fields: Fields (objects, interfaces) or input fields (inputs)
        directives: Type-level directives
        interfaces: Implemented interfaces (objects, interfaces)
        members: Member types (unions)
        enum_values: Values (enums)
        description: Human-readable description
        relation_name: Edge label when this object type is a reified
            relationship type

    Invariants:
        - Field names are unique within the type
        - At most one field is flagged as identity
    """

    name: str
    kind: TypeKind
    fields: tuple[FieldDecl, ...] = dataclass_field(default_factory=tuple)
    directives: tuple[DirectiveUse, ...] = ()
    interfaces: tuple[str, ...] = ()
    members: tuple[str, ...] = ()
    enum_values: tuple[EnumValueDecl, ...] = ()
    description: str = ""
    relation_name: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaModelError("Type name cannot be empty")

        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise DuplicateFieldError(self.name, f.name)
            seen.add(f.name)

        identities = [f.name for f in self.fields if f.is_identity]
        if len(identities) > 1:
            raise SchemaModelError(
                f"Type '{self.name}' declares more than one identity field: {identities}",
                type_name=self.name,
            )

    @property
    def is_root(self) -> bool:
        return self.name in ROOT_TYPE_NAMES

    @property
    def is_relation_type(self) -> bool:
        return self.relation_name is not None

    @property
    def is_node_type(self) -> bool:
        """Object types that map to graph nodes."""
        return self.kind is TypeKind.OBJECT and not self.is_root and not self.is_relation_type

    @property
    def identity_field(self) -> FieldDecl | None:
        for f in self.fields:
            if f.is_identity:
                return f
        return None

    def get_field(self, name: str) -> FieldDecl | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def scalar_fields(self) -> list[FieldDecl]:
        """Fields read directly from the node or edge, in declaration order."""
        return [f for f in self.fields if f.kind is FieldKind.SCALAR]

    def fields_of_kind(self, kind: FieldKind) -> list[FieldDecl]:
        return [f for f in self.fields if f.kind is kind]

    def to_sdl(self) -> str:
        """Render the declaration as SDL."""
        lines = _description_sdl(self.description)
        header = f"{self.kind.keyword} {self.name}"
        if self.interfaces:
            header += " implements " + " & ".join(self.interfaces)
        header += _directives_sdl(self.directives)

        if self.kind is TypeKind.SCALAR:
            lines.append(header)
        elif self.kind is TypeKind.UNION:
            lines.append(f"{header} = {' | '.join(self.members)}")
        elif self.kind is TypeKind.ENUM:
            lines.append(header + " {")
            for value in self.enum_values:
                lines.extend(_description_sdl(value.description, "  "))
                lines.append(f"  {value.name}{_directives_sdl(value.directives)}")
            lines.append("}")
        else:
            lines.append(header + " {")
            for f in self.fields:
                lines.extend(f.to_sdl())
            lines.append("}")
        return "\n".join(lines)


@dataclass(frozen=True)
class RelationshipModel:
    """An edge label connecting two node types.

    Attributes:
        label: Edge label stored in the graph
        start_type: Node type at the edge's start
        end_type: Node type at the edge's end
        direction: OUT for directed edges, BOTH for undirected ones
        properties: Property fields carried by the edge
        type_name: Reified relationship type name, if any
        declared_by: (type, field) pairs that traverse this relationship

    Invariants:
        - For directed models, a declaring field on start_type traverses
          OUT and one on end_type traverses IN
    """

    label: str
    start_type: str
    end_type: str
    direction: Direction = Direction.OUT
    properties: tuple[FieldDecl, ...] = ()
    type_name: str | None = None
    declared_by: tuple[tuple[str, str], ...] = ()

    @property
    def has_properties(self) -> bool:
        return len(self.properties) > 0

    @property
    def is_reified(self) -> bool:
        return self.type_name is not None


@dataclass(frozen=True)
class RelationField:
    """A relationship as seen from one declaring field.

    Attributes:
        owner: Type declaring the field
        field: The declaring field
        target: Node type reached by the traversal
        direction: Traversal direction from ``owner``
        relationship: The underlying model
    """

    owner: str
    field: FieldDecl
    target: str
    direction: Direction
    relationship: RelationshipModel

    @property
    def label(self) -> str:
        return self.relationship.label

    @property
    def is_reified(self) -> bool:
        return self.relationship.is_reified

    @property
    def is_list(self) -> bool:
        return self.field.is_list

    @property
    def owner_is_start(self) -> bool:
        """Whether the owner node sits at the stored edge's start."""
        return self.direction is not Direction.IN
