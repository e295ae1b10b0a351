"""
Unit tests for the schema model builder.

Tests cover:
- Field kinds chosen from directives
- Relationship pairing and reified relationship types
- Identity defaulting
- Extension merging
- Declaration errors
- Fingerprinting
"""

import pytest
from graphql import parse

from cypherql.errors import DuplicateFieldError, SchemaModelError
from cypherql.schema import (
    Direction,
    FieldKind,
    TypeRef,
    build_schema_model,
    extract_placeholders,
)


class TestFieldKinds:
    """Tests for directive interpretation."""

    def test_scalar_fields(self, model):
        """Plain scalar fields are SCALAR."""
        movie = model.get_type("Movie")
        assert movie.get_field("title").kind is FieldKind.SCALAR
        assert movie.get_field("year").kind is FieldKind.SCALAR

    def test_relation_field(self, model):
        """@relation fields are RELATIONSHIP with label and direction."""
        genres = model.get_type("Movie").get_field("genres")
        assert genres.kind is FieldKind.RELATIONSHIP
        assert genres.relation_name == "IN_GENRE"
        assert genres.direction is Direction.OUT

    def test_computed_field(self, model):
        """@cypher fields are COMPUTED with their placeholders."""
        similar = model.get_type("Movie").get_field("similar")
        assert similar.kind is FieldKind.COMPUTED
        assert similar.placeholders == ("first",)

    def test_ignored_field(self, model):
        """@neo4j_ignore fields are IGNORED."""
        assert model.get_type("Movie").get_field("poster").kind is FieldKind.IGNORED

    def test_root_fields_without_statement_are_ignored(self):
        """Root fields without @cypher are left to the caller."""
        model = build_schema_model("type Query { hello: String }")
        assert model.get_type("Query").get_field("hello").kind is FieldKind.IGNORED

    def test_accepts_document_and_sequence(self):
        """Declarations may be a DocumentNode or a sequence of parts."""
        from_document = build_schema_model(parse("type A { id: ID }"))
        from_parts = build_schema_model(["type A { id: ID }", parse("extend type A { n: Int }")])
        assert from_document.get_type("A") is not None
        assert from_parts.get_type("A").get_field_names() == ["id", "n"]


class TestRelationships:
    """Tests for relationship resolution."""

    def test_reverse_fields_are_paired(self, model):
        """Both sides of IN_GENRE share one relationship model."""
        forward = model.relation_field("Movie", "genres")
        backward = model.relation_field("Genre", "movies")
        assert forward.relationship is backward.relationship
        assert forward.relationship.start_type == "Movie"
        assert forward.relationship.end_type == "Genre"
        assert backward.direction is Direction.IN

    def test_incoming_single_field(self, model):
        """An IN field stores the edge from the target to the owner."""
        director = model.relation_field("Movie", "director")
        assert director.relationship.start_type == "Person"
        assert director.relationship.end_type == "Movie"
        assert not director.is_list

    def test_relationship_count(self, model):
        """Paired fields produce one model each; reified types one more."""
        labels = sorted(r.label for r in model.relationships)
        assert labels == ["DIRECTED", "IN_GENRE", "RATED"]

    def test_reified_relationship(self, model):
        """Reified types carry their properties and endpoint types."""
        rated = model.relationship_for_type("Rated")
        assert rated.start_type == "User"
        assert rated.end_type == "Movie"
        assert [p.name for p in rated.properties] == ["rating", "timestamp"]
        assert model.relation_field("User", "ratings").direction is Direction.OUT
        assert model.relation_field("Movie", "ratings").direction is Direction.IN

    def test_reified_label_defaults_to_type_name(self):
        """A reified type without a name uses its own name as label."""
        model = build_schema_model(
            """
            type A { id: ID! }
            type B { id: ID! }
            type Link @relation { from: A, to: B }
            """
        )
        assert model.relationship_for_type("Link").label == "Link"

    def test_long_direction_names(self):
        """OUTGOING / INCOMING are accepted in any case."""
        model = build_schema_model(
            """
            type A { id: ID! bs: [B] @relation(name: "R", direction: "outgoing") }
            type B { id: ID! as: [A] @relation(name: "R", direction: "INCOMING") }
            """
        )
        assert model.relation_field("A", "bs").direction is Direction.OUT
        assert model.relation_field("B", "as").direction is Direction.IN

    def test_direction_mismatch(self):
        """Paired fields that are not inverse raise."""
        with pytest.raises(SchemaModelError, match="direction mismatch"):
            build_schema_model(
                """
                type A { id: ID! bs: [B] @relation(name: "R", direction: "OUT") }
                type B { id: ID! items: [A] @relation(name: "R", direction: "OUT") }
                """
            )


class TestIdentity:
    """Tests for identity field selection."""

    def test_first_id_field(self, model):
        """The first ID field is the identity."""
        assert model.identity_field("Movie").name == "movieId"

    def test_first_scalar_without_id(self, model):
        """Without an ID field, the first scalar field is the identity."""
        assert model.identity_field("Genre").name == "name"

    def test_explicit_identity(self):
        """@id wins over the ID-typed field."""
        model = build_schema_model("type A { uuid: ID code: String @id }")
        assert model.identity_field("A").name == "code"

    def test_no_scalar_field(self):
        """A type with no scalar field has no identity."""
        model = build_schema_model(
            """
            type A { bs: [B] @relation(name: "R") }
            type B { id: ID! }
            """
        )
        assert model.identity_field("A") is None

    def test_two_identities(self):
        """More than one @id raises."""
        with pytest.raises(SchemaModelError, match="more than one identity"):
            build_schema_model("type A { a: ID @id b: ID @id }")

    def test_identity_on_list(self):
        """@id on a list field raises."""
        with pytest.raises(SchemaModelError):
            build_schema_model("type A { tags: [String] @id }")


class TestExtensions:
    """Tests for extend blocks."""

    def test_fields_are_appended(self):
        """Extension fields follow base fields."""
        model = build_schema_model("type A { id: ID! } extend type A { name: String }")
        assert model.get_type("A").get_field_names() == ["id", "name"]

    def test_enum_values_are_appended(self):
        """Enum extensions add values."""
        model = build_schema_model("enum Color { RED } extend enum Color { BLUE }")
        assert [v.name for v in model.get_type("Color").enum_values] == ["RED", "BLUE"]

    def test_duplicate_field(self):
        """Redeclaring a field in an extension raises."""
        with pytest.raises(DuplicateFieldError):
            build_schema_model("type A { id: ID! } extend type A { id: ID }")

    def test_extension_without_base(self):
        """Extending an undeclared type raises."""
        with pytest.raises(SchemaModelError, match="undeclared"):
            build_schema_model("extend type A { id: ID }")

    def test_root_type_by_extension(self):
        """Root types may be declared by extension only."""
        model = build_schema_model(
            'type A { id: ID } extend type Query { count: Int @cypher(statement: "RETURN 1") }'
        )
        assert model.get_type("Query").get_field("count").kind is FieldKind.COMPUTED

    def test_type_declared_twice(self):
        """Two definitions of one type raise."""
        with pytest.raises(SchemaModelError, match="more than once"):
            build_schema_model("type A { id: ID } type A { name: String }")


class TestDeclarationErrors:
    """Tests for malformed declarations."""

    def test_relation_and_cypher(self):
        """@relation and @cypher cannot be combined."""
        with pytest.raises(SchemaModelError, match="cannot be combined"):
            build_schema_model(
                """
                type A { id: ID! bs: [B] @relation(name: "R") @cypher(statement: "RETURN 1") }
                type B { id: ID! }
                """
            )

    def test_relation_on_scalar(self):
        """@relation on a scalar field raises."""
        with pytest.raises(SchemaModelError, match="not supported on String"):
            build_schema_model('type A { name: String @relation(name: "R") }')

    def test_relation_without_name(self):
        """@relation needs a name."""
        with pytest.raises(SchemaModelError, match="'name'"):
            build_schema_model(
                """
                type A { id: ID! bs: [B] @relation(direction: "OUT") }
                type B { id: ID! }
                """
            )

    def test_unknown_direction(self):
        """Unknown direction values raise."""
        with pytest.raises(SchemaModelError, match="Invalid direction"):
            build_schema_model(
                """
                type A { id: ID! bs: [B] @relation(name: "R", direction: "SIDEWAYS") }
                type B { id: ID! }
                """
            )

    def test_unknown_placeholder(self):
        """Statements may only use declared arguments and this/first/offset."""
        with pytest.raises(SchemaModelError, match="placeholders"):
            build_schema_model(
                'type A { id: ID! n: Int @cypher(statement: "RETURN {missing}") }'
            )

    def test_object_field_without_directive(self):
        """Object fields of node types need a directive."""
        with pytest.raises(SchemaModelError, match="needs @relation"):
            build_schema_model("type A { id: ID! b: B } type B { id: ID! }")

    def test_unknown_type(self):
        """Fields must reference declared types."""
        with pytest.raises(SchemaModelError, match="unknown type"):
            build_schema_model("type A { b: Missing }")

    def test_reified_type_without_to(self):
        """Reified types must declare from and to."""
        with pytest.raises(SchemaModelError, match="'to'"):
            build_schema_model(
                """
                type A { id: ID! }
                type Link @relation(name: "L") { from: A }
                """
            )


class TestFingerprint:
    """Tests for model fingerprinting."""

    def test_stable(self, movie_sdl):
        """Same declarations give the same fingerprint."""
        assert build_schema_model(movie_sdl).fingerprint == build_schema_model(movie_sdl).fingerprint

    def test_changes_with_declarations(self, model, movie_sdl):
        """Adding a field changes the fingerprint."""
        extended = build_schema_model(movie_sdl + "\nextend type Genre { rank: Int }")
        assert extended.fingerprint != model.fingerprint
        assert model.fingerprint.startswith("sha256:")


class TestHelpers:
    """Tests for builder helpers."""

    def test_extract_placeholders(self):
        """Placeholders are distinct and ordered."""
        assert extract_placeholders("RETURN {a} + {b} + {a}") == ("a", "b")

    def test_type_ref_parse(self):
        """SDL type references round-trip."""
        ref = TypeRef.parse("[String!]!")
        assert ref.named_type == "String"
        assert ref.is_list and ref.is_non_null
        assert ref.to_sdl() == "[String!]!"
        assert ref.nullable().to_sdl() == "[String!]"
