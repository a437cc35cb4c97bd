"""Tests for the model descriptor reader.

Verifies tag parsing, flattening of parent models and embedded field
groups, derived names, and the configuration errors raised for invalid
model declarations.
"""

import pytest

from conftest import Post, Tag, User
from crudkit.errors import ConfigurationError
from crudkit.schema.mixins import BASE_MODEL, RECORD_MODEL
from crudkit.schema.models import FieldGroup, FieldSpec, Model, Relation
from crudkit.schema.naming import pluralize, to_snake_case
from crudkit.schema.reader import describe, parse_tag
from crudkit.schema.types import FieldType


# ============================================================================
# Tag parsing
# ============================================================================


class TestParseTag:
    """Verify semicolon-separated directive parsing."""

    def test_key_value_and_bare_keys(self) -> None:
        """key:value pairs keep their value, bare keys map to empty string."""
        assert parse_tag("size:100;not null;column:name") == {
            "size": "100",
            "not null": "",
            "column": "name",
        }

    def test_keys_are_case_insensitive_and_trimmed(self) -> None:
        """Keys are lower-cased and whitespace around parts is dropped."""
        assert parse_tag(" primaryKey ; autoIncrement ;SIZE: 36 ") == {
            "primarykey": "",
            "autoincrement": "",
            "size": "36",
        }

    def test_value_keeps_later_colons(self) -> None:
        """Only the first colon separates key from value."""
        assert parse_tag("comment:starts at 10:30") == {"comment": "starts at 10:30"}

    def test_empty_tag(self) -> None:
        """An empty tag has no directives."""
        assert parse_tag("") == {}
        assert parse_tag(";;") == {}

    def test_unknown_keys_are_kept_but_harmless(self) -> None:
        """Unknown directives do not break descriptor building."""

        class Gadget(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey;sparkle:yes"),
                FieldSpec("Name", FieldType.STRING, tag="shiny"),
            )

        descriptor = describe(Gadget)
        assert descriptor.column_names == ["id", "name"]
        assert descriptor.fields[0].tags["sparkle"] == "yes"


# ============================================================================
# Naming
# ============================================================================


class TestNaming:
    """Verify snake_case and pluralization helpers."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("ID", "id"),
            ("UserID", "user_id"),
            ("CreatedAt", "created_at"),
            ("HTTPStatus", "http_status"),
            ("name", "name"),
            ("Line2Total", "line2_total"),
        ],
    )
    def test_to_snake_case(self, name: str, expected: str) -> None:
        """CamelCase names convert with acronyms kept together."""
        assert to_snake_case(name) == expected

    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("user", "users"),
            ("category", "categories"),
            ("day", "days"),
            ("address", "addresses"),
            ("box", "boxes"),
            ("batch", "batches"),
            ("activity_log", "activity_logs"),
        ],
    )
    def test_pluralize(self, word: str, expected: str) -> None:
        """English plural rules used for table names."""
        assert pluralize(word) == expected

    def test_table_name_from_class_name(self) -> None:
        """Table name is the pluralized snake_case class name."""

        class ActivityCategory(Model):
            fields = (FieldSpec("ID", FieldType.UINT, tag="primaryKey"),)

        assert describe(ActivityCategory).table_name == "activity_categories"

    def test_table_name_override(self) -> None:
        """table_name() can be overridden on the model."""

        class Person(Model):
            fields = (FieldSpec("ID", FieldType.UINT, tag="primaryKey"),)

            @classmethod
            def table_name(cls) -> str:
                return "people"

        assert describe(Person).table_name == "people"


# ============================================================================
# Flattening and derived attributes
# ============================================================================


class TestDescribe:
    """Verify descriptor contents for the sample models."""

    def test_embedded_groups_flatten_in_declaration_order(self) -> None:
        """BASE_MODEL, own fields, RECORD_MODEL and SOFT_DELETE_MODEL in order."""
        assert describe(User).column_names == [
            "id",
            "uuid",
            "name",
            "email",
            "age",
            "created_at",
            "created_by",
            "updated_at",
            "updated_by",
            "deleted_at",
            "deleted_by",
        ]

    def test_group_path_is_recorded(self) -> None:
        """Fields remember the embedding path they came from."""
        descriptor = describe(User)
        uuid_field = descriptor.field_for_column("uuid")
        assert uuid_field is not None
        assert uuid_field.group == ("User", "BaseModel", "UUIDModel")
        assert descriptor.field_for_column("name").group == ("User",)

    def test_field_attributes(self) -> None:
        """Tag directives populate the descriptor attributes."""
        descriptor = describe(User)
        id_field = descriptor.field_for_column("id")
        assert id_field.is_primary_key
        assert id_field.auto_increment
        assert not id_field.nullable

        name = descriptor.field_for_column("name")
        assert name.max_length == 100
        assert not name.nullable
        assert name.is_searchable

        email = descriptor.field_for_column("email")
        assert email.is_unique_indexed
        assert email.unique_index_name is None
        assert email.nullable

        age = descriptor.field_for_column("age")
        assert age.default_value == "0"
        assert age.semantic_type == "int"

        deleted_at = descriptor.field_for_column("deleted_at")
        assert deleted_at.is_indexed
        assert deleted_at.optional

        assert descriptor.field_for_column("created_at").auto_create_time
        assert descriptor.field_for_column("updated_at").auto_update_time

    def test_searchable_columns(self) -> None:
        """Only searchable-tagged columns are reported."""
        assert describe(User).searchable_columns == ["name", "email"]
        assert describe(Tag).searchable_columns == []

    def test_relations_are_not_columns(self) -> None:
        """Relation fields are kept in fields but excluded from columns."""
        descriptor = describe(User)
        assert "posts" not in descriptor.column_names
        assert [f.name for f in descriptor.fields if f.is_relation] == ["Posts"]

    def test_has_many_relation(self) -> None:
        """has_many resolves its lazy target and foreign key."""
        relation = describe(User).relation("posts")
        assert relation is not None
        assert relation.kind == "has_many"
        assert relation.foreign_key == "user_id"
        assert relation.references == "id"
        assert relation.model is Post
        assert relation.local_key == "id"
        assert relation.remote_key == "user_id"

    def test_belongs_to_relation_defaults(self) -> None:
        """belongs_to defaults the foreign key to <name>_id."""
        relation = describe(Post).relation("User")
        assert relation is not None
        assert relation.kind == "belongs_to"
        assert relation.foreign_key == "user_id"
        assert relation.model is User
        assert relation.local_key == "user_id"
        assert relation.remote_key == "id"

    def test_foreign_key_tag_marks_field_as_relation(self) -> None:
        """A plain field tagged foreignKey is excluded from columns."""

        class Order(Model):
            fields = (
                BASE_MODEL,
                FieldSpec("CustomerID", FieldType.UINT),
                FieldSpec("Customer", "Customer", tag="foreignKey:customer_id"),
            )

        descriptor = describe(Order)
        assert descriptor.column_names == ["id", "uuid", "customer_id"]
        assert descriptor.relations[0].foreign_key == "customer_id"

    def test_ignored_and_private_fields(self) -> None:
        """'-' fields and underscore-prefixed fields never become columns."""

        class Note(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey"),
                FieldSpec("Body", FieldType.STRING),
                FieldSpec("Preview", FieldType.STRING, tag="-"),
                FieldSpec("_cache", FieldType.STRING),
            )

        descriptor = describe(Note)
        assert descriptor.column_names == ["id", "body"]
        assert "_cache" not in [f.name for f in descriptor.fields]

    def test_explicit_column_name(self) -> None:
        """column: overrides the derived column name."""

        class Account(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey"),
                FieldSpec("DisplayName", FieldType.STRING, tag="column:label"),
            )

        assert describe(Account).column_names == ["id", "label"]

    def test_parent_model_fields_come_first(self) -> None:
        """A subclass inherits its parent's declared fields, parents first."""

        class Admin(User):
            fields = (FieldSpec("Level", FieldType.INT, tag="default:1"),)

        descriptor = describe(Admin)
        assert descriptor.table_name == "admins"
        assert descriptor.column_names[:3] == ["id", "uuid", "name"]
        assert descriptor.column_names[-1] == "level"

    def test_nested_groups_flatten_depth_first(self) -> None:
        """Groups nested in groups are flattened depth-first."""
        audit = FieldGroup(
            "Audit",
            (
                FieldSpec("Source", FieldType.STRING),
                FieldGroup("Inner", (FieldSpec("Trace", FieldType.STRING),)),
                FieldSpec("Note", FieldType.STRING),
            ),
        )

        class Event(Model):
            fields = (BASE_MODEL, audit, FieldSpec("Kind", FieldType.STRING))

        assert describe(Event).column_names == ["id", "uuid", "source", "trace", "note", "kind"]

    def test_describe_is_cached(self) -> None:
        """Descriptors are built once per model class."""
        assert describe(User) is describe(User)

    def test_describe_accepts_instances(self) -> None:
        """An instance describes as its class."""
        assert describe(Tag()) is describe(Tag)


# ============================================================================
# Configuration errors
# ============================================================================


class TestDescribeErrors:
    """Verify invalid declarations raise ConfigurationError."""

    def test_no_fields(self) -> None:
        """A model with no fields is rejected."""

        class Empty(Model):
            pass

        with pytest.raises(ConfigurationError, match="no fields"):
            describe(Empty)

    def test_no_primary_key(self) -> None:
        """A model without a primary key is rejected."""

        class Loose(Model):
            fields = (FieldSpec("Name", FieldType.STRING),)

        with pytest.raises(ConfigurationError, match="no primary key"):
            describe(Loose)

    def test_primary_key_in_two_groups(self) -> None:
        """Primary keys declared in different groups conflict."""
        other_key = FieldGroup("LegacyKey", (FieldSpec("Code", FieldType.STRING, tag="primaryKey"),))

        class Clash(Model):
            fields = (BASE_MODEL, other_key)

        with pytest.raises(ConfigurationError, match="more than one field group"):
            describe(Clash)

    def test_composite_primary_key_in_one_group(self) -> None:
        """Several primary keys inside one group form a composite key."""

        class Membership(Model):
            fields = (
                FieldSpec("UserID", FieldType.UINT, tag="primaryKey"),
                FieldSpec("GroupID", FieldType.UINT, tag="primaryKey"),
            )

        assert [f.column_name for f in describe(Membership).primary_keys] == [
            "user_id",
            "group_id",
        ]

    def test_duplicate_column(self) -> None:
        """Two fields mapping to one column are rejected."""

        class Twice(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey"),
                FieldSpec("Name", FieldType.STRING),
                FieldSpec("Label", FieldType.STRING, tag="column:name"),
            )

        with pytest.raises(ConfigurationError, match="duplicate column 'name'"):
            describe(Twice)

    def test_optional_primary_key(self) -> None:
        """A nullable-wrapped primary key is rejected."""

        class Maybe(Model):
            fields = (FieldSpec("ID", FieldType.UINT, tag="primaryKey", optional=True),)

        with pytest.raises(ConfigurationError, match="cannot be optional"):
            describe(Maybe)

    def test_invalid_size(self) -> None:
        """A non-numeric size is rejected."""

        class Sized(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey"),
                FieldSpec("Code", FieldType.STRING, tag="size:big"),
            )

        with pytest.raises(ConfigurationError, match="invalid size"):
            describe(Sized)

    def test_unknown_relation_kind(self) -> None:
        """Relation kinds are limited to belongs_to, has_one and has_many."""

        class Linked(Model):
            fields = (
                FieldSpec("ID", FieldType.UINT, tag="primaryKey"),
                Relation("Things", Tag, kind="many_to_many"),
            )

        with pytest.raises(ConfigurationError, match="unknown relation kind"):
            describe(Linked)

    def test_not_a_model(self) -> None:
        """Only Model subclasses can be described."""

        class Plain:
            pass

        with pytest.raises(ConfigurationError, match="not a crudkit Model"):
            describe(Plain)  # type: ignore[arg-type]

    def test_record_model_alone_has_no_primary_key(self) -> None:
        """Embedding groups without a key still fails the primary key check."""

        class Audited(Model):
            fields = (FieldSpec("Name", FieldType.STRING), RECORD_MODEL)

        with pytest.raises(ConfigurationError):
            describe(Audited)
