"""Model declarations and the descriptors derived from them.

This module contains:
- Declaration side: ``Model``, ``FieldSpec``, ``FieldGroup``, ``Relation``
- Derived side: ``FieldDescriptor``, ``RelationDescriptor``,
  ``ModelDescriptor`` (built by ``crudkit.schema.reader.describe``)

Models are declared statically -- nothing is inferred from Python type
annotations at runtime:

    class User(Model):
        fields = (
            BASE_MODEL,
            FieldSpec("Name", "string", tag="size:100;not null;searchable"),
            FieldSpec("Email", "string", tag="size:100;uniqueIndex;searchable"),
            FieldSpec("Age", "int", tag="default:0"),
            RECORD_MODEL,
            SOFT_DELETE_MODEL,
        )
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from crudkit.schema.naming import pluralize, to_snake_case
from crudkit.schema.types import FieldType

RELATION_KINDS = ("belongs_to", "has_one", "has_many")


# ============================================================================
# Declaration Models
# ============================================================================


@dataclass(frozen=True)
class FieldSpec:
    """A declared model field.

    Attributes:
        name: Field name (column name defaults to its snake_case form).
        type: Semantic type, a ``FieldType`` or any string (unknown types
            map to TEXT).
        tag: Semicolon-separated directives, e.g. ``"size:100;not null"``.
        optional: Nullable-wrapped field.
    """

    name: str
    type: "FieldType | str" = FieldType.STRING
    tag: str = ""
    optional: bool = False


@dataclass(frozen=True)
class Relation:
    """A declared relation to another model.

    Relations never become columns.  ``target`` is a ``Model`` subclass or
    a zero-argument callable returning one (for forward references).

    Example:
        Relation("Posts", lambda: Post, tag="foreignKey:user_id", kind="has_many")
    """

    name: str
    target: Any = None
    tag: str = ""
    kind: str = "belongs_to"


@dataclass(frozen=True)
class FieldGroup:
    """An embedded group of fields, flattened into the owning model."""

    name: str
    fields: tuple["Declaration", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))


Declaration = Union[FieldSpec, Relation, FieldGroup]


class Model:
    """Base class for declared models.

    Subclasses list their fields in ``fields``.  Fields declared on parent
    models come first.  Override ``table_name()`` to pin the table name.
    """

    fields: ClassVar[Sequence[Declaration]] = ()

    @classmethod
    def table_name(cls) -> str:
        """Pluralized snake_case of the class name (``ActivityLog`` -> ``activity_logs``)."""
        return pluralize(to_snake_case(cls.__name__))


# ============================================================================
# Descriptor Models
# ============================================================================


@dataclass(frozen=True)
class RelationDescriptor:
    """A resolved relation.

    ``belongs_to``: this model's ``foreign_key`` column points at the
    target's ``references`` column.  ``has_one`` / ``has_many``: the
    target's ``foreign_key`` column points at this model's ``references``
    column.
    """

    name: str
    kind: str
    foreign_key: str
    references: str
    target: Any = None

    @property
    def model(self) -> type[Model] | None:
        """Resolve ``target`` to a model class."""
        target = self.target
        if target is None:
            return None
        if isinstance(target, type) and issubclass(target, Model):
            return target
        if callable(target):
            return target()
        return None

    @property
    def local_key(self) -> str:
        """Column on the owning model used to match related rows."""
        return self.foreign_key if self.kind == "belongs_to" else self.references

    @property
    def remote_key(self) -> str:
        """Column on the target model used to match related rows."""
        return self.references if self.kind == "belongs_to" else self.foreign_key


@dataclass(frozen=True)
class FieldDescriptor:
    """Read-only projection of one declared field."""

    name: str
    column_name: str
    semantic_type: str
    nullable: bool = True
    max_length: int | None = None
    default_value: str | None = None
    is_primary_key: bool = False
    auto_increment: bool = False
    is_unique_indexed: bool = False
    unique_index_name: str | None = None
    is_indexed: bool = False
    index_name: str | None = None
    is_searchable: bool = False
    is_relation: bool = False
    is_ignored: bool = False
    comment: str | None = None
    explicit_type: str | None = None
    optional: bool = False
    auto_create_time: bool = False
    auto_update_time: bool = False
    group: tuple[str, ...] = ()
    relation: RelationDescriptor | None = None
    tags: Mapping[str, str] = field(default_factory=dict, compare=False)

    @property
    def is_column(self) -> bool:
        return not (self.is_relation or self.is_ignored)


@dataclass(frozen=True)
class ModelDescriptor:
    """Ordered field descriptors for one model."""

    name: str
    table_name: str
    fields: tuple[FieldDescriptor, ...]

    @property
    def columns(self) -> list[FieldDescriptor]:
        """Fields that become columns, in declaration order."""
        return [f for f in self.fields if f.is_column]

    @property
    def column_names(self) -> list[str]:
        return [f.column_name for f in self.columns]

    @property
    def primary_keys(self) -> list[FieldDescriptor]:
        return [f for f in self.columns if f.is_primary_key]

    @property
    def searchable_columns(self) -> list[str]:
        return [f.column_name for f in self.columns if f.is_searchable]

    @property
    def relations(self) -> list[RelationDescriptor]:
        return [f.relation for f in self.fields if f.relation is not None]

    @property
    def uuid_column(self) -> str | None:
        return "uuid" if self.has_column("uuid") else None

    def has_column(self, column_name: str) -> bool:
        return column_name in self.column_names

    def field_for_column(self, column_name: str) -> FieldDescriptor | None:
        for f in self.columns:
            if f.column_name == column_name:
                return f
        return None

    def relation(self, name: str) -> RelationDescriptor | None:
        """Find a relation by name (case-insensitive)."""
        wanted = name.strip().lower()
        for rel in self.relations:
            if rel.name.lower() == wanted:
                return rel
        return None
