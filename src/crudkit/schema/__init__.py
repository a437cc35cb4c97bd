"""Model declarations, descriptors, and SQL type mapping.

Provides model declaration (``Model``, ``FieldSpec``, ``FieldGroup``,
``Relation``), the descriptor reader (``describe``, ``parse_tag``), the
standard embedded field groups, and the semantic-to-SQL type mapper
(``map_type``, ``column_definition``).

Usage:
    from crudkit.schema import Model, FieldSpec, BASE_MODEL, describe
    from crudkit.schema import map_type, column_definition
"""

from crudkit.schema.mixins import (
    BASE_MODEL,
    RECORD_CREATED,
    RECORD_MODEL,
    RECORD_UPDATED,
    SOFT_DELETE_MODEL,
    UUID_MODEL,
)
from crudkit.schema.models import (
    FieldDescriptor,
    FieldGroup,
    FieldSpec,
    Model,
    ModelDescriptor,
    Relation,
    RelationDescriptor,
)
from crudkit.schema.naming import pluralize, to_snake_case
from crudkit.schema.reader import describe, parse_tag
from crudkit.schema.types import FieldType, column_definition, map_type

__all__ = [
    "Model",
    "FieldSpec",
    "FieldGroup",
    "Relation",
    "FieldType",
    "FieldDescriptor",
    "ModelDescriptor",
    "RelationDescriptor",
    "describe",
    "parse_tag",
    "map_type",
    "column_definition",
    "to_snake_case",
    "pluralize",
    "BASE_MODEL",
    "UUID_MODEL",
    "RECORD_CREATED",
    "RECORD_UPDATED",
    "RECORD_MODEL",
    "SOFT_DELETE_MODEL",
]
