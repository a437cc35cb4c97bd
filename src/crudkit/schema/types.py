"""Semantic type to SQL column type mapping.

Pure logic -- no I/O.  ``map_type`` turns a field's semantic type plus its
tag directives into a MySQL column type and the ordered constraint
clauses; ``column_definition`` renders a full column line for CREATE
TABLE.

Usage:
    from crudkit.schema.types import map_type

    map_type("string", {"size": "100", "not null": ""})
    # ('VARCHAR(100)', ['NOT NULL'])
"""

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crudkit.schema.models import FieldDescriptor


class FieldType(str, Enum):
    """Semantic field types understood by the mapper."""

    STRING = "string"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    BOOL = "bool"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    TIMESTAMP = "timestamp"


DEFAULT_STRING_SIZE = 255

_SQL_TYPES: dict[str, str] = {
    FieldType.INT.value: "INT",
    FieldType.INT8.value: "INT",
    FieldType.INT16.value: "INT",
    FieldType.INT32.value: "INT",
    FieldType.UINT.value: "INT",
    FieldType.UINT8.value: "INT",
    FieldType.UINT16.value: "INT",
    FieldType.UINT32.value: "INT",
    FieldType.INT64.value: "BIGINT",
    FieldType.UINT64.value: "BIGINT",
    FieldType.BOOL.value: "TINYINT(1)",
    FieldType.FLOAT32.value: "FLOAT",
    FieldType.FLOAT64.value: "DOUBLE",
    FieldType.TIMESTAMP.value: "DATETIME",
}

# Defaults emitted without quotes
_UNQUOTED_DEFAULTS = {"CURRENT_TIMESTAMP", "NULL"}

_FALSE_VALUES = {"false", "0", "no"}


def normalize_type(semantic_type: "str | FieldType") -> str:
    """Lower-cased string form of a semantic type."""
    if isinstance(semantic_type, FieldType):
        return semantic_type.value
    return str(semantic_type).strip().lower()


def has_directive(tags: Mapping[str, str], key: str) -> bool:
    """True when a bare or ``key:value`` directive is present and not false."""
    if key not in tags:
        return False
    return tags[key].strip().lower() not in _FALSE_VALUES


def quote_literal(value: str) -> str:
    """Single-quote a SQL string literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def _sql_type(semantic_type: str, tags: Mapping[str, str]) -> str:
    size = tags.get("size", "").strip()

    explicit = tags.get("type", "").strip()
    if explicit:
        if size and "(" not in explicit:
            return f"{explicit}({size})"
        return explicit

    if semantic_type == FieldType.STRING.value:
        return f"VARCHAR({size or DEFAULT_STRING_SIZE})"

    # Anything unrecognized falls back to TEXT
    return _SQL_TYPES.get(semantic_type, "TEXT")


def map_type(
    semantic_type: "str | FieldType",
    tags: Mapping[str, str],
    optional: bool = False,
) -> tuple[str, list[str]]:
    """Map a semantic type and tag directives to SQL type and constraints.

    Constraint clauses are always returned in this order::

        [NOT NULL|NULL] [AUTO_INCREMENT] [DEFAULT <value>] [COMMENT '<text>']

    Args:
        semantic_type: Semantic type (``FieldType`` or its string value).
            Unknown types map to ``TEXT``.
        tags: Parsed tag directives (lower-cased keys).
        optional: True for nullable-wrapped fields.  Same SQL type as the
            unwrapped field; the column stays nullable unless it is a
            primary key.

    Returns:
        Tuple of ``(sql_type, constraint_clauses)``.

    Examples:
        >>> map_type("int", {"primarykey": "", "autoincrement": ""})
        ('INT', ['NOT NULL', 'AUTO_INCREMENT'])
        >>> map_type("int", {"default": "0"})
        ('INT', ['NULL', "DEFAULT '0'"])
        >>> map_type("decimal", {})
        ('TEXT', ['NULL'])
    """
    semantic = normalize_type(semantic_type)
    sql_type = _sql_type(semantic, tags)

    is_primary_key = has_directive(tags, "primarykey")
    not_null = is_primary_key or (not optional and "not null" in tags)

    clauses: list[str] = ["NOT NULL" if not_null else "NULL"]

    if has_directive(tags, "autoincrement"):
        clauses.append("AUTO_INCREMENT")

    if "default" in tags:
        default = tags["default"]
        if default.upper() in _UNQUOTED_DEFAULTS:
            clauses.append(f"DEFAULT {default.upper()}")
        else:
            clauses.append(f"DEFAULT {quote_literal(default)}")

    comment = tags.get("comment", "")
    if comment:
        clauses.append(f"COMMENT {quote_literal(comment)}")

    return sql_type, clauses


def column_definition(field: "FieldDescriptor") -> str | None:
    """Render ``<column> <type> <constraints>`` for CREATE TABLE.

    Returns:
        The column line, or ``None`` for relation and ignored fields
        (they never become columns).
    """
    if field.is_relation or field.is_ignored:
        return None

    sql_type, clauses = map_type(field.semantic_type, field.tags, optional=field.optional)
    return " ".join([field.column_name, sql_type, *clauses])
