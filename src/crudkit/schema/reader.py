"""Model descriptor reader.

Turns a statically declared ``Model`` subclass into a ``ModelDescriptor``:
parent-model fields first, embedded ``FieldGroup``s flattened depth-first
in declaration order, private fields (leading underscore) skipped, and
every tag parsed into directives.

Usage:
    from crudkit.schema.reader import describe

    descriptor = describe(User)
    descriptor.table_name          # 'users'
    descriptor.searchable_columns  # ['name', 'email']
"""

from collections.abc import Iterable
from functools import lru_cache

from crudkit.errors import ConfigurationError
from crudkit.schema.models import (
    RELATION_KINDS,
    Declaration,
    FieldDescriptor,
    FieldGroup,
    FieldSpec,
    Model,
    ModelDescriptor,
    Relation,
    RelationDescriptor,
)
from crudkit.schema.naming import to_snake_case
from crudkit.schema.types import has_directive, normalize_type

# Directives that mark a plain field as a relation reference
_RELATION_KEYS = ("foreignkey", "references", "many2many")


def parse_tag(tag: str) -> dict[str, str]:
    """Parse a semicolon-separated tag into directives.

    Keys are lower-cased and trimmed; bare keys map to ``""``.  Unknown
    keys are kept but never interpreted, so new directives can be added
    without breaking older readers.

    Examples:
        >>> parse_tag("size:100;not null;column:name")
        {'size': '100', 'not null': '', 'column': 'name'}
        >>> parse_tag("primaryKey; autoIncrement")
        {'primarykey': '', 'autoincrement': ''}
        >>> parse_tag("comment:starts at 10:30")
        {'comment': 'starts at 10:30'}
    """
    directives: dict[str, str] = {}
    for part in tag.split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition(":")
        directives[key.strip().lower()] = value.strip() if sep else ""
    return directives


def _flatten(
    declarations: Iterable[Declaration],
    group: tuple[str, ...],
    out: list[tuple[tuple[str, ...], FieldSpec | Relation]],
) -> None:
    for declaration in declarations:
        if isinstance(declaration, FieldGroup):
            _flatten(declaration.fields, group + (declaration.name,), out)
        elif isinstance(declaration, (FieldSpec, Relation)):
            if declaration.name.startswith("_"):
                continue
            out.append((group, declaration))
        else:
            raise ConfigurationError(
                f"Unsupported field declaration in {'.'.join(group)}: {declaration!r}"
            )


def _collect(model: type[Model]) -> list[tuple[tuple[str, ...], FieldSpec | Relation]]:
    """Declared fields of the model and its parent models, parents first."""
    entries: list[tuple[tuple[str, ...], FieldSpec | Relation]] = []
    for klass in reversed(model.__mro__):
        if not (isinstance(klass, type) and issubclass(klass, Model)):
            continue
        declared = klass.__dict__.get("fields")
        if declared:
            _flatten(declared, (klass.__name__,), entries)
    return entries


def _parse_size(owner: str, name: str, tags: dict[str, str]) -> int | None:
    size = tags.get("size")
    if not size:
        return None
    try:
        value = int(size)
    except ValueError:
        raise ConfigurationError(f"{owner}.{name}: invalid size '{size}'") from None
    if value <= 0:
        raise ConfigurationError(f"{owner}.{name}: size must be positive, got {value}")
    return value


def _describe_relation(
    owner: type[Model],
    spec: Relation,
    group: tuple[str, ...],
) -> FieldDescriptor:
    tags = parse_tag(spec.tag)
    if spec.kind not in RELATION_KINDS:
        raise ConfigurationError(
            f"{owner.__name__}.{spec.name}: unknown relation kind '{spec.kind}'. "
            f"Expected one of {', '.join(RELATION_KINDS)}"
        )

    if spec.kind == "belongs_to":
        default_fk = f"{to_snake_case(spec.name)}_id"
    else:
        default_fk = f"{to_snake_case(owner.__name__)}_id"

    relation = RelationDescriptor(
        name=spec.name,
        kind=spec.kind,
        foreign_key=tags.get("foreignkey") or default_fk,
        references=tags.get("references") or "id",
        target=spec.target,
    )
    return FieldDescriptor(
        name=spec.name,
        column_name=to_snake_case(spec.name),
        semantic_type="relation",
        is_relation=True,
        group=group,
        relation=relation,
        tags=tags,
    )


def _describe_field(
    owner: type[Model],
    spec: FieldSpec,
    group: tuple[str, ...],
) -> FieldDescriptor:
    tags = parse_tag(spec.tag)
    is_primary_key = has_directive(tags, "primarykey")
    not_null = "not null" in tags

    if spec.optional and is_primary_key:
        raise ConfigurationError(
            f"{owner.__name__}.{spec.name}: a primary key cannot be optional"
        )
    if spec.optional and not_null:
        raise ConfigurationError(
            f"{owner.__name__}.{spec.name}: optional field tagged 'not null'"
        )

    is_relation = any(key in tags for key in _RELATION_KEYS)
    relation = None
    if is_relation:
        relation = RelationDescriptor(
            name=spec.name,
            kind="belongs_to",
            foreign_key=tags.get("foreignkey") or f"{to_snake_case(spec.name)}_id",
            references=tags.get("references") or "id",
        )

    unique = "uniqueindex" in tags or has_directive(tags, "unique")
    indexed = "index" in tags and not unique

    return FieldDescriptor(
        name=spec.name,
        column_name=tags.get("column") or to_snake_case(spec.name),
        semantic_type=normalize_type(spec.type),
        nullable=not (is_primary_key or not_null),
        max_length=_parse_size(owner.__name__, spec.name, tags),
        default_value=tags.get("default"),
        is_primary_key=is_primary_key,
        auto_increment=has_directive(tags, "autoincrement"),
        is_unique_indexed=unique,
        unique_index_name=tags.get("uniqueindex") or None,
        is_indexed=indexed,
        index_name=(tags.get("index") or None) if indexed else None,
        is_searchable=has_directive(tags, "searchable"),
        is_relation=is_relation,
        is_ignored="-" in tags,
        comment=tags.get("comment") or None,
        explicit_type=tags.get("type") or None,
        optional=spec.optional,
        auto_create_time=has_directive(tags, "autocreatetime"),
        auto_update_time=has_directive(tags, "autoupdatetime"),
        group=group,
        relation=relation,
        tags=tags,
    )


def _validate(model: type[Model], fields: tuple[FieldDescriptor, ...]) -> None:
    name = model.__name__
    if not fields:
        raise ConfigurationError(f"Model {name} declares no fields")

    seen: set[str] = set()
    for f in fields:
        if not f.is_column:
            continue
        if f.column_name in seen:
            raise ConfigurationError(
                f"Model {name}: duplicate column '{f.column_name}'"
            )
        seen.add(f.column_name)

    pk_groups = {f.group for f in fields if f.is_column and f.is_primary_key}
    if not pk_groups:
        raise ConfigurationError(f"Model {name} has no primary key")
    if len(pk_groups) > 1:
        sources = sorted(".".join(g) for g in pk_groups)
        raise ConfigurationError(
            f"Model {name}: primary key declared in more than one field group: "
            f"{', '.join(sources)}"
        )


@lru_cache(maxsize=None)
def _describe(model: type[Model]) -> ModelDescriptor:
    fields: list[FieldDescriptor] = []
    for group, spec in _collect(model):
        if isinstance(spec, Relation):
            fields.append(_describe_relation(model, spec, group))
        else:
            fields.append(_describe_field(model, spec, group))

    descriptor_fields = tuple(fields)
    _validate(model, descriptor_fields)

    return ModelDescriptor(
        name=model.__name__,
        table_name=model.table_name(),
        fields=descriptor_fields,
    )


def describe(model: type[Model] | Model) -> ModelDescriptor:
    """Build (or fetch the cached) descriptor for a model.

    Args:
        model: A ``Model`` subclass or an instance of one.

    Returns:
        ``ModelDescriptor`` with fields in flattened declaration order.

    Raises:
        ConfigurationError: If the model declares no fields, repeats a
            column name, has no primary key, declares primary keys in more
            than one field group, or has an invalid tag value.
    """
    if not isinstance(model, type):
        model = type(model)
    if not issubclass(model, Model):
        raise ConfigurationError(f"{model.__name__} is not a crudkit Model")
    return _describe(model)
