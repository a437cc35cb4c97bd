"""Generic repository -- CRUD over one model through a ``DatabaseClient``.

Composes ``QueryBuilder`` for list queries with plain create, update and
(soft or hard) delete.  Rows are dicts keyed by column name.

Keys passed to ``find_one`` / ``update_one`` / ``delete_one`` are matched
against the primary key when they are ints, and against the ``uuid``
column when they are strings and the model has one.  A digit string that
matches no uuid falls back to the primary key.

Usage:
    from crudkit.repository import GenericRepository
    from crudkit.query import QueryParams

    users = GenericRepository(adapter, User, soft_delete=True)
    created = users.create_one({"name": "John", "email": "john@example.com"})
    rows, meta = users.find_many(QueryParams(search="john", page=1))
    users.delete_one(created["uuid"], actor=42)
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from crudkit.errors import ConfigurationError, NotFoundError, QueryError
from crudkit.query.builder import QueryBuilder, in_predicate
from crudkit.query.params import Meta, QueryParams
from crudkit.schema.models import Model, RelationDescriptor
from crudkit.schema.naming import to_snake_case
from crudkit.schema.reader import describe

if TYPE_CHECKING:
    from crudkit.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

SOFT_DELETE_COLUMN = "deleted_at"
SOFT_DELETE_ACTOR_COLUMN = "deleted_by"

# Columns never written by update_one
_CREATION_COLUMNS = ("created_at", "created_by")


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GenericRepository:
    """CRUD operations for one model.

    Args:
        client: Database client.
        model: Model class.
        soft_delete: Mark rows deleted via ``deleted_at`` instead of
            removing them, and hide marked rows from every find.

    Raises:
        ConfigurationError: If ``soft_delete`` is set and the model has no
            ``deleted_at`` column.
    """

    def __init__(
        self,
        client: "DatabaseClient",
        model: type[Model],
        soft_delete: bool = False,
    ) -> None:
        self._client = client
        self.model = model
        self.descriptor = describe(model)
        self.table = self.descriptor.table_name
        self.soft_delete = soft_delete

        if soft_delete and not self.descriptor.has_column(SOFT_DELETE_COLUMN):
            raise ConfigurationError(
                f"Soft delete needs a '{SOFT_DELETE_COLUMN}' column on {self.table}"
            )

        primary_keys = self.descriptor.primary_keys
        self.primary_key = primary_keys[0].column_name
        self.uuid_column = self.descriptor.uuid_column

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    def _key_filter(self, key: int | str) -> dict[str, Any]:
        if isinstance(key, bool):
            raise QueryError(f"Invalid key for {self.table}: {key!r}")
        if isinstance(key, int):
            return {self.primary_key: key}
        if isinstance(key, str):
            if self.uuid_column:
                by_uuid = {self.uuid_column: key}
                # Path parameters arrive as strings; "5" may be an id
                if key.isdigit() and not self._client.select(self.table, self.primary_key, by_uuid):
                    return {self.primary_key: int(key)}
                return by_uuid
            if key.isdigit():
                return {self.primary_key: int(key)}
        raise QueryError(f"Invalid key for {self.table}: {key!r}")

    def _scoped(self, filters: dict[str, Any]) -> dict[str, Any]:
        if self.soft_delete:
            return {**filters, SOFT_DELETE_COLUMN: None}
        return filters

    def _check_columns(self, data: Mapping[str, Any]) -> None:
        unknown = [k for k in data if not self.descriptor.has_column(k)]
        if unknown:
            raise QueryError(
                f"Unknown column(s) for {self.table}: {', '.join(sorted(unknown))}"
            )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def query_builder(self, params: QueryParams | None = None) -> QueryBuilder:
        """Builder for this model with the soft-delete scope applied."""
        builder = QueryBuilder(self.descriptor, params)
        if self.soft_delete:
            builder.where(f"{SOFT_DELETE_COLUMN} IS NULL")
        return builder

    def find_many(self, params: QueryParams | None = None) -> tuple[list[dict], Meta]:
        """One page of rows plus pagination metadata."""
        params = params or QueryParams()
        query = self.query_builder(params).build()

        total_rows = self._client.query(query.count_sql(), query.count_params())
        total = int(total_rows[0]["total"]) if total_rows else 0

        rows = self._client.query(query.select_sql(), query.select_params())
        self._attach(rows, query.includes)

        logger.debug("find_many %s: %d of %d row(s)", self.table, len(rows), total)
        return rows, Meta.for_params(params, total)

    def count(self, params: QueryParams | None = None) -> int:
        """Rows matching the search/filter (and soft-delete) predicates."""
        query = self.query_builder(params).build()
        rows = self._client.query(query.count_sql(), query.count_params())
        return int(rows[0]["total"]) if rows else 0

    def find_one(self, key: int | str, include: str | Iterable[str] = "") -> dict:
        """Fetch one row by primary key or uuid.

        Raises:
            NotFoundError: If no (non-deleted) row matches.
            QueryError: If ``include`` names an unknown relation.
        """
        rows = self._client.select(self.table, "*", self._scoped(self._key_filter(key)))
        if not rows:
            raise NotFoundError(
                f"{self.descriptor.name} {key!r} not found", table=self.table, key=key
            )

        names = include if isinstance(include, str) else ",".join(include)
        if names:
            includes = self.query_builder(QueryParams(include=names)).build().includes
            self._attach(rows, includes)
        return rows[0]

    def _attach(self, rows: list[dict], relations: list[RelationDescriptor]) -> None:
        """Pre-fetch related rows with one IN query per relation."""
        for relation in relations:
            target = relation.model
            if target is None:
                raise ConfigurationError(
                    f"Relation {relation.name} on {self.table} has no target model"
                )
            target_descriptor = describe(target)
            attr = to_snake_case(relation.name)
            many = relation.kind == "has_many"

            keys = list(dict.fromkeys(
                row[relation.local_key] for row in rows if row.get(relation.local_key) is not None
            ))
            related: dict[Any, list[dict]] = {}
            if keys:
                predicate, params = in_predicate(relation.remote_key, keys, "k")
                sql = f"SELECT * FROM {target_descriptor.table_name} WHERE {predicate}"
                if self.soft_delete and target_descriptor.has_column(SOFT_DELETE_COLUMN):
                    sql += f" AND {SOFT_DELETE_COLUMN} IS NULL"
                for item in self._client.query(sql, params):
                    related.setdefault(item[relation.remote_key], []).append(item)

            for row in rows:
                matches = related.get(row.get(relation.local_key), [])
                if many:
                    row[attr] = matches
                else:
                    row[attr] = matches[0] if matches else None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        row = {k: v for k, v in data.items() if v is not None or k != self.primary_key}
        self._check_columns(row)

        if self.uuid_column and not row.get(self.uuid_column):
            row[self.uuid_column] = str(uuid4())

        now = _now()
        for f in self.descriptor.columns:
            if (f.auto_create_time or f.auto_update_time) and row.get(f.column_name) is None:
                row[f.column_name] = now
        return row

    def create_one(self, data: Mapping[str, Any]) -> dict:
        """Insert a row and return it as stored.

        Fills a missing ``uuid`` and the auto create/update timestamps.

        Raises:
            QueryError: If ``data`` has columns the model does not declare.
            DuplicateError: If a unique constraint rejects the row.
        """
        row = self._prepare_create(data)
        returning = self.uuid_column or self.primary_key
        created = self._client.insert(self.table, row, returning_key=returning)
        logger.debug("Created %s row %s", self.table, created.get(returning))
        return created

    def create_many(self, rows: Iterable[Mapping[str, Any]]) -> list[dict]:
        return [self.create_one(row) for row in rows]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_one(self, key: int | str, data: Mapping[str, Any]) -> dict:
        """Write every provided column and return the updated row.

        Key columns and creation columns are never overwritten; auto
        update timestamps are bumped.

        Raises:
            NotFoundError: If no (non-deleted) row matches.
            QueryError: If ``data`` has columns the model does not declare.
        """
        self._check_columns(data)
        self.find_one(key)

        protected = {f.column_name for f in self.descriptor.primary_keys}
        protected.update(_CREATION_COLUMNS)
        if self.uuid_column:
            protected.add(self.uuid_column)
        protected.update(f.column_name for f in self.descriptor.columns if f.auto_create_time)

        values = {k: v for k, v in data.items() if k not in protected}
        now = _now()
        for f in self.descriptor.columns:
            if f.auto_update_time:
                values[f.column_name] = now

        if values:
            self._client.update(self.table, values, self._key_filter(key))
        return self.find_one(key)

    def update_many(self, rows: Iterable[Mapping[str, Any]]) -> list[dict]:
        """Update rows that each carry their own primary key or uuid."""
        updated: list[dict] = []
        for row in rows:
            if row.get(self.primary_key) is not None:
                key = row[self.primary_key]
            elif self.uuid_column and row.get(self.uuid_column):
                key = row[self.uuid_column]
            else:
                raise QueryError(
                    f"Row for {self.table} has no '{self.primary_key}' or uuid to update by"
                )
            updated.append(self.update_one(key, row))
        return updated

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_one(self, key: int | str, actor: int | None = None) -> None:
        """Delete one row (soft or physical, per repository mode).

        Args:
            key: Primary key or uuid.
            actor: Id recorded in ``deleted_by`` on soft delete, when the
                column exists.

        Raises:
            NotFoundError: If no (non-deleted) row matches.
        """
        self.find_one(key)
        filters = self._key_filter(key)

        if not self.soft_delete:
            self._client.delete(self.table, filters)
            logger.debug("Deleted %s row %r", self.table, key)
            return

        values: dict[str, Any] = {SOFT_DELETE_COLUMN: _now()}
        if actor is not None and self.descriptor.has_column(SOFT_DELETE_ACTOR_COLUMN):
            values[SOFT_DELETE_ACTOR_COLUMN] = actor
        self._client.update(self.table, values, filters)
        logger.debug("Soft-deleted %s row %r", self.table, key)

    def delete_many(self, keys: Iterable[int | str], actor: int | None = None) -> int:
        """Delete each key; returns the number of rows deleted."""
        deleted = 0
        for key in keys:
            self.delete_one(key, actor=actor)
            deleted += 1
        return deleted
