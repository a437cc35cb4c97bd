"""Generic query builder.

Translates ``QueryParams`` into parameterized SQL against a model's
table.  Stages apply in a fixed order, each skipped when its parameter
is empty:

1. search      ``(col LIKE :search ESCAPE '!' OR ...)`` over searchable columns
2. filter      ``col = :filter_N`` per pair (``IS NULL`` for None)
3. sort        validated ``col [ASC|DESC]`` list, default ``created_at DESC``
4. pagination  ``LIMIT :limit OFFSET :offset``
5. include     relation names resolved against the model
6. fields      column projection, ``*`` when absent

The count query shares the WHERE clause of stages 1-2 (plus any scope
predicates), so totals always describe the paginated row set.

Usage:
    from crudkit.query import QueryBuilder, QueryParams

    query = QueryBuilder(User, QueryParams(search="john", page=2, page_size=5)).build()
    rows = adapter.query(query.select_sql(), query.select_params())
    total = adapter.query(query.count_sql(), query.count_params())[0]["total"]
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from crudkit.errors import QueryError
from crudkit.query.params import QueryParams
from crudkit.schema.models import Model, ModelDescriptor, RelationDescriptor
from crudkit.schema.reader import describe

_SORT_ITEM = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)

# Same meaning in MySQL, SQLite and PostgreSQL string literals
LIKE_ESCAPE = "!"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally.

    Example:
        >>> escape_like("50%_off!")
        '50!%!_off!!'
    """
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def in_predicate(column: str, values: Sequence[Any], prefix: str) -> tuple[str, dict[str, Any]]:
    """``column IN (:prefix0, :prefix1, ...)`` with its bind parameters.

    Example:
        >>> in_predicate("user_id", [1, 2], "k")
        ('user_id IN (:k0, :k1)', {'k0': 1, 'k1': 2})
    """
    if not values:
        raise QueryError(f"IN predicate on {column} needs at least one value")
    params = {f"{prefix}{i}": value for i, value in enumerate(values)}
    placeholders = ", ".join(f":{name}" for name in params)
    return f"{column} IN ({placeholders})", params


@dataclass
class ComposedQuery:
    """A built list query: shared WHERE, plus sort/pagination for the page.

    Attributes:
        table: Target table.
        columns: Projected columns (empty means ``*``).
        conditions: WHERE predicates, ANDed.
        params: Bind values for ``conditions``.
        order_by: ORDER BY expression.
        limit: Page size.
        offset: Rows skipped.
        includes: Relations to pre-fetch for the returned rows.
    """

    table: str
    columns: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)
    order_by: str = ""
    limit: int = 10
    offset: int = 0
    includes: list[RelationDescriptor] = field(default_factory=list)

    @property
    def where_clause(self) -> str:
        if not self.conditions:
            return ""
        return " WHERE " + " AND ".join(self.conditions)

    def select_sql(self) -> str:
        projection = ", ".join(self.columns) if self.columns else "*"
        sql = f"SELECT {projection} FROM {self.table}{self.where_clause}"
        if self.order_by:
            sql += f" ORDER BY {self.order_by}"
        return sql + " LIMIT :limit OFFSET :offset"

    def select_params(self) -> dict[str, Any]:
        return {**self.params, "limit": self.limit, "offset": self.offset}

    def count_sql(self) -> str:
        return f"SELECT COUNT(*) AS total FROM {self.table}{self.where_clause}"

    def count_params(self) -> dict[str, Any]:
        return dict(self.params)


class QueryBuilder:
    """Builds a ``ComposedQuery`` for one model from ``QueryParams``.

    Args:
        model: Model class (or a prebuilt descriptor).
        params: Query parameters; defaults when omitted.

    Raises:
        QueryError: From ``build()`` for unknown filter or projection
            columns, malformed sort specs and unknown relations.
    """

    def __init__(
        self,
        model: type[Model] | ModelDescriptor,
        params: QueryParams | None = None,
    ) -> None:
        self.descriptor = model if isinstance(model, ModelDescriptor) else describe(model)
        self.params = params or QueryParams()
        self._scopes: list[str] = []
        self._scope_params: dict[str, Any] = {}

    def where(self, predicate: str, **params: Any) -> "QueryBuilder":
        """Add a scope predicate applied to both the page and the count."""
        self._scopes.append(predicate)
        self._scope_params.update(params)
        return self

    def _require_column(self, column: str, stage: str) -> None:
        if not self.descriptor.has_column(column):
            raise QueryError(
                f"Unknown {stage} column '{column}' for {self.descriptor.table_name}"
            )

    def _search(self, query: ComposedQuery) -> None:
        term = self.params.search
        columns = self.descriptor.searchable_columns
        if not term or not columns:
            return
        like = f"LIKE :search ESCAPE '{LIKE_ESCAPE}'"
        query.conditions.append("(" + " OR ".join(f"{col} {like}" for col in columns) + ")")
        query.params["search"] = f"%{escape_like(term)}%"

    def _filter(self, query: ComposedQuery) -> None:
        for i, (column, value) in enumerate(self.params.filter.items()):
            column = column.strip()
            self._require_column(column, "filter")
            if value is None:
                query.conditions.append(f"{column} IS NULL")
                continue
            name = f"filter_{i}"
            query.conditions.append(f"{column} = :{name}")
            query.params[name] = value

    def _sort(self) -> str:
        spec = self.params.sort
        if not spec:
            return self.default_sort()

        items: list[str] = []
        for raw in spec.split(","):
            item = " ".join(raw.split())
            match = _SORT_ITEM.match(item)
            if match is None:
                raise QueryError(f"Invalid sort expression '{raw.strip()}'")
            self._require_column(match.group(1), "sort")
            items.append(item)
        return ", ".join(items)

    def default_sort(self) -> str:
        """``created_at DESC``, or primary key ``DESC`` without ``created_at``."""
        if self.descriptor.has_column("created_at"):
            return "created_at DESC"
        keys = self.descriptor.primary_keys
        if keys:
            return f"{keys[0].column_name} DESC"
        return ""

    def _includes(self) -> list[RelationDescriptor]:
        relations: list[RelationDescriptor] = []
        for name in self.params.include_list:
            relation = self.descriptor.relation(name)
            if relation is None:
                raise QueryError(
                    f"Unknown relation '{name}' for {self.descriptor.table_name}"
                )
            relations.append(relation)
        return relations

    def _projection(self, includes: list[RelationDescriptor]) -> list[str]:
        columns = self.params.field_list
        for column in columns:
            self._require_column(column, "projection")
        if columns:
            # Keys needed to attach included relations
            for relation in includes:
                if relation.local_key not in columns and self.descriptor.has_column(relation.local_key):
                    columns.append(relation.local_key)
        return columns

    def build(self) -> ComposedQuery:
        query = ComposedQuery(table=self.descriptor.table_name)
        self._search(query)
        self._filter(query)
        query.conditions.extend(self._scopes)
        query.params.update(self._scope_params)
        query.order_by = self._sort()
        query.limit = self.params.limit
        query.offset = self.params.offset
        query.includes = self._includes()
        query.columns = self._projection(query.includes)
        return query
