"""Query parameters, pagination metadata, and the response envelope."""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


# ============================================================================
# Request Models
# ============================================================================


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class QueryParams(BaseModel):
    """Normalized list-query parameters.

    ``page < 1`` becomes 1, ``page_size < 1`` becomes 10 and
    ``page_size > 100`` becomes 100.  Unparseable numbers fall back to
    the defaults.

    Example:
        params = QueryParams(search="john", page=2, page_size=5)
        params.offset  # 5
    """

    model_config = ConfigDict(extra="ignore")

    search: str = ""
    filter: dict[str, Any] = Field(default_factory=dict)
    sort: str = ""
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    fields: str = ""
    include: str = ""

    @field_validator("search", "sort", "fields", "include", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("page", mode="before")
    @classmethod
    def _normalize_page(cls, value: Any) -> int:
        page = _as_int(value, DEFAULT_PAGE)
        return page if page >= 1 else DEFAULT_PAGE

    @field_validator("page_size", mode="before")
    @classmethod
    def _normalize_page_size(cls, value: Any) -> int:
        size = _as_int(value, DEFAULT_PAGE_SIZE)
        if size < 1:
            return DEFAULT_PAGE_SIZE
        return min(size, MAX_PAGE_SIZE)

    @field_validator("filter", mode="before")
    @classmethod
    def _default_filter(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def field_list(self) -> list[str]:
        return _split_csv(self.fields)

    @property
    def include_list(self) -> list[str]:
        return _split_csv(self.include)

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "QueryParams":
        """Build from a flat query-string mapping.

        ``filter[col]=value`` keys are collected into ``filter``.  List
        values (as produced by ``urllib.parse.parse_qs``) use their first
        element.

        Example:
            QueryParams.from_query({"filter[status]": "active", "page": "2"})
        """
        data: dict[str, Any] = {}
        filters: dict[str, Any] = {}
        for key, value in query.items():
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if key.startswith("filter[") and key.endswith("]"):
                column = key[len("filter["):-1].strip()
                if column:
                    filters[column] = value
            else:
                data[key] = value
        if filters:
            data["filter"] = filters
        return cls(**data)


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ============================================================================
# Response Models
# ============================================================================


class Meta(BaseModel):
    """Pagination summary for a list response."""

    page: int
    page_size: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Meta":
        """``pages = ceil(total / page_size)``, 0 when there are no rows."""
        pages = math.ceil(total / page_size) if total > 0 and page_size > 0 else 0
        return cls(page=page, page_size=page_size, total=total, pages=pages)

    @classmethod
    def for_params(cls, params: QueryParams, total: int) -> "Meta":
        return cls.build(params.page, params.page_size, total)


class Response(BaseModel):
    """JSON envelope ``{success, data, error, meta}`` for the HTTP layer."""

    success: bool
    data: Any = None
    error: str | None = None
    meta: Meta | None = None

    @classmethod
    def ok(cls, data: Any = None, meta: Meta | None = None) -> "Response":
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def failure(cls, error: str | Exception) -> "Response":
        return cls(success=False, error=str(error))
