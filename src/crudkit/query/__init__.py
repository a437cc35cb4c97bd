"""Generic list-query pipeline: parameters, builder, and response models.

Usage:
    from crudkit.query import QueryBuilder, QueryParams, Meta, Response
"""

from crudkit.query.builder import ComposedQuery, QueryBuilder, in_predicate
from crudkit.query.params import Meta, QueryParams, Response

__all__ = [
    "QueryParams",
    "Meta",
    "Response",
    "QueryBuilder",
    "ComposedQuery",
    "in_predicate",
]
