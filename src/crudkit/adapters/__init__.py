"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the SQLAlchemy-backed
``SQLAdapter`` implementation.

Usage:
    from crudkit.adapters import DatabaseClient, SQLAdapter
"""

from crudkit.adapters.base import DatabaseClient
from crudkit.adapters.sql import SQLAdapter, create_engine_pooled, normalize_url

__all__ = [
    "DatabaseClient",
    "SQLAdapter",
    "create_engine_pooled",
    "normalize_url",
]
