"""crudkit: generic query and migration engine for CRUD backends.

Declare models statically, generate create-table migrations from them,
apply and roll back those migrations against a ledger, and run paginated
list/get/create/update/delete operations through a generic repository.

Usage:
    from crudkit import Model, FieldSpec, BASE_MODEL, RECORD_MODEL
    from crudkit import MigrationGenerator, MigrationRegistry, Migrator
    from crudkit import GenericRepository, QueryParams, get_adapter
"""

__version__ = "0.1.0"

# Adapters
from crudkit.adapters.base import DatabaseClient
from crudkit.adapters.sql import SQLAdapter

# Config
from crudkit.config.loader import load_config
from crudkit.config.models import CrudkitConfig, DatabaseProfile, MigrationSettings

# Errors
from crudkit.errors import (
    ApplyError,
    ConfigurationError,
    CrudkitError,
    DatabaseError,
    DuplicateError,
    GenerationError,
    NotFoundError,
    QueryError,
)

# Factory
from crudkit.factory import ProfileNotFoundError, get_adapter, load_models, resolve_url

# Migrations
from crudkit.migrations import (
    GenerationResult,
    Migration,
    MigrationGenerator,
    MigrationLedger,
    MigrationRegistry,
    MigrationStatus,
    Migrator,
)

# Query
from crudkit.query import Meta, QueryBuilder, QueryParams, Response

# Repository
from crudkit.repository import GenericRepository

# Schema
from crudkit.schema import (
    BASE_MODEL,
    RECORD_CREATED,
    RECORD_MODEL,
    RECORD_UPDATED,
    SOFT_DELETE_MODEL,
    UUID_MODEL,
    FieldGroup,
    FieldSpec,
    FieldType,
    Model,
    ModelDescriptor,
    Relation,
    describe,
    map_type,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "SQLAdapter",
    # Config
    "load_config",
    "CrudkitConfig",
    "DatabaseProfile",
    "MigrationSettings",
    # Errors
    "CrudkitError",
    "ConfigurationError",
    "GenerationError",
    "ApplyError",
    "NotFoundError",
    "DuplicateError",
    "DatabaseError",
    "QueryError",
    # Factory
    "get_adapter",
    "load_models",
    "resolve_url",
    "ProfileNotFoundError",
    # Migrations
    "Migration",
    "MigrationRegistry",
    "MigrationGenerator",
    "GenerationResult",
    "MigrationLedger",
    "Migrator",
    "MigrationStatus",
    # Query
    "QueryParams",
    "QueryBuilder",
    "Meta",
    "Response",
    # Repository
    "GenericRepository",
    # Schema
    "Model",
    "FieldSpec",
    "FieldGroup",
    "Relation",
    "FieldType",
    "ModelDescriptor",
    "describe",
    "map_type",
    "BASE_MODEL",
    "UUID_MODEL",
    "RECORD_CREATED",
    "RECORD_UPDATED",
    "RECORD_MODEL",
    "SOFT_DELETE_MODEL",
]
