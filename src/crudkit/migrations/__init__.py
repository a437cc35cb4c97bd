"""Migration generation, registry, ledger and runner.

Usage:
    from crudkit.migrations import MigrationGenerator, MigrationRegistry, Migrator

    registry = MigrationRegistry()
    MigrationGenerator("migrations", registry).generate([User, Post])
    Migrator(adapter, registry).apply_pending()
"""

from crudkit.migrations.generator import (
    GenerationResult,
    MigrationGenerator,
    create_table_statements,
)
from crudkit.migrations.ledger import MigrationLedger, MigrationRecord
from crudkit.migrations.registry import Migration, MigrationRegistry
from crudkit.migrations.runner import MigrationStatus, Migrator
from crudkit.migrations.sql import split_statements

__all__ = [
    "Migration",
    "MigrationRegistry",
    "MigrationGenerator",
    "GenerationResult",
    "create_table_statements",
    "MigrationLedger",
    "MigrationRecord",
    "Migrator",
    "MigrationStatus",
    "split_statements",
]
