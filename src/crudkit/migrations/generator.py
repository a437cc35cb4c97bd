"""Migration generator -- CREATE/DROP TABLE migrations from model descriptors.

For each model without an existing migration, builds the table DDL from
its descriptor, writes three versioned artifacts and registers the
migration so it can be applied in the same process:

    <version>_create_<table>_table.py        registration stub
    <version>_create_<table>_table.up.sql    CREATE TABLE + indexes
    <version>_create_<table>_table.down.sql  DROP TABLE

Usage:
    from crudkit.migrations import MigrationGenerator, MigrationRegistry

    registry = MigrationRegistry()
    generator = MigrationGenerator("migrations", registry)
    result = generator.generate([User, Post])
    result.generated   # ['20251117195835_create_users_table', ...]
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from crudkit.errors import CrudkitError, GenerationError
from crudkit.migrations.registry import Migration, MigrationRegistry
from crudkit.migrations.sql import (
    VERSION_FORMAT,
    artifact_filenames,
    create_table_name,
    format_version,
    parse_artifact_name,
)
from crudkit.schema.models import Model, ModelDescriptor
from crudkit.schema.reader import describe
from crudkit.schema.types import column_definition

if TYPE_CHECKING:
    from crudkit.adapters.base import DatabaseClient
    from crudkit.migrations.ledger import MigrationLedger

logger = logging.getLogger(__name__)

TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"

_STUB_TEMPLATE = '''"""Migration {version}_{name}.

Generated by crudkit.  Registers the migration with the registry passed
to ``register()``; the same SQL is kept in the .up.sql/.down.sql sidecars.
"""

from crudkit.migrations.registry import Migration

VERSION = {version!r}
NAME = {name!r}

UP = {up!r}

DOWN = {down!r}


def register(registry):
    registry.register(Migration(VERSION, NAME, UP, DOWN, source={source!r}))
'''


class GenerationResult(BaseModel):
    """Outcome of a ``generate()`` run.

    Attributes:
        generated: ``<version>_<name>`` of each migration written.
        skipped: Table names that already had a migration or table.
        errors: Table (or model) name -> error message.
    """

    generated: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


# ------------------------------------------------------------------
# DDL construction
# ------------------------------------------------------------------


def _index_groups(descriptor: ModelDescriptor, unique: bool) -> dict[str, list[str]]:
    """Index name -> columns, in first-declared order.

    Fields sharing an explicit index name form one composite index.
    """
    table = descriptor.table_name
    groups: dict[str, list[str]] = {}
    for f in descriptor.columns:
        if unique and f.is_unique_indexed:
            name = f.unique_index_name or f"uidx_{table}_{f.column_name}"
        elif not unique and f.is_indexed:
            name = f.index_name or f"idx_{table}_{f.column_name}"
        else:
            continue
        groups.setdefault(name, []).append(f.column_name)
    return groups


def create_table_statements(descriptor: ModelDescriptor) -> list[str]:
    """CREATE TABLE plus CREATE [UNIQUE] INDEX statements for a model.

    Raises:
        GenerationError: If the model yields no columns.
    """
    table = descriptor.table_name
    lines = [d for f in descriptor.columns if (d := column_definition(f)) is not None]
    if not lines:
        raise GenerationError(f"Model {descriptor.name} has no columns", table=table)

    primary_keys = [f.column_name for f in descriptor.primary_keys]
    lines.append(f"PRIMARY KEY ({', '.join(primary_keys)})")

    body = ",\n  ".join(lines)
    statements = [f"CREATE TABLE IF NOT EXISTS {table} (\n  {body}\n) {TABLE_OPTIONS};"]

    for unique in (True, False):
        keyword = "UNIQUE INDEX" if unique else "INDEX"
        for name, columns in _index_groups(descriptor, unique).items():
            statements.append(f"CREATE {keyword} {name} ON {table} ({', '.join(columns)});")

    return statements


def drop_table_statement(table: str) -> str:
    return f"DROP TABLE IF EXISTS {table};"


# ------------------------------------------------------------------
# Generator
# ------------------------------------------------------------------


class MigrationGenerator:
    """Generate create-table migrations, at most one per table.

    Args:
        directory: Where artifacts are written (created on demand).
        registry: Registry that receives each generated migration.
        ledger: Optional ledger; a recorded migration with the same name
            counts as existing.
        client: Optional database client; an existing table counts as
            existing.
        clock: Returns the current time (used for version stamps).
    """

    def __init__(
        self,
        directory: str | Path,
        registry: MigrationRegistry | None = None,
        ledger: "MigrationLedger | None" = None,
        client: "DatabaseClient | None" = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.directory = Path(directory)
        self.registry = registry if registry is not None else MigrationRegistry()
        self._ledger = ledger
        self._client = client
        self._clock = clock
        self._last_version: str | None = self._latest_artifact_version()

    def _latest_artifact_version(self) -> str | None:
        if not self.directory.is_dir():
            return None
        versions = [
            parsed.version
            for path in self.directory.iterdir()
            if (parsed := parse_artifact_name(path.name)) is not None
        ]
        return max(versions) if versions else None

    def next_version(self) -> str:
        """Version stamp from the clock, strictly after the last one issued."""
        version = format_version(self._clock())
        if self._last_version is not None and version <= self._last_version:
            try:
                last = datetime.strptime(self._last_version, VERSION_FORMAT)
            except ValueError:
                last = self._clock()
            version = format_version(last + timedelta(seconds=1))
        self._last_version = version
        return version

    def artifact_exists(self, name: str) -> bool:
        """True when a stub or up-SQL artifact for this migration name exists."""
        if not self.directory.is_dir():
            return False
        for path in self.directory.iterdir():
            parsed = parse_artifact_name(path.name)
            if parsed is not None and parsed.name == name and parsed.kind in ("stub", "up"):
                return True
        return False

    def _skip_reason(self, table: str) -> str | None:
        name = create_table_name(table)
        if self.artifact_exists(name):
            return "migration artifact exists"
        if self._ledger is not None and self._ledger.has_name(name):
            return "migration already recorded"
        if self._client is not None and self._client.table_exists(table):
            return "table exists"
        return None

    def build_migration(self, model: type[Model], version: str) -> Migration:
        """Build (but do not persist) the create-table migration for a model."""
        descriptor = describe(model)
        table = descriptor.table_name
        name = create_table_name(table)
        statements = create_table_statements(descriptor)
        return Migration(
            version=version,
            name=name,
            up="\n\n".join(statements) + "\n",
            down=drop_table_statement(table) + "\n",
            source=artifact_filenames(version, name)["stub"],
        )

    def write_artifacts(self, migration: Migration) -> list[Path]:
        """Write the stub and SQL sidecars for a migration."""
        self.directory.mkdir(parents=True, exist_ok=True)
        names = artifact_filenames(migration.version, migration.name)

        stub = _STUB_TEMPLATE.format(
            version=migration.version,
            name=migration.name,
            up=migration.up,
            down=migration.down,
            source=names["stub"],
        )
        paths = [
            self.directory / names["up"],
            self.directory / names["down"],
            self.directory / names["stub"],
        ]
        paths[0].write_text(migration.up)
        paths[1].write_text(migration.down)
        paths[2].write_text(stub)
        return paths

    def generate_for_model(self, model: type[Model]) -> Migration:
        """Generate, persist and register a migration without skip checks.

        Raises:
            GenerationError: If the descriptor cannot be read or the
                artifacts cannot be written.
        """
        try:
            # Validate before a version stamp is consumed
            describe(model)
            migration = self.build_migration(model, self.next_version())
            self.write_artifacts(migration)
        except GenerationError:
            raise
        except (CrudkitError, OSError) as e:
            raise GenerationError(
                f"Cannot generate migration for {model.__name__}: {e}",
                table=_safe_table_name(model),
            ) from e

        self.registry.register(migration)
        logger.info("Generated migration %s", migration)
        return migration

    def generate(self, models: Iterable[type[Model]]) -> GenerationResult:
        """Generate migrations for models that do not have one yet.

        A failure for one model is recorded in ``errors`` and does not
        affect the others.
        """
        result = GenerationResult()
        for model in models:
            table = _safe_table_name(model)
            try:
                reason = self._skip_reason(table)
                if reason is not None:
                    logger.info("Skipping %s: %s", table, reason)
                    result.skipped.append(table)
                    continue
                migration = self.generate_for_model(model)
            except CrudkitError as e:
                logger.error("Migration generation failed for %s: %s", table, e)
                result.errors[table] = str(e)
                continue
            result.generated.append(str(migration))
        return result


def _safe_table_name(model: object) -> str:
    if isinstance(model, type) and issubclass(model, Model):
        return model.table_name()
    return getattr(model, "__name__", repr(model))
