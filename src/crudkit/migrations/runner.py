"""Migration runner -- apply, roll back, drop and refresh.

Executes registered (or on-disk) migrations against a ``DatabaseClient``
and keeps the ledger in step.  A ledger row is written only after every
statement of a migration succeeded, so a failed run leaves the ledger
consistent with the database.

Usage:
    from crudkit.migrations import Migrator, MigrationRegistry

    registry = MigrationRegistry()
    registry.discover("migrations")

    migrator = Migrator(adapter, registry)
    migrator.apply_pending()
    migrator.rollback()             # most recently applied
    migrator.refresh([User, Post])  # drop + re-apply
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel

from crudkit.errors import ApplyError, ConfigurationError, NotFoundError
from crudkit.migrations.ledger import DEFAULT_LEDGER_TABLE, MigrationLedger
from crudkit.migrations.registry import Migration, MigrationRegistry
from crudkit.migrations.sql import (
    ArtifactName,
    create_table_name,
    parse_artifact_name,
    split_statements,
)
from crudkit.schema.models import Model

if TYPE_CHECKING:
    from crudkit.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

# Session statements wrapped around DROP TABLE batches, per dialect
_FK_CHECKS_OFF = {"mysql": ["SET FOREIGN_KEY_CHECKS=0"]}
_FK_CHECKS_ON = {"mysql": ["SET FOREIGN_KEY_CHECKS=1"]}


class MigrationStatus(BaseModel):
    """Applied state of one migration."""

    version: str
    name: str
    applied: bool = False
    applied_at: datetime | None = None
    source: str | None = None


class Migrator:
    """Applies and rolls back migrations, tracking them in the ledger.

    Args:
        client: Database client.
        registry: Registered migrations (a new empty registry if omitted).
        ledger: Ledger to use.  Built from ``table`` and ``disambiguate``
            when omitted.
        disambiguate: Ledger uniqueness on ``(version, name)`` (True) or
            ``version`` alone (False).
        table: Ledger table name.
    """

    def __init__(
        self,
        client: "DatabaseClient",
        registry: MigrationRegistry | None = None,
        ledger: MigrationLedger | None = None,
        disambiguate: bool = True,
        table: str = DEFAULT_LEDGER_TABLE,
    ) -> None:
        self._client = client
        self.registry = registry if registry is not None else MigrationRegistry()
        self.ledger = ledger or MigrationLedger(client, table=table, disambiguate=disambiguate)

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def _run(self, sql: str, version: str, name: str) -> int:
        """Execute each statement in ``sql``; returns the statement count."""
        statements = split_statements(sql)
        for statement in statements:
            try:
                self._client.execute(statement)
            except Exception as e:
                raise ApplyError(
                    f"Migration {version}_{name} failed: {e}",
                    version=version,
                    name=name,
                    statement=statement,
                ) from e
        return len(statements)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply_pending(self) -> list[Migration]:
        """Apply every registered migration not yet in the ledger.

        Migrations run in ascending version order.  Calling this again
        once everything is applied does nothing.

        Returns:
            Migrations applied by this call.

        Raises:
            ApplyError: If a statement fails.  Earlier migrations in the
                run stay applied and recorded.
        """
        self.ledger.ensure_table()

        applied: list[Migration] = []
        for migration in self.registry.migrations():
            if self.ledger.is_applied(migration.version, migration.name):
                if not self.ledger.disambiguate:
                    self._warn_if_shadowed(migration)
                continue
            count = self._run(migration.up, migration.version, migration.name)
            if self.ledger.record(migration.version, migration.name, migration.source):
                applied.append(migration)
                logger.info("Applied %s (%d statement(s))", migration, count)

        if not applied:
            logger.info("No pending migrations")
        return applied

    def apply_directory(self, directory: str | Path) -> list[Migration]:
        """Apply unapplied ``*.up.sql`` files from a directory.

        Files run in file name (version) order and are recorded with the
        file name as their source.  Empty files are recorded without
        executing anything.  Each applied migration is also registered so
        it can be rolled back from its ``.down.sql`` sidecar.

        Without disambiguation the ledger holds one row per version, so
        two files sharing a version stamp cannot both be recorded.

        Returns:
            Migrations applied by this call.

        Raises:
            ConfigurationError: Without disambiguation, if two files share
                a version, or a file's version is already recorded for a
                different migration.  Nothing is executed in that case.
            ApplyError: If a statement fails.
        """
        path = Path(directory)
        self.ledger.ensure_table()
        if not path.is_dir():
            logger.warning("Migration directory not found: %s", path)
            return []

        files: list[tuple[Path, ArtifactName]] = []
        for up_file in sorted(path.glob("*.up.sql")):
            parsed = parse_artifact_name(up_file.name)
            if parsed is None:
                logger.warning("Skipping malformed migration file name: %s", up_file.name)
                continue
            files.append((up_file, parsed))

        if not self.ledger.disambiguate:
            self._check_version_collisions(files)

        applied: list[Migration] = []
        for up_file, parsed in files:
            if self.ledger.is_applied(parsed.version, parsed.name):
                continue

            down_file = up_file.with_name(f"{parsed.version}_{parsed.name}.down.sql")
            migration = Migration(
                version=parsed.version,
                name=parsed.name,
                up=up_file.read_text(),
                down=down_file.read_text() if down_file.exists() else "",
                source=up_file.name,
            )

            count = self._run(migration.up, migration.version, migration.name)
            if migration.identity not in self.registry:
                self.registry.register(migration)
            if self.ledger.record(migration.version, migration.name, up_file.name):
                applied.append(migration)
                logger.info("Applied %s from %s (%d statement(s))", migration, up_file.name, count)

        return applied

    def _warn_if_shadowed(self, migration: Migration) -> None:
        for record in self.ledger.find(migration.version):
            if record.name != migration.name:
                logger.warning(
                    "Skipping %s: version %s is recorded for %s",
                    migration, migration.version, record.name,
                )

    def _check_version_collisions(self, files: list[tuple[Path, ArtifactName]]) -> None:
        by_version: dict[str, list[str]] = {}
        for up_file, parsed in files:
            by_version.setdefault(parsed.version, []).append(up_file.name)

        for version, filenames in by_version.items():
            if len(filenames) > 1:
                raise ConfigurationError(
                    f"Migration files share version {version}: {', '.join(filenames)}. "
                    "Enable disambiguate or give each file its own version."
                )

        for up_file, parsed in files:
            for record in self.ledger.find(parsed.version):
                if record.name != parsed.name:
                    raise ConfigurationError(
                        f"Version {parsed.version} of {up_file.name} is already recorded "
                        f"for {record.source or record.name}"
                    )

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, version: str | None = None, name: str | None = None) -> list[Migration]:
        """Roll back one version.

        Args:
            version: Version to roll back.  When omitted, the most recently
                applied ledger row is the target.
            name: Narrow an explicit version to one migration name.

        Returns:
            Migrations rolled back, newest registration first.

        Raises:
            NotFoundError: If the ledger is empty, nothing is registered
                for the version, or none of its migrations is applied.
            ApplyError: If a down statement fails.
        """
        self.ledger.ensure_table()

        if version is None:
            latest = self.ledger.latest()
            if latest is None:
                raise NotFoundError("No applied migrations to roll back")
            version, name = latest.version, latest.name

        targets = self.registry.find(version, name)
        if not targets:
            raise NotFoundError(
                f"No registered migration for version {version}", version=version
            )

        applied = [m for m in targets if self.ledger.is_applied(m.version, m.name)]
        if not applied:
            raise NotFoundError(f"Migration version {version} is not applied", version=version)

        rolled_back: list[Migration] = []
        for migration in reversed(applied):
            self._run(migration.down, migration.version, migration.name)
            self.ledger.remove(migration.version, migration.name)
            rolled_back.append(migration)
            logger.info("Rolled back %s", migration)
        return rolled_back

    # ------------------------------------------------------------------
    # Drop / refresh
    # ------------------------------------------------------------------

    def drop_statements(self, tables: list[str]) -> list[str]:
        """DROP TABLE statements wrapped in the dialect's FK-check toggles."""
        dialect = self._client.dialect
        suffix = " CASCADE" if dialect == "postgresql" else ""
        drops = [f"DROP TABLE IF EXISTS {table}{suffix}" for table in tables]
        return _FK_CHECKS_OFF.get(dialect, []) + drops + _FK_CHECKS_ON.get(dialect, [])

    def drop_all(self, models: Iterable[type[Model]]) -> list[str]:
        """Drop every model's table on one connection.

        Ledger rows of the matching ``create_<table>_table`` migrations are
        removed so the tables can be created again.

        Returns:
            Names of the dropped tables.
        """
        tables = [model.table_name() for model in models]
        if not tables:
            return []

        statements = self.drop_statements(tables)
        try:
            self._client.execute_script(statements)
        except Exception as e:
            raise ApplyError(f"Dropping tables failed: {e}") from e

        removed = self.ledger.clear([create_table_name(t) for t in tables])
        logger.info("Dropped %d table(s), cleared %d ledger row(s)", len(tables), removed)
        return tables

    def refresh(
        self,
        models: Iterable[type[Model]],
        directory: str | Path | None = None,
    ) -> list[Migration]:
        """Drop all model tables and apply migrations again.

        Returns:
            Migrations applied after the drop.
        """
        self.drop_all(list(models))
        applied: list[Migration] = []
        if directory is not None:
            applied.extend(self.apply_directory(directory))
        applied.extend(self.apply_pending())
        return applied

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> list[MigrationStatus]:
        """Applied state of each registered migration, in version order.

        Ledger rows with no registered migration are listed too.
        """
        records = {
            (r.version, r.name): r for r in self.ledger.records()
        } if self.ledger.exists() else {}

        result: list[MigrationStatus] = []
        for migration in self.registry.migrations():
            record = records.pop(migration.identity, None)
            result.append(
                MigrationStatus(
                    version=migration.version,
                    name=migration.name,
                    applied=record is not None,
                    applied_at=record.applied_at if record else None,
                    source=migration.source,
                )
            )

        for record in records.values():
            result.append(
                MigrationStatus(
                    version=record.version,
                    name=record.name,
                    applied=True,
                    applied_at=record.applied_at,
                    source=record.source,
                )
            )
        return sorted(result, key=lambda s: s.version)
