"""Migration ledger -- the durable record of applied migrations.

The ledger table's unique constraint is the actual guard against double
application: ``is_applied()`` is advisory, and a duplicate-key error on
``record()`` means another process got there first.

Usage:
    from crudkit.migrations.ledger import MigrationLedger

    ledger = MigrationLedger(adapter)
    ledger.ensure_table()
    if not ledger.is_applied("20251117195835", "create_users_table"):
        ...
        ledger.record("20251117195835", "create_users_table")
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel

from crudkit.errors import DuplicateError
from crudkit.schema.naming import is_identifier

if TYPE_CHECKING:
    from crudkit.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_TABLE = "schema_migrations"

# id column and table options per dialect
_ID_COLUMNS = {
    "mysql": "id BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY",
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgresql": "id BIGSERIAL PRIMARY KEY",
}
_TABLE_OPTIONS = {
    "mysql": " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci",
}

_COLUMNS = "id, version, name, source, applied_at"


class MigrationRecord(BaseModel):
    """One ledger row."""

    id: int | None = None
    version: str
    name: str
    source: str | None = None
    applied_at: datetime | None = None


class MigrationLedger:
    """Ledger table access through a ``DatabaseClient``.

    Args:
        client: Database client.
        table: Ledger table name.
        disambiguate: When True (default) rows are unique per
            ``(version, name)``, so several migrations may share a version
            stamp.  When False rows are unique per ``version``.
    """

    def __init__(
        self,
        client: "DatabaseClient",
        table: str = DEFAULT_LEDGER_TABLE,
        disambiguate: bool = True,
    ) -> None:
        if not is_identifier(table):
            raise ValueError(f"Invalid ledger table name: {table!r}")
        self._client = client
        self.table = table
        self.disambiguate = disambiguate

    def create_table_sql(self) -> str:
        """CREATE TABLE statement for the client's dialect."""
        dialect = self._client.dialect
        id_column = _ID_COLUMNS.get(dialect, _ID_COLUMNS["postgresql"])
        unique = "version, name" if self.disambiguate else "version"
        return (
            f"CREATE TABLE IF NOT EXISTS {self.table} (\n"
            f"  {id_column},\n"
            "  version VARCHAR(64) NOT NULL,\n"
            "  name VARCHAR(255) NOT NULL,\n"
            "  source VARCHAR(255) NULL,\n"
            "  applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,\n"
            f"  CONSTRAINT uidx_{self.table}_version UNIQUE ({unique})\n"
            f"){_TABLE_OPTIONS.get(dialect, '')}"
        )

    def exists(self) -> bool:
        return self._client.table_exists(self.table)

    def ensure_table(self) -> None:
        """Create the ledger table if it does not exist."""
        self._client.execute(self.create_table_sql())

    def _key(self, version: str, name: str) -> dict[str, str]:
        if self.disambiguate:
            return {"version": version, "name": name}
        return {"version": version}

    def is_applied(self, version: str, name: str) -> bool:
        rows = self._client.select(self.table, "id", self._key(version, name))
        return bool(rows)

    def find(self, version: str) -> list[MigrationRecord]:
        """Ledger rows recorded under a version."""
        rows = self._client.select(self.table, _COLUMNS, {"version": version}, order_by="id ASC")
        return [MigrationRecord(**row) for row in rows]

    def has_name(self, name: str) -> bool:
        """True when any applied migration carries this name."""
        if not self.exists():
            return False
        return bool(self._client.select(self.table, "id", {"name": name}))

    def record(self, version: str, name: str, source: str | None = None) -> bool:
        """Insert a ledger row.

        Returns:
            True when inserted, False when the unique constraint reports the
            migration as already recorded.
        """
        data = {
            "version": version,
            "name": name,
            "source": source,
            "applied_at": datetime.now(timezone.utc).replace(tzinfo=None),
        }
        try:
            self._client.insert(self.table, data, returning_key=None)
        except DuplicateError:
            logger.info("Migration %s_%s already recorded by another run", version, name)
            return False
        return True

    def remove(self, version: str, name: str) -> int:
        """Delete the ledger row(s) for a migration."""
        return self._client.delete(self.table, self._key(version, name))

    def clear(self, names: list[str]) -> int:
        """Delete ledger rows by migration name."""
        if not self.exists():
            return 0
        removed = 0
        for name in names:
            removed += self._client.delete(self.table, {"name": name})
        return removed

    def records(self) -> list[MigrationRecord]:
        """All ledger rows, oldest first."""
        rows = self._client.select(
            self.table, _COLUMNS, order_by="applied_at ASC, id ASC"
        )
        return [MigrationRecord(**row) for row in rows]

    def latest(self) -> MigrationRecord | None:
        """Most recently applied row, or None for an empty ledger."""
        rows = self._client.query(
            f"SELECT {_COLUMNS} FROM {self.table} "
            "ORDER BY applied_at DESC, id DESC LIMIT 1"
        )
        return MigrationRecord(**rows[0]) if rows else None
