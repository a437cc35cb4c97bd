"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that the repository, query
pipeline and migration runner talk to.  All methods are synchronous --
each call is a blocking round trip against a pooled connection.

Usage:
    from crudkit.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        rows = client.select("users", "id, name")
        client.insert("users", {"name": "Alice"})
        client.execute("CREATE INDEX idx_users_name ON users (name)")
        client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Rows are plain dicts keyed by column name.
    """

    @property
    def dialect(self) -> str:
        """SQLAlchemy dialect name (``"mysql"``, ``"sqlite"``, ``"postgresql"``)."""
        ...

    def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"id, name, status"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional ORDER BY expression.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a composed SELECT statement with named parameters.

        Args:
            sql: SQL text using ``:name`` placeholders.
            params: Values for the placeholders.

        Returns:
            List of dicts, one per row.
        """
        ...

    def insert(self, table: str, data: dict, returning_key: str | None = "id") -> dict:
        """Insert row into table and return the created row.

        Args:
            table: Table name.
            data: Dict of field=value pairs to insert.
            returning_key: Column used to read the created row back.  When
                absent from ``data`` the driver's last row id is used.

        Returns:
            Dict representing the created row (includes defaults).

        Raises:
            DuplicateError: If a unique or integrity constraint rejects the row.
        """
        ...

    def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        """Update matching rows.

        Returns:
            Number of rows matched.
        """
        ...

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete matching rows.

        Returns:
            Number of rows removed.
        """
        ...

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations)."""
        ...

    def execute_script(self, statements: list[str]) -> None:
        """Execute statements in order on a single connection.

        Needed for session-scoped settings such as disabling foreign key
        checks around a batch of DROP TABLE statements.
        """
        ...

    def table_exists(self, table: str) -> bool:
        """Return True if the table exists in the connected database."""
        ...

    def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
