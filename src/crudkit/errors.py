"""Typed error taxonomy.

Every failure the engine reports is a ``CrudkitError`` subclass carrying
enough context (table, version, statement) to log and alert on.  Driver
exceptions are chained with ``raise ... from`` so the original cause is
never lost.

Usage:
    from crudkit.errors import ApplyError, NotFoundError

    try:
        migrator.rollback("20251117195835")
    except NotFoundError as e:
        print(e.version)
"""


class CrudkitError(Exception):
    """Base class for all crudkit errors."""


class ConfigurationError(CrudkitError):
    """Bad or ambiguous model declaration or settings.

    Fatal: callers are expected to abort startup.
    """


class GenerationError(CrudkitError):
    """DDL construction failed for one model."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class ApplyError(CrudkitError):
    """An up or down statement failed to execute.

    Attributes:
        version: Migration version being applied or rolled back.
        name: Migration name.
        statement: The SQL statement that failed.
    """

    def __init__(
        self,
        message: str,
        version: str | None = None,
        name: str | None = None,
        statement: str | None = None,
    ) -> None:
        super().__init__(message)
        self.version = version
        self.name = name
        self.statement = statement


class NotFoundError(CrudkitError):
    """A record lookup or rollback target does not exist."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        key: object = None,
        version: str | None = None,
    ) -> None:
        super().__init__(message)
        self.table = table
        self.key = key
        self.version = version


class DuplicateError(CrudkitError):
    """A unique constraint rejected an insert or update."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class QueryError(CrudkitError):
    """Query parameters or row data do not fit the model."""


class DatabaseError(CrudkitError):
    """The database could not be reached or rejected a statement.

    Attributes:
        table: Table the operation targeted, when known.
        statement: The SQL statement that failed, when known.
    """

    def __init__(
        self,
        message: str,
        table: str | None = None,
        statement: str | None = None,
    ) -> None:
        super().__init__(message)
        self.table = table
        self.statement = statement
