"""In-process migration registry.

An explicit, append-only index of known migrations.  The runner owns one;
generated stubs add themselves to it through ``register(registry)``.

Usage:
    from crudkit.migrations.registry import Migration, MigrationRegistry

    registry = MigrationRegistry()
    registry.register(Migration("20251117195835", "create_users_table", up, down))
    registry.discover("migrations")   # load generated .py stubs
    registry.load_sql("migrations")   # or the plain SQL sidecars

    for migration in registry:        # ascending version
        ...
"""

import importlib.util
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from crudkit.errors import ConfigurationError
from crudkit.migrations.sql import parse_artifact_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """One schema change, identified by ``(version, name)``.

    Attributes:
        version: Sortable time-based stamp (``YYYYMMDDHHMMSS``).
        name: ``create_<table>_table`` or caller-supplied.
        up: SQL applied by the runner (may hold several statements).
        down: SQL that reverses ``up``.
        source: Artifact file the migration came from, if any.
    """

    version: str
    name: str
    up: str
    down: str
    source: str | None = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.version, self.name)

    def __str__(self) -> str:
        return f"{self.version}_{self.name}"


class MigrationRegistry:
    """Append-only collection of migrations, safe to share across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._migrations: list[Migration] = []
        self._index: dict[tuple[str, str], Migration] = {}

    def register(self, migration: Migration) -> bool:
        """Add a migration.

        Returns:
            True when added, False when an identical migration was already
            registered.

        Raises:
            ConfigurationError: If a different migration is registered
                under the same ``(version, name)``.
        """
        with self._lock:
            existing = self._index.get(migration.identity)
            if existing is not None:
                if (existing.up, existing.down) == (migration.up, migration.down):
                    return False
                raise ConfigurationError(
                    f"Conflicting migration registered as {migration}"
                )
            self._index[migration.identity] = migration
            self._migrations.append(migration)
            return True

    def migrations(self) -> list[Migration]:
        """All migrations in ascending version order.

        Same-version migrations keep their registration order.
        """
        with self._lock:
            snapshot = list(self._migrations)
        return sorted(snapshot, key=lambda m: m.version)

    def find(self, version: str, name: str | None = None) -> list[Migration]:
        """Migrations registered for a version, optionally narrowed by name."""
        return [
            m
            for m in self.migrations()
            if m.version == version and (name is None or m.name == name)
        ]

    def get(self, version: str, name: str) -> Migration | None:
        with self._lock:
            return self._index.get((version, name))

    def __len__(self) -> int:
        with self._lock:
            return len(self._migrations)

    def __iter__(self) -> Iterator[Migration]:
        return iter(self.migrations())

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._index

    # ------------------------------------------------------------------
    # Loading from durable artifacts
    # ------------------------------------------------------------------

    def discover(self, directory: str | Path) -> int:
        """Execute generated ``<version>_<name>.py`` stubs in a directory.

        Each stub defines ``register(registry)``.  Stubs are loaded in
        file name (version) order.

        Returns:
            Number of migrations newly registered.

        Raises:
            ConfigurationError: If a stub cannot be loaded or has no
                ``register`` function.
        """
        path = Path(directory)
        if not path.is_dir():
            return 0

        before = len(self)
        for stub in sorted(path.glob("*.py")):
            parsed = parse_artifact_name(stub.name)
            if parsed is None or parsed.kind != "stub":
                continue

            module_name = f"crudkit_migration_{parsed.version}_{parsed.name}"
            spec = importlib.util.spec_from_file_location(module_name, stub)
            if spec is None or spec.loader is None:
                raise ConfigurationError(f"Cannot load migration stub {stub.name}")
            module = importlib.util.module_from_spec(spec)
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                raise ConfigurationError(
                    f"Migration stub {stub.name} failed to load: {e}"
                ) from e

            register = getattr(module, "register", None)
            if not callable(register):
                raise ConfigurationError(
                    f"Migration stub {stub.name} defines no register(registry)"
                )
            register(self)

        added = len(self) - before
        logger.debug("Discovered %d migration(s) in %s", added, path)
        return added

    def load_sql(self, directory: str | Path) -> int:
        """Register ``.up.sql`` / ``.down.sql`` pairs from a directory.

        A missing ``.down.sql`` registers an empty down statement.
        Malformed file names are skipped with a warning.

        Returns:
            Number of migrations newly registered.
        """
        path = Path(directory)
        if not path.is_dir():
            return 0

        added = 0
        for up_file in sorted(path.glob("*.up.sql")):
            parsed = parse_artifact_name(up_file.name)
            if parsed is None:
                logger.warning("Skipping malformed migration file name: %s", up_file.name)
                continue

            down_file = up_file.with_name(f"{parsed.version}_{parsed.name}.down.sql")
            down = down_file.read_text() if down_file.exists() else ""
            migration = Migration(
                version=parsed.version,
                name=parsed.name,
                up=up_file.read_text(),
                down=down,
                source=up_file.name,
            )
            if self.register(migration):
                added += 1
        return added
