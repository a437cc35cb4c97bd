"""Tests for the migration ledger and runner against a SQLite file."""

import logging
from pathlib import Path

import pytest

from conftest import POSTS_SQLITE, USERS_SQLITE, Post, User
from crudkit.adapters.sql import SQLAdapter
from crudkit.errors import ApplyError, ConfigurationError, DatabaseError, NotFoundError
from crudkit.migrations.ledger import MigrationLedger
from crudkit.migrations.registry import Migration, MigrationRegistry
from crudkit.migrations.runner import Migrator

WIDGETS_UP = (
    "CREATE TABLE widgets (id INTEGER PRIMARY KEY, name VARCHAR(50));\n"
    "CREATE INDEX idx_widgets_name ON widgets (name);\n"
)
WIDGETS_DOWN = "DROP TABLE IF EXISTS widgets;\n"

GADGETS_UP = "CREATE TABLE gadgets (id INTEGER PRIMARY KEY);"
GADGETS_DOWN = "DROP TABLE IF EXISTS gadgets;"


def _widgets() -> Migration:
    return Migration("20250101000000", "create_widgets_table", WIDGETS_UP, WIDGETS_DOWN)


def _gadgets(version: str = "20250102000000") -> Migration:
    return Migration(version, "create_gadgets_table", GADGETS_UP, GADGETS_DOWN)


def _migrator(adapter: SQLAdapter, *migrations: Migration, disambiguate: bool = True) -> Migrator:
    registry = MigrationRegistry()
    for migration in migrations:
        registry.register(migration)
    return Migrator(adapter, registry, disambiguate=disambiguate)


# ============================================================================
# Ledger
# ============================================================================


class TestMigrationLedger:
    """Verify ledger table management and records."""

    def test_ensure_table_is_idempotent(self, adapter: SQLAdapter) -> None:
        """The ledger table can be ensured repeatedly."""
        ledger = MigrationLedger(adapter)
        ledger.ensure_table()
        ledger.ensure_table()
        assert adapter.table_exists("schema_migrations")

    def test_record_and_query(self, adapter: SQLAdapter) -> None:
        """Recorded migrations are reported as applied."""
        ledger = MigrationLedger(adapter)
        ledger.ensure_table()

        assert ledger.record("1", "create_a_table", source="1_create_a_table.up.sql")
        assert ledger.is_applied("1", "create_a_table")
        assert not ledger.is_applied("1", "create_b_table")
        assert ledger.has_name("create_a_table")

        (record,) = ledger.records()
        assert record.version == "1"
        assert record.source == "1_create_a_table.up.sql"
        assert record.applied_at is not None

    def test_duplicate_record_is_swallowed(self, adapter: SQLAdapter) -> None:
        """A second insert of the same identity returns False, no error."""
        ledger = MigrationLedger(adapter)
        ledger.ensure_table()

        assert ledger.record("1", "m") is True
        assert ledger.record("1", "m") is False
        assert len(ledger.records()) == 1

    def test_strict_mode_is_unique_per_version(self, adapter: SQLAdapter) -> None:
        """Without disambiguation, one row per version."""
        ledger = MigrationLedger(adapter, disambiguate=False)
        ledger.ensure_table()

        assert ledger.record("1", "a") is True
        assert ledger.record("1", "b") is False
        assert ledger.is_applied("1", "anything")

    def test_latest_and_remove(self, adapter: SQLAdapter) -> None:
        """latest() is the most recently applied row."""
        ledger = MigrationLedger(adapter)
        ledger.ensure_table()
        assert ledger.latest() is None

        ledger.record("2", "second")
        ledger.record("1", "first")
        latest = ledger.latest()
        assert latest is not None
        assert (latest.version, latest.name) == ("1", "first")

        assert ledger.remove("1", "first") == 1
        assert ledger.latest().name == "second"

    def test_has_name_without_table(self, adapter: SQLAdapter) -> None:
        """has_name() is False before the ledger exists."""
        assert MigrationLedger(adapter).has_name("create_users_table") is False

    def test_invalid_table_name(self, adapter: SQLAdapter) -> None:
        """Ledger table names must be plain identifiers."""
        with pytest.raises(ValueError):
            MigrationLedger(adapter, table="bad name; DROP")

    def test_mysql_ddl(self) -> None:
        """MySQL ledger DDL uses AUTO_INCREMENT and the InnoDB footer."""

        class FakeClient:
            dialect = "mysql"

        sql = MigrationLedger(FakeClient()).create_table_sql()  # type: ignore[arg-type]
        assert "id BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY" in sql
        assert "version VARCHAR(64) NOT NULL" in sql
        assert "UNIQUE (version, name)" in sql
        assert sql.endswith("ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci")


# ============================================================================
# Apply
# ============================================================================


class TestApplyPending:
    """Verify applying registered migrations."""

    def test_applies_in_version_order(self, adapter: SQLAdapter) -> None:
        """Pending migrations run in ascending version order."""
        migrator = _migrator(adapter, _gadgets(), _widgets())

        applied = migrator.apply_pending()

        assert [m.name for m in applied] == ["create_widgets_table", "create_gadgets_table"]
        assert adapter.table_exists("widgets")
        assert adapter.table_exists("gadgets")
        assert [r.name for r in migrator.ledger.records()] == [
            "create_widgets_table",
            "create_gadgets_table",
        ]

    def test_second_apply_is_noop(self, adapter: SQLAdapter) -> None:
        """Applying twice never re-executes the up statement."""
        migrator = _migrator(adapter, _widgets())
        migrator.apply_pending()

        # CREATE TABLE without IF NOT EXISTS would fail if re-run
        assert migrator.apply_pending() == []
        assert len(migrator.ledger.records()) == 1

    def test_same_version_migrations_both_apply(self, adapter: SQLAdapter) -> None:
        """Disambiguation mode keeps same-version migrations apart."""
        migrator = _migrator(adapter, _widgets(), _gadgets("20250101000000"))
        assert len(migrator.apply_pending()) == 2

    def test_strict_mode_applies_one_per_version(self, adapter: SQLAdapter) -> None:
        """Without disambiguation a version is applied once."""
        migrator = _migrator(adapter, _widgets(), _gadgets("20250101000000"), disambiguate=False)
        assert [m.name for m in migrator.apply_pending()] == ["create_widgets_table"]
        assert not adapter.table_exists("gadgets")

    def test_strict_mode_logs_shadowed_migration(
        self, adapter: SQLAdapter, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A registered migration skipped for its version is logged."""
        migrator = _migrator(adapter, _widgets(), _gadgets("20250101000000"), disambiguate=False)

        with caplog.at_level(logging.WARNING, logger="crudkit.migrations.runner"):
            migrator.apply_pending()

        assert "version 20250101000000 is recorded for create_widgets_table" in caplog.text

    def test_unreachable_database(self, tmp_path: Path) -> None:
        """Connection failures surface as DatabaseError, not driver exceptions."""
        adapter = SQLAdapter(f"sqlite:///{tmp_path / 'missing' / 'app.db'}")
        migrator = _migrator(adapter, _widgets())

        with pytest.raises(DatabaseError, match="unable to open database file"):
            migrator.apply_pending()
        with pytest.raises(DatabaseError):
            migrator.status()

    def test_failure_raises_apply_error(self, adapter: SQLAdapter) -> None:
        """A failing statement raises ApplyError and records nothing."""
        broken = Migration("20250103000000", "broken", "CREATE TABLE ok_t (id INT);\nCREATE TABL nope;", "")
        migrator = _migrator(adapter, _widgets(), broken)

        with pytest.raises(ApplyError) as exc_info:
            migrator.apply_pending()

        error = exc_info.value
        assert error.version == "20250103000000"
        assert error.name == "broken"
        assert error.statement == "CREATE TABL nope"
        assert migrator.ledger.is_applied("20250101000000", "create_widgets_table")
        assert not migrator.ledger.is_applied("20250103000000", "broken")


class TestApplyDirectory:
    """Verify applying .up.sql files from disk."""

    def test_applies_files_in_order(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """Files apply in name order and record their file name."""
        (tmp_path / "20250102000000_create_gadgets_table.up.sql").write_text(GADGETS_UP)
        (tmp_path / "20250101000000_create_widgets_table.up.sql").write_text(WIDGETS_UP)
        (tmp_path / "20250101000000_create_widgets_table.down.sql").write_text(WIDGETS_DOWN)
        (tmp_path / "readme.up.sql").write_text("SELECT 1;")
        (tmp_path / "20250103000000_noop.up.sql").write_text("-- nothing yet\n")

        migrator = Migrator(adapter)
        applied = migrator.apply_directory(tmp_path)

        assert [m.name for m in applied] == [
            "create_widgets_table",
            "create_gadgets_table",
            "noop",
        ]
        sources = {r.name: r.source for r in migrator.ledger.records()}
        assert sources["create_widgets_table"] == "20250101000000_create_widgets_table.up.sql"
        assert migrator.apply_directory(tmp_path) == []

    def test_directory_migrations_can_roll_back(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """Applied files are registered with their .down.sql sidecar."""
        (tmp_path / "20250101000000_create_widgets_table.up.sql").write_text(WIDGETS_UP)
        (tmp_path / "20250101000000_create_widgets_table.down.sql").write_text(WIDGETS_DOWN)

        migrator = Migrator(adapter)
        migrator.apply_directory(tmp_path)
        migrator.rollback()

        assert not adapter.table_exists("widgets")

    def test_missing_directory(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """A missing directory applies nothing."""
        assert Migrator(adapter).apply_directory(tmp_path / "absent") == []

    def test_shared_version_applies_both_files(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """With disambiguation, files sharing a version are both applied."""
        (tmp_path / "20250101000000_create_widgets_table.up.sql").write_text(WIDGETS_UP)
        (tmp_path / "20250101000000_create_gadgets_table.up.sql").write_text(GADGETS_UP)

        applied = Migrator(adapter).apply_directory(tmp_path)

        assert sorted(m.name for m in applied) == ["create_gadgets_table", "create_widgets_table"]
        assert adapter.table_exists("widgets")
        assert adapter.table_exists("gadgets")

    def test_strict_mode_rejects_shared_version(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """Without disambiguation, two files with one version stop the run."""
        (tmp_path / "20250101000000_create_widgets_table.up.sql").write_text(WIDGETS_UP)
        (tmp_path / "20250101000000_create_gadgets_table.up.sql").write_text(GADGETS_UP)
        migrator = Migrator(adapter, disambiguate=False)

        with pytest.raises(ConfigurationError, match="share version 20250101000000"):
            migrator.apply_directory(tmp_path)

        assert not adapter.table_exists("widgets")
        assert not adapter.table_exists("gadgets")
        assert migrator.ledger.records() == []

    def test_strict_mode_rejects_version_recorded_elsewhere(
        self, adapter: SQLAdapter, tmp_path: Path
    ) -> None:
        """A file whose version is recorded for another migration is not skipped silently."""
        migrator = Migrator(adapter, disambiguate=False)
        migrator.ledger.ensure_table()
        migrator.ledger.record("20250101000000", "create_widgets_table", "widgets.up.sql")
        (tmp_path / "20250101000000_create_gadgets_table.up.sql").write_text(GADGETS_UP)

        with pytest.raises(ConfigurationError, match="already recorded for widgets.up.sql"):
            migrator.apply_directory(tmp_path)
        assert not adapter.table_exists("gadgets")

    def test_strict_mode_skips_own_recorded_file(self, adapter: SQLAdapter, tmp_path: Path) -> None:
        """Re-running strict mode over applied files is a no-op."""
        (tmp_path / "20250101000000_create_widgets_table.up.sql").write_text(WIDGETS_UP)
        migrator = Migrator(adapter, disambiguate=False)

        assert [m.name for m in migrator.apply_directory(tmp_path)] == ["create_widgets_table"]
        assert migrator.apply_directory(tmp_path) == []


# ============================================================================
# Rollback
# ============================================================================


class TestRollback:
    """Verify rollback of explicit and latest versions."""

    def test_rollback_latest(self, adapter: SQLAdapter) -> None:
        """Without a version, the most recently applied migration is reversed."""
        migrator = _migrator(adapter, _widgets(), _gadgets())
        migrator.apply_pending()

        rolled_back = migrator.rollback()

        assert [m.name for m in rolled_back] == ["create_gadgets_table"]
        assert not adapter.table_exists("gadgets")
        assert adapter.table_exists("widgets")
        assert not migrator.ledger.is_applied("20250102000000", "create_gadgets_table")

    def test_rollback_explicit_version(self, adapter: SQLAdapter) -> None:
        """An explicit version is rolled back even when it is not the latest."""
        migrator = _migrator(adapter, _widgets(), _gadgets())
        migrator.apply_pending()

        migrator.rollback("20250101000000")

        assert not adapter.table_exists("widgets")
        assert adapter.table_exists("gadgets")

    def test_rollback_then_reapply_round_trip(self, adapter: SQLAdapter) -> None:
        """Down then up reproduces the table."""
        migrator = _migrator(adapter, _widgets())
        migrator.apply_pending()
        adapter.insert("widgets", {"id": 1, "name": "a"}, returning_key="id")

        migrator.rollback()
        assert migrator.apply_pending() == [_widgets()]

        assert adapter.table_exists("widgets")
        assert adapter.select("widgets", "id, name") == []

    def test_rollback_empty_ledger(self, adapter: SQLAdapter) -> None:
        """Nothing applied means nothing to roll back."""
        with pytest.raises(NotFoundError):
            _migrator(adapter, _widgets()).rollback()

    def test_rollback_unregistered_version(self, adapter: SQLAdapter) -> None:
        """A version with no registered migration is NotFound."""
        migrator = _migrator(adapter, _widgets())
        migrator.apply_pending()

        with pytest.raises(NotFoundError) as exc_info:
            migrator.rollback("19990101000000")
        assert exc_info.value.version == "19990101000000"

    def test_rollback_unapplied_version(self, adapter: SQLAdapter) -> None:
        """A registered but unapplied version is NotFound."""
        migrator = _migrator(adapter, _widgets())
        migrator.ledger.ensure_table()
        with pytest.raises(NotFoundError, match="not applied"):
            migrator.rollback("20250101000000")

    def test_rollback_by_name_within_version(self, adapter: SQLAdapter) -> None:
        """name narrows a shared version to one migration."""
        migrator = _migrator(adapter, _widgets(), _gadgets("20250101000000"))
        migrator.apply_pending()

        migrator.rollback("20250101000000", "create_gadgets_table")

        assert adapter.table_exists("widgets")
        assert not adapter.table_exists("gadgets")


# ============================================================================
# Drop / refresh / status
# ============================================================================


def _model_migrations() -> list[Migration]:
    return [
        Migration("20250101000000", "create_users_table", USERS_SQLITE, "DROP TABLE IF EXISTS users;"),
        Migration("20250101000001", "create_posts_table", POSTS_SQLITE, "DROP TABLE IF EXISTS posts;"),
    ]


class TestDropAndRefresh:
    """Verify drop-all and refresh."""

    def test_drop_all(self, adapter: SQLAdapter) -> None:
        """Model tables are dropped and their ledger rows cleared."""
        migrator = _migrator(adapter, *_model_migrations())
        migrator.apply_pending()

        dropped = migrator.drop_all([User, Post])

        assert dropped == ["users", "posts"]
        assert not adapter.table_exists("users")
        assert not adapter.table_exists("posts")
        assert migrator.ledger.records() == []

    def test_drop_all_missing_tables(self, adapter: SQLAdapter) -> None:
        """Dropping tables that do not exist is not an error."""
        assert Migrator(adapter).drop_all([User]) == ["users"]

    def test_refresh(self, adapter: SQLAdapter) -> None:
        """Refresh drops data and re-applies the migrations."""
        migrator = _migrator(adapter, *_model_migrations())
        migrator.apply_pending()
        adapter.insert("users", {"uuid": "u-1", "name": "John"}, returning_key="uuid")

        applied = migrator.refresh([User, Post])

        assert [m.name for m in applied] == ["create_users_table", "create_posts_table"]
        assert adapter.select("users", "id") == []
        assert len(migrator.ledger.records()) == 2

    def test_mysql_drop_statements(self) -> None:
        """MySQL drops are wrapped in FOREIGN_KEY_CHECKS toggles."""

        class FakeClient:
            dialect = "mysql"

        migrator = Migrator(FakeClient())  # type: ignore[arg-type]
        assert migrator.drop_statements(["users", "posts"]) == [
            "SET FOREIGN_KEY_CHECKS=0",
            "DROP TABLE IF EXISTS users",
            "DROP TABLE IF EXISTS posts",
            "SET FOREIGN_KEY_CHECKS=1",
        ]


class TestStatus:
    """Verify migration status reporting."""

    def test_status(self, adapter: SQLAdapter) -> None:
        """Registered migrations report applied state."""
        migrator = _migrator(adapter, _widgets())
        assert [(s.name, s.applied) for s in migrator.status()] == [
            ("create_widgets_table", False)
        ]

        migrator.registry.register(_gadgets())
        migrator.apply_pending()
        migrator.rollback()

        statuses = migrator.status()
        assert [(s.name, s.applied) for s in statuses] == [
            ("create_widgets_table", True),
            ("create_gadgets_table", False),
        ]
        assert statuses[0].applied_at is not None
