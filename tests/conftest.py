"""Shared fixtures: declared sample models and a file-backed SQLite adapter.

Generated DDL targets MySQL, so tables used by runner and repository
tests are created from the SQLite equivalents below.
"""

from collections.abc import Iterator
from pathlib import Path

import pytest

from crudkit.adapters.sql import SQLAdapter
from crudkit.schema.mixins import BASE_MODEL, RECORD_MODEL, SOFT_DELETE_MODEL
from crudkit.schema.models import FieldSpec, Model, Relation
from crudkit.schema.types import FieldType


class User(Model):
    fields = (
        BASE_MODEL,
        FieldSpec("Name", FieldType.STRING, tag="size:100;not null;searchable"),
        FieldSpec("Email", FieldType.STRING, tag="size:100;uniqueIndex;searchable"),
        FieldSpec("Age", FieldType.INT, tag="default:0"),
        Relation("Posts", lambda: Post, tag="foreignKey:user_id", kind="has_many"),
        RECORD_MODEL,
        SOFT_DELETE_MODEL,
    )


class Post(Model):
    fields = (
        BASE_MODEL,
        FieldSpec("UserID", FieldType.UINT, tag="index;not null"),
        FieldSpec("Title", FieldType.STRING, tag="size:200;searchable"),
        Relation("User", User),
        RECORD_MODEL,
    )


class Tag(Model):
    """No searchable columns, no created_at, no uuid."""

    fields = (
        FieldSpec("ID", FieldType.UINT, tag="primaryKey;autoIncrement"),
        FieldSpec("Label", FieldType.STRING, tag="size:50"),
    )


USERS_SQLITE = """
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  uuid VARCHAR(36) NOT NULL UNIQUE,
  name VARCHAR(100) NOT NULL,
  email VARCHAR(100) UNIQUE,
  age INT DEFAULT 0,
  created_at DATETIME,
  created_by INT,
  updated_at DATETIME,
  updated_by INT,
  deleted_at DATETIME,
  deleted_by INT
);
CREATE INDEX IF NOT EXISTS idx_users_deleted_at ON users (deleted_at);
"""

POSTS_SQLITE = """
CREATE TABLE IF NOT EXISTS posts (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  uuid VARCHAR(36) NOT NULL UNIQUE,
  user_id INT NOT NULL,
  title VARCHAR(200),
  created_at DATETIME,
  created_by INT,
  updated_at DATETIME,
  updated_by INT
);
"""

TAGS_SQLITE = """
CREATE TABLE IF NOT EXISTS tags (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  label VARCHAR(50)
);
"""


def sqlite_statements(*scripts: str) -> list[str]:
    """Split the SQLite fixture scripts into single statements."""
    statements: list[str] = []
    for script in scripts:
        statements.extend(s.strip() for s in script.split(";") if s.strip())
    return statements


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def adapter(db_path: Path) -> Iterator[SQLAdapter]:
    """SQLAdapter on an empty SQLite file."""
    client = SQLAdapter(f"sqlite:///{db_path}")
    yield client
    client.close()


@pytest.fixture
def db(adapter: SQLAdapter) -> SQLAdapter:
    """Adapter with the users, posts and tags tables created."""
    adapter.execute_script(sqlite_statements(USERS_SQLITE, POSTS_SQLITE, TAGS_SQLITE))
    return adapter
