"""SQL text helpers for migration artifacts.

Statement splitting for multi-statement up/down text and the artifact
file naming scheme (``<version>_<name>.up.sql`` and friends).

Usage:
    from crudkit.migrations.sql import split_statements, parse_artifact_name

    split_statements("CREATE TABLE a (x INT); CREATE INDEX i ON a (x);")
    # ['CREATE TABLE a (x INT)', 'CREATE INDEX i ON a (x)']

    parse_artifact_name("20251117195835_create_users_table.up.sql")
    # ArtifactName(version='20251117195835', name='create_users_table', kind='up')
"""

import re
from datetime import datetime
from typing import NamedTuple

VERSION_FORMAT = "%Y%m%d%H%M%S"

_ARTIFACT = re.compile(r"^(?P<version>\d{1,64})_(?P<name>[A-Za-z0-9_]+)\.(?P<kind>up\.sql|down\.sql|py)$")

_KINDS = {"up.sql": "up", "down.sql": "down", "py": "stub"}


class ArtifactName(NamedTuple):
    version: str
    name: str
    kind: str  # "up", "down" or "stub"


def format_version(moment: datetime) -> str:
    """Render a version stamp (``YYYYMMDDHHMMSS``)."""
    return moment.strftime(VERSION_FORMAT)


def create_table_name(table: str) -> str:
    """Migration name for a model table (``create_<table>_table``)."""
    return f"create_{table}_table"


def artifact_filenames(version: str, name: str) -> dict[str, str]:
    """File names of the three artifacts written for one migration."""
    base = f"{version}_{name}"
    return {"stub": f"{base}.py", "up": f"{base}.up.sql", "down": f"{base}.down.sql"}


def parse_artifact_name(filename: str) -> ArtifactName | None:
    """Parse an artifact file name, or return None when it is malformed."""
    match = _ARTIFACT.match(filename)
    if match is None:
        return None
    return ArtifactName(match["version"], match["name"], _KINDS[match["kind"]])


def split_statements(sql: str) -> list[str]:
    """Split SQL text into statements on ``;``.

    Semicolons inside single/double/backtick quoted strings, ``--`` line
    comments and ``/* */`` block comments do not end a statement.
    Comment-only and empty fragments are dropped; statements are returned
    stripped and without the trailing semicolon.
    """
    statements: list[str] = []
    buf: list[str] = []
    has_code = False
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if ch in ("'", '"', "`"):
            # Quoted literal; doubled quote is an escaped quote
            j = i + 1
            while j < n:
                if sql[j] == "\\" and ch != "`":
                    j += 2
                    continue
                if sql[j] == ch:
                    if j + 1 < n and sql[j + 1] == ch:
                        j += 2
                        continue
                    break
                j += 1
            buf.append(sql[i : j + 1])
            has_code = True
            i = j + 1
            continue

        if ch == "-" and sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            buf.append(sql[i:end])
            i = end
            continue

        if ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            buf.append(sql[i:end])
            i = end
            continue

        if ch == ";":
            if has_code:
                statements.append("".join(buf).strip())
            buf = []
            has_code = False
            i += 1
            continue

        if not ch.isspace():
            has_code = True
        buf.append(ch)
        i += 1

    if has_code:
        statements.append("".join(buf).strip())

    return statements
