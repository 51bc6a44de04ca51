"""
SQLite schema DDL for the document session store.

One table holds one JSON document per path.  The path encodes the owner::

    artifacts/{app_id}/users/{user_id}/sessions/current_session

Statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_DDL_SESSION_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS session_documents (
    path        TEXT    NOT NULL PRIMARY KEY,
    user_id     TEXT    NOT NULL,
    body        TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_session_documents_user ON session_documents(user_id);
"""

_ALL_DDL = [_DDL_SESSION_DOCUMENTS]

ALL_TABLE_NAMES = ["session_documents"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.  Safe to call repeatedly."""
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)
    conn.commit()
    logger.debug("Schema applied: %d table(s).", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Explicitly created index names, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND sql IS NOT NULL ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
