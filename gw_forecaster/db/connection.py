"""
SQLite connections for the document session store.

``get_connection()`` yields a connection with the ``session_documents`` schema
already applied.  Writers pass ``write=True`` to take the database write lock
up front (``BEGIN IMMEDIATE``), so two CLI processes saving the same session
queue on the busy timeout instead of failing half-way through a save.

Usage::

    from gw_forecaster.db.connection import get_connection

    with get_connection("data/db/sessions.db", write=True) as conn:
        conn.execute("DELETE FROM session_documents WHERE path = ?;", (path,))
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

from gw_forecaster.db.schema import apply_schema

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


@contextmanager
def get_connection(
    db_path: Union[str, Path],
    write: bool = False,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Open ``db_path``, apply the schema and yield the connection.

    Commits on clean exit, rolls back on exception and always closes.  The
    file's parent directories are created on first use.

    Args:
        db_path: Database file, or ``":memory:"``.
        write: Start an immediate (write-locking) transaction.
        wal_mode: Use the WAL journal for file databases so loads never block
            behind a save.
        busy_timeout_ms: How long to wait for a lock held by another process.

    Raises:
        sqlite3.OperationalError: If the file cannot be opened or the lock
            is not released within ``busy_timeout_ms``.
    """
    in_memory = str(db_path) == MEMORY
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    try:
        if wal_mode and not in_memory:
            conn.execute("PRAGMA journal_mode = WAL;")
        apply_schema(conn)
        if write:
            conn.execute("BEGIN IMMEDIATE;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        logger.debug("Rolled back %s", db_path)
        raise
    finally:
        conn.close()
