"""
Session stores: save and load one ``SessionDocument`` per user.

Two backends share the same two-method interface (``save`` / ``load``):

  FileSessionStore      one JSON file on disk (default, single user)
  DocumentSessionStore  a row in the SQLite ``session_documents`` table,
                        keyed by ``artifacts/{app_id}/users/{user_id}/
                        sessions/current_session``

``load`` returns ``None`` when nothing has been saved yet.  Unreadable or
invalid documents raise ``SessionStoreError`` rather than silently starting
an empty session over the user's data.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from gw_forecaster.config import AppConfig
from gw_forecaster.db.connection import get_connection
from gw_forecaster.exceptions import SessionStoreError
from gw_forecaster.models.session import SessionDocument
from gw_forecaster.utils.time_utils import utcnow_iso

logger = logging.getLogger(__name__)


def document_path(app_id: str, user_id: str) -> str:
    """Storage key of a user's current session."""
    return f"artifacts/{app_id}/users/{user_id}/sessions/current_session"


def _parse(body: str, source: str) -> SessionDocument:
    try:
        return SessionDocument.from_json(body)
    except (ValueError, ValidationError) as exc:
        raise SessionStoreError(f"Session document at {source} is invalid: {exc}") from exc


class SessionStore(Protocol):
    def save(self, session: SessionDocument) -> None: ...

    def load(self) -> Optional[SessionDocument]: ...


class FileSessionStore:
    """JSON file on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def save(self, session: SessionDocument) -> None:
        session.timestamp = utcnow_iso()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(session.to_json(), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise SessionStoreError(f"Could not write session file {self.path}: {exc}") from exc
        logger.info("Session saved to %s", self.path)

    def load(self) -> Optional[SessionDocument]:
        if not self.path.exists():
            logger.debug("No session file at %s", self.path)
            return None
        try:
            body = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SessionStoreError(f"Could not read session file {self.path}: {exc}") from exc
        return _parse(body, str(self.path))


class DocumentSessionStore:
    """One JSON document per user in a SQLite table.

    Args:
        db_path:         SQLite file (``":memory:"`` is not useful here since
                         every call opens a fresh connection).
        app_id:          Application namespace in the document path.
        user_id:         Owner of the document.
        wal_mode:        Passed to ``get_connection``.
        busy_timeout_ms: Passed to ``get_connection``.
    """

    def __init__(
        self,
        db_path: str,
        app_id: str,
        user_id: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.app_id = app_id
        self.user_id = user_id
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @property
    def path(self) -> str:
        return document_path(self.app_id, self.user_id)

    def _connect(self, write: bool = False):
        return get_connection(
            self.db_path, write=write, wal_mode=self.wal_mode, busy_timeout_ms=self.busy_timeout_ms
        )

    def save(self, session: SessionDocument) -> None:
        session.timestamp = utcnow_iso()
        session.user_id = self.user_id
        with self._connect(write=True) as conn:
            conn.execute(
                """
                INSERT INTO session_documents (path, user_id, body, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    user_id    = excluded.user_id,
                    body       = excluded.body,
                    updated_at = excluded.updated_at;
                """,
                (self.path, self.user_id, session.to_json(), session.timestamp),
            )
        logger.info("Session saved to %s:%s", self.db_path, self.path)

    def load(self) -> Optional[SessionDocument]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body FROM session_documents WHERE path = ?;", (self.path,)
            ).fetchone()
        if row is None:
            logger.debug("No session document at %s", self.path)
            return None
        return _parse(row["body"], self.path)


def get_session_store(config: AppConfig) -> SessionStore:
    """Store selected by ``config.session.backend``."""
    cfg = config.session
    if cfg.backend == "document":
        return DocumentSessionStore(
            db_path=cfg.db_path,
            app_id=cfg.app_id,
            user_id=cfg.user_id,
            wal_mode=cfg.wal_mode,
            busy_timeout_ms=cfg.busy_timeout_ms,
        )
    return FileSessionStore(cfg.session_file)


def load_or_new(store: SessionStore, config: AppConfig) -> SessionDocument:
    """Load the stored session, or start a fresh one from config defaults."""
    session = store.load()
    if session is None:
        session = SessionDocument(
            prompt_mode=config.generative.prompt_mode,
            selected_performance_metric=config.backtest.default_metric,
            user_id=config.session.user_id,
        )
    return session
