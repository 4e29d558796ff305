"""
Task Deadline Bot — Notification ledger (SQLite backend).

Same contract as the JSON StateStore, backed by an embedded SQLite file.
Selected with STATE_BACKEND=sqlite.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from src.ports.ledger_port import PersistenceError

logger = logging.getLogger(__name__)

_LAST_DAILY_KEY = "last_daily_reminder_date"


class SqliteStateStore:
    """SQLite-backed implementation of LedgerPort."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.TASK_NOTIFIER_STATE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._memory_conn: sqlite3.Connection | None = None
        self.init()

    def _connect(self) -> sqlite3.Connection:
        if self._db_path == ":memory:":
            # A fresh :memory: connection is a fresh database — keep one.
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:")
            return self._memory_conn
        return sqlite3.connect(self._db_path)

    def init(self) -> None:
        """Create the ledger tables; a corrupt file is set aside and recreated."""
        try:
            self._create_tables()
            return
        except sqlite3.DatabaseError as exc:
            if self._db_path == ":memory:":
                raise PersistenceError(f"Failed to open ledger: {exc}") from exc
            logger.warning(
                "Ledger %s is unreadable, starting from scratch: %s", self._db_path, exc,
            )

        corrupt = Path(self._db_path)
        try:
            corrupt.replace(corrupt.with_name(corrupt.name + ".corrupt"))
            self._create_tables()
        except (OSError, sqlite3.DatabaseError) as exc:
            raise PersistenceError(f"Failed to recreate ledger {self._db_path}: {exc}") from exc

    def _create_tables(self) -> None:
        conn = self._connect()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS deadline_reminders (
                    task_id   TEXT PRIMARY KEY,
                    deadline  TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notifier_meta (
                    key    TEXT PRIMARY KEY,
                    value  TEXT
                )
            """)
        logger.debug("Notifier ledger initialized at %s", self._db_path)

    def _read_one(self, query: str, params: tuple) -> tuple | None:
        try:
            conn = self._connect()
            return conn.execute(query, params).fetchone()
        except sqlite3.DatabaseError as exc:
            logger.warning("Ledger read failed, treating as not sent: %s", exc)
            return None

    def _write(self, query: str, params: tuple) -> None:
        try:
            conn = self._connect()
            with conn:
                conn.execute(query, params)
        except sqlite3.DatabaseError as exc:
            raise PersistenceError(f"Failed to write ledger {self._db_path}: {exc}") from exc

    def was_deadline_notified(self, task_id: str, deadline_iso: str) -> bool:
        key = str(task_id)
        if not key or not deadline_iso:
            return False
        row = self._read_one(
            "SELECT deadline FROM deadline_reminders WHERE task_id = ?", (key,),
        )
        return row is not None and row[0] == deadline_iso

    def mark_deadline_notified(self, task_id: str, deadline_iso: str) -> None:
        key = str(task_id)
        if not key or not deadline_iso:
            return
        self._write(
            """
            INSERT INTO deadline_reminders (task_id, deadline) VALUES (?, ?)
            ON CONFLICT(task_id) DO UPDATE SET deadline = excluded.deadline
            """,
            (key, deadline_iso),
        )

    def was_daily_reminder_sent(self, date_key: str) -> bool:
        if not date_key:
            return False
        row = self._read_one(
            "SELECT value FROM notifier_meta WHERE key = ?", (_LAST_DAILY_KEY,),
        )
        return row is not None and row[0] == date_key

    def mark_daily_reminder_sent(self, date_key: str) -> None:
        if not date_key:
            return
        self._write(
            """
            INSERT INTO notifier_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (_LAST_DAILY_KEY, date_key),
        )
