"""Ledger port — durable record of notifications already sent.

The notifier depends on this protocol; the backing medium (JSON file,
SQLite) is chosen by the factory.
"""

from __future__ import annotations

from typing import Protocol


class PersistenceError(Exception):
    """Raised when the ledger cannot be written to its storage."""


class LedgerPort(Protocol):
    """Key → value store of sent deadline reminders and digest dates."""

    def init(self) -> None: ...

    def was_deadline_notified(self, task_id: str, deadline_iso: str) -> bool: ...

    def mark_deadline_notified(self, task_id: str, deadline_iso: str) -> None: ...

    def was_daily_reminder_sent(self, date_key: str) -> bool: ...

    def mark_daily_reminder_sent(self, date_key: str) -> None: ...
