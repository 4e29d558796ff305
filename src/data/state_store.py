"""
Task Deadline Bot — Notification ledger (JSON document backend).

Remembers which (task, deadline) pairs were already reminded and on which
local date the daily digest went out. The stored value is the deadline
snapshot, not a flag: moving a deadline re-arms the reminder.

Every mutation rewrites the whole document before returning, so a caller
may treat a successful mark_* call as the commit point.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from src.ports.ledger_port import PersistenceError

logger = logging.getLogger(__name__)


def _default_state() -> dict[str, Any]:
    return {"deadlineReminders": {}, "lastDailyReminderDate": None}


class StateStore:
    """JSON-file implementation of LedgerPort."""

    def __init__(self, file_path: str | Path | None = None) -> None:
        if file_path is None:
            from src.config import settings
            file_path = settings.TASK_NOTIFIER_STATE_PATH

        self._path = Path(file_path)
        self._state: dict[str, Any] = _default_state()
        self.init()

    @property
    def path(self) -> Path:
        return self._path

    def init(self) -> None:
        """Load the ledger from disk, self-healing a missing or corrupt file."""
        try:
            raw = self._path.read_text(encoding="utf-8")
            loaded = json.loads(raw)
        except FileNotFoundError:
            logger.info("No notifier state at %s, starting fresh", self._path)
            self._reset()
            return
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to read notifier state from %s, starting from scratch: %s",
                self._path, exc,
            )
            self._reset()
            return

        self._state = self._normalize(loaded)
        logger.debug(
            "Notifier state loaded: %d deadline reminders",
            len(self._state["deadlineReminders"]),
        )

    def _reset(self) -> None:
        self._state = _default_state()
        self._persist()

    @staticmethod
    def _normalize(loaded: object) -> dict[str, Any]:
        """Coerce a stored structure field-by-field into the expected shape."""
        if not isinstance(loaded, dict):
            return _default_state()

        reminders = loaded.get("deadlineReminders")
        if not isinstance(reminders, dict):
            reminders = {}
        reminders = {
            str(task_id): value
            for task_id, value in reminders.items()
            if isinstance(value, str) and value
        }

        last_date = loaded.get("lastDailyReminderDate")
        if not isinstance(last_date, str) or not last_date:
            last_date = None

        return {"deadlineReminders": reminders, "lastDailyReminderDate": last_date}

    def _persist(self) -> None:
        """Overwrite the whole document (temp file + atomic replace)."""
        payload = json.dumps(self._state, indent=2, ensure_ascii=False)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write notifier state to {self._path}: {exc}"
            ) from exc

    # -- deadline reminders -------------------------------------------------

    def was_deadline_notified(self, task_id: str, deadline_iso: str) -> bool:
        key = str(task_id)
        if not key or not deadline_iso:
            return False
        return self._state["deadlineReminders"].get(key) == deadline_iso

    def mark_deadline_notified(self, task_id: str, deadline_iso: str) -> None:
        key = str(task_id)
        if not key or not deadline_iso:
            return
        self._state["deadlineReminders"][key] = deadline_iso
        self._persist()

    # -- daily digest -------------------------------------------------------

    def was_daily_reminder_sent(self, date_key: str) -> bool:
        if not date_key:
            return False
        return self._state["lastDailyReminderDate"] == date_key

    def mark_daily_reminder_sent(self, date_key: str) -> None:
        if not date_key:
            return
        self._state["lastDailyReminderDate"] = date_key
        self._persist()
