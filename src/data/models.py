"""
Task Deadline Bot — Data Models.

Users and tasks are mirrored from the task tracker API. Tasks are read
fresh on every notifier tick and never mutated locally; users are cached
by the UserDirectory and patched in place after link/unlink actions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_USER_FIELDS = {"id", "login", "telegramChatId", "telegramOptIn", "telegramUsername"}


def normalize_login(login: object) -> str:
    """Lower-cased, trimmed login ("" for missing values)."""
    if login is None:
        return ""
    return str(login).strip().lower()


def normalize_chat_id(chat_id: object) -> str | None:
    """Trimmed chat handle as a string, or None when empty."""
    if chat_id is None:
        return None
    value = str(chat_id).strip()
    return value or None


@dataclass
class User:
    """A tracker user and their Telegram linkage state."""

    id: str
    login: str
    telegram_chat_id: str | None = None     # None → not linked
    telegram_opt_in: bool = False
    telegram_username: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)  # pass-through fields

    @property
    def password(self) -> str | None:
        value = self.extra.get("password")
        return None if value is None else str(value)

    @property
    def is_reachable(self) -> bool:
        """Opted in AND linked to a chat — both are required to notify."""
        return self.telegram_opt_in and normalize_chat_id(self.telegram_chat_id) is not None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> User:
        return cls(
            id=str(payload["id"]),
            login=str(payload.get("login") or ""),
            telegram_chat_id=normalize_chat_id(payload.get("telegramChatId")),
            telegram_opt_in=bool(payload.get("telegramOptIn")),
            telegram_username=payload.get("telegramUsername"),
            extra={k: v for k, v in payload.items() if k not in _USER_FIELDS},
        )


@dataclass
class Task:
    """A tracker task. Only the deadline and assignee fields drive notifications."""

    id: str
    title: str = ""
    status: str | None = None
    priority: str | None = None
    deadline: str | int | float | None = None   # ISO-8601 string or epoch ms, None → no deadline
    responsible: str | None = None
    responsible_login: str | None = None
    assignee_logins: list[str] = field(default_factory=list)

    def login_candidates(self) -> list[str]:
        """All assignee logins, lower-cased and de-duplicated, in field order."""
        seen: dict[str, None] = {}
        for value in [*self.assignee_logins, self.responsible_login, self.responsible]:
            key = normalize_login(value)
            if key:
                seen.setdefault(key, None)
        return list(seen)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Task:
        logins = [str(x) for x in payload.get("assigneeLogins") or [] if x]
        for assignee in payload.get("assignees") or []:
            if isinstance(assignee, dict) and assignee.get("login"):
                logins.append(str(assignee["login"]))

        deadline = payload.get("deadline")
        if isinstance(deadline, bool) or deadline in (None, ""):
            deadline = None
        elif not isinstance(deadline, (int, float)):
            deadline = str(deadline)
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title") or ""),
            status=payload.get("status") or None,
            priority=payload.get("priority") or None,
            deadline=deadline,
            responsible=payload.get("responsible") or None,
            responsible_login=payload.get("responsibleLogin") or None,
            assignee_logins=logins,
        )
