"""Task API port — abstract interface for the task tracker backend.

Core modules depend on this protocol, never on a specific HTTP client.
"""

from __future__ import annotations

from typing import Any, Protocol

from src.data.models import Task, User


class TaskApiError(Exception):
    """Base class for task tracker API failures."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UpstreamAuthError(TaskApiError):
    """Authentication rejected (401) even after the re-login retry."""


class UpstreamRequestError(TaskApiError):
    """Any other non-2xx response or transport failure (status preserved)."""


class TaskApiPort(Protocol):
    """Abstract task tracker interface used by core modules."""

    async def fetch_users(self) -> list[User]: ...

    async def fetch_tasks(self) -> list[Task]: ...

    async def update_user_linkage(
        self, user_id: str, fields: dict[str, Any]
    ) -> User: ...
