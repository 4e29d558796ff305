"""Task listing — filtering and formatting for the /tasks command.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from datetime import datetime

from src.core.deadlines import format_deadline
from src.data.models import Task, normalize_login

DEFAULT_CHUNK_SIZE = 3500


def tasks_for_login(tasks: list[Task], login: str | None) -> list[Task]:
    """Return the tasks that list ``login`` among their assignees."""
    key = normalize_login(login)
    if not key:
        return []
    return [task for task in tasks if key in task.login_candidates()]


def build_task_summary(task: Task, now: datetime) -> str:
    """Multi-line summary of a single task."""
    parts = [f"📌 {task.title or 'Untitled task'}"]
    if task.status:
        parts.append(f"  Status: {task.status}")
    if task.deadline:
        parts.append(f"  Deadline: {format_deadline(task.deadline, now)}")
    if task.priority:
        parts.append(f"  Priority: {task.priority}")
    return "\n".join(parts)


def split_message(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split text into chunks of at most ``chunk_size`` characters.

    Splits only on line boundaries; a single line longer than the limit is
    kept whole. Whitespace-only chunks are dropped.
    """
    chunks: list[str] = []
    buffer = ""
    for line in text.split("\n"):
        candidate = f"{buffer}\n{line}" if buffer else line
        if len(candidate) > chunk_size and buffer:
            chunks.append(buffer)
            buffer = line
            continue
        buffer = candidate
    if buffer:
        chunks.append(buffer)
    return [chunk for chunk in chunks if chunk.strip()]
