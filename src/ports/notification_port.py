"""Notification port — abstract interface for sending messages to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

# Canonical format modes; None means plain text.
FORMAT_MODES: dict[str, str | None] = {
    "plain": None,
    "text": None,
    "html": "html",
    "markdown": "markdown",
    "md": "markdown",
    "markdownv2": "markdownv2",
    "markdown_v2": "markdownv2",
    "mdv2": "markdownv2",
}


class DeliveryError(Exception):
    """Raised when a single message could not be delivered."""


def normalize_format_mode(value: str | None) -> str | None:
    """Map a user-supplied format name to a canonical mode.

    Returns None for plain text. Raises ValueError for unknown modes.
    """
    if value is None or not str(value).strip():
        return None
    key = str(value).strip().lower()
    if key not in FORMAT_MODES:
        raise ValueError(f"Unsupported format mode: {value!r}")
    return FORMAT_MODES[key]


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_message(
        self, chat_id: str, text: str, parse_mode: str | None = None
    ) -> None: ...
