"""
Task Deadline Bot — Ad-hoc broadcasts.

Sends a free-text message (or each user's credentials) to every opted-in,
chat-linked user, optionally restricted to a login allowlist. Delivery is
sequential; one recipient's failure never aborts the batch. After every
``batch_size`` successful sends the loop pauses to respect Telegram's
outbound rate limit.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.data.models import normalize_chat_id, normalize_login
from src.ports.notification_port import normalize_format_mode

if TYPE_CHECKING:
    from src.core.user_directory import UserDirectory
    from src.data.models import User
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_PAUSE_SECONDS = 1.0


class ValidationError(Exception):
    """Raised when a broadcast request is rejected before any I/O."""


@dataclass
class BroadcastResult:
    sent: int = 0
    total: int = 0
    skipped: int = 0


async def _pace(sent: int, batch_size: int, pause_seconds: float) -> None:
    if batch_size > 0 and sent % batch_size == 0:
        await asyncio.sleep(pause_seconds)


async def send_broadcast(
    directory: UserDirectory,
    notifier: NotificationPort,
    message: str | None,
    logins: list[str] | None = None,
    parse_mode: str | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    pause_seconds: float = DEFAULT_PAUSE_SECONDS,
    refresh: bool = True,
) -> BroadcastResult:
    """Send ``message`` to opted-in users (filtered by ``logins`` if given).

    Raises ValidationError for an empty message or unknown format mode.
    Per-recipient delivery failures are logged and counted, never raised.
    """
    text = (message or "").strip()
    if not text:
        raise ValidationError("Broadcast message is required")
    try:
        mode = normalize_format_mode(parse_mode)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    allowlist = {normalize_login(login) for login in logins or []} - {""}

    if refresh:
        await directory.refresh(force=True)
    recipients = directory.get_opted_in_users()
    if allowlist:
        recipients = [u for u in recipients if normalize_login(u.login) in allowlist]

    if not recipients:
        logger.warning("No recipients matched the provided filters.")
        return BroadcastResult(sent=0, total=0)

    sent = 0
    for user in recipients:
        try:
            await notifier.send_message(user.telegram_chat_id, text, mode)
        except Exception as exc:
            logger.error("Failed to send broadcast to %s: %s", user.login, exc)
            continue
        sent += 1
        logger.info("Broadcast delivered to %s", user.login)
        await _pace(sent, batch_size, pause_seconds)

    logger.info("Broadcast finished: %d/%d delivered", sent, len(recipients))
    return BroadcastResult(sent=sent, total=len(recipients))


# ---------------------------------------------------------------------------
# Credentials broadcast
# ---------------------------------------------------------------------------


def build_credential_message(login: str, password: str) -> str:
    """HTML message with the login and a spoiler-hidden password."""
    return "\n".join([
        "<b>‼️ System notice</b>",
        "",
        "Here are your sign-in details for our system. Save or pin this message.",
        "",
        f"<b>Login:</b> {html.escape(login)}",
        f"<b>Password:</b> <tg-spoiler>{html.escape(password)}</tg-spoiler>",
        "",
        "Have a productive day! Contact an administrator with any questions 🤖",
    ])


def _credentials_of(user: User) -> tuple[str, str, str]:
    login = (user.login or "").strip()
    password = (user.password or "").strip()
    chat_id = normalize_chat_id(user.telegram_chat_id) or ""
    return login, password, chat_id


async def broadcast_credentials(
    directory: UserDirectory,
    notifier: NotificationPort,
    batch_size: int = DEFAULT_BATCH_SIZE,
    pause_seconds: float = DEFAULT_PAUSE_SECONDS,
    force_refresh: bool = True,
) -> BroadcastResult:
    """Send each opted-in user their own login and password."""
    if force_refresh:
        await directory.refresh(force=True)
    recipients = directory.get_opted_in_users()
    if not recipients:
        logger.warning("No Telegram users opted in — skipping credentials broadcast")
        return BroadcastResult()

    sent = 0
    skipped = 0
    for user in recipients:
        login, password, chat_id = _credentials_of(user)
        if not login or not password or not chat_id:
            skipped += 1
            logger.warning(
                "Skipping user %r without login, password or chat id "
                "(login=%s password=%s chat=%s)",
                user.login, bool(login), bool(password), bool(chat_id),
            )
            continue
        try:
            await notifier.send_message(chat_id, build_credential_message(login, password), "html")
        except Exception as exc:
            logger.error("Failed to send credentials to %s: %s", user.login, exc)
            continue
        sent += 1
        logger.info("Credentials delivered to %s", user.login)
        await _pace(sent, batch_size, pause_seconds)

    total = len(recipients)
    logger.info("Credential broadcast finished: sent=%d skipped=%d total=%d", sent, skipped, total)
    return BroadcastResult(sent=sent, total=total, skipped=skipped)
