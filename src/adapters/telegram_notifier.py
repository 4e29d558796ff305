"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from src.ports.notification_port import DeliveryError, normalize_format_mode

logger = logging.getLogger(__name__)

_PARSE_MODES = {
    "html": ParseMode.HTML,
    "markdown": ParseMode.MARKDOWN,
    "markdownv2": ParseMode.MARKDOWN_V2,
}


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self, chat_id: str, text: str, parse_mode: str | None = None
    ) -> None:
        mode = normalize_format_mode(parse_mode)
        try:
            await self._bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=_PARSE_MODES.get(mode) if mode else None,
            )
        except TelegramError as exc:
            raise DeliveryError(f"Telegram delivery to {chat_id} failed: {exc}") from exc
