"""
Task Deadline Bot — Credentials broadcast CLI.

Usage:
    python -m src.cli.send_credentials

Sends every opted-in user their tracker login and password.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from telegram import Bot

from src.config import settings, setup_logging
from src.core.broadcast import BroadcastResult, broadcast_credentials

logger = logging.getLogger(__name__)


async def run_credentials_broadcast() -> BroadcastResult:
    from src.adapters.factory import create_task_api, create_user_directory
    from src.adapters.telegram_notifier import TelegramNotifier

    api = create_task_api()
    try:
        directory = create_user_directory(api)
        async with Bot(settings.TELEGRAM_BOT_TOKEN) as bot:
            return await broadcast_credentials(
                directory,
                TelegramNotifier(bot),
                batch_size=settings.BROADCAST_BATCH_SIZE,
                pause_seconds=settings.BROADCAST_PAUSE_SECONDS,
            )
    finally:
        await api.aclose()


def main() -> int:
    setup_logging()
    try:
        result = asyncio.run(run_credentials_broadcast())
    except Exception as exc:
        logger.error("Credential broadcast failed: %s", exc)
        return 1
    print(f"Sent {result.sent}/{result.total} (skipped {result.skipped})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
