"""
Task Deadline Bot — Standalone notifier.

Usage:
    python -m src.cli.run_notifier

Runs the deadline notifier without the interactive bot. SIGINT/SIGTERM
stop the timer and let an in-flight tick finish before exiting.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from telegram import Bot

from src.config import settings, setup_logging

logger = logging.getLogger(__name__)


async def run() -> None:
    from src.adapters.factory import (
        create_ledger,
        create_task_api,
        create_task_notifier,
        create_user_directory,
    )
    from src.adapters.telegram_notifier import TelegramNotifier

    ledger = create_ledger()
    api = create_task_api()
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:  # Windows
            pass

    try:
        directory = create_user_directory(api)
        async with Bot(settings.TELEGRAM_BOT_TOKEN) as bot:
            task_notifier = create_task_notifier(api, directory, TelegramNotifier(bot), ledger)
            task_notifier.start()
            logger.info("Standalone task notifier started")
            await stop_requested.wait()
            logger.info("Shutdown requested")
            await task_notifier.stop()
    finally:
        await api.aclose()


def main() -> int:
    setup_logging()
    try:
        asyncio.run(run())
    except Exception as exc:
        logger.error("Notifier runner failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
