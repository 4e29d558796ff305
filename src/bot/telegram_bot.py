"""
Task Deadline Bot — Telegram Bot.

Telegram is the user-facing surface: users link their tracker account with
/start, list their tasks with /tasks and opt out with /stop. The same
process runs the deadline notifier in the background.

Handlers only adapt Telegram updates to command variants; all behavior
lives in src.core.commands.route_command.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings, setup_logging
from src.core.commands import COMMAND_NAMES, parse_command, route_command

if TYPE_CHECKING:
    from src.core.scheduler import TaskNotifier
    from src.core.user_directory import UserDirectory
    from src.ports.ledger_port import LedgerPort
    from src.ports.notification_port import NotificationPort
    from src.ports.task_api_port import TaskApiPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


async def _dispatch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Parse the incoming message, route it, send every reply chunk."""
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None:
        return

    sender = update.effective_user
    username = sender.username if sender else None
    command = parse_command(message.text, chat.id, username)
    if command is None:
        return

    replies = await route_command(
        command,
        context.bot_data["directory"],
        context.bot_data["api"],
        chunk_size=settings.MESSAGE_CHUNK_SIZE,
        tz=context.bot_data.get("tz"),
    )
    for reply in replies:
        await message.reply_text(reply)


async def handle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start, /stop, /tasks and /help."""
    await _dispatch(update, context)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — reply with the command hint."""
    await _dispatch(update, context)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Telegram bot error: %s", context.error, exc_info=context.error)


# ---------------------------------------------------------------------------
# Lifecycle hooks
# ---------------------------------------------------------------------------


async def _post_init(app: Application) -> None:
    """Warm the user directory, then start the background notifier."""
    directory: UserDirectory = app.bot_data["directory"]
    try:
        await directory.refresh(force=True)
    except Exception as exc:
        logger.warning("Initial user directory refresh failed: %s", exc)

    task_notifier: TaskNotifier = app.bot_data["task_notifier"]
    task_notifier.start()


async def _post_shutdown(app: Application) -> None:
    task_notifier: TaskNotifier = app.bot_data["task_notifier"]
    await task_notifier.stop()

    api = app.bot_data["api"]
    aclose = getattr(api, "aclose", None)
    if aclose is not None:
        await aclose()


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    api: TaskApiPort | None = None,
    directory: UserDirectory | None = None,
    notifier: NotificationPort | None = None,
    ledger: LedgerPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        api: Task tracker port. Defaults to the httpx TaskApiClient.
        directory: User directory. Defaults to one backed by ``api``.
        notifier: Notification port. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
        ledger: Notification ledger. Defaults to the STATE_BACKEND store.
    """
    from src.adapters.factory import (
        create_ledger,
        create_task_api,
        create_task_notifier,
        create_user_directory,
    )

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    # Wire default adapters if not provided
    if api is None:
        api = create_task_api()
    if directory is None:
        directory = create_user_directory(api)
    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)
    if ledger is None:
        ledger = create_ledger()

    # Store services in bot_data for handler access
    app.bot_data["api"] = api
    app.bot_data["directory"] = directory
    app.bot_data["notifier"] = notifier
    app.bot_data["tz"] = ZoneInfo(settings.TIMEZONE)
    app.bot_data["task_notifier"] = create_task_notifier(api, directory, notifier, ledger)

    app.add_handler(CommandHandler(list(COMMAND_NAMES), handle_command))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_error_handler(handle_error)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    setup_logging()
    logger.info("Starting Task Deadline bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
