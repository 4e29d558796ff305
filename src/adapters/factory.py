"""Adapter factory — builds ports and services from config."""

from __future__ import annotations

from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from src.config import settings

if TYPE_CHECKING:
    from src.core.broadcast import BroadcastResult
    from src.core.scheduler import TaskNotifier
    from src.core.user_directory import UserDirectory
    from src.integrations.task_api import TaskApiClient
    from src.ports.ledger_port import LedgerPort
    from src.ports.notification_port import NotificationPort
    from src.ports.task_api_port import TaskApiPort


def create_ledger(path: str | None = None) -> LedgerPort:
    """Return the ledger backend matching the STATE_BACKEND setting."""
    backend = settings.STATE_BACKEND.lower()
    path = path or settings.TASK_NOTIFIER_STATE_PATH

    if backend == "json":
        from src.data.state_store import StateStore

        return StateStore(path)

    if backend == "sqlite":
        from src.data.db import SqliteStateStore

        return SqliteStateStore(path)

    raise ValueError(f"Unknown STATE_BACKEND: {backend!r}")


def create_task_api() -> TaskApiClient:
    from src.integrations.task_api import TaskApiClient

    return TaskApiClient(
        base_url=settings.API_BASE_URL,
        api_token=settings.API_TOKEN,
        service_login=settings.API_SERVICE_LOGIN,
        service_password=settings.API_SERVICE_PASSWORD,
        timeout=settings.API_TIMEOUT_SECONDS,
    )


def create_user_directory(api: TaskApiPort) -> UserDirectory:
    from src.core.user_directory import UserDirectory

    return UserDirectory(api, refresh_interval_seconds=settings.USER_REFRESH_INTERVAL_SECONDS)


def create_task_notifier(
    api: TaskApiPort,
    directory: UserDirectory,
    notifier: NotificationPort,
    ledger: LedgerPort,
) -> TaskNotifier:
    from src.core.scheduler import TaskNotifier

    return TaskNotifier(
        api,
        directory,
        notifier,
        ledger,
        poll_interval_seconds=settings.TASK_NOTIFIER_POLL_INTERVAL_SECONDS,
        deadline_window_hours=settings.TASK_DEADLINE_ALERT_WINDOW_HOURS,
        task_url_template=settings.TASK_URL_TEMPLATE,
        daily_reminder_hour=settings.DAILY_REMINDER_HOUR,
        daily_reminder_minute=settings.DAILY_REMINDER_MINUTE,
        tz=ZoneInfo(settings.TIMEZONE),
    )


async def run_broadcast(
    message: str | None, logins: list[str], parse_mode: str | None,
) -> BroadcastResult:
    """Broadcast over a short-lived Bot session and API client."""
    from telegram import Bot

    from src.adapters.telegram_notifier import TelegramNotifier
    from src.core.broadcast import send_broadcast

    api = create_task_api()
    try:
        directory = create_user_directory(api)
        async with Bot(settings.TELEGRAM_BOT_TOKEN) as bot:
            return await send_broadcast(
                directory,
                TelegramNotifier(bot),
                message,
                logins=logins,
                parse_mode=parse_mode,
                batch_size=settings.BROADCAST_BATCH_SIZE,
                pause_seconds=settings.BROADCAST_PAUSE_SECONDS,
            )
    finally:
        await api.aclose()
