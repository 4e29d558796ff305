"""Tests for src.adapters.factory — wiring from settings."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.adapters.factory import (
    create_ledger,
    create_task_api,
    create_task_notifier,
    create_user_directory,
    run_broadcast,
)
from src.core.broadcast import BroadcastResult
from src.core.scheduler import TaskNotifier
from src.core.user_directory import UserDirectory
from src.data.db import SqliteStateStore
from src.data.state_store import StateStore
from src.integrations.task_api import TaskApiClient


class TestCreateLedger:
    @patch("src.adapters.factory.settings")
    def test_json_backend(self, mock_settings, tmp_path):
        mock_settings.STATE_BACKEND = "json"
        ledger = create_ledger(str(tmp_path / "state.json"))
        assert isinstance(ledger, StateStore)

    @patch("src.adapters.factory.settings")
    def test_sqlite_backend_case_insensitive(self, mock_settings, tmp_path):
        mock_settings.STATE_BACKEND = "SQLite"
        ledger = create_ledger(str(tmp_path / "state.db"))
        assert isinstance(ledger, SqliteStateStore)

    @patch("src.adapters.factory.settings")
    def test_unknown_backend_raises(self, mock_settings):
        mock_settings.STATE_BACKEND = "redis"
        with pytest.raises(ValueError, match="Unknown STATE_BACKEND"):
            create_ledger("unused")


class TestCreateServices:
    @patch("src.adapters.factory.settings")
    def test_task_api(self, mock_settings):
        mock_settings.API_BASE_URL = "http://tracker.test/api"
        mock_settings.API_TOKEN = "tok"
        mock_settings.API_SERVICE_LOGIN = ""
        mock_settings.API_SERVICE_PASSWORD = ""
        mock_settings.API_TIMEOUT_SECONDS = 5.0
        assert isinstance(create_task_api(), TaskApiClient)

    @patch("src.adapters.factory.settings")
    def test_directory_and_notifier(self, mock_settings, fake_api, fake_notifier):
        mock_settings.USER_REFRESH_INTERVAL_SECONDS = 60
        mock_settings.TASK_NOTIFIER_POLL_INTERVAL_SECONDS = 30
        mock_settings.TASK_DEADLINE_ALERT_WINDOW_HOURS = 12
        mock_settings.TASK_URL_TEMPLATE = ""
        mock_settings.DAILY_REMINDER_HOUR = 9
        mock_settings.DAILY_REMINDER_MINUTE = 15
        mock_settings.TIMEZONE = "Europe/Berlin"

        directory = create_user_directory(fake_api)
        notifier = create_task_notifier(fake_api, directory, fake_notifier, MagicMock())

        assert isinstance(directory, UserDirectory)
        assert isinstance(notifier, TaskNotifier)
        assert notifier.daily_reminder_enabled


class TestRunBroadcast:
    @pytest.mark.asyncio
    @patch("src.core.broadcast.send_broadcast", new_callable=AsyncMock)
    @patch("telegram.Bot")
    @patch("src.adapters.factory.create_task_api")
    @patch("src.adapters.factory.settings")
    async def test_sends_through_short_lived_session(
        self, mock_settings, mock_create_api, mock_bot_cls, mock_send,
    ):
        mock_settings.TELEGRAM_BOT_TOKEN = "123:abc"
        mock_settings.USER_REFRESH_INTERVAL_SECONDS = 300
        mock_settings.BROADCAST_BATCH_SIZE = 5
        mock_settings.BROADCAST_PAUSE_SECONDS = 0.5
        api = MagicMock()
        api.aclose = AsyncMock()
        mock_create_api.return_value = api
        mock_bot_cls.return_value.__aenter__ = AsyncMock(return_value=MagicMock())
        mock_bot_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        mock_send.return_value = BroadcastResult(sent=1, total=1)

        result = await run_broadcast("hi", ["alice"], "html")

        assert result == BroadcastResult(sent=1, total=1)
        kwargs = mock_send.await_args.kwargs
        assert kwargs["logins"] == ["alice"]
        assert kwargs["parse_mode"] == "html"
        assert kwargs["batch_size"] == 5
        api.aclose.assert_awaited_once()

    def test_http_endpoint_uses_factory_broadcaster(self):
        from src.api import broadcast_server

        assert broadcast_server.run_broadcast is run_broadcast
