"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp ledger and fake ports.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("API_TOKEN", "fake-api-token-for-tests")
os.environ.setdefault("API_BASE_URL", "http://tracker.test/api")
os.environ.setdefault("STATE_BACKEND", "sqlite")
os.environ.setdefault("TASK_NOTIFIER_STATE_PATH", ":memory:")
os.environ.setdefault("BROADCAST_ACCESS_TOKEN", "")
os.environ.setdefault("TIMEZONE", "UTC")

from unittest.mock import AsyncMock

import pytest

from src.data.models import Task, User


def make_user(
    user_id="1",
    login="alice",
    chat_id="C1",
    opt_in=True,
    username=None,
    **extra,
):
    return User(
        id=str(user_id),
        login=login,
        telegram_chat_id=chat_id,
        telegram_opt_in=opt_in,
        telegram_username=username,
        extra=extra,
    )


def make_task(task_id="T1", deadline=None, responsible="alice", title="Write report", **kwargs):
    return Task(id=task_id, title=title, deadline=deadline, responsible=responsible, **kwargs)


@pytest.fixture
def state_path(tmp_path):
    """Return a temporary ledger file path."""
    return tmp_path / "state" / "bot-state.json"


@pytest.fixture
def state_store(state_path):
    """Return a JSON StateStore backed by a temp file."""
    from src.data.state_store import StateStore
    return StateStore(state_path)


@pytest.fixture
def sqlite_store(tmp_path):
    """Return a SqliteStateStore backed by a temp file."""
    from src.data.db import SqliteStateStore
    return SqliteStateStore(str(tmp_path / "ledger.db"))


@pytest.fixture
def fake_api():
    """A TaskApiPort double with no users and no tasks."""
    api = AsyncMock()
    api.fetch_users = AsyncMock(return_value=[])
    api.fetch_tasks = AsyncMock(return_value=[])
    api.update_user_linkage = AsyncMock()
    return api


@pytest.fixture
def fake_notifier():
    """A NotificationPort double that records sends."""
    notifier = AsyncMock()
    notifier.send_message = AsyncMock()
    return notifier
