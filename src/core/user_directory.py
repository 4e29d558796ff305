"""
Task Deadline Bot — User Directory.

A refreshable in-memory snapshot of tracker users with three coherent
indexes (by id, by normalized login, by chat handle). The notifier and the
chat commands read it on every tick/command; /start and /stop patch single
records without a full refresh.

Concurrent refresh() calls share a single in-flight fetch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.data.models import User, normalize_chat_id, normalize_login

if TYPE_CHECKING:
    from src.ports.task_api_port import TaskApiPort

logger = logging.getLogger(__name__)


class LinkStatus(str, Enum):
    LINKED = "linked"
    ALREADY_LINKED = "already_linked"
    NOT_FOUND = "not_found"
    INVALID_USERNAME = "invalid_username"
    INVALID_CHAT = "invalid_chat"
    OPTED_OUT = "opted_out"
    ALREADY_DISABLED = "already_disabled"
    NOT_LINKED = "not_linked"


@dataclass
class LinkResult:
    """Outcome of a link/unlink action."""

    status: LinkStatus
    user: User | None = None


class UserDirectory:
    """Cached, indexed view of tracker users."""

    def __init__(
        self,
        api: TaskApiPort,
        refresh_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._refresh_interval = refresh_interval_seconds
        self._clock = clock
        self._users_by_id: dict[str, User] = {}
        self._login_index: dict[str, User] = {}
        self._chat_index: dict[str, User] = {}
        self._last_refresh_at: float | None = None
        self._refresh_task: asyncio.Task[list[User]] | None = None

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _is_fresh(self) -> bool:
        if self._last_refresh_at is None:
            return False
        return self._clock() - self._last_refresh_at < self._refresh_interval

    async def refresh(self, force: bool = False) -> list[User]:
        """Re-fetch all users unless the cache is still fresh.

        On failure the previous snapshot is kept and the error propagates.
        """
        if not force and self._is_fresh():
            return self.get_all_users()

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._load_users())
            self._refresh_task.add_done_callback(self._clear_refresh_task)
        # shield: one caller being cancelled must not cancel the shared fetch
        return await asyncio.shield(self._refresh_task)

    def _clear_refresh_task(self, task: asyncio.Task[list[User]]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled() and task.exception() is not None:
            logger.debug("User refresh failed: %s", task.exception())

    async def _load_users(self) -> list[User]:
        users = await self._api.fetch_users()
        self._rebuild_indexes(users)
        logger.info("User directory refreshed: %d users", len(users))
        return users

    def _rebuild_indexes(self, users: list[User]) -> None:
        self._users_by_id = {}
        self._login_index = {}
        self._chat_index = {}
        for user in users:
            self._update_cache(user, skip_previous_cleanup=True)
        self._last_refresh_at = self._clock()

    def _update_cache(self, user: User, skip_previous_cleanup: bool = False) -> None:
        """Insert or replace one user in all three indexes.

        Stale login/chat slots of the previous record are evicted only if
        they still point at this same user id.
        """
        user_id = str(user.id)
        if not skip_previous_cleanup:
            previous = self._users_by_id.get(user_id)
            if previous is not None:
                prev_login = normalize_login(previous.login)
                existing = self._login_index.get(prev_login)
                if prev_login and existing is not None and str(existing.id) == user_id:
                    del self._login_index[prev_login]

                prev_chat = normalize_chat_id(previous.telegram_chat_id)
                existing = self._chat_index.get(prev_chat) if prev_chat else None
                if existing is not None and str(existing.id) == user_id:
                    del self._chat_index[prev_chat]

        self._users_by_id[user_id] = user
        login_key = normalize_login(user.login)
        if login_key:
            self._login_index[login_key] = user
        chat_key = normalize_chat_id(user.telegram_chat_id)
        if chat_key:
            self._chat_index[chat_key] = user

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_all_users(self) -> list[User]:
        return list(self._users_by_id.values())

    def get_user_by_id(self, user_id: str | int) -> User | None:
        return self._users_by_id.get(str(user_id))

    def get_user_by_login(self, login: str | None) -> User | None:
        key = normalize_login(login)
        if not key:
            return None
        return self._login_index.get(key)

    def get_user_by_chat_id(self, chat_id: str | int | None) -> User | None:
        key = normalize_chat_id(chat_id)
        if key is None:
            return None
        return self._chat_index.get(key)

    def get_opted_in_users(self) -> list[User]:
        """Users that are opted in AND have a linked chat."""
        return [user for user in self._users_by_id.values() if user.is_reachable]

    def resolve_recipient(self, login: str | None) -> User | None:
        """The opted-in, chat-linked user for a login, if any."""
        user = self.get_user_by_login(login)
        if user is None or not user.is_reachable:
            return None
        return user

    # ------------------------------------------------------------------
    # Opt-in / opt-out
    # ------------------------------------------------------------------

    async def sync_telegram_link(
        self,
        username: str | None,
        chat_id: str | int | None,
        opt_in: bool = True,
    ) -> LinkResult:
        """Link a Telegram chat to the tracker user with the same login.

        Only fields that actually changed are sent to the API; nothing to
        change means "already linked" and no API call.
        """
        login_key = normalize_login(username)
        if not login_key:
            return LinkResult(LinkStatus.INVALID_USERNAME)
        chat_value = normalize_chat_id(chat_id)
        if chat_value is None:
            return LinkResult(LinkStatus.INVALID_CHAT)

        await self.refresh(force=True)
        user = self.get_user_by_login(login_key)
        if user is None:
            return LinkResult(LinkStatus.NOT_FOUND)

        changes: dict[str, Any] = {}
        if user.telegram_username != username:
            changes["username"] = username
        if user.telegram_chat_id != chat_value:
            changes["chatId"] = chat_value
        if bool(opt_in) != user.telegram_opt_in:
            changes["optIn"] = bool(opt_in)

        if not changes:
            return LinkResult(LinkStatus.ALREADY_LINKED, user)

        updated = await self._api.update_user_linkage(user.id, changes)
        self._update_cache(updated)
        logger.info("Telegram chat linked for %s (%s)", user.login, ", ".join(changes))
        return LinkResult(LinkStatus.LINKED, updated)

    async def opt_out_by_chat_id(self, chat_id: str | int | None) -> LinkResult:
        """Clear the chat handle and opt-in flag of the user linked to a chat."""
        user = self.get_user_by_chat_id(chat_id)
        if user is None:
            return LinkResult(LinkStatus.NOT_LINKED)

        changes: dict[str, Any] = {}
        if user.telegram_chat_id:
            changes["chatId"] = None
        if user.telegram_opt_in:
            changes["optIn"] = False
        if not changes:
            return LinkResult(LinkStatus.ALREADY_DISABLED, user)

        updated = await self._api.update_user_linkage(user.id, changes)
        self._update_cache(updated)
        logger.info("Telegram notifications disabled for %s", user.login)
        return LinkResult(LinkStatus.OPTED_OUT, updated)
