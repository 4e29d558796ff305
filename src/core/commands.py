"""
Task Deadline Bot — Chat command routing.

Inbound chat messages are parsed into a closed set of command variants and
dispatched by route_command(), independent of the chat framework. The
router returns reply texts; the transport only has to send them.

Replies are always friendly fixed strings — error details go to the log.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel

from src.core.task_listing import DEFAULT_CHUNK_SIZE, build_task_summary, split_message, tasks_for_login
from src.core.user_directory import LinkStatus

if TYPE_CHECKING:
    from src.core.user_directory import UserDirectory
    from src.ports.task_api_port import TaskApiPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------


class Start(BaseModel):
    """/start — link the chat to the tracker user and enable notifications."""
    kind: Literal["start"] = "start"
    chat_id: str
    username: str | None = None


class Stop(BaseModel):
    """/stop — unlink the chat and disable notifications."""
    kind: Literal["stop"] = "stop"
    chat_id: str


class ListTasks(BaseModel):
    """/tasks — list tasks where the user is an assignee."""
    kind: Literal["list_tasks"] = "list_tasks"
    chat_id: str
    username: str | None = None


class Help(BaseModel):
    kind: Literal["help"] = "help"


class PlainText(BaseModel):
    kind: Literal["plain_text"] = "plain_text"
    text: str


Command = Union[Start, Stop, ListTasks, Help, PlainText]

COMMAND_NAMES = {
    "start": "start",
    "stop": "stop",
    "tasks": "list_tasks",
    "help": "help",
}


def parse_command(text: str | None, chat_id: str | int, username: str | None = None) -> Command | None:
    """Turn raw message text into a command variant.

    Unknown slash commands return None (ignored). Bot mentions such as
    "/start@MyBot" and trailing arguments are accepted.
    """
    raw = (text or "").strip()
    chat = str(chat_id)
    if not raw.startswith("/"):
        return PlainText(text=raw)

    name = raw[1:].split(maxsplit=1)[0].split("@", 1)[0].lower() if len(raw) > 1 else ""
    kind = COMMAND_NAMES.get(name)
    if kind == "start":
        return Start(chat_id=chat, username=username)
    if kind == "stop":
        return Stop(chat_id=chat)
    if kind == "list_tasks":
        return ListTasks(chat_id=chat, username=username)
    if kind == "help":
        return Help()
    return None


# ---------------------------------------------------------------------------
# Reply texts
# ---------------------------------------------------------------------------

HELP_TEXT = "\n".join([
    "Available commands:",
    "/start — link your account and enable reminders",
    "/tasks — show tasks where you are an assignee",
    "/stop — disable reminders",
    "/help — show this message",
])

PLAIN_TEXT_REPLY = "I understand the commands /start, /tasks, /stop and /help."
NO_USERNAME_REPLY = (
    "Your Telegram username is not set. "
    "Set it in Telegram settings and send /start again."
)
LINKED_REPLY = (
    "Your account is linked. I'll send you task deadline reminders. "
    "Use /tasks to see your current tasks."
)
LINK_FAILED_REPLY = "Couldn't update your Telegram link. Please try again later."
LINK_ERROR_REPLY = "Something went wrong while linking your account. Please try again later."
OPTED_OUT_REPLY = "Reminders are disabled. Send /start to turn them back on."
NOT_OPTED_IN_REPLY = "You had no active reminders."
OPT_OUT_ERROR_REPLY = "Couldn't disable reminders. Please try again later."
UNKNOWN_USER_REPLY = "I couldn't identify you. Send /start to link your account."
NO_TASKS_REPLY = "You have no tasks right now. Have a nice day!"
TASKS_ERROR_REPLY = "Couldn't load your tasks. Please try again later."


def _not_found_reply(username: str) -> str:
    return (
        f"No user with login {username} was found. "
        "Make sure your login matches your Telegram username."
    )


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


async def route_command(
    command: Command,
    directory: UserDirectory,
    api: TaskApiPort,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    tz: tzinfo | None = None,
) -> list[str]:
    """Execute a command and return the reply messages to send, in order."""
    if isinstance(command, Start):
        return [await _handle_start(command, directory)]
    if isinstance(command, Stop):
        return [await _handle_stop(command, directory)]
    if isinstance(command, ListTasks):
        return await _handle_list_tasks(command, directory, api, chunk_size, tz)
    if isinstance(command, Help):
        return [HELP_TEXT]
    if isinstance(command, PlainText):
        return [PLAIN_TEXT_REPLY]
    raise TypeError(f"Unsupported command: {command!r}")


async def _handle_start(command: Start, directory: UserDirectory) -> str:
    if not command.username:
        return NO_USERNAME_REPLY
    try:
        result = await directory.sync_telegram_link(
            command.username, command.chat_id, opt_in=True,
        )
    except Exception as exc:
        logger.error("Failed to link Telegram chat %s: %s", command.chat_id, exc)
        return LINK_ERROR_REPLY

    if result.status in (LinkStatus.LINKED, LinkStatus.ALREADY_LINKED):
        return LINKED_REPLY
    if result.status == LinkStatus.NOT_FOUND:
        return _not_found_reply(command.username)
    return LINK_FAILED_REPLY


async def _handle_stop(command: Stop, directory: UserDirectory) -> str:
    try:
        result = await directory.opt_out_by_chat_id(command.chat_id)
    except Exception as exc:
        logger.error("Failed to disable notifications for %s: %s", command.chat_id, exc)
        return OPT_OUT_ERROR_REPLY

    if result.status == LinkStatus.OPTED_OUT:
        return OPTED_OUT_REPLY
    return NOT_OPTED_IN_REPLY


async def _handle_list_tasks(
    command: ListTasks,
    directory: UserDirectory,
    api: TaskApiPort,
    chunk_size: int,
    tz: tzinfo | None,
) -> list[str]:
    try:
        user = directory.get_user_by_chat_id(command.chat_id) or directory.get_user_by_login(
            command.username
        )
        if user is None:
            return [UNKNOWN_USER_REPLY]

        tasks = await api.fetch_tasks()
        mine = tasks_for_login(tasks, user.login)
        if not mine:
            return [NO_TASKS_REPLY]

        now = datetime.now(tz or timezone.utc)
        text = "\n".join(["Your tasks:", ""] + [build_task_summary(t, now) for t in mine])
        return split_message(text, chunk_size)
    except Exception as exc:
        logger.error("Failed to fetch tasks for chat %s: %s", command.chat_id, exc)
        return [TASKS_ERROR_REPLY]
