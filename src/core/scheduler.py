"""
Task Deadline Bot — Deadline Notifier.

Deadline reminders: every poll, each task whose deadline is due within the
look-ahead window is pushed once to its opted-in assignees. The ledger
stores the deadline value that was reminded, so a rescheduled task is
reminded again.

Daily digest: once per local calendar day, after the configured hour:minute,
each assignee gets one message listing all of their tasks due today.

This module is provider-agnostic: it depends on TaskApiPort, LedgerPort and
NotificationPort protocols, not on specific implementations.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from src.core.deadlines import (
    build_date_key,
    build_task_url,
    deadline_sort_key,
    format_deadline,
    is_deadline_on_date,
    is_deadline_within_window,
    parse_deadline,
    to_iso,
)

if TYPE_CHECKING:
    from src.core.user_directory import UserDirectory
    from src.data.models import Task, User
    from src.ports.ledger_port import LedgerPort
    from src.ports.notification_port import NotificationPort
    from src.ports.task_api_port import TaskApiPort

logger = logging.getLogger(__name__)


@dataclass
class DigestRecipient:
    """One user and the tasks due today that they are assigned to."""

    user: User
    tasks: list[Task] = field(default_factory=list)


@dataclass
class TickReport:
    """What a single tick delivered (for logs and tests)."""

    deadline_reminders: int = 0
    digest_recipients: int = 0
    failed: bool = False


class TaskNotifier:
    """Periodic deadline notifier.

    Lifecycle: start() runs one tick immediately, then one per poll
    interval; stop() cancels the timer and waits for an in-flight tick.
    At most one tick runs at a time per instance.
    """

    def __init__(
        self,
        api: TaskApiPort,
        directory: UserDirectory,
        notifier: NotificationPort,
        ledger: LedgerPort,
        poll_interval_seconds: float = 60.0,
        deadline_window_hours: float = 24.0,
        task_url_template: str | None = None,
        daily_reminder_hour: int | None = None,
        daily_reminder_minute: int = 0,
        tz: tzinfo | None = None,
        clock: Callable[[tzinfo], datetime] | None = None,
    ) -> None:
        self._api = api
        self._directory = directory
        self._notifier = notifier
        self._ledger = ledger
        self._poll_interval = poll_interval_seconds
        self._window_hours = max(0.0, float(deadline_window_hours or 0))
        self._task_url_template = task_url_template or None
        self._daily_hour = daily_reminder_hour
        self._daily_minute = daily_reminder_minute or 0
        self._tz = tz or timezone.utc
        self._clock = clock or datetime.now

        self._runner: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._active_tick: asyncio.Task[TickReport] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._runner is not None

    def start(self) -> None:
        """Start polling. A non-positive interval disables the notifier."""
        if not self._poll_interval or self._poll_interval <= 0:
            logger.info("Task notifier is disabled (interval is 0)")
            return
        if self._runner is not None:
            return
        self._stop_event = asyncio.Event()
        self._runner = asyncio.create_task(self._run(), name="task-notifier")
        logger.info(
            "Task notifier started: every %ss, window %sh",
            self._poll_interval, self._window_hours,
        )

    async def stop(self) -> None:
        """Stop the timer and let an in-flight tick finish."""
        runner, self._runner = self._runner, None
        if runner is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        await runner
        if self._active_tick is not None:
            await asyncio.shield(self._active_tick)
        logger.info("Task notifier stopped")

    async def _run(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue

    async def tick(self) -> TickReport:
        """Run one tick, or join the tick that is already running."""
        if self._active_tick is None:
            self._active_tick = asyncio.create_task(self.process_tick())
            self._active_tick.add_done_callback(self._clear_active_tick)
        return await asyncio.shield(self._active_tick)

    def _clear_active_tick(self, task: asyncio.Task[TickReport]) -> None:
        if self._active_tick is task:
            self._active_tick = None

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock(self._tz)

    async def process_tick(self, now: datetime | None = None) -> TickReport:
        """Refresh users, fetch tasks, send digest and deadline reminders.

        Any error aborts only this tick; the next tick proceeds normally.
        """
        report = TickReport()
        try:
            await self._directory.refresh(force=True)
            tasks = await self._api.fetch_tasks()
            now = now or self._now()

            report.digest_recipients = await self.maybe_send_daily_reminders(tasks, now)
            for task in tasks:
                if await self.handle_task(task, now):
                    report.deadline_reminders += 1
        except Exception as exc:
            report.failed = True
            logger.error("Task notifier tick failed: %s", exc, exc_info=True)
        return report

    async def handle_task(self, task: Task, now: datetime) -> bool:
        """Send the deadline reminder for one task if it is due.

        Returns True when at least one reminder was delivered and recorded.
        The ledger is written only after a successful send.
        """
        deadline = parse_deadline(task.deadline, self._tz)
        if deadline is None:
            return False
        if not is_deadline_within_window(deadline, self._window_hours, now):
            return False

        recipients = self._resolve_recipients(task)
        if not recipients:
            return False

        deadline_iso = to_iso(deadline)
        if self._ledger.was_deadline_notified(task.id, deadline_iso):
            return False

        message = self.compose_deadline_message(task, deadline, now)
        delivered = False
        for user in recipients:
            try:
                await self._notifier.send_message(user.telegram_chat_id, message)
                delivered = True
                logger.info(
                    "Deadline notification sent: task=%s login=%s deadline=%s",
                    task.id, user.login, deadline_iso,
                )
            except Exception as exc:
                logger.error(
                    "Failed to send Telegram notification for task %s to %s: %s",
                    task.id, user.login, exc,
                )

        if not delivered:
            return False
        self._ledger.mark_deadline_notified(task.id, deadline_iso)
        return True

    def _resolve_recipients(self, task: Task) -> list[User]:
        recipients: list[User] = []
        seen: set[str] = set()
        for login in task.login_candidates():
            user = self._directory.resolve_recipient(login)
            if user is not None and user.id not in seen:
                seen.add(user.id)
                recipients.append(user)
        return recipients

    # ------------------------------------------------------------------
    # Daily digest
    # ------------------------------------------------------------------

    @property
    def daily_reminder_enabled(self) -> bool:
        return self._daily_hour is not None and 0 <= self._daily_hour <= 23

    def has_reached_daily_reminder_time(self, now: datetime) -> bool:
        if not self.daily_reminder_enabled:
            return False
        minute = self._daily_minute if 0 <= self._daily_minute <= 59 else 0
        local = now.astimezone(self._tz)
        threshold = local.replace(hour=self._daily_hour, minute=minute, second=0, microsecond=0)
        return local >= threshold

    async def maybe_send_daily_reminders(self, tasks: list[Task], now: datetime) -> int:
        """Send today's digest once, after the configured local time.

        The date is marked sent even when nobody had deadlines today, so a
        quiet day is not re-evaluated on every tick. Returns the number of
        recipients the digest was delivered to.
        """
        if not self.has_reached_daily_reminder_time(now):
            return 0
        local_now = now.astimezone(self._tz)
        date_key = build_date_key(local_now)
        if self._ledger.was_daily_reminder_sent(date_key):
            return 0

        recipients = self.collect_daily_reminder_recipients(tasks, local_now)
        if not recipients:
            self._ledger.mark_daily_reminder_sent(date_key)
            logger.info("Daily reminders skipped for %s (no deadlines today)", date_key)
            return 0

        delivered = 0
        for recipient in recipients:
            message = self.compose_daily_reminder_message(recipient.tasks, local_now)
            try:
                await self._notifier.send_message(recipient.user.telegram_chat_id, message)
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Failed to send daily reminder to %s: %s", recipient.user.login, exc,
                )

        self._ledger.mark_daily_reminder_sent(date_key)
        logger.info(
            "Daily deadline reminders sent for %s: %d/%d recipients",
            date_key, delivered, len(recipients),
        )
        return delivered

    def collect_daily_reminder_recipients(
        self, tasks: list[Task], now: datetime,
    ) -> list[DigestRecipient]:
        """Group today's tasks by assignee login; drop unreachable logins."""
        grouped: dict[str, list[Task]] = {}
        for task in tasks:
            if not task.deadline or not is_deadline_on_date(task.deadline, now):
                continue
            for login in task.login_candidates():
                grouped.setdefault(login, []).append(task)

        recipients: dict[str, DigestRecipient] = {}
        for login, login_tasks in grouped.items():
            user = self._directory.resolve_recipient(login)
            if user is None:
                continue
            recipient = recipients.setdefault(user.id, DigestRecipient(user=user))
            for task in login_tasks:
                if task not in recipient.tasks:
                    recipient.tasks.append(task)
        return list(recipients.values())

    # ------------------------------------------------------------------
    # Message composition
    # ------------------------------------------------------------------

    def build_task_url(self, task_id: str) -> str | None:
        return build_task_url(self._task_url_template, task_id)

    def compose_daily_reminder_message(self, tasks: list[Task], now: datetime) -> str:
        ordered = sorted(tasks, key=lambda t: deadline_sort_key(t.deadline, self._tz))
        lines = ["Hi!", "You have deadlines today for these tasks:", ""]
        for index, task in enumerate(ordered, start=1):
            lines.append(f"{index}. {task.title or 'Untitled task'}")
            lines.append(f"   Deadline: {format_deadline(task.deadline, now, self._tz)}")
            url = self.build_task_url(task.id)
            if url:
                lines.append(f"   {url}")
        return "\n".join(lines)

    def compose_deadline_message(self, task: Task, deadline: datetime, now: datetime) -> str:
        lines = [
            "⚠️ Task reminder",
            f"Title: {task.title or 'Untitled task'}",
            f"Deadline: {format_deadline(deadline, now, self._tz)}",
        ]
        if task.status:
            lines.append(f"Status: {task.status}")
        if task.priority:
            lines.append(f"Priority: {task.priority}")
        url = self.build_task_url(task.id)
        if url:
            lines.append(f"Link: {url}")
        return "\n".join(lines)
