"""Deadline utilities — pure time logic.

Parsing, look-ahead window checks, same-day comparison and human-readable
formatting of task deadlines.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from urllib.parse import quote

logger = logging.getLogger(__name__)

NO_DEADLINE_TEXT = "no deadline"
TASK_ID_PLACEHOLDER = ":id"


def parse_deadline(
    value: str | datetime | int | float | None,
    tz: tzinfo | None = None,
) -> datetime | None:
    """Parse a deadline into an aware datetime, or None when unparseable.

    Accepts ISO-8601 strings (a trailing "Z" included), datetimes and epoch
    milliseconds. Naive values are interpreted in ``tz`` (UTC by default).
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            logger.debug("Unparseable deadline: %r", value)
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz or timezone.utc)
    return parsed


def to_iso(deadline: datetime) -> str:
    """Canonical UTC ISO string used as the ledger value.

    e.g. 2026-10-19T14:00:00.000Z
    """
    utc = deadline.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def is_deadline_within_window(
    deadline: str | datetime | None,
    hours: float,
    now: datetime,
) -> bool:
    """True when now <= deadline <= now + hours (both ends inclusive).

    Past deadlines are never within the window; negative windows clamp to 0.
    """
    target = parse_deadline(deadline, now.tzinfo)
    if target is None:
        return False
    if target < now:
        return False
    try:
        window = timedelta(hours=max(0.0, float(hours or 0)))
    except (TypeError, ValueError):
        window = timedelta(0)
    return target - now <= window


def is_deadline_on_date(
    deadline: str | datetime | None,
    reference: datetime,
) -> bool:
    """True when the deadline falls on the reference's local calendar date."""
    target = parse_deadline(deadline, reference.tzinfo)
    if target is None:
        return False
    local = target.astimezone(reference.tzinfo) if reference.tzinfo else target
    return local.date() == reference.date()


def build_date_key(moment: datetime) -> str:
    """YYYY-MM-DD of the moment's own (local) calendar date."""
    return moment.strftime("%Y-%m-%d")


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_relative(target: datetime, now: datetime) -> str:
    """Relative phrase like "in 2 hours" or "3 days ago".

    Picks the largest unit that fits and rounds within it.
    """
    seconds = (target - now).total_seconds()
    magnitude = abs(seconds)

    if magnitude < 60:
        text = _plural(round(magnitude), "second")
    elif magnitude < 3600:
        text = _plural(round(magnitude / 60), "minute")
    elif magnitude < 86400:
        text = _plural(round(magnitude / 3600), "hour")
    elif magnitude < 30 * 86400:
        text = _plural(round(magnitude / 86400), "day")
    elif magnitude < 365 * 86400:
        text = _plural(round(magnitude / (30 * 86400)), "month")
    else:
        text = _plural(round(magnitude / (365 * 86400)), "year")

    return f"in {text}" if seconds >= 0 else f"{text} ago"


def format_deadline(
    deadline: str | datetime | None,
    now: datetime,
    tz: tzinfo | None = None,
) -> str:
    """Absolute local timestamp plus relative phrase.

    e.g. "19 October 2026 14:00 (in 2 hours)"
    """
    target = parse_deadline(deadline, tz or now.tzinfo)
    if target is None:
        return NO_DEADLINE_TEXT
    display_tz = tz or now.tzinfo
    local = target.astimezone(display_tz) if display_tz else target
    absolute = f"{local.day:02d} {local.strftime('%B %Y %H:%M')}"
    return f"{absolute} ({format_relative(target, now)})"


def build_task_url(template: str | None, task_id: str | int | None) -> str | None:
    """Substitute the percent-encoded task id into the URL template."""
    if not template or task_id is None or str(task_id) == "":
        return None
    return template.replace(TASK_ID_PLACEHOLDER, quote(str(task_id), safe=""))


def deadline_sort_key(
    deadline: str | datetime | int | float | None,
    tz: tzinfo | None = None,
) -> tuple[int, float]:
    """Ascending by deadline; tasks without a parseable deadline sort last.

    Naive deadlines are read in ``tz``, like everywhere else in the digest.
    """
    target = parse_deadline(deadline, tz)
    if target is None:
        return (1, 0.0)
    return (0, target.timestamp())
