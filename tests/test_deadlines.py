"""Tests for src.core.deadlines — pure deadline logic."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from src.core.deadlines import (
    NO_DEADLINE_TEXT,
    build_date_key,
    build_task_url,
    deadline_sort_key,
    format_deadline,
    format_relative,
    is_deadline_on_date,
    is_deadline_within_window,
    parse_deadline,
    to_iso,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestParseDeadline:
    def test_iso_with_z(self):
        assert parse_deadline("2026-10-19T14:00:00Z") == datetime(2026, 10, 19, 14, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        parsed = parse_deadline("2026-10-19T14:00:00+02:00")
        assert parsed == datetime(2026, 10, 19, 12, tzinfo=timezone.utc)

    def test_naive_uses_given_tz(self):
        tz = ZoneInfo("Europe/Berlin")
        parsed = parse_deadline("2026-10-19T14:00:00", tz)
        assert parsed.tzinfo == tz

    def test_epoch_millis(self):
        ms = int(NOW.timestamp() * 1000)
        assert parse_deadline(ms) == NOW

    def test_invalid_returns_none(self):
        assert parse_deadline("not a date") is None
        assert parse_deadline("") is None
        assert parse_deadline(None) is None
        assert parse_deadline(["2026"]) is None


class TestToIso:
    def test_utc_millis_format(self):
        assert to_iso(datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)) == "2026-10-19T14:00:00.000Z"

    def test_converts_offsets(self):
        moment = datetime(2026, 10, 19, 16, 0, 0, 250000, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso(moment) == "2026-10-19T14:00:00.250Z"


class TestWithinWindow:
    def test_inside_window(self):
        assert is_deadline_within_window(NOW + timedelta(hours=2), 24, NOW)

    def test_exactly_now_is_inclusive(self):
        assert is_deadline_within_window(NOW, 24, NOW)

    def test_window_edge_is_inclusive(self):
        assert is_deadline_within_window(NOW + timedelta(hours=24), 24, NOW)

    def test_beyond_window(self):
        assert not is_deadline_within_window(NOW + timedelta(hours=24, seconds=1), 24, NOW)

    def test_past_deadline_excluded(self):
        assert not is_deadline_within_window(NOW - timedelta(seconds=1), 24, NOW)

    def test_negative_window_clamps_to_zero(self):
        assert is_deadline_within_window(NOW, -5, NOW)
        assert not is_deadline_within_window(NOW + timedelta(minutes=1), -5, NOW)

    def test_unparseable_deadline(self):
        assert not is_deadline_within_window("soon", 24, NOW)

    def test_accepts_iso_string(self):
        assert is_deadline_within_window("2026-10-19T14:00:00Z", 24, NOW)


class TestOnDate:
    def test_same_day(self):
        assert is_deadline_on_date("2026-10-19T23:30:00Z", NOW)

    def test_other_day(self):
        assert not is_deadline_on_date("2026-10-20T00:30:00Z", NOW)

    def test_uses_reference_timezone(self):
        tz = ZoneInfo("Asia/Tokyo")  # UTC+9
        local_now = datetime(2026, 10, 20, 9, 0, tzinfo=tz)
        # 2026-10-19T20:00Z is 2026-10-20 05:00 in Tokyo
        assert is_deadline_on_date("2026-10-19T20:00:00Z", local_now)

    def test_missing_deadline(self):
        assert not is_deadline_on_date(None, NOW)


class TestFormatting:
    def test_relative_future(self):
        assert format_relative(NOW + timedelta(hours=2), NOW) == "in 2 hours"

    def test_relative_past(self):
        assert format_relative(NOW - timedelta(days=3), NOW) == "3 days ago"

    def test_relative_singular(self):
        assert format_relative(NOW + timedelta(minutes=1), NOW) == "in 1 minute"

    def test_format_deadline(self):
        text = format_deadline("2026-10-19T14:00:00Z", NOW)
        assert text == "19 October 2026 14:00 (in 2 hours)"

    def test_format_deadline_local_tz(self):
        text = format_deadline("2026-10-19T14:00:00Z", NOW, ZoneInfo("Europe/Berlin"))
        assert text.startswith("19 October 2026 16:00")

    def test_format_missing_deadline(self):
        assert format_deadline(None, NOW) == NO_DEADLINE_TEXT

    def test_date_key(self):
        assert build_date_key(NOW) == "2026-10-19"


class TestBuildTaskUrl:
    def test_substitutes_encoded_id(self):
        assert build_task_url("https://tracker/tasks/:id", "a b/c") == "https://tracker/tasks/a%20b%2Fc"

    def test_no_template(self):
        assert build_task_url(None, "1") is None
        assert build_task_url("", "1") is None

    def test_no_id(self):
        assert build_task_url("https://tracker/tasks/:id", "") is None


class TestSortKey:
    def test_missing_deadlines_sort_last(self):
        deadlines = [None, "2026-10-19T15:00:00Z", "garbage", "2026-10-19T13:00:00Z"]
        ordered = sorted(deadlines, key=deadline_sort_key)
        assert ordered[:2] == ["2026-10-19T13:00:00Z", "2026-10-19T15:00:00Z"]
        assert set(ordered[2:]) == {None, "garbage"}
