"""Tests for src.data.db — SQLite notification ledger."""

from src.data.db import SqliteStateStore

DEADLINE = "2026-10-19T14:00:00.000Z"


class TestSqliteStateStore:
    def test_deadline_mark_then_check(self, sqlite_store):
        assert not sqlite_store.was_deadline_notified("T1", DEADLINE)
        sqlite_store.mark_deadline_notified("T1", DEADLINE)
        assert sqlite_store.was_deadline_notified("T1", DEADLINE)

    def test_moved_deadline_rearms(self, sqlite_store):
        sqlite_store.mark_deadline_notified("T1", DEADLINE)
        sqlite_store.mark_deadline_notified("T1", "2026-10-20T14:00:00.000Z")
        assert not sqlite_store.was_deadline_notified("T1", DEADLINE)
        assert sqlite_store.was_deadline_notified("T1", "2026-10-20T14:00:00.000Z")

    def test_daily_reminder(self, sqlite_store):
        sqlite_store.mark_daily_reminder_sent("2026-10-19")
        assert sqlite_store.was_daily_reminder_sent("2026-10-19")
        sqlite_store.mark_daily_reminder_sent("2026-10-20")
        assert not sqlite_store.was_daily_reminder_sent("2026-10-19")

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "ledger.db")
        SqliteStateStore(path).mark_deadline_notified("T1", DEADLINE)
        assert SqliteStateStore(path).was_deadline_notified("T1", DEADLINE)

    def test_in_memory(self):
        store = SqliteStateStore(":memory:")
        store.mark_daily_reminder_sent("2026-10-19")
        assert store.was_daily_reminder_sent("2026-10-19")

    def test_empty_inputs(self, sqlite_store):
        sqlite_store.mark_deadline_notified("", DEADLINE)
        assert not sqlite_store.was_deadline_notified("", DEADLINE)
        assert not sqlite_store.was_daily_reminder_sent("")

    def test_corrupt_file_is_recreated(self, tmp_path):
        path = tmp_path / "ledger.db"
        path.write_bytes(b"this is definitely not a sqlite database" * 100)
        store = SqliteStateStore(str(path))
        assert not store.was_deadline_notified("T1", DEADLINE)
        store.mark_deadline_notified("T1", DEADLINE)
        assert store.was_deadline_notified("T1", DEADLINE)
        assert (tmp_path / "ledger.db.corrupt").exists()
