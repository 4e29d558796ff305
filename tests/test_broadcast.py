"""Tests for src.core.broadcast — ad-hoc and credentials broadcasts."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_user
from src.core.broadcast import (
    ValidationError,
    broadcast_credentials,
    build_credential_message,
    send_broadcast,
)
from src.core.user_directory import UserDirectory


@pytest.fixture
def directory(fake_api):
    fake_api.fetch_users.return_value = [
        make_user("1", "alice", chat_id="C1"),
        make_user("2", "bob", chat_id="C2", opt_in=False),
        make_user("3", "carol", chat_id="C3"),
    ]
    return UserDirectory(fake_api)


class TestSendBroadcast:
    @pytest.mark.asyncio
    async def test_sends_to_all_opted_in(self, directory, fake_notifier):
        with patch("src.core.broadcast.asyncio.sleep", new_callable=AsyncMock):
            result = await send_broadcast(directory, fake_notifier, "Deploy at 6pm")

        assert (result.sent, result.total) == (2, 2)
        chats = [call.args[0] for call in fake_notifier.send_message.await_args_list]
        assert chats == ["C1", "C3"]

    @pytest.mark.asyncio
    async def test_allowlist_of_opted_out_user_matches_nobody(self, directory, fake_notifier):
        result = await send_broadcast(directory, fake_notifier, "hi", logins=["BOB"])

        assert (result.sent, result.total) == (0, 0)
        fake_notifier.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_allowlist_is_case_insensitive(self, directory, fake_notifier):
        result = await send_broadcast(directory, fake_notifier, "hi", logins=[" Carol "])

        assert (result.sent, result.total) == (1, 1)
        fake_notifier.send_message.assert_awaited_once_with("C3", "hi", None)

    @pytest.mark.asyncio
    async def test_failure_does_not_abort(self, directory, fake_notifier):
        fake_notifier.send_message.side_effect = [RuntimeError("blocked"), None]

        result = await send_broadcast(directory, fake_notifier, "hi")

        assert (result.sent, result.total) == (1, 2)

    @pytest.mark.asyncio
    async def test_pauses_after_each_batch(self, fake_api, fake_notifier):
        fake_api.fetch_users.return_value = [
            make_user(str(i), f"user{i}", chat_id=f"C{i}") for i in range(5)
        ]
        directory = UserDirectory(fake_api)

        with patch("src.core.broadcast.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await send_broadcast(
                directory, fake_notifier, "hi", batch_size=2, pause_seconds=0.5,
            )

        assert result.sent == 5
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_format_mode_is_normalized(self, directory, fake_notifier):
        await send_broadcast(directory, fake_notifier, "<b>hi</b>", logins=["alice"], parse_mode="HTML")
        fake_notifier.send_message.assert_awaited_once_with("C1", "<b>hi</b>", "html")

    @pytest.mark.asyncio
    async def test_empty_message_rejected_before_io(self, directory, fake_api, fake_notifier):
        with pytest.raises(ValidationError):
            await send_broadcast(directory, fake_notifier, "   ")
        fake_api.fetch_users.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_format_rejected(self, directory, fake_api, fake_notifier):
        with pytest.raises(ValidationError):
            await send_broadcast(directory, fake_notifier, "hi", parse_mode="bbcode")
        fake_api.fetch_users.assert_not_awaited()


class TestCredentials:
    def test_message_escapes_html(self):
        text = build_credential_message("a<b", "p&ss")
        assert "a&lt;b" in text
        assert "<tg-spoiler>p&amp;ss</tg-spoiler>" in text

    @pytest.mark.asyncio
    async def test_sends_own_credentials_and_skips_incomplete(self, fake_api, fake_notifier):
        fake_api.fetch_users.return_value = [
            make_user("1", "alice", chat_id="C1", password="secret1"),
            make_user("2", "bob", chat_id="C2"),
            make_user("3", "carol", chat_id="C3", opt_in=False, password="secret3"),
        ]
        directory = UserDirectory(fake_api)

        with patch("src.core.broadcast.asyncio.sleep", new_callable=AsyncMock):
            result = await broadcast_credentials(directory, fake_notifier)

        assert (result.sent, result.skipped, result.total) == (1, 1, 2)
        chat_id, text, mode = fake_notifier.send_message.await_args.args
        assert chat_id == "C1"
        assert "secret1" in text
        assert mode == "html"

    @pytest.mark.asyncio
    async def test_nobody_opted_in(self, fake_api, fake_notifier):
        result = await broadcast_credentials(UserDirectory(fake_api), fake_notifier)
        assert result.total == 0
        fake_notifier.send_message.assert_not_awaited()
