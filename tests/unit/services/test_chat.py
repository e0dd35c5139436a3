"""
Unit tests for the household chat session.
"""

import asyncio
from datetime import UTC, date, datetime

import pytest

from pairgallery.error_handling import AuthenticationError, AuthorizationError, NetworkError, ValidationError
from pairgallery.services.auth import AuthService
from pairgallery.services.chat import ChatSession, date_label
from pairgallery.services.memory_gateway import InMemoryGateway
from pairgallery.services.profiles import ProfileService
from tests.conftest import TestDataFactory


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestDateLabel:
    def test_labels(self):
        today = date(2024, 5, 10)

        assert date_label(datetime(2024, 5, 10, 8, tzinfo=UTC), today) == "Today"
        assert date_label(datetime(2024, 5, 9, 23, tzinfo=UTC), today) == "Yesterday"
        assert date_label(datetime(2024, 3, 2, 9, tzinfo=UTC), today) == "March 2, 2024"


class TestProfileService:
    def test_household_is_cached(self, gateway):
        gateway.seed("profiles", [{"id": "u1", "household_id": "h1"}])
        profiles = ProfileService(gateway)

        async def scenario():
            return await profiles.get_household_id("u1"), await profiles.get_household_id("u1")

        assert asyncio.run(scenario()) == ("h1", "h1")
        assert gateway.calls == [("select", "profiles")]

    def test_failure_is_not_cached(self, gateway):
        gateway.seed("profiles", [{"id": "u1", "household_id": "h1"}])
        gateway.fail_next("profiles")
        profiles = ProfileService(gateway)

        async def scenario():
            return await profiles.get_household_id("u1"), await profiles.get_household_id("u1")

        assert asyncio.run(scenario()) == (None, "h1")


class TestChatSession:
    """Test cases for ChatSession."""

    @pytest.fixture(autouse=True)
    def setup(self, gateway, auth):
        self.gateway = gateway
        self.auth = auth
        gateway.seed("profiles", [{"id": "test-user-123", "household_id": "household-1"}])
        gateway.seed(
            "messages",
            [
                TestDataFactory.create_message_row("m1", "first", created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC)),
                TestDataFactory.create_message_row(
                    "m2", "second", sender_id="partner", created_at=datetime(2024, 5, 2, 9, 0, tzinfo=UTC)
                ),
                TestDataFactory.create_message_row("m3", "elsewhere", household_id="household-2"),
            ],
        )
        self.chat = ChatSession(gateway, auth)

    def texts(self) -> list[str]:
        return [message.payload.text for message in self.chat.entries()]

    def test_open_loads_household_messages_oldest_first(self):
        asyncio.run(self.chat.open())

        assert self.chat.household_id == "household-1"
        assert self.texts() == ["first", "second"]
        assert self.chat.is_subscribed

    def test_open_without_household(self, gateway):
        auth = TestDataFactory.create_auth(TestDataFactory.create_user_info(user_id="loner"))
        chat = ChatSession(gateway, auth)

        with pytest.raises(AuthorizationError) as exc_info:
            asyncio.run(chat.open())

        assert exc_info.value.code == "no_household"

    def test_open_requires_user(self, gateway):
        chat = ChatSession(gateway, AuthService(base_url="", api_key="", development_mode=False))

        with pytest.raises(AuthenticationError):
            asyncio.run(chat.open())

    def test_open_load_failure(self):
        self.gateway.fail_next("messages")

        with pytest.raises(NetworkError):
            asyncio.run(self.chat.open())

    def test_send_confirms_single_entry(self):
        async def scenario():
            await self.chat.open()
            durable = await self.chat.send("  hello there ")
            await settle()
            return durable

        durable = asyncio.run(scenario())

        assert durable is not None
        assert not durable.is_temporary
        assert self.texts() == ["first", "second", "hello there"]
        assert self.chat.ledger.pending_ids() == []
        stored = [row for row in self.gateway.rows("messages") if row["id"] == durable.id]
        assert stored[0]["sender_id"] == "test-user-123"
        assert stored[0]["household_id"] == "household-1"

    def test_send_empty_text_never_reaches_gateway(self):
        asyncio.run(self.chat.open())
        calls_before = list(self.gateway.calls)

        with pytest.raises(ValidationError):
            asyncio.run(self.chat.send("   "))

        assert self.gateway.calls == calls_before
        assert self.texts() == ["first", "second"]

    def test_failed_send_leaves_no_trace(self):
        async def scenario():
            await self.chat.open()
            self.gateway.set_offline()
            with pytest.raises(NetworkError):
                await self.chat.send("lost")

        asyncio.run(scenario())

        assert self.texts() == ["first", "second"]

    def test_gateway_exception_leaves_no_trace(self, monkeypatch):
        async def broken_insert(table, record):
            raise ConnectionResetError("socket closed")

        async def scenario():
            await self.chat.open()
            monkeypatch.setattr(self.gateway, "insert", broken_insert)
            with pytest.raises(ConnectionResetError):
                await self.chat.send("lost")

        asyncio.run(scenario())

        assert self.texts() == ["first", "second"]
        assert self.chat.ledger.pending_ids() == []

    def test_cancelled_send_leaves_no_trace(self):
        async def scenario():
            await self.chat.open()
            self.gateway.latency = 10.0
            task = asyncio.create_task(self.chat.send("never mind"))
            await settle()
            pending = self.chat.ledger.pending_ids()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return pending

        pending = asyncio.run(scenario())

        assert len(pending) == 1
        assert self.texts() == ["first", "second"]
        assert self.chat.ledger.pending_ids() == []

    def test_send_before_open(self):
        with pytest.raises(AuthorizationError) as exc_info:
            asyncio.run(self.chat.send("hi"))

        assert exc_info.value.code == "chat_not_open"

    def test_partner_messages_arrive_through_feed(self):
        async def scenario():
            await self.chat.open()
            await self.gateway.insert(
                "messages", {"text": "from partner", "sender_id": "partner", "household_id": "household-1"}
            )
            await self.gateway.insert(
                "messages", {"text": "other couple", "sender_id": "x", "household_id": "household-2"}
            )
            await settle()
            await self.gateway.delete("messages", {"id": "m1"})
            await settle()

        asyncio.run(scenario())

        assert self.texts() == ["second", "from partner"]

    def test_redelivered_events_do_not_duplicate(self, auth):
        gateway = InMemoryGateway(delivery_copies=3)
        gateway.seed("profiles", [{"id": "test-user-123", "household_id": "household-1"}])
        chat = ChatSession(gateway, auth)

        async def scenario():
            await chat.open()
            await chat.send("once")
            await gateway.insert("messages", {"text": "partner", "sender_id": "p", "household_id": "household-1"})
            await settle()

        asyncio.run(scenario())

        assert [message.payload.text for message in chat.entries()] == ["once", "partner"]

    def test_close_releases_subscription_once(self):
        async def scenario():
            await self.chat.open()
            await self.chat.close()
            await self.chat.close()

        asyncio.run(scenario())

        assert self.chat.closed
        assert self.gateway.active_subscriptions == 0

    def test_events_after_close_are_ignored(self):
        asyncio.run(self.chat.open())
        asyncio.run(self.chat.close())

        self.chat._on_change({"eventType": "DELETE", "new": {}, "old": {"id": "m1"}})

        assert self.texts() == ["first", "second"]

    def test_sections_group_by_day(self):
        asyncio.run(self.chat.open())

        sections = self.chat.sections(today=date(2024, 5, 2))

        assert [section.label for section in sections] == ["Yesterday", "Today"]
        assert [len(section.messages) for section in sections] == [1, 1]
