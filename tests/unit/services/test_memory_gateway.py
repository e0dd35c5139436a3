"""
Unit tests for the in-memory gateway.
"""

import asyncio

from pairgallery.services.gateway import Order
from pairgallery.services.memory_gateway import InMemoryGateway


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestInMemoryGateway:
    """Test cases for InMemoryGateway CRUD and change delivery."""

    def setup_method(self):
        self.gateway = InMemoryGateway()

    def test_insert_assigns_id_and_timestamp(self):
        result = asyncio.run(self.gateway.insert("messages", {"text": "hi"}))

        assert result.ok
        assert result.data["id"]
        assert result.data["created_at"]
        assert self.gateway.rows("messages") == [result.data]

    def test_select_filters_orders_and_limits(self):
        self.gateway.seed(
            "messages",
            [
                {"id": "a", "household_id": "h1", "created_at": "2024-05-01T12:00:00+00:00"},
                {"id": "b", "household_id": "h1", "created_at": "2024-05-01T12:05:00+00:00"},
                {"id": "c", "household_id": "h2", "created_at": "2024-05-01T12:10:00+00:00"},
            ],
        )

        result = asyncio.run(
            self.gateway.select("messages", {"household_id": "h1"}, order=Order("created_at", ascending=False), limit=5)
        )

        assert [row["id"] for row in result.data] == ["b", "a"]

    def test_select_ignores_rows_without_filtered_column(self):
        self.gateway.seed("images", [{"id": "a"}, {"id": "b", "private": False}])

        result = asyncio.run(self.gateway.select("images", {"private": False}))

        assert [row["id"] for row in result.data] == ["b"]

    def test_changes_are_delivered_after_the_write(self):
        received: list[dict] = []

        async def scenario():
            await self.gateway.subscribe("messages", {"household_id": "h1"}, received.append)
            await self.gateway.insert("messages", {"id": "m1", "household_id": "h1", "text": "hi"})
            await self.gateway.insert("messages", {"id": "m2", "household_id": "h2", "text": "other"})
            assert received == []
            await settle()
            await self.gateway.update("messages", {"id": "m1"}, {"text": "edited"})
            await self.gateway.delete("messages", {"id": "m1"})
            await settle()

        asyncio.run(scenario())

        assert [change["eventType"] for change in received] == ["INSERT", "UPDATE", "DELETE"]
        assert received[1]["new"]["text"] == "edited"
        assert received[2]["old"] == {"id": "m1"}

    def test_duplicate_delivery(self):
        gateway = InMemoryGateway(delivery_copies=3)
        received: list[dict] = []

        async def scenario():
            await gateway.subscribe("messages", None, received.append)
            await gateway.insert("messages", {"text": "hi"})
            await settle()

        asyncio.run(scenario())

        assert len(received) == 3

    def test_no_delivery_after_unsubscribe(self):
        received: list[dict] = []

        async def scenario():
            handle = await self.gateway.subscribe("messages", None, received.append)
            await self.gateway.insert("messages", {"text": "hi"})
            assert await self.gateway.unsubscribe(handle)
            assert await self.gateway.unsubscribe(handle) is False
            await settle()

        asyncio.run(scenario())

        assert received == []
        assert self.gateway.active_subscriptions == 0

    def test_offline_and_scheduled_failures(self):
        async def scenario():
            self.gateway.fail_next("images")
            failed = await self.gateway.insert("images", {"image_url": "x"})
            other_table = await self.gateway.insert("messages", {"text": "ok"})
            self.gateway.set_offline()
            offline = await self.gateway.select("messages")
            return failed, other_table, offline

        failed, other_table, offline = asyncio.run(scenario())

        assert failed.error.code == "simulated_failure"
        assert other_table.ok
        assert offline.error.code == "network_unreachable"
        assert self.gateway.rows("images") == []

    def test_update_and_delete_require_filters(self):
        update = asyncio.run(self.gateway.update("images", {}, {"favorite": True}))
        delete = asyncio.run(self.gateway.delete("images", {}))

        assert update.error.code == "missing_filters"
        assert delete.error.code == "missing_filters"

    def test_calls_are_recorded(self):
        asyncio.run(self.gateway.select("profiles", {"id": "u1"}))

        assert self.gateway.calls == [("select", "profiles")]
