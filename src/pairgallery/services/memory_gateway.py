"""
In-process gateway used in development mode and tests.

Rows live in dictionaries keyed by table. Change payloads are delivered on
the event loop after the writing call returns, like a real realtime feed,
and may be delivered more than once. Outages can be simulated per call or
for the whole gateway.
"""

import asyncio
import copy
import uuid
from collections.abc import Mapping
from typing import Any

from ..logging_config import get_logger
from ..models.entity import utc_now
from .gateway import ChangeCallback, Filters, GatewayResult, Order, RemoteDataGateway, SubscriptionHandle, row_matches

logger = get_logger(__name__)


class InMemoryGateway(RemoteDataGateway):
    """
    Gateway backed by process memory.

    Args:
        delivery_copies: How many times each change is delivered to each subscriber
        latency: Seconds each CRUD call waits before completing
    """

    def __init__(self, delivery_copies: int = 1, latency: float = 0.0):
        self.delivery_copies = max(1, delivery_copies)
        self.latency = latency
        self.offline = False
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: list[tuple[SubscriptionHandle, ChangeCallback]] = []
        self._pending_failures: list[str | None] = []
        self.calls: list[tuple[str, str]] = []

    # Test and development controls

    def set_offline(self, offline: bool = True) -> None:
        self.offline = offline

    def fail_next(self, table: str | None = None, count: int = 1) -> None:
        """Make the next ``count`` CRUD calls (on ``table`` if given) fail."""
        self._pending_failures.extend([table] * count)

    def seed(self, table: str, rows: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Store rows without emitting change events."""
        stored = [self._store(table, row) for row in rows]
        return [copy.deepcopy(row) for row in stored]

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(row) for row in self._tables.get(table, {}).values()]

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    # Gateway contract

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> GatewayResult:
        failure = await self._begin("select", table)
        if failure is not None:
            return failure

        rows = [copy.deepcopy(row) for row in self._matching(table, filters)]
        if order is not None:
            rows.sort(key=lambda row: str(row.get(order.column, "")), reverse=not order.ascending)
        if limit is not None:
            rows = rows[:limit]
        return GatewayResult.success(rows)

    async def insert(self, table: str, record: Mapping[str, Any]) -> GatewayResult:
        failure = await self._begin("insert", table)
        if failure is not None:
            return failure

        row = self._store(table, record)
        self._emit(table, {"eventType": "INSERT", "new": copy.deepcopy(row), "old": {}})
        return GatewayResult.success(copy.deepcopy(row))

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> GatewayResult:
        failure = await self._begin("update", table)
        if failure is not None:
            return failure
        if not filters:
            return GatewayResult.failure("Refusing to update without filters", code="missing_filters")

        updated = []
        for row in self._matching(table, filters):
            row.update(copy.deepcopy(dict(patch)))
            updated.append(copy.deepcopy(row))
            self._emit(table, {"eventType": "UPDATE", "new": copy.deepcopy(row), "old": {"id": row["id"]}})
        return GatewayResult.success(updated)

    async def delete(self, table: str, filters: Filters) -> GatewayResult:
        failure = await self._begin("delete", table)
        if failure is not None:
            return failure
        if not filters:
            return GatewayResult.failure("Refusing to delete without filters", code="missing_filters")

        deleted = []
        for row in self._matching(table, filters):
            del self._tables[table][row["id"]]
            deleted.append(copy.deepcopy(row))
            self._emit(table, {"eventType": "DELETE", "new": {}, "old": {"id": row["id"]}})
        return GatewayResult.success(deleted)

    async def subscribe(self, table: str, filters: Filters | None, on_event: ChangeCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(table, filters)
        self._subscriptions.append((handle, on_event))
        logger.debug("memory_subscription_opened", table=table, handle_id=handle.id)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        if not handle.active:
            logger.warning("subscription_already_closed", table=handle.table, topic=handle.topic)
            return False
        handle.active = False
        self._subscriptions = [(h, cb) for h, cb in self._subscriptions if h is not handle]
        return True

    async def close(self) -> None:
        for handle, _ in self._subscriptions:
            handle.active = False
        self._subscriptions.clear()

    # Internals

    async def _begin(self, operation: str, table: str) -> GatewayResult | None:
        self.calls.append((operation, table))
        if self.latency:
            await asyncio.sleep(self.latency)

        if self.offline:
            return GatewayResult.failure("Gateway unreachable", code="network_unreachable")

        for index, failing_table in enumerate(self._pending_failures):
            if failing_table is None or failing_table == table:
                del self._pending_failures[index]
                return GatewayResult.failure(f"Simulated {operation} failure", code="simulated_failure", status=503)
        return None

    def _store(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(dict(record))
        row.setdefault("id", str(uuid.uuid4()))
        row["id"] = str(row["id"])
        if not row.get("created_at"):
            row["created_at"] = utc_now().isoformat()
        self._tables.setdefault(table, {})[row["id"]] = row
        return row

    def _matching(self, table: str, filters: Filters | None) -> list[dict[str, Any]]:
        required = set(filters or {})
        return [
            row
            for row in self._tables.get(table, {}).values()
            if required.issubset(row) and row_matches(row, filters)
        ]

    def _emit(self, table: str, change: dict[str, Any]) -> None:
        row = change["new"] or change["old"]
        targets = [
            (handle, callback)
            for handle, callback in self._subscriptions
            if handle.table == table and handle.active and row_matches(row, handle.filters)
        ]
        if not targets:
            return

        loop = asyncio.get_running_loop()
        for handle, callback in targets:
            for _ in range(self.delivery_copies):
                loop.call_soon(self._deliver, handle, callback, copy.deepcopy(change))

    @staticmethod
    def _deliver(handle: SubscriptionHandle, callback: ChangeCallback, change: dict[str, Any]) -> None:
        # Unsubscribed between write and delivery
        if not handle.active:
            return
        try:
            callback(change)
        except Exception as e:
            logger.error("memory_delivery_failed", table=handle.table, error=str(e))
