"""
Remote data gateway contract and its PostgREST implementation.

Every CRUD call returns a GatewayResult; errors are values the caller must
check. Subscriptions deliver raw ``{eventType, new, old}`` change payloads
at-least-once and are released through ``unsubscribe`` exactly once.
"""

import asyncio
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from ..logging_config import get_logger
from .realtime import RealtimeClient

logger = get_logger(__name__)

Filters = Mapping[str, Any]
ChangeCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class GatewayError:
    """Error value returned by the gateway."""

    message: str
    code: str | None = None
    status: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a gateway call: ``data`` on success, ``error`` otherwise."""

    data: Any = None
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "GatewayResult":
        return cls(data=data)

    @classmethod
    def failure(cls, message: str, code: str | None = None, status: int | None = None, **details: Any) -> "GatewayResult":
        return cls(error=GatewayError(message=message, code=code, status=status, details=details))


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


_handle_ids = itertools.count(1)


class SubscriptionHandle:
    """A live subscription; pass it back to ``unsubscribe`` once."""

    def __init__(self, table: str, filters: Filters | None, topic: str | None = None):
        self.id = next(_handle_ids)
        self.table = table
        self.filters = dict(filters or {})
        self.topic = topic or f"realtime:public:{table}:{self.id}"
        self.active = True

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"SubscriptionHandle(id={self.id}, table={self.table!r}, {state})"


def row_matches(row: Mapping[str, Any], filters: Filters | None) -> bool:
    """
    Check a row against equality/membership filters.

    Columns missing from the row are not held against it: delete events
    usually carry only the primary key.
    """
    for column, expected in (filters or {}).items():
        if column not in row:
            continue
        actual = row[column]
        if isinstance(expected, (list, tuple, set, frozenset)):
            if str(actual) not in {str(value) for value in expected}:
                return False
        elif isinstance(expected, bool) or isinstance(actual, bool):
            if bool(actual) != bool(expected):
                return False
        elif str(actual) != str(expected):
            return False
    return True


def encode_filter_value(value: Any) -> str:
    """Encode a filter value in PostgREST operator syntax."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"in.({','.join(str(item) for item in value)})"
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


class RemoteDataGateway(ABC):
    """CRUD and change subscription against the hosted backend."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> GatewayResult:
        """Fetch rows; ``data`` is a list of row dicts."""

    @abstractmethod
    async def insert(self, table: str, record: Mapping[str, Any]) -> GatewayResult:
        """Insert one record; ``data`` is the inserted row."""

    @abstractmethod
    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> GatewayResult:
        """Patch matching rows; ``data`` is the list of updated rows."""

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> GatewayResult:
        """Delete matching rows; ``data`` is the list of deleted rows."""

    @abstractmethod
    async def subscribe(self, table: str, filters: Filters | None, on_event: ChangeCallback) -> SubscriptionHandle:
        """Start delivering change payloads for matching rows."""

    @abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """
        Stop a subscription.

        Returns:
            False when the handle was already released
        """

    async def close(self) -> None:  # noqa: B027
        """Release connections held by the gateway."""


class RestGateway(RemoteDataGateway):
    """
    Gateway speaking PostgREST over HTTP and the realtime socket protocol.

    Args:
        base_url: Project URL (``https://<ref>.supabase.co``)
        api_key: Public API key sent with every request
        access_token: Callable returning the signed-in user's access token
        session: requests session, created when omitted
        timeout: HTTP timeout in seconds
        realtime: Realtime client, created from ``base_url`` when omitted
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Callable[[], str | None] | None = None,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        realtime: RealtimeClient | None = None,
        heartbeat_seconds: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._access_token = access_token or (lambda: None)
        self._session = session or requests.Session()
        self.timeout = timeout
        self._realtime = realtime or RealtimeClient(
            self.base_url, api_key, access_token=self._access_token, heartbeat_seconds=heartbeat_seconds
        )

    def _headers(self) -> dict[str, str]:
        token = self._access_token() or self.api_key
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> GatewayResult:
        try:
            response = await asyncio.to_thread(
                self._session.request,
                method,
                self._table_url(table),
                params=params,
                json=json_body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("gateway_request_failed", method=method, table=table, error=str(e))
            return GatewayResult.failure(str(e), code="network_unreachable")

        if response.status_code >= 400:
            return self._error_result(method, table, response)

        if not response.content:
            return GatewayResult.success([])

        try:
            return GatewayResult.success(response.json())
        except ValueError as e:
            logger.warning("gateway_invalid_json", method=method, table=table, status=response.status_code)
            return GatewayResult.failure(f"Invalid JSON response: {e}", code="invalid_response", status=response.status_code)

    @staticmethod
    def _error_result(method: str, table: str, response: requests.Response) -> GatewayResult:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        logger.warning(
            "gateway_request_rejected",
            method=method,
            table=table,
            status=response.status_code,
            code=body.get("code"),
            message=message,
        )
        return GatewayResult.failure(
            message,
            code=body.get("code") or f"http_{response.status_code}",
            status=response.status_code,
            hint=body.get("hint"),
        )

    @staticmethod
    def _filter_params(filters: Filters | None) -> dict[str, str]:
        return {column: encode_filter_value(value) for column, value in (filters or {}).items()}

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> GatewayResult:
        params = {"select": "*", **self._filter_params(filters)}
        if order is not None:
            params["order"] = f"{order.column}.{'asc' if order.ascending else 'desc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, record: Mapping[str, Any]) -> GatewayResult:
        result = await self._request("POST", table, json_body=dict(record))
        if not result.ok:
            return result

        rows = result.data if isinstance(result.data, list) else [result.data]
        if not rows or not isinstance(rows[0], dict):
            return GatewayResult.failure("Insert returned no row", code="empty_response")
        return GatewayResult.success(rows[0])

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> GatewayResult:
        if not filters:
            return GatewayResult.failure("Refusing to update without filters", code="missing_filters")
        return await self._request("PATCH", table, params=self._filter_params(filters), json_body=dict(patch))

    async def delete(self, table: str, filters: Filters) -> GatewayResult:
        if not filters:
            return GatewayResult.failure("Refusing to delete without filters", code="missing_filters")
        return await self._request("DELETE", table, params=self._filter_params(filters))

    async def subscribe(self, table: str, filters: Filters | None, on_event: ChangeCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(table, filters)

        # The server applies one filter; the rest are checked on delivery
        server_filter = None
        if handle.filters:
            column, value = next(iter(handle.filters.items()))
            server_filter = f"{column}={encode_filter_value(value)}"

        def deliver(change: dict[str, Any]) -> None:
            row = change.get("new") or change.get("old") or {}
            if row_matches(row, handle.filters):
                on_event(change)

        await self._realtime.join(handle.topic, table, server_filter, deliver)
        logger.info("subscription_opened", table=table, topic=handle.topic, filter=server_filter)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        if not handle.active:
            logger.warning("subscription_already_closed", table=handle.table, topic=handle.topic)
            return False
        handle.active = False
        await self._realtime.leave(handle.topic)
        logger.info("subscription_closed", table=handle.table, topic=handle.topic)
        return True

    async def close(self) -> None:
        await self._realtime.close()
        self._session.close()
