"""
Realtime change feed over the gateway's websocket (Phoenix channel protocol).

One socket carries every channel. Each channel joins with a
``postgres_changes`` config for one table and an optional row filter; change
messages are translated to ``{eventType, new, old}`` before delivery. A
heartbeat keeps the socket open and a dropped socket is reopened with backoff
and every channel rejoined. Events missed while disconnected are not
replayed; callers reload on resubscribe if they need them.
"""

import asyncio
import itertools
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlsplit

import websockets

from ..logging_config import get_logger

logger = get_logger(__name__)

PROTOCOL_VERSION = "1.0.0"
MAX_RECONNECT_DELAY = 30.0


def build_socket_url(base_url: str, api_key: str) -> str:
    """Turn a project URL into its realtime websocket URL."""
    parts = urlsplit(base_url.rstrip("/"))
    scheme = "wss" if parts.scheme == "https" else "ws"
    return f"{scheme}://{parts.netloc}{parts.path}/realtime/v1/websocket?apikey={quote(api_key)}&vsn={PROTOCOL_VERSION}"


def to_change_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Translate a ``postgres_changes`` data block to ``{eventType, new, old}``."""
    return {
        "eventType": data.get("type") or data.get("eventType"),
        "new": data.get("record") or {},
        "old": data.get("old_record") or {},
    }


@dataclass
class _Channel:
    table: str
    row_filter: str | None
    callback: Callable[[dict[str, Any]], None]


class RealtimeClient:
    """
    Websocket client multiplexing change subscriptions.

    Args:
        base_url: Project URL
        api_key: Public API key
        access_token: Callable returning the user's access token for row-level security
        heartbeat_seconds: Interval between heartbeats
        connect: Socket factory, ``websockets.connect`` by default
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Callable[[], str | None] | None = None,
        heartbeat_seconds: float = 30.0,
        connect: Callable[[str], Any] | None = None,
    ):
        self.url = build_socket_url(base_url, api_key)
        self.heartbeat_seconds = heartbeat_seconds
        self._access_token = access_token or (lambda: None)
        self._connect = connect or websockets.connect
        self._ws: Any = None
        self._channels: dict[str, _Channel] = {}
        self._refs = itertools.count(1)
        self._reader_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def topics(self) -> list[str]:
        return list(self._channels)

    async def join(
        self, topic: str, table: str, row_filter: str | None, callback: Callable[[dict[str, Any]], None]
    ) -> None:
        """Join a channel and start delivering its changes to ``callback``."""
        channel = _Channel(table=table, row_filter=row_filter, callback=callback)
        self._channels[topic] = channel
        self._closing = False
        await self._ensure_connected()
        await self._send_join(topic, channel)

    async def leave(self, topic: str) -> None:
        """Leave a channel; the socket is closed once no channel is left."""
        if self._channels.pop(topic, None) is None:
            return

        if self._ws is not None:
            await self._send(topic, "phx_leave", {})

        if not self._channels:
            await self.close()

    async def close(self) -> None:
        """Close the socket and stop background tasks."""
        self._closing = True
        current = asyncio.current_task()
        for task in (self._heartbeat_task, self._reader_task, self._reconnect_task):
            if task is not None and task is not current:
                task.cancel()
        self._heartbeat_task = self._reader_task = self._reconnect_task = None

        if self._ws is not None:
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except websockets.exceptions.WebSocketException as e:
                logger.debug("realtime_close_failed", error=str(e))
        self._channels.clear()

    # Connection management

    async def _ensure_connected(self) -> None:
        if self._ws is not None:
            return

        logger.info("realtime_connecting", url=self.url.split("?")[0])
        self._ws = await self._connect(self.url)
        self._reader_task = asyncio.create_task(self._read_loop(self._ws))
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def _send(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        message = {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}
        try:
            await self._ws.send(json.dumps(message))
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("realtime_send_failed", topic=topic, event_name=event, error=str(e))

    async def _send_join(self, topic: str, channel: _Channel) -> None:
        change_config: dict[str, Any] = {"event": "*", "schema": "public", "table": channel.table}
        if channel.row_filter:
            change_config["filter"] = channel.row_filter

        payload: dict[str, Any] = {"config": {"postgres_changes": [change_config]}}
        token = self._access_token()
        if token:
            payload["access_token"] = token

        await self._send(topic, "phx_join", payload)
        logger.debug("realtime_channel_joined", topic=topic, table=channel.table, filter=channel.row_filter)

    async def _heartbeat_loop(self) -> None:
        while self._ws is not None:
            await asyncio.sleep(self.heartbeat_seconds)
            if self._ws is not None:
                await self._send("phoenix", "heartbeat", {})

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self._dispatch(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("realtime_connection_closed", code=getattr(e, "code", None), reason=str(e))

        if ws is self._ws and not self._closing:
            self._ws = None
            if self._heartbeat_task is not None:
                self._heartbeat_task.cancel()
                self._heartbeat_task = None
            if self._channels:
                self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        delay = 1.0
        while not self._closing and self._channels:
            await asyncio.sleep(delay)
            try:
                await self._ensure_connected()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.warning("realtime_reconnect_failed", error=str(e), retry_in=delay)
                delay = min(delay * 2, MAX_RECONNECT_DELAY)
                continue

            for topic, channel in list(self._channels.items()):
                await self._send_join(topic, channel)
            logger.info("realtime_reconnected", channels=len(self._channels))
            return

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("realtime_invalid_message", preview=str(raw)[:100])
            return

        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}

        if event == "postgres_changes":
            channel = self._channels.get(topic)
            if channel is None:
                return
            change = to_change_payload(payload.get("data") or {})
            try:
                channel.callback(change)
            except Exception as e:
                logger.error("realtime_callback_failed", topic=topic, error=str(e))
        elif event == "phx_reply":
            if payload.get("status") != "ok":
                logger.warning("realtime_reply_error", topic=topic, response=payload.get("response"))
        elif event in ("phx_error", "phx_close"):
            logger.warning("realtime_channel_event", topic=topic, event_name=event)
        else:
            logger.debug("realtime_message_ignored", topic=topic, event_name=event)
