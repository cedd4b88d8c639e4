"""Supabase Realtime change feed over an aiohttp websocket.

Speaks the Phoenix channel protocol: one channel per subscription, joined
with a ``postgres_changes`` filter for the table, plus a periodic heartbeat.
The socket is opened on the first subscription and closed with the last one.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import aiohttp

from msgsync.config import StoreConfig
from msgsync.domain.changes import (
    ALL_EVENTS,
    CHANGE_KINDS,
    ChangeCallback,
    ChangeEvent,
    DropCallback,
    RelevancePolicy,
    Subscription,
)
from msgsync.domain.errors import StoreError

logger = logging.getLogger(__name__)

REALTIME_PATH = "/realtime/v1/websocket"
PROTOCOL_VERSION = "1.0.0"


def to_socket_url(url: str) -> str:
    base = url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + REALTIME_PATH


class SupabaseRealtimeFeed:
    """ChangeFeedPort implementation backed by Supabase Realtime."""

    def __init__(
        self,
        config: StoreConfig,
        relevance: Optional[RelevancePolicy] = None,
        session_factory: Callable[[], Any] = aiohttp.ClientSession,
    ):
        self._config = config
        self._relevance = relevance or RelevancePolicy(dict(config.relevance))
        self._session_factory = session_factory
        self._session = None
        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._subscriptions: Dict[str, Subscription] = {}
        self._callback_tasks = set()
        self._ref = 0
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def subscriptions(self):
        return list(self._subscriptions.values())

    @staticmethod
    def topic_for(subscription: Subscription) -> str:
        return f"realtime:{subscription.subscription_id}"

    # ── connection ─────────────────────────────────────────

    async def _connect(self) -> None:
        if self.is_connected:
            return
        if not self._config.url:
            raise StoreError("store URL is not configured")
        if self._ws is not None or self._session is not None:
            # previous socket was dropped by the server
            await self._disconnect()

        self._session = self._session_factory()
        try:
            self._ws = await self._session.ws_connect(
                to_socket_url(self._config.url),
                params={"apikey": self._config.key, "vsn": PROTOCOL_VERSION},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            await self._session.close()
            self._session = None
            self._ws = None
            raise StoreError(f"realtime connection failed: {e}") from e

        logger.info("Realtime socket connected")
        self._reader_task = asyncio.ensure_future(self._read_loop())
        self._heartbeat_task = asyncio.ensure_future(self._heartbeat_loop())

    async def _disconnect(self) -> None:
        current = asyncio.current_task()
        for task in (self._heartbeat_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._heartbeat_task = None
        self._reader_task = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("Realtime socket closed")

    async def _send(self, topic: str, event: str, payload: Mapping[str, Any]) -> None:
        self._ref += 1
        await self._ws.send_json(
            {"topic": topic, "event": event, "payload": dict(payload), "ref": str(self._ref)}
        )

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.heartbeat_interval)
            try:
                await self._send("phoenix", "heartbeat", {})
            except Exception as e:
                logger.warning("Realtime heartbeat failed: %s", e)
                return

    async def _read_loop(self) -> None:
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    message = json.loads(msg.data)
                except ValueError:
                    logger.warning("Ignoring malformed realtime frame")
                    continue
                self.handle_message(message)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED,
                              aiohttp.WSMsgType.ERROR):
                break

        # only reached when the server ends the stream; _disconnect cancels us otherwise
        dropped = list(self._subscriptions.values())
        self._subscriptions.clear()
        if dropped:
            logger.warning("Realtime socket dropped with %d active subscription(s)", len(dropped))
        await self._disconnect()
        for subscription in dropped:
            subscription.drop("realtime socket closed by server")

    # ── inbound frames ─────────────────────────────────────

    def handle_message(self, message: Mapping[str, Any]) -> None:
        """Route one decoded Phoenix frame to the subscription owning its topic."""
        event = message.get("event")
        topic = message.get("topic", "")
        payload = message.get("payload") or {}

        if event == "phx_reply":
            if payload.get("status") == "error":
                response = payload.get("response") or {}
                reason = response.get("reason") if isinstance(response, Mapping) else None
                self._reject(topic, f"channel join rejected: {reason or response}")
            return
        if event == "phx_error":
            logger.warning("Realtime channel %s errored", topic)
            return
        if event == "system":
            if payload.get("status") == "error":
                self._reject(topic, f"realtime system error: {payload.get('message')}")
            return

        if event == "postgres_changes":
            data = payload.get("data") or {}
        elif event in CHANGE_KINDS:
            data = payload
        else:
            return

        subscription = self._subscriptions.get(topic)
        if subscription is None:
            return
        change = ChangeEvent.from_payload(data)
        if not subscription.matches(change):
            return
        if not self._relevance.is_relevant(change.table, change.kind):
            logger.debug("Dropping %s on %s (not relevant)", change.kind, change.table)
            return
        self._dispatch(subscription, change)

    def _reject(self, topic: str, reason: str) -> None:
        subscription = self._subscriptions.pop(topic, None)
        if subscription is None:
            logger.warning("Realtime error on %s: %s", topic, reason)
            return
        subscription.drop(reason)
        if not self._subscriptions:
            self._track(asyncio.ensure_future(self._release_if_idle()))

    async def _release_if_idle(self) -> None:
        async with self._lock:
            if not self._subscriptions and (self._ws is not None or self._session is not None):
                await self._disconnect()

    def _track(self, task: asyncio.Task) -> None:
        self._callback_tasks.add(task)
        task.add_done_callback(self._on_callback_done)

    def _dispatch(self, subscription: Subscription, change: ChangeEvent) -> None:
        try:
            result = subscription.callback(change)
        except Exception:
            logger.exception("Change callback for %s failed", subscription.subscription_id)
            return
        if inspect.isawaitable(result):
            self._track(asyncio.ensure_future(result))

    def _on_callback_done(self, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Realtime background task failed: %s", task.exception())

    # ── ChangeFeedPort ─────────────────────────────────────

    async def subscribe(
        self,
        table: str,
        on_change: ChangeCallback,
        event: str = ALL_EVENTS,
        on_drop: Optional[DropCallback] = None,
    ) -> Subscription:
        subscription = Subscription(
            table=table,
            event=event,
            callback=on_change,
            schema=self._config.schema,
            on_drop=on_drop,
        )
        topic = self.topic_for(subscription)
        async with self._lock:
            await self._connect()
            self._subscriptions[topic] = subscription
            join = {
                "config": {
                    "broadcast": {"ack": False, "self": False},
                    "presence": {"key": ""},
                    "postgres_changes": [
                        {"event": event, "schema": subscription.schema, "table": table}
                    ],
                },
                "access_token": self._config.key,
            }
            try:
                await self._send(topic, "phx_join", join)
            except Exception as e:
                self._subscriptions.pop(topic, None)
                subscription.active = False
                if not self._subscriptions:
                    await self._disconnect()
                raise StoreError(f"realtime join failed: {e}") from e

        logger.info("Subscribed to %s events on %s (%s)", event, table, subscription.subscription_id)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        topic = self.topic_for(subscription)
        async with self._lock:
            if self._subscriptions.pop(topic, None) is None:
                return
            await self._leave(topic)
            if not self._subscriptions:
                await self._disconnect()
        logger.info("Unsubscribed %s", subscription.subscription_id)

    async def unsubscribe_all(self) -> None:
        async with self._lock:
            count = len(self._subscriptions)
            for topic, subscription in list(self._subscriptions.items()):
                subscription.active = False
                await self._leave(topic)
            self._subscriptions.clear()
            if self._ws is not None or self._session is not None:
                await self._disconnect()
        logger.info("Released %d realtime subscription(s)", count)

    async def close(self) -> None:
        await self.unsubscribe_all()

    async def _leave(self, topic: str) -> None:
        if not self.is_connected:
            return
        try:
            await self._send(topic, "phx_leave", {})
        except Exception as e:
            logger.warning("Failed to leave %s: %s", topic, e)
