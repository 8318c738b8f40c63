"""Downstream fan-out of cache changes to WebSocket subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from .cache import MarketCache
from .models import CacheChange

logger = logging.getLogger(__name__)


class Subscriber:
    """One open downstream connection.

    Outbound messages go through a bounded queue drained by pump(), so a slow
    client never blocks the upstream reader and messages to one client stay
    in order. When the queue is full the message is dropped for this client.
    """

    def __init__(self, connection: Any, queue_size: int = 256) -> None:
        self.connection = connection
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = 0

    @property
    def is_open(self) -> bool:
        return not self._closed

    def offer(self, message: dict) -> bool:
        """Queue a message without waiting. Returns False if it was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Subscriber %x queue full; dropped %s message", id(self), message.get("type"))
            return False

    def close(self) -> None:
        self._closed = True

    async def pump(self) -> None:
        """Send queued messages until the transport fails or the task is cancelled."""
        while not self._closed:
            message = await self._queue.get()
            try:
                await self.connection.send_json(message)
            except Exception as e:
                logger.info("Subscriber %x send failed: %s", id(self), e)
                self._closed = True


class BroadcastHub:
    """Tracks downstream subscribers and pushes every cache change to them.

    Registered as a MarketCache listener. Each new subscriber is sent a full
    snapshot first; later changes are sent as minimal update messages.
    Fan-out is best-effort: no acknowledgement, retry or replay.
    """

    def __init__(
        self,
        cache: MarketCache,
        is_live: Callable[[], bool] = lambda: False,
        queue_size: int = 256,
    ) -> None:
        self._cache = cache
        self._is_live = is_live
        self._queue_size = queue_size
        self._subscribers: dict[Subscriber, None] = {}  # insertion-ordered set
        cache.add_listener(self.on_cache_change)

    def subscribe(self, connection: Any) -> Subscriber:
        """Add a connection and queue its snapshot ahead of any later update."""
        subscriber = Subscriber(connection, queue_size=self._queue_size)
        self._subscribers[subscriber] = None
        subscriber.offer(self._cache.snapshot(connected=self._is_live()).to_message())
        logger.info("Subscriber connected (%d total)", len(self._subscribers))
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Idempotent."""
        subscriber.close()
        if self._subscribers.pop(subscriber, False) is None:
            logger.info("Subscriber disconnected (%d total)", len(self._subscribers))

    def __len__(self) -> int:
        return len(self._subscribers)

    def on_cache_change(self, change: CacheChange) -> None:
        message = build_update_message(change)
        self.broadcast(message)

    def broadcast(self, message: dict) -> None:
        """Queue ``message`` for every open subscriber; drop closed ones afterwards."""
        closed = []
        for subscriber in list(self._subscribers):
            if not subscriber.is_open:
                closed.append(subscriber)
                continue
            subscriber.offer(message)
        for subscriber in closed:
            self.unsubscribe(subscriber)

    def handle_client_message(self, subscriber: Subscriber, text: str) -> None:
        """Answer a client query. Malformed or unknown messages are ignored."""
        try:
            message = json.loads(text)
        except ValueError:
            logger.debug("Ignoring malformed client message")
            return
        if not isinstance(message, dict):
            return

        if message.get("type") == "get_candles":
            asset = message.get("asset")
            series = self._cache.get_candles(asset) if isinstance(asset, str) else None
            subscriber.offer({
                "type": "candles",
                "asset": asset,
                "data": [c.to_dict() for c in series] if series is not None else None,
            })
        else:
            logger.debug("Ignoring client message of type %r", message.get("type"))


def build_update_message(change: CacheChange) -> dict:
    """Minimal downstream message describing one cache change."""
    if change.kind == "candles":
        message = {
            "type": "candles",
            "asset": change.asset,
            "data": [c.to_dict() for c in change.candles],
        }
        if change.price is not None:
            message["price"] = change.price.price
        return message
    if change.kind == "price":
        return {
            "type": "tick",
            "asset": change.asset,
            "price": change.price.price,
            "timestamp": change.price.timestamp_ms,
        }
    return {"type": "balance", "data": change.balance}
