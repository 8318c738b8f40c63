"""WebSocket endpoint for live market updates."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .hub import BroadcastHub

logger = logging.getLogger(__name__)


def create_stream_router(hub: BroadcastHub) -> APIRouter:
    """Create the downstream WebSocket router with a reference to the hub.

    This factory pattern lets us inject the hub without globals.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket("/")
    @router.websocket("/ws")
    async def stream_market(websocket: WebSocket) -> None:
        """Live market data.

        On connect the client receives one ``snapshot`` message with every
        cached candle series, price and the balance, followed by ``candles``,
        ``tick`` and ``balance`` updates as they arrive upstream. Clients may
        send ``{"type": "get_candles", "asset": "..."}`` to query one series.
        """
        await websocket.accept()
        client = websocket.client.host if websocket.client else "unknown"
        logger.info("WebSocket client connected: %s", client)

        subscriber = hub.subscribe(websocket)
        pump = asyncio.create_task(subscriber.pump(), name="subscriber-pump")
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("WebSocket client disconnected: %s", client)
                    break
                text = message.get("text")
                if isinstance(text, str):
                    hub.handle_client_message(subscriber, text)
                else:
                    logger.debug("Ignoring non-text message from %s", client)
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected: %s", client)
        finally:
            hub.unsubscribe(subscriber)
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass

    return router
