"""The gateway core: one session, one cache, one hub, wired together."""

from __future__ import annotations

import logging
from typing import Any

from .cache import MarketCache
from .hub import BroadcastHub
from .models import Credentials
from .scheduler import RefreshScheduler
from .selector import AssetSelector
from .session import UpstreamSession

logger = logging.getLogger(__name__)

BALANCE_EVENTS = ("balance_get", "balance", "balance_update")


class MarketGateway:
    """Owns every core component and the upstream dispatch table.

    Lifecycle:
        gateway = create_gateway(settings)
        await gateway.start()
        # ... subscribers come and go through gateway.hub ...
        await gateway.reconfigure(Credentials(ssid="..."))
        await gateway.stop()
    """

    def __init__(
        self,
        session: UpstreamSession,
        cache: MarketCache,
        selector: AssetSelector,
        hub: BroadcastHub,
        scheduler: RefreshScheduler,
    ) -> None:
        self.session = session
        self.cache = cache
        self.selector = selector
        self.hub = hub
        self.scheduler = scheduler

        for event, handler in self.dispatch_table().items():
            session.register(event, handler)

    def dispatch_table(self) -> dict[str, Any]:
        """Upstream event name -> handler. ``login`` is handled by the session."""
        table: dict[str, Any] = {
            "assets_status": self.selector.handle_assets,
            "candles": self.cache.apply_candle_batch,
            "tick": self._on_tick,
        }
        for event in BALANCE_EVENTS:
            table[event] = self.cache.apply_balance
        return table

    async def start(self) -> None:
        await self.session.start()
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.selector.cancel()
        await self.session.stop()

    async def reconfigure(self, credentials: Credentials) -> None:
        """Restart the upstream session with new credentials. Cache is kept."""
        self.selector.cancel()
        await self.session.reconfigure(credentials)

    @property
    def connected(self) -> bool:
        return self.session.is_live

    def summary(self) -> dict:
        """Body of ``GET /``."""
        return {
            "status": "running",
            "connected": self.connected,
            "assets": len(self.cache.candle_assets()),
            "prices": len(self.cache.price_assets()),
        }

    def status(self) -> dict:
        """Body of ``GET /status``."""
        return {
            "connected": self.connected,
            "state": self.session.state.value,
            "websocket_clients": len(self.hub),
            "monitored_assets": self.selector.selected_symbols(),
            "available_data": self.cache.candle_assets(),
        }

    def _on_tick(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.debug("Ignoring tick payload of type %s", type(payload).__name__)
            return
        self.cache.apply_tick(payload.get("asset"), payload.get("value"))
