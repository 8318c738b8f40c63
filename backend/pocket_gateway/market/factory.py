"""Factory for assembling the gateway core from settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .cache import MarketCache
from .gateway import MarketGateway
from .hub import BroadcastHub
from .interface import SelectionPolicy
from .scheduler import RefreshScheduler
from .selector import AllowListPolicy, AssetSelector, RankedPolicy
from .session import ConnectFn, UpstreamSession

if TYPE_CHECKING:
    from ..config import GatewaySettings

logger = logging.getLogger(__name__)


def create_selection_policy(settings: GatewaySettings) -> SelectionPolicy:
    """Pick the asset selection policy named by ``settings.asset_policy``.

    - ``allowlist`` -> AllowListPolicy over MAIN_ASSETS, subscribing to ticks
    - ``ranked``    -> RankedPolicy (OTC first, then high-payout standard assets),
      history only unless SUBSCRIBE_EVENT is set
    """
    name = settings.asset_policy
    if name == "allowlist":
        event = "subscribe" if settings.subscribe_event is None else settings.subscribe_event
        policy: SelectionPolicy = AllowListPolicy(settings.main_assets, subscribe_event=event)
    elif name == "ranked":
        policy = RankedPolicy(
            otc_limit=settings.otc_limit,
            standard_limit=settings.standard_limit,
            min_payout=settings.min_payout,
            subscribe_event=settings.subscribe_event,
        )
    else:
        raise ValueError(f"Unknown asset policy {name!r} (expected 'allowlist' or 'ranked')")

    logger.info("Asset selection policy: %s", policy.describe())
    return policy


def create_gateway(settings: GatewaySettings, connect: ConnectFn | None = None) -> MarketGateway:
    """Build an unstarted gateway. Caller must await gateway.start().

    ``connect`` replaces the upstream WebSocket connector (used by tests).
    """
    credentials = settings.credentials
    logger.info("Upstream credentials: %s", credentials.mode.value)

    session = UpstreamSession(
        settings.ws_url,
        credentials,
        ssid_auth=settings.ssid_auth,
        origin=settings.origin,
        reconnect_delay=settings.reconnect_delay,
        heartbeat_interval=settings.heartbeat_interval,
        settle_delay=settings.settle_delay,
        connect=connect,
    )
    cache = MarketCache()
    selector = AssetSelector(
        session.send,
        create_selection_policy(settings),
        timeframe=settings.candle_timeframe,
        count=settings.candle_count,
        jitter=settings.request_jitter,
    )
    hub = BroadcastHub(
        cache,
        is_live=lambda: session.is_live,
        queue_size=settings.subscriber_queue_size,
    )
    scheduler = RefreshScheduler(session, interval=settings.refresh_interval)
    return MarketGateway(session, cache, selector, hub, scheduler)
