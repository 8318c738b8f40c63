"""Gateway settings read from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .market.models import Credentials

DEFAULT_WS_URL = "wss://api.pocketoption.com:8085/socket.io/?EIO=3&transport=websocket"
DEFAULT_ORIGIN = "https://pocketoption.com"
DEFAULT_MAIN_ASSETS = (
    "EURUSD_otc",
    "GBPUSD_otc",
    "USDJPY_otc",
    "AUDUSD_otc",
    "USDCAD_otc",
    "BTCUSD_otc",
    "ETHUSD_otc",
)


@dataclass(frozen=True)
class GatewaySettings:
    ws_url: str = DEFAULT_WS_URL
    origin: str | None = DEFAULT_ORIGIN
    ssid: str | None = None
    email: str | None = None
    password: str | None = None
    ssid_auth: str = "header"  # "header" (cookie) or "login" (login event)

    asset_policy: str = "allowlist"  # "allowlist" or "ranked"
    main_assets: tuple[str, ...] = DEFAULT_MAIN_ASSETS
    otc_limit: int = 10
    standard_limit: int = 5
    min_payout: float = 0.85
    subscribe_event: str | None = None  # None -> policy default
    candle_timeframe: int = 60
    candle_count: int = 50
    request_jitter: float = 2.0

    reconnect_delay: float = 5.0
    heartbeat_interval: float = 25.0
    refresh_interval: float = 60.0
    settle_delay: float = 1.0
    subscriber_queue_size: int = 256

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @property
    def credentials(self) -> Credentials:
        """Session token wins over email+password; neither means no login."""
        if self.ssid:
            return Credentials(ssid=self.ssid)
        if self.email and self.password:
            return Credentials(email=self.email, password=self.password)
        return Credentials()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GatewaySettings:
        """Build settings from environment variables. Unset or blank values keep defaults.

        Raises ValueError for numeric variables that do not parse.
        """
        env = os.environ if environ is None else environ

        def text(name: str) -> str | None:
            value = env.get(name, "").strip()
            return value or None

        def number(name: str, default, kind=float):
            value = text(name)
            if value is None:
                return default
            try:
                return kind(value)
            except ValueError:
                raise ValueError(f"{name} must be a {kind.__name__}, got {value!r}") from None

        assets = text("MAIN_ASSETS")
        subscribe_event = env.get("SUBSCRIBE_EVENT")
        if subscribe_event is not None:
            subscribe_event = subscribe_event.strip()  # empty string disables ticks

        return cls(
            ws_url=text("POCKET_WS_URL") or DEFAULT_WS_URL,
            origin=text("POCKET_ORIGIN") or DEFAULT_ORIGIN,
            ssid=text("POCKET_SSID"),
            email=text("POCKET_EMAIL"),
            password=text("POCKET_PASSWORD"),
            ssid_auth=(text("POCKET_SSID_AUTH") or "header").lower(),
            asset_policy=(text("ASSET_POLICY") or "allowlist").lower(),
            main_assets=(
                tuple(s.strip() for s in assets.split(",") if s.strip())
                if assets
                else DEFAULT_MAIN_ASSETS
            ),
            otc_limit=number("OTC_LIMIT", 10, int),
            standard_limit=number("STANDARD_LIMIT", 5, int),
            min_payout=number("MIN_PAYOUT", 0.85),
            subscribe_event=subscribe_event,
            candle_timeframe=number("CANDLE_TIMEFRAME", 60, int),
            candle_count=number("CANDLE_COUNT", 50, int),
            request_jitter=number("REQUEST_JITTER", 2.0),
            reconnect_delay=number("RECONNECT_DELAY", 5.0),
            heartbeat_interval=number("HEARTBEAT_INTERVAL", 25.0),
            refresh_interval=number("REFRESH_INTERVAL", 60.0),
            settle_delay=number("SETTLE_DELAY", 1.0),
            subscriber_queue_size=number("SUBSCRIBER_QUEUE_SIZE", 256, int),
            host=text("HOST") or "0.0.0.0",
            port=number("PORT", 3000, int),
            log_level=(text("LOG_LEVEL") or "INFO").upper(),
        )
