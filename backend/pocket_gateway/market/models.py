"""Data models for market data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class ConnectionState(str, Enum):
    """Upstream connection state. Only the UpstreamSession changes it."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    LIVE = "live"


class AuthMode(str, Enum):
    SSID = "ssid"
    PASSWORD = "password"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Exactly one authentication mode is active: session token, email+password, or none."""

    ssid: str | None = None
    email: str | None = None
    password: str | None = None

    @property
    def mode(self) -> AuthMode:
        if self.ssid:
            return AuthMode.SSID
        if self.email and self.password:
            return AuthMode.PASSWORD
        return AuthMode.NONE

    @property
    def authenticated(self) -> bool:
        return self.mode is not AuthMode.NONE

    def login_payload(self) -> dict[str, str] | None:
        """Payload of the upstream ``login`` event, or None without credentials."""
        mode = self.mode
        if mode is AuthMode.SSID:
            return {"ssid": self.ssid}
        if mode is AuthMode.PASSWORD:
            return {"email": self.email, "password": self.password}
        return None


@dataclass(frozen=True, slots=True)
class AssetDescriptor:
    """One tradable asset as reported by the broker's ``assets_status`` event."""

    symbol: str
    enabled: bool = True
    payout: float = 0.0
    otc: bool = False

    @classmethod
    def from_payload(cls, raw: Any) -> AssetDescriptor | None:
        """Parse one broker entry. Returns None for entries without a symbol."""
        if not isinstance(raw, dict):
            return None
        symbol = raw.get("symbol") or raw.get("asset")
        if not symbol or not isinstance(symbol, str):
            return None

        try:
            payout = float(raw.get("payout") or 0.0)
        except (TypeError, ValueError):
            payout = 0.0
        # Some feeds report payout as a percentage
        if payout > 1:
            payout = payout / 100.0

        otc = raw.get("otc", raw.get("is_otc"))
        if otc is None:
            otc = symbol.lower().endswith("_otc")

        return cls(
            symbol=symbol,
            enabled=bool(raw.get("enabled", True)),
            payout=payout,
            otc=bool(otc),
        )


@dataclass(frozen=True, slots=True)
class Candle:
    """OHLC bar for one asset. Timestamps are Unix seconds."""

    asset: str
    timestamp: float
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None

    @classmethod
    def from_payload(cls, raw: Any, asset: str | None = None) -> Candle | None:
        """Parse a broker candle in long (open/close) or short (o/c) form.

        Returns None when the candle carries no asset or no close.
        """
        if not isinstance(raw, dict):
            return None
        asset = raw.get("asset") or asset
        close = _first(raw, "close", "c")
        if not asset or close is None:
            return None
        try:
            close = float(close)
            volume = _first(raw, "volume", "v")
            return cls(
                asset=asset,
                timestamp=float(_first(raw, "timestamp", "time", "t") or 0.0),
                open=float(_first(raw, "open", "o") or close),
                high=float(_first(raw, "high", "h") or close),
                low=float(_first(raw, "low", "l") or close),
                close=close,
                volume=float(volume) if volume is not None else None,
            )
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> dict:
        """Serialize for JSON transmission."""
        data = {
            "asset": self.asset,
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }
        if self.volume is not None:
            data["volume"] = self.volume
        return data


def _first(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    """Immutable snapshot of a single asset's price at a point in time."""

    asset: str
    price: float
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)


ChangeKind = Literal["candles", "price", "balance"]


@dataclass(frozen=True, slots=True)
class CacheChange:
    """Notification emitted by MarketCache after every successful mutation."""

    kind: ChangeKind
    asset: str | None = None
    candles: tuple[Candle, ...] = ()
    price: PriceUpdate | None = None
    balance: Any = None
