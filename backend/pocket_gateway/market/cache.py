"""In-memory market cache: candle series, latest prices and balance."""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .models import CacheChange, Candle, PriceUpdate

logger = logging.getLogger(__name__)

CacheListener = Callable[[CacheChange], None]

_MISSING = object()


@dataclass(frozen=True)
class CacheSnapshot:
    """Read-only point-in-time copy of the whole cache."""

    candles: Mapping[str, tuple[Candle, ...]]
    prices: Mapping[str, PriceUpdate]
    balance: Any
    connected: bool

    def to_message(self) -> dict:
        """Downstream ``snapshot`` message."""
        return {
            "type": "snapshot",
            "candles": {
                asset: [candle.to_dict() for candle in series]
                for asset, series in self.candles.items()
            },
            "prices": {asset: update.price for asset, update in self.prices.items()},
            "balance": self.balance,
            "connected": self.connected,
        }


class MarketCache:
    """Latest known market state, keyed by asset symbol.

    Writer: the upstream event handlers (one event at a time, on the event loop).
    Readers: BroadcastHub snapshots, HTTP views.

    The cache never talks to subscribers. Observers register with
    add_listener() and receive a CacheChange after every successful mutation.
    """

    def __init__(self) -> None:
        self._candles: dict[str, tuple[Candle, ...]] = {}
        self._prices: dict[str, PriceUpdate] = {}
        self._balance: Any = _MISSING
        self._listeners: list[CacheListener] = []

    def add_listener(self, listener: CacheListener) -> None:
        self._listeners.append(listener)

    # --- Mutations ---

    def apply_candle_batch(self, batch: Iterable[Any]) -> CacheChange | None:
        """Replace the candle series of one asset with a fresh batch.

        The asset comes from the first candle and untagged candles inherit it;
        candles naming another asset are discarded. Also moves the latest price to the close of the newest candle.
        Empty or asset-less batches are ignored and return None.
        """
        if not isinstance(batch, (list, tuple)) or not batch:
            return None

        first = batch[0]
        asset = first.asset if isinstance(first, Candle) else (
            first.get("asset") if isinstance(first, dict) else None
        )
        if not asset:
            logger.debug("Ignoring candle batch without asset")
            return None

        candles = [c if isinstance(c, Candle) else Candle.from_payload(c, asset) for c in batch]
        series = tuple(
            sorted(
                (c for c in candles if c is not None and c.asset == asset),
                key=lambda c: c.timestamp,
            )
        )
        if not series:
            logger.debug("Ignoring candle batch for %s: no usable candles", asset)
            return None

        self._candles[asset] = series
        price = self._set_price(asset, series[-1].close)
        return self._emit(CacheChange(kind="candles", asset=asset, candles=series, price=price))

    def apply_tick(self, asset: str, value: float, timestamp: float | None = None) -> CacheChange | None:
        """Overwrite the latest price for an asset."""
        if not asset or value is None:
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric tick for %s: %r", asset, value)
            return None
        price = self._set_price(asset, value, timestamp)
        return self._emit(CacheChange(kind="price", asset=asset, price=price))

    def apply_balance(self, payload: Any) -> CacheChange:
        """Overwrite the balance wholesale."""
        self._balance = copy.deepcopy(payload)
        return self._emit(CacheChange(kind="balance", balance=self._balance))

    # --- Reads ---

    def snapshot(self, connected: bool = False) -> CacheSnapshot:
        """Immutable view of the entire cache plus upstream liveness."""
        return CacheSnapshot(
            candles=MappingProxyType(dict(self._candles)),
            prices=MappingProxyType(dict(self._prices)),
            balance=copy.deepcopy(self.balance),
            connected=connected,
        )

    def get_candles(self, asset: str) -> tuple[Candle, ...] | None:
        """Candle series for an asset, or None if never received."""
        return self._candles.get(asset)

    def get(self, asset: str) -> PriceUpdate | None:
        """Latest price update for an asset, or None if never observed."""
        return self._prices.get(asset)

    def get_price(self, asset: str) -> float | None:
        """Convenience: get just the price float, or None."""
        update = self.get(asset)
        return update.price if update else None

    def candle_assets(self) -> list[str]:
        return list(self._candles)

    def price_assets(self) -> list[str]:
        return list(self._prices)

    @property
    def balance(self) -> Any:
        """Last balance payload, or None if never observed."""
        return None if self._balance is _MISSING else self._balance

    @property
    def has_balance(self) -> bool:
        return self._balance is not _MISSING

    # --- Internal ---

    def _set_price(self, asset: str, price: float, timestamp: float | None = None) -> PriceUpdate:
        update = PriceUpdate(asset=asset, price=price, timestamp=timestamp or time.time())
        self._prices[asset] = update
        return update

    def _emit(self, change: CacheChange) -> CacheChange:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Cache listener failed for %s change", change.kind)
        return change
