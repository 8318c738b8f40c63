"""Asset selection: which broker assets the gateway tracks."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

from .interface import SelectionPolicy
from .models import AssetDescriptor

logger = logging.getLogger(__name__)

SendFn = Callable[..., Awaitable[bool]]


class AllowListPolicy(SelectionPolicy):
    """Keep only configured symbols that the broker reports as enabled."""

    def __init__(self, symbols: Iterable[str], subscribe_event: str | None = "subscribe") -> None:
        self.symbols = frozenset(symbols)
        self.subscribe_event = subscribe_event or None

    def select(self, assets: Sequence[AssetDescriptor]) -> list[AssetDescriptor]:
        return [a for a in assets if a.symbol in self.symbols and a.enabled]

    def describe(self) -> str:
        return f"allow-list of {len(self.symbols)} symbols"


class RankedPolicy(SelectionPolicy):
    """Up to ``otc_limit`` OTC assets plus up to ``standard_limit`` standard
    assets paying at least ``min_payout``.

    OTC assets are taken first-seen. The enabled flag is ignored.
    """

    def __init__(
        self,
        otc_limit: int = 10,
        standard_limit: int = 5,
        min_payout: float = 0.85,
        subscribe_event: str | None = None,
    ) -> None:
        self.otc_limit = otc_limit
        self.standard_limit = standard_limit
        self.min_payout = min_payout
        self.subscribe_event = subscribe_event or None

    def select(self, assets: Sequence[AssetDescriptor]) -> list[AssetDescriptor]:
        otc = [a for a in assets if a.otc][: self.otc_limit]
        standard = [a for a in assets if not a.otc and a.payout >= self.min_payout]
        return otc + standard[: self.standard_limit]

    def describe(self) -> str:
        return (
            f"ranked: {self.otc_limit} OTC + {self.standard_limit} standard "
            f"(payout >= {self.min_payout:.2f})"
        )


class AssetSelector:
    """Applies a SelectionPolicy to each ``assets_status`` event and requests
    candle history (and optionally live ticks) for every selected asset.

    Requests are spaced with random jitter to avoid bursting the upstream
    connection. A new selection pass cancels requests still pending from the
    previous one.
    """

    def __init__(
        self,
        send: SendFn,
        policy: SelectionPolicy,
        timeframe: int = 60,
        count: int = 50,
        jitter: float = 2.0,
    ) -> None:
        self._send = send
        self._policy = policy
        self._timeframe = timeframe
        self._count = count
        self._jitter = jitter
        self._selected: tuple[AssetDescriptor, ...] = ()
        self._available: int = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def policy(self) -> SelectionPolicy:
        return self._policy

    @property
    def selected(self) -> tuple[AssetDescriptor, ...]:
        return self._selected

    def selected_symbols(self) -> list[str]:
        return [a.symbol for a in self._selected]

    @property
    def available_count(self) -> int:
        """Size of the last full asset list received."""
        return self._available

    def select(self, payload: Any) -> tuple[AssetDescriptor, ...]:
        """Parse a raw asset list and replace the selected set. No I/O."""
        if not isinstance(payload, list):
            logger.warning("Ignoring assets_status payload of type %s", type(payload).__name__)
            return self._selected

        assets = [a for a in (AssetDescriptor.from_payload(raw) for raw in payload) if a]
        self._available = len(assets)
        self._selected = tuple(self._policy.select(assets))
        logger.info(
            "Selected %d of %d assets (%s): %s",
            len(self._selected),
            len(assets),
            self._policy.describe(),
            ", ".join(self.selected_symbols()) or "-",
        )
        return self._selected

    async def handle_assets(self, payload: Any) -> None:
        """Handler for the upstream ``assets_status`` event."""
        selected = self.select(payload)
        self.cancel()
        for asset in selected:
            task = asyncio.create_task(self._request(asset), name=f"request-{asset.symbol}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    def cancel(self) -> None:
        """Cancel requests still waiting on their jitter delay."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    async def _request(self, asset: AssetDescriptor) -> None:
        if self._jitter > 0:
            await asyncio.sleep(random.uniform(0, self._jitter))

        logger.debug("Requesting candles for %s", asset.symbol)
        await self._send(
            "candles",
            {"asset": asset.symbol, "tf": self._timeframe, "cnt": self._count},
        )
        if self._policy.subscribe_event:
            await self._send(self._policy.subscribe_event, {"asset": asset.symbol})
