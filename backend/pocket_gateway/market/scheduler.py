"""Periodic asset-list refresh."""

from __future__ import annotations

import asyncio
import logging

from .session import UpstreamSession

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Re-requests ``assets_status`` every ``interval`` seconds while the
    session is live, which re-runs asset selection and re-arms candle and
    tick requests. Works without login.
    """

    def __init__(self, session: UpstreamSession, interval: float = 60.0) -> None:
        self._session = session
        self._interval = interval
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop(), name="asset-refresh")
        logger.info("Asset refresh every %.0fs", self._interval)

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def refresh_once(self) -> bool:
        """Request the asset list now. Returns False when the session is not live."""
        if not self._session.is_live:
            logger.debug("Skipping asset refresh: upstream not live")
            return False
        return await self._session.send("assets_status")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh_once()
            except Exception:
                logger.exception("Asset refresh failed")
