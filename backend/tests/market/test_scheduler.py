"""Tests for RefreshScheduler."""

import pytest

from pocket_gateway.market.scheduler import RefreshScheduler
from pocket_gateway.market.session import UpstreamSession


def _session(connector):
    return UpstreamSession("wss://upstream.test/", connect=connector, heartbeat_interval=0)


@pytest.mark.asyncio
class TestRefreshScheduler:
    async def test_skips_when_not_live(self, connector):
        scheduler = RefreshScheduler(_session(connector), interval=60.0)
        assert await scheduler.refresh_once() is False

    async def test_refresh_requests_asset_list(self, connector, wait_until):
        session = _session(connector)
        scheduler = RefreshScheduler(session, interval=60.0)
        await session.start()
        await wait_until(lambda: session.is_live)

        assert await scheduler.refresh_once() is True
        assert connector.latest.event_names() == ["assets_status", "assets_status"]
        await session.stop()

    async def test_periodic_refresh(self, connector, wait_until):
        session = _session(connector)
        scheduler = RefreshScheduler(session, interval=0.02)
        await session.start()
        await scheduler.start()
        await wait_until(lambda: session.is_live)

        await wait_until(lambda: connector.latest.event_names().count("assets_status") >= 3)
        await scheduler.stop()
        await scheduler.stop()  # Should not raise
        await session.stop()
