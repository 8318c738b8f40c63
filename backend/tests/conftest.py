"""Pytest configuration and fixtures."""

import asyncio

import pytest

from pocket_gateway.config import GatewaySettings


@pytest.fixture
def settings():
    """Settings with short timers so reconnect paths run quickly in tests."""
    return GatewaySettings(
        ws_url="wss://upstream.test/socket.io/?EIO=3&transport=websocket",
        request_jitter=0.0,
        reconnect_delay=0.05,
        settle_delay=0.05,
        heartbeat_interval=0.0,
        refresh_interval=60.0,
    )


@pytest.fixture
def wait_until():
    """Poll an async condition until true or fail after ``timeout`` seconds."""

    async def _wait(predicate, timeout=1.0, interval=0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met within %.2fs" % timeout)
            await asyncio.sleep(interval)

    return _wait
