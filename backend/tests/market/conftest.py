"""Fixtures for market core tests.

Upstream and downstream transports are replaced by in-memory fakes so the
session state machine and fan-out can be driven without a network.
"""

import asyncio

import pytest

from pocket_gateway.market.codec import decode

_CLOSE = object()


class FakeTransport:
    """Stands in for a websockets client connection."""

    def __init__(self, url, **kwargs):
        self.url = url
        self.close_delay = 0.0
        self.kwargs = kwargs
        self.sent = []
        self.closed = False
        self._incoming = asyncio.Queue()

    def feed(self, frame):
        """Deliver a frame as if the broker sent it."""
        self._incoming.put_nowait(frame)

    def drop(self):
        """Simulate the broker closing the connection."""
        self._incoming.put_nowait(_CLOSE)

    async def send(self, frame):
        self.sent.append(frame)

    async def close(self):
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True
        self._incoming.put_nowait(_CLOSE)

    def events(self):
        """Application events sent upstream, as (name, payload) pairs."""
        return [e for e in (decode(f) for f in self.sent) if e is not None]

    def event_names(self):
        return [name for name, _ in self.events()]

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSE:
            self.closed = True
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Callable replacing websockets.connect; records every transport it opens."""

    def __init__(self):
        self.transports = []
        self.fail_next = 0
        # Transports still open at the moment each new one was requested
        self.open_at_connect = []

    async def __call__(self, url, **kwargs):
        if self.fail_next:
            self.fail_next -= 1
            raise OSError("connection refused")
        self.open_at_connect.append(self.open_count)
        transport = FakeTransport(url, **kwargs)
        self.transports.append(transport)
        return transport

    @property
    def latest(self):
        return self.transports[-1]

    @property
    def open_count(self):
        return sum(1 for t in self.transports if not t.closed)


class FakeConnection:
    """Stands in for a downstream FastAPI WebSocket."""

    def __init__(self, fail=False):
        self.messages = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("client gone")
        self.messages.append(message)

    def types(self):
        return [m["type"] for m in self.messages]


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def connection_factory():
    return FakeConnection
