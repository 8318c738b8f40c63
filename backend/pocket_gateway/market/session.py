"""Upstream broker session: connect, authenticate, heartbeat, reconnect."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import WebSocketException

from .codec import HEARTBEAT_FRAME, decode, encode
from .models import AuthMode, ConnectionState, Credentials

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None] | None]
ConnectFn = Callable[..., Awaitable[Any]]

SSID_AUTH_MODES = ("header", "login")

# Events answered by the protocol itself; never worth a log line
_QUIET_EVENTS = frozenset({"pong"})


class AuthenticationError(Exception):
    """The broker rejected the login event."""


class UpstreamSession:
    """Owns the single upstream connection.

    State machine::

        DISCONNECTED -> CONNECTING -> (AUTHENTICATING) -> LIVE -> DISCONNECTED

    One background task runs the connect/read/reconnect loop. Any close,
    transport error or rejected login drops back to DISCONNECTED and the loop
    reconnects after ``reconnect_delay`` seconds, forever. Replacing the
    credentials cancels that task (and with it any pending reconnect sleep)
    and starts a fresh one, which waits for the old transport to close first
    so that at most one transport exists at a time.

    Decoded events are dispatched by name through the handler table filled
    with register(). Events with no handler are logged and dropped.
    """

    def __init__(
        self,
        url: str,
        credentials: Credentials | None = None,
        *,
        ssid_auth: str = "header",
        origin: str | None = None,
        reconnect_delay: float = 5.0,
        heartbeat_interval: float = 25.0,
        settle_delay: float = 1.0,
        connect: ConnectFn | None = None,
    ) -> None:
        if ssid_auth not in SSID_AUTH_MODES:
            raise ValueError(f"ssid_auth must be one of {SSID_AUTH_MODES}, got {ssid_auth!r}")
        self._url = url
        self._credentials = credentials or Credentials()
        self._ssid_auth = ssid_auth
        self._origin = origin
        self._reconnect_delay = reconnect_delay
        self._heartbeat_interval = heartbeat_interval
        self._settle_delay = settle_delay
        self._connect = connect or websockets_connect

        self._handlers: dict[str, Handler] = {}
        self._state = ConnectionState.DISCONNECTED
        self._transport: Any = None
        self._task: asyncio.Task | None = None
        self._retiring: set[asyncio.Task] = set()
        self._heartbeat_task: asyncio.Task | None = None

    # --- Public API ---

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is ConnectionState.LIVE

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def register(self, event: str, handler: Handler) -> None:
        """Route upstream ``event`` to ``handler``. One handler per event."""
        self._handlers[event] = handler

    async def start(self) -> None:
        """Start the connection loop. No-op if already running."""
        if self._task is not None and not self._task.done():
            return
        self._spawn(0.0)
        logger.info("Upstream session started (%s auth)", self._credentials.mode.value)

    async def stop(self) -> None:
        """Cancel the connection loop and close the transport. Safe to call twice."""
        tasks = [t for t in (self._task, *self._retiring) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        self._task = None
        self._retiring.clear()
        logger.info("Upstream session stopped")

    async def reconfigure(self, credentials: Credentials) -> None:
        """Swap credentials and restart the session after the settle delay.

        Cached market data is left untouched.
        """
        self._credentials = credentials
        logger.info("Credentials replaced (%s auth); restarting upstream session", credentials.mode.value)
        self._spawn(self._settle_delay)

    async def reconnect(self) -> None:
        """Drop the current transport and reconnect after the settle delay."""
        logger.info("Manual upstream reconnect requested")
        self._spawn(self._settle_delay)

    async def send(self, event: str, payload: Any = None) -> bool:
        """Send an application event. Returns False (and sends nothing) unless LIVE."""
        transport = self._transport
        if self._state is not ConnectionState.LIVE or transport is None:
            logger.debug("Upstream not live; dropping outbound %s", event)
            return False
        frame = encode(event) if payload is None else encode(event, payload)
        return await self._send_frame(transport, frame)

    # --- Internal ---

    def _spawn(self, delay: float) -> None:
        current = self._task
        if current is not None and not current.done():
            current.cancel()
            self._retiring.add(current)
            current.add_done_callback(self._retiring.discard)
        predecessors = [t for t in self._retiring if not t.done()]
        self._task = asyncio.create_task(self._run(predecessors, delay), name="upstream-session")

    async def _run(self, predecessors: list[asyncio.Task], delay: float) -> None:
        if predecessors:
            # Every older session must close its transport before a new one opens
            await asyncio.wait(predecessors)
        if delay > 0:
            await asyncio.sleep(delay)

        while True:
            await self._connect_once()
            logger.warning("Upstream disconnected; reconnecting in %.1fs", self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def _connect_once(self) -> None:
        """One transport lifetime: open, authenticate, read until it ends."""
        credentials = self._credentials
        transport = None
        self._set_state(ConnectionState.CONNECTING)
        try:
            transport = await self._connect(self._url, **self._connect_kwargs(credentials))
            self._transport = transport
            logger.info("Upstream transport open: %s", self._url)

            if self._needs_login(credentials):
                self._set_state(ConnectionState.AUTHENTICATING)
                await transport.send(encode("login", credentials.login_payload()))
            else:
                await self._go_live()

            async for frame in transport:
                event = decode(frame)
                if event is None:
                    continue
                await self._handle_event(*event)

        except AuthenticationError as e:
            logger.error("Upstream login rejected: %s", e)
        except (WebSocketException, OSError) as e:
            logger.warning("Upstream transport failed: %s", e)
        except Exception:
            logger.exception("Unexpected upstream session error")
        finally:
            self._stop_heartbeat()
            self._transport = None
            self._set_state(ConnectionState.DISCONNECTED)
            if transport is not None:
                try:
                    await transport.close()
                except (WebSocketException, OSError) as e:
                    logger.debug("Error closing upstream transport: %s", e)

    def _connect_kwargs(self, credentials: Credentials) -> dict[str, Any]:
        headers: dict[str, str] = {}
        if credentials.mode is AuthMode.SSID and self._ssid_auth == "header":
            headers["Cookie"] = f"ssid={credentials.ssid}"
        return {
            "additional_headers": headers or None,
            "origin": self._origin,
            "ping_interval": None,  # heartbeat is sent at the protocol level
        }

    def _needs_login(self, credentials: Credentials) -> bool:
        mode = credentials.mode
        return mode is AuthMode.PASSWORD or (mode is AuthMode.SSID and self._ssid_auth == "login")

    async def _go_live(self) -> None:
        self._set_state(ConnectionState.LIVE)
        self._start_heartbeat()
        await self.send("assets_status")
        if self._credentials.authenticated:
            await self.send("balance_get")

    async def _handle_event(self, event: str, payload: Any) -> None:
        if event == "login":
            await self._handle_login(payload)
            return

        handler = self._handlers.get(event)
        if handler is None:
            if event not in _QUIET_EVENTS:
                logger.debug("Unhandled upstream event %r", event)
            return
        if self._state is not ConnectionState.LIVE:
            logger.debug("Dropping %r received before session is live", event)
            return

        try:
            result = handler(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Handler for upstream event %r failed", event)

    async def _handle_login(self, payload: Any) -> None:
        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else payload
            raise AuthenticationError(message or "login rejected")
        if self._state is not ConnectionState.LIVE:
            logger.info("Upstream login accepted")
            await self._go_live()

    async def _send_frame(self, transport: Any, frame: str) -> bool:
        try:
            await transport.send(frame)
            return True
        except (WebSocketException, OSError) as e:
            logger.warning("Upstream send failed: %s", e)
            return False

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        if self._heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(self._transport), name="upstream-heartbeat"
            )

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task and not self._heartbeat_task.done():
            self._heartbeat_task.cancel()
        self._heartbeat_task = None

    async def _heartbeat_loop(self, transport: Any) -> None:
        """Keepalive only; a dead transport is detected by its own close signal."""
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            if self._state is ConnectionState.LIVE:
                await self._send_frame(transport, HEARTBEAT_FRAME)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("Upstream state: %s -> %s", self._state.value, state.value)
        self._state = state
