"""Upstream frame codec.

The broker speaks a Socket.IO-style text protocol: every frame starts with a
numeric message-type marker. Only ``42`` frames carry application events, as
``42["event", payload]``. Everything else (``0`` open, ``40`` connect,
``2``/``3`` ping/pong, ...) is protocol control and decodes to None.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

EVENT_MARKER = "42"
HEARTBEAT_FRAME = "2"

_NO_PAYLOAD = object()


def encode(event: str, payload: Any = _NO_PAYLOAD) -> str:
    """Build an application-event frame. Omitting payload yields ``42["event"]``."""
    body = [event] if payload is _NO_PAYLOAD else [event, payload]
    return EVENT_MARKER + json.dumps(body, separators=(",", ":"))


def decode(frame: str | bytes) -> tuple[str, Any] | None:
    """Return ``(event, payload)`` for an application-event frame, else None.

    Never raises: control frames and malformed bodies are dropped.
    """
    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if not frame.startswith(EVENT_MARKER):
        return None

    try:
        body = json.loads(frame[len(EVENT_MARKER):])
    except ValueError:
        logger.debug("Dropping malformed frame: %.80s", frame)
        return None

    if not isinstance(body, list) or not body or not isinstance(body[0], str):
        logger.debug("Dropping frame without event name: %.80s", frame)
        return None

    payload = body[1] if len(body) > 1 else None
    return body[0], payload
