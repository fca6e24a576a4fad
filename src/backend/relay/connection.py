"""
Client connection wrapper for the device WebSocket.

Wraps the FastAPI/Starlette WebSocket with a frame-oriented read path and a
single-writer write path. Every write, including the closing handshake, goes
through one asyncio.Lock so the event relay and teardown never interleave.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from relay.errors import TransportReadError, TransportWriteError


CLOSE_NORMAL_CLOSURE = 1000
CLOSE_GOING_AWAY = 1001
EXPECTED_CLOSE_CODES = frozenset({CLOSE_NORMAL_CLOSURE, CLOSE_GOING_AWAY})


class FrameKind(str, Enum):
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class Frame:
    """One message read from the client connection."""
    kind: FrameKind
    payload: bytes


class ClientConnection:
    """
    Owns one accepted client WebSocket for the life of a relay session.

    Attributes:
        ws (WebSocket): The underlying FastAPI WebSocket.
        closed (bool): True once close() has run.
    """

    def __init__(self, ws: WebSocket, logger: Optional[logging.Logger] = None) -> None:
        self.ws = ws
        self.closed = False
        self._write_lock = asyncio.Lock()
        self._logger = logger or logging.getLogger(__name__)

    async def receive_frame(self) -> Frame:
        """
        Block until the next frame arrives.

        Raises:
            TransportReadError: If the peer disconnected or the read failed.
                ``code`` carries the WebSocket close code when there is one.
        """
        try:
            message = await self.ws.receive()
        except Exception as e:
            raise TransportReadError(f"WebSocket read failed: {e}") from e

        if message["type"] == "websocket.disconnect":
            code = message.get("code", CLOSE_NORMAL_CLOSURE)
            raise TransportReadError(f"WebSocket closed with code {code}", code=code)

        if message.get("bytes") is not None:
            return Frame(kind=FrameKind.BINARY, payload=message["bytes"])
        return Frame(kind=FrameKind.TEXT, payload=(message.get("text") or "").encode("utf-8"))

    async def send_text(self, data: str) -> None:
        """
        Write one text frame.

        Raises:
            TransportWriteError: If the connection is closed or the send fails.
        """
        async with self._write_lock:
            if self.closed:
                raise TransportWriteError("WebSocket connection already closed")
            try:
                await self.ws.send_text(data)
            except Exception as e:
                raise TransportWriteError(f"WebSocket write failed: {e}") from e

    async def close(self, code: int = CLOSE_NORMAL_CLOSURE) -> None:
        """Send a best-effort close frame and release the connection. Safe to call twice."""
        async with self._write_lock:
            if self.closed:
                return
            self.closed = True
            if WebSocketState.DISCONNECTED in (self.ws.application_state, self.ws.client_state):
                return
            try:
                await self.ws.close(code=code)
            except Exception as e:
                self._logger.warning("Failed to send close frame: %s", e)
