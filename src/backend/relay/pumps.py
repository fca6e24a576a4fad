"""
The two long-lived workers of a relay session.

InboundPump reads device frames and hands audio to the forwarder.
OutboundWatcher relays remote session events back to the device.
Both raise on their first fatal error; the session decides what happens next.
"""

import asyncio
import logging
from typing import Optional

from relay.connection import EXPECTED_CLOSE_CODES, ClientConnection, Frame, FrameKind
from relay.errors import CancellationError, RemoteSessionError, TransportReadError, UnsupportedFrameError
from relay.forwarder import AudioForwarder
from relay.realtime.base import RemoteSession

logger = logging.getLogger(__name__)


class InboundPump:
    """Single reader of the client connection."""

    def __init__(
        self,
        conn: ClientConnection,
        forwarder: AudioForwarder,
        cancelled: asyncio.Event,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.conn = conn
        self.forwarder = forwarder
        self.cancelled = cancelled
        self.logger = log or logger

    async def run(self) -> None:
        """
        Read frames until cancelled or the connection fails.

        Raises:
            CancellationError: If the cancel signal is set before a read.
            TransportReadError: If the client connection closes or fails.
        """
        while True:
            if self.cancelled.is_set():
                raise CancellationError()

            try:
                frame = await self.conn.receive_frame()
            except TransportReadError as e:
                if e.code in EXPECTED_CLOSE_CODES:
                    self.logger.info("WebSocket closed by client: %s", e)
                else:
                    self.logger.error("WebSocket read error: %s", e)
                raise

            try:
                self.handle_frame(frame)
            except UnsupportedFrameError as e:
                self.logger.error("Message handling error: %s", e)

    def handle_frame(self, frame: Frame) -> None:
        # the hardware device sends raw PCM16 as binary frames
        if frame.kind is FrameKind.BINARY:
            self.forwarder.submit(frame.payload)
            return
        raise UnsupportedFrameError(f"Message type: {frame.kind.value} is not handled")


class OutboundWatcher:
    """Single reader of the remote event stream and single data writer to the client."""

    def __init__(
        self,
        remote: RemoteSession,
        conn: ClientConnection,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.remote = remote
        self.conn = conn
        self.logger = log or logger

    async def run(self) -> None:
        """
        Relay remote events to the client, in order, until something fails.

        Raises:
            RemoteSessionError: If the remote stream fails or ends.
            TransportWriteError: If writing to the client fails.
        """
        await self.remote.watch_events(self.conn.send_text)
        raise RemoteSessionError("remote event stream ended")
