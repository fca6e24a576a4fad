"""
Azure OpenAI Realtime API client implementation.

Provides a WebSocket-based client for the Azure OpenAI Realtime preview API.
Sends are serialized with a lock so audio forwarders can write while the event
watcher reads from the same connection.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, AsyncIterator, Optional

import websockets
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from relay.config import RelaySettings
from relay.errors import RemoteSessionError

logger = logging.getLogger(__name__)


class RealtimeAPI:
    """
    Low-level client for the Azure OpenAI Realtime API.

    Manages the WebSocket connection lifecycle and raw message exchange.
    """

    def __init__(self, settings: RelaySettings) -> None:
        """Initialize the API client with Azure configuration."""
        self.url = settings.azure_openai_endpoint.rstrip("/")
        self.api_key = settings.azure_openai_api_key
        self.api_version = settings.azure_openai_api_version
        self.azure_deployment = settings.azure_openai_deployment
        self.ws: Optional[websockets.ClientConnection] = None
        self._send_lock = asyncio.Lock()

    def is_connected(self) -> bool:
        """Check if the WebSocket connection is established."""
        return self.ws is not None

    def log(self, *args) -> None:
        """Log WebSocket activity with timestamps."""
        logger.debug("[WebSocket/%s] %s", datetime.now().isoformat(), " ".join(str(arg) for arg in args))

    async def connect(self) -> None:
        """
        Establish WebSocket connection to Azure OpenAI Realtime API.

        Raises:
            RemoteSessionError: If already connected or the handshake fails
        """
        if self.is_connected():
            raise RemoteSessionError("Already connected")

        url = f"{self.url}/openai/realtime?api-version={self.api_version}&deployment={self.azure_deployment}&api-key={self.api_key}"
        try:
            self.ws = await websockets.connect(url)
        except (OSError, WebSocketException) as e:
            raise RemoteSessionError(f"Failed to connect to {self.url}: {e}") from e
        logger.info("Connected to %s", self.url)

    async def messages(self) -> AsyncIterator[str]:
        """
        Yield raw server messages as they arrive.

        Stops when the server closes the connection normally.

        Raises:
            RemoteSessionError: If not connected or the connection drops
        """
        ws = self.ws
        if ws is None:
            raise RemoteSessionError("RealtimeAPI is not connected")

        try:
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8")
                yield message
        except ConnectionClosedOK:
            return
        except (OSError, WebSocketException) as e:
            raise RemoteSessionError(f"Realtime event stream failed: {e}") from e

    async def send(self, event_name: str, data: Optional[dict[str, Any]] = None) -> None:
        """
        Send an event to the Azure OpenAI Realtime API.

        Args:
            event_name: The type of event to send
            data: Additional payload data

        Raises:
            RemoteSessionError: If not connected or the send fails
        """
        data = data or {}
        event = {
            "event_id": self._generate_id("evt_"),
            "type": event_name,
            **data
        }

        ws = self.ws
        if ws is None:
            raise RemoteSessionError("RealtimeAPI is not connected")

        self.log("sent:", event_name)
        try:
            async with self._send_lock:
                await ws.send(json.dumps(event))
        except (OSError, WebSocketException) as e:
            raise RemoteSessionError(f"Failed to send {event_name}: {e}") from e

    def _generate_id(self, prefix: str) -> str:
        """Generate a unique ID with the given prefix."""
        return f"{prefix}{uuid.uuid4().hex[:20]}"

    async def disconnect(self) -> None:
        """Close the WebSocket connection gracefully."""
        if self.ws:
            ws, self.ws = self.ws, None
            await ws.close()
            logger.info("Disconnected from %s", self.url)
