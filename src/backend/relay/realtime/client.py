"""
High-level Azure OpenAI Realtime session used as the relay's remote end.

Opens the connection, configures the session for PCM16 voice input with
server-side VAD, forwards device audio and streams every server event back.
"""

import json
import logging
from typing import Any, Optional

from relay.config import RelaySettings
from relay.errors import RemoteSessionError
from relay.realtime.api import RealtimeAPI
from relay.realtime.base import EventSink, RemoteSession

logger = logging.getLogger(__name__)


class AzureRealtimeSession(RemoteSession):
    """
    Remote session backed by the Azure OpenAI Realtime API.

    Use ``await AzureRealtimeSession.create(settings)`` to get a connected,
    configured session.
    """

    def __init__(self, settings: RelaySettings, log: Optional[logging.Logger] = None) -> None:
        self.settings = settings
        self.logger = log or logger
        self.realtime = RealtimeAPI(settings)
        self.session_config: dict[str, Any] = {
            "modalities": ["text", "audio"],
            "instructions": settings.instructions,
            "voice": settings.voice,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": "whisper-1"},
            "turn_detection": {"type": "server_vad"},
        }

    @classmethod
    async def create(cls, settings: RelaySettings, log: Optional[logging.Logger] = None) -> "AzureRealtimeSession":
        """
        Connect to Azure OpenAI and send the initial ``session.update``.

        Raises:
            RemoteSessionError: If configuration is missing or the connection fails
        """
        missing = settings.missing_azure_settings()
        if missing:
            raise RemoteSessionError(f"Azure OpenAI client missing configuration: {', '.join(missing)}")

        session = cls(settings, log=log)
        await session.realtime.connect()
        try:
            await session.update_session()
        except RemoteSessionError:
            await session.close()
            raise
        return session

    async def update_session(self, **kwargs) -> None:
        """Send the session configuration, merged with any overrides."""
        self.session_config.update(kwargs)
        await self.realtime.send("session.update", {"session": self.session_config})

    async def append_audio(self, encoded: str) -> None:
        if not encoded:
            return
        await self.realtime.send("input_audio_buffer.append", {"audio": encoded})

    async def watch_events(self, sink: EventSink) -> None:
        async for message in self.realtime.messages():
            try:
                event_type = json.loads(message).get("type")
            except (ValueError, AttributeError):
                event_type = None
            if event_type == "error":
                self.logger.error("Realtime server error event: %s", message)
            else:
                self.logger.debug("Realtime server event: %s", event_type)
            await sink(message)

    async def close(self) -> None:
        await self.realtime.disconnect()
