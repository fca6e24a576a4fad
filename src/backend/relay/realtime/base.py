"""
Remote session interface consumed by the relay.

The relay only needs four things from a conversational backend: a way to open
a session, push audio into it, watch what it sends back, and close it.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable


EventSink = Callable[[str], Awaitable[None]]


class RemoteSession(ABC):
    """Handle to one remote realtime conversation."""

    @abstractmethod
    async def append_audio(self, encoded: str) -> None:
        """Append base64 PCM16 audio to the remote input buffer.

        Raises:
            RemoteSessionError: If the audio could not be sent.
        """

    @abstractmethod
    async def watch_events(self, sink: EventSink) -> None:
        """Push every server event, in order, to ``sink`` until the stream ends.

        Returns normally when the remote side closes the stream cleanly.

        Raises:
            RemoteSessionError: If reading from the remote session fails.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the remote session."""


SessionFactory = Callable[[], Awaitable[RemoteSession]]
