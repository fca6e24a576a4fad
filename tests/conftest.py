import asyncio
import base64
import struct

import pytest
from starlette.websockets import WebSocketState

from relay.config import RelaySettings
from relay.realtime.base import RemoteSession


def binary(payload: bytes) -> dict:
    return {"type": "websocket.receive", "bytes": payload}


def text(payload: str) -> dict:
    return {"type": "websocket.receive", "text": payload}


def disconnect(code: int = 1000) -> dict:
    return {"type": "websocket.disconnect", "code": code}


def pcm(*samples: int) -> bytes:
    return struct.pack(f"<{len(samples)}h", *samples)


def decode_pcm(encoded: str) -> tuple:
    raw = base64.b64decode(encoded)
    return struct.unpack(f"<{len(raw) // 2}h", raw)


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket."""

    def __init__(self, messages=()):
        self.incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.incoming.put_nowait(message)
        self.sent: list[str] = []
        self.close_calls: list[int] = []
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.fail_send = False

    async def receive(self) -> dict:
        return await self.incoming.get()

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_calls.append(code)
        self.application_state = WebSocketState.DISCONNECTED


class FakeRemoteSession(RemoteSession):
    """Remote session that replays canned events and records appended audio."""

    def __init__(self, events=(), error=None, block=True, append_error=None, close_error=None):
        self.events = list(events)
        self.error = error
        self.block = block
        self.append_error = append_error
        self.close_error = close_error
        self.appended: list[str] = []
        self.close_calls = 0
        self._appended_changed = asyncio.Event()

    async def append_audio(self, encoded: str) -> None:
        if self.append_error is not None:
            raise self.append_error
        self.appended.append(encoded)
        self._appended_changed.set()

    async def wait_for_appends(self, count: int) -> None:
        while len(self.appended) < count:
            self._appended_changed.clear()
            await self._appended_changed.wait()

    async def watch_events(self, sink) -> None:
        for event in self.events:
            await sink(event)
        if self.error is not None:
            raise self.error
        if self.block:
            await asyncio.Event().wait()

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def settings():
    return RelaySettings(forward_workers=2, forward_queue_size=8)
