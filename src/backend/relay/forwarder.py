"""
Bounded transcode-and-forward pool for device audio.

The inbound pump must never wait on the network, so audio frames are dropped
into a bounded queue and a fixed set of workers transcode them and append
them to the remote session. Frames enter the queue in arrival order; with more
than one worker they may reach the remote session in a different order.
"""

import asyncio
import logging
from typing import Optional

from relay.audio_utils import transcode
from relay.realtime.base import RemoteSession

logger = logging.getLogger(__name__)


class AudioForwarder:
    """
    Worker pool feeding one remote session.

    Attributes:
        dropped (int): Frames discarded because the queue was full.
        forwarded (int): Frames successfully appended to the remote session.
        failed (int): Frames that failed to transcode or forward.
    """

    def __init__(
        self,
        remote: RemoteSession,
        source_rate: int,
        target_rate: int,
        workers: int = 4,
        queue_size: int = 64,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.remote = remote
        self.source_rate = source_rate
        self.target_rate = target_rate
        self.workers = workers
        self.logger = log or logger
        self.dropped = 0
        self.forwarded = 0
        self.failed = 0
        self._queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=queue_size)
        self._tasks: list[asyncio.Task] = []

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"audio-forwarder-{i}")
            for i in range(self.workers)
        ]

    def submit(self, payload: bytes) -> bool:
        """Queue one frame without blocking. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.dropped += 1
            self.logger.warning("Audio forward queue full, dropping frame (%d dropped so far)", self.dropped)
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued frame has been handled."""
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self._forward(payload)
            finally:
                self._queue.task_done()

    async def _forward(self, payload: bytes) -> None:
        try:
            encoded = await asyncio.to_thread(transcode, payload, self.source_rate, self.target_rate)
        except Exception as e:
            self.failed += 1
            self.logger.error("Failed to process audio data: %s", e)
            return
        self.logger.debug("Successfully processed audio data")

        try:
            await self.remote.append_audio(encoded)
        except Exception as e:
            self.failed += 1
            self.logger.error("Failed to append audio to input buffer: %s", e)
            return
        self.forwarded += 1
        self.logger.debug("Successfully appended audio data to input buffer")

    async def close(self) -> None:
        """Stop the workers. Frames still queued are discarded."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
