"""
Module for relay session lifecycle using the Observer pattern.

This module defines SessionStateSubject, which publishes session state changes
to subscribed observers, the abstract SessionStateObserver, and RelaySession,
which owns one client connection and one remote session and tears both down
exactly once when the first terminal event fires.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from relay.config import RelaySettings
from relay.connection import ClientConnection
from relay.errors import CancellationError, RemoteSessionError
from relay.forwarder import AudioForwarder
from relay.pumps import InboundPump, OutboundWatcher
from relay.realtime.base import RemoteSession, SessionFactory

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionOutcome(str, Enum):
    CANCELLED = "cancelled"
    INBOUND_FAILURE = "inbound_failure"
    OUTBOUND_FAILURE = "outbound_failure"


@dataclass(frozen=True)
class SessionResult:
    """The single terminal outcome of a relay session."""
    outcome: SessionOutcome
    error: BaseException


class SessionStateSubject:
    """
    Subject for managing session state and notifying observers.

    Attributes:
        _observers (List[SessionStateObserver]): List of observers subscribed to state changes.
        _state (SessionState): The current session state.
    """

    def __init__(self) -> None:
        self._observers: List[SessionStateObserver] = []
        self._state: SessionState = SessionState.INITIALIZING

    @property
    def state(self) -> SessionState:
        return self._state

    def attach(self, observer: "SessionStateObserver") -> None:
        """
        Attach an observer to be notified of state changes.

        Args:
            observer (SessionStateObserver): The observer to attach.
        """
        self._observers.append(observer)

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer.update(self, self._state)

    def set_state(self, state: SessionState) -> None:
        """
        Set a new session state and notify all attached observers.

        Args:
            state (SessionState): The new session state.
        """
        self._state = state
        self._notify()


class SessionStateObserver(ABC):
    """
    Abstract base class for observers that subscribe to session state changes.
    """

    @abstractmethod
    def update(self, subject: SessionStateSubject, state: SessionState) -> None:
        """
        Receive an update when the session state changes.

        Args:
            subject (SessionStateSubject): The session whose state changed.
            state (SessionState): The new session state.
        """
        pass


class LoggingObserver(SessionStateObserver):
    """Logs every state transition."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.logger = log or logger

    def update(self, subject: SessionStateSubject, state: SessionState) -> None:
        self.logger.info("Session %s is now %s", getattr(subject, "session_id", "?"), state.value)


class RelaySession(SessionStateSubject):
    """
    One client lifetime: INITIALIZING -> ACTIVE -> CLOSING -> CLOSED.

    Attributes:
        session_id (str): Identifier used in logs and by the supervisor.
        conn (ClientConnection): The device connection, owned by this session.
        remote (Optional[RemoteSession]): The remote session once created.
        result (Optional[SessionResult]): The first terminal outcome.
    """

    def __init__(
        self,
        session_id: str,
        conn: ClientConnection,
        session_factory: SessionFactory,
        settings: RelaySettings,
        log: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.session_id = session_id
        self.conn = conn
        self.session_factory = session_factory
        self.settings = settings
        self.logger = log or logger
        self.remote: Optional[RemoteSession] = None
        self.forwarder: Optional[AudioForwarder] = None
        self.result: Optional[SessionResult] = None
        self._cancelled = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._closing = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Fire the session's cancel signal. The running session tears itself down."""
        self._cancelled.set()

    async def run(self) -> SessionResult:
        """
        Create the remote session, run both pumps, and tear down on the first outcome.

        Returns:
            SessionResult: Why the session ended.

        Raises:
            RemoteSessionError: If the remote session could not be created.
        """
        self.set_state(SessionState.INITIALIZING)
        try:
            remote = await self.session_factory()
        except Exception as e:
            await self.close()
            if isinstance(e, RemoteSessionError):
                raise
            raise RemoteSessionError(f"failed to create chat client: {e}") from e
        except asyncio.CancelledError:
            await self.close()
            raise

        # torn down while the remote session was being created
        if self._closing:
            await self._release_remote(remote)
            self.result = SessionResult(SessionOutcome.CANCELLED, CancellationError())
            return self.result
        self.remote = remote

        self.forwarder = AudioForwarder(
            self.remote,
            source_rate=self.settings.source_sample_rate,
            target_rate=self.settings.target_sample_rate,
            workers=self.settings.forward_workers,
            queue_size=self.settings.forward_queue_size,
            log=self.logger,
        )
        inbound = InboundPump(self.conn, self.forwarder, self._cancelled, log=self.logger)
        outbound = OutboundWatcher(self.remote, self.conn, log=self.logger)

        self.forwarder.start()
        inbound_task = asyncio.create_task(inbound.run(), name=f"{self.session_id}-inbound")
        outbound_task = asyncio.create_task(outbound.run(), name=f"{self.session_id}-outbound")
        cancel_task = asyncio.create_task(self._cancelled.wait(), name=f"{self.session_id}-cancel")
        self._tasks = [inbound_task, outbound_task, cancel_task]
        self.set_state(SessionState.ACTIVE)

        try:
            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            self.result = self._first_outcome(done, inbound_task, outbound_task)
        finally:
            await self.close()
        return self.result

    def _first_outcome(self, done, inbound_task: asyncio.Task, outbound_task: asyncio.Task) -> SessionResult:
        if self._cancelled.is_set():
            return SessionResult(SessionOutcome.CANCELLED, CancellationError())
        if inbound_task in done:
            error = self._task_error(inbound_task, "client message handling error")
            if isinstance(error, CancellationError):
                return SessionResult(SessionOutcome.CANCELLED, error)
            return SessionResult(SessionOutcome.INBOUND_FAILURE, error)
        return SessionResult(
            SessionOutcome.OUTBOUND_FAILURE,
            self._task_error(outbound_task, "chat server event error"),
        )

    @staticmethod
    def _task_error(task: asyncio.Task, context: str) -> BaseException:
        if task.cancelled():
            return CancellationError(f"{context}: worker cancelled")
        error = task.exception()
        if error is None:
            return RemoteSessionError(f"{context}: worker exited")
        return error

    async def close(self) -> None:
        """
        Tear the session down: stop workers, close the client, then the remote session.

        Only the first call does anything. Errors while releasing are logged.
        """
        if self._closing:
            return
        self._closing = True
        self._cancelled.set()
        # a session that never became active goes straight to CLOSED
        if self.state is not SessionState.INITIALIZING:
            self.set_state(SessionState.CLOSING)

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self.forwarder is not None:
            await self.forwarder.close()

        try:
            await self.conn.close()
        except Exception as e:
            self.logger.error("Failed to close client connection: %s", e)

        if self.remote is not None:
            await self._release_remote(self.remote)

        self.set_state(SessionState.CLOSED)

    async def _release_remote(self, remote: RemoteSession) -> None:
        try:
            await remote.close()
        except Exception as e:
            self.logger.error("Failed to close chat client: %s", e)
