"""
Session supervisor: one RelaySession per accepted device connection.

Keeps the table of live sessions, logs each session's single terminal outcome,
and fans shutdown out to every live session.
"""

import asyncio
import logging
import uuid
from functools import partial
from typing import Optional

from fastapi import WebSocket

from relay.config import RelaySettings
from relay.connection import EXPECTED_CLOSE_CODES, ClientConnection
from relay.errors import RelayError, TransportReadError
from relay.realtime.base import SessionFactory
from relay.realtime.client import AzureRealtimeSession
from relay.session import (
    LoggingObserver,
    RelaySession,
    SessionOutcome,
    SessionResult,
    SessionState,
    SessionStateObserver,
    SessionStateSubject,
)

logger = logging.getLogger(__name__)


def _new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex[:12]}"


class _SessionRegistryObserver(SessionStateObserver):
    """Drops a session from the supervisor's table once it is CLOSED."""

    def __init__(self, sessions: dict[str, RelaySession]) -> None:
        self.sessions = sessions

    def update(self, subject: SessionStateSubject, state: SessionState) -> None:
        if state is SessionState.CLOSED:
            self.sessions.pop(getattr(subject, "session_id", ""), None)


class SessionSupervisor:
    """
    Entry point for device connections.

    Attributes:
        settings (RelaySettings): Relay configuration.
        session_factory (SessionFactory): Creates one remote session per connection.
        sessions (dict[str, RelaySession]): Live sessions by session id.
    """

    def __init__(
        self,
        settings: RelaySettings,
        session_factory: Optional[SessionFactory] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.logger = log or logger
        self.session_factory = session_factory or partial(AzureRealtimeSession.create, settings, log=self.logger)
        self.sessions: dict[str, RelaySession] = {}
        self._registry_observer = _SessionRegistryObserver(self.sessions)
        self._logging_observer = LoggingObserver(self.logger)
        self._shutting_down = False

    @property
    def active_sessions(self) -> int:
        return len(self.sessions)

    async def serve(self, websocket: WebSocket) -> Optional[SessionResult]:
        """
        Relay one accepted WebSocket until its session ends.

        Returns:
            The session's terminal result, or None if the remote session could
            not be created.
        """
        conn = ClientConnection(websocket, logger=self.logger)
        session = RelaySession(
            session_id=_new_session_id(),
            conn=conn,
            session_factory=self.session_factory,
            settings=self.settings,
            log=self.logger,
        )
        session.attach(self._logging_observer)
        session.attach(self._registry_observer)
        self.sessions[session.session_id] = session
        if self._shutting_down:
            session.cancel()

        try:
            result = await session.run()
        except RelayError as e:
            self.logger.error("Client handling error: %s", e)
            return None

        if result.outcome is SessionOutcome.CANCELLED:
            self.logger.info("Session %s cancelled", session.session_id)
        elif isinstance(result.error, TransportReadError) and result.error.code in EXPECTED_CLOSE_CODES:
            self.logger.info("Session %s closed by client (code %s)", session.session_id, result.error.code)
        else:
            self.logger.error("Client handling error (%s): %s", result.outcome.value, result.error)
        return result

    async def shutdown(self) -> None:
        """Cancel every live session and wait for their teardown."""
        self._shutting_down = True
        sessions = list(self.sessions.values())
        for session in sessions:
            session.cancel()
        await asyncio.gather(*(session.close() for session in sessions), return_exceptions=True)
        self.logger.info("Relay supervisor shut down (%d sessions cancelled)", len(sessions))
