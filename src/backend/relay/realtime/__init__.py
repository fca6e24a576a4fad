"""
Azure Realtime remote session
=============================

Components for talking to the Azure OpenAI Realtime API:
- WebSocket communication (RealtimeAPI)
- The session handle used by the relay (AzureRealtimeSession)
- The abstract RemoteSession interface the relay is written against
"""

from .base import EventSink, RemoteSession, SessionFactory
from .api import RealtimeAPI
from .client import AzureRealtimeSession

__all__ = [
    "EventSink",
    "RemoteSession",
    "SessionFactory",
    "RealtimeAPI",
    "AzureRealtimeSession",
]
