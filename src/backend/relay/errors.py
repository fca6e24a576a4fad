"""
Error taxonomy for the audio relay.

Per-frame errors (MalformedAudioError, UnsupportedFrameError) are recovered
where they happen. Transport and remote-session errors end the session.
"""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay failures"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class MalformedAudioError(RelayError):
    """Audio payload could not be parsed as PCM16 (e.g. odd byte length)"""


class UnsupportedFrameError(RelayError):
    """A frame kind other than binary audio reached the inbound pump"""


class TransportReadError(RelayError):
    """Reading from the client connection failed or the peer closed it"""
    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class TransportWriteError(RelayError):
    """Writing to the client connection failed"""


class RemoteSessionError(RelayError):
    """Establishing or talking to the remote realtime session failed"""


class CancellationError(RelayError):
    """The session's governing cancel signal fired"""
    def __init__(self, message: str = "session cancelled"):
        super().__init__(message)
