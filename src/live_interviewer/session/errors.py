"""
Exception taxonomy for the session engine.

Start-time failures (microphone, configuration, transport) abort the whole
start attempt. Decode failures are recovered locally by dropping the offending
chunk or fragment.
"""


class InterviewEngineError(Exception):
    """Base class for all session engine errors."""


class MicrophonePermissionError(InterviewEngineError):
    """Microphone access was refused or no capture device could be opened."""

    DEFAULT_MESSAGE = "Microphone permission denied. Please allow microphone access."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)


class ConfigurationError(InterviewEngineError):
    """A credential or model required by the chosen backend is missing."""


class TransportError(InterviewEngineError):
    """Backend open failure, remote error mid-session or malformed HTTP response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(InterviewEngineError):
    """An inbound audio chunk or streamed JSON fragment could not be decoded."""


class SessionAlreadyActiveError(InterviewEngineError):
    """`start()` was called while a previous session is still active."""


class UnsupportedOperationError(InterviewEngineError):
    """The backend does not support the requested operation (e.g. audio on a text backend)."""
