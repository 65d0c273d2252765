"""
Session engine: transcript state, data model and error taxonomy.

The controller lives in `live_interviewer.session.controller`.
"""

from live_interviewer.session.errors import (
    ConfigurationError,
    DecodeError,
    InterviewEngineError,
    MicrophonePermissionError,
    SessionAlreadyActiveError,
    TransportError,
    UnsupportedOperationError,
)
from live_interviewer.session.schemas import (
    ConnectionState,
    ContextSource,
    FileContext,
    FolderContext,
    InterviewMode,
    Message,
    NoContext,
    OutputMode,
    Provider,
    Role,
    SessionConfig,
    UrlContext,
)
from live_interviewer.session.transcript import TranscriptAccumulator

__all__ = [
    "ConfigurationError",
    "ConnectionState",
    "ContextSource",
    "DecodeError",
    "FileContext",
    "FolderContext",
    "InterviewEngineError",
    "InterviewMode",
    "Message",
    "MicrophonePermissionError",
    "NoContext",
    "OutputMode",
    "Provider",
    "Role",
    "SessionAlreadyActiveError",
    "SessionConfig",
    "TranscriptAccumulator",
    "TransportError",
    "UnsupportedOperationError",
    "UrlContext",
]
