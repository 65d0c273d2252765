"""
Backend session adapters.

`create_adapter` picks the adapter for a session's provider; the session
controller only ever talks to the `SessionAdapter` interface.
"""

from live_interviewer.adapters.base import AdapterEvent, SessionAdapter
from live_interviewer.adapters.realtime_voice import RealtimeVoiceAdapter
from live_interviewer.adapters.streaming_text import StreamingTextAdapter
from live_interviewer.config import Settings
from live_interviewer.session.schemas import Provider, SessionConfig

ADAPTERS: dict[Provider, type[SessionAdapter]] = {
    Provider.REALTIME_VOICE: RealtimeVoiceAdapter,
    Provider.STREAMING_TEXT: StreamingTextAdapter,
}


def create_adapter(config: SessionConfig, settings: Settings | None = None) -> SessionAdapter:
    """Build and validate the adapter for `config.provider`."""
    adapter = ADAPTERS[config.provider](settings)
    adapter.check_config(config)
    return adapter


__all__ = [
    "ADAPTERS",
    "AdapterEvent",
    "RealtimeVoiceAdapter",
    "SessionAdapter",
    "StreamingTextAdapter",
    "create_adapter",
]
