"""
Backend session adapter abstraction.

Both backend styles (a bidirectional realtime voice session and a per-turn
streaming text endpoint) sit behind `SessionAdapter`, so the session
controller never branches on which provider it is talking to.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from live_interviewer.config import Settings, get_settings
from live_interviewer.session.schemas import Message, SessionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterEvent:
    """
    One inbound event from a backend.

    Exactly the fields that apply are set; an event may carry several (for
    example a voice message with both audio and transcript text).
    """

    opened: bool = False
    audio_chunk: str | bytes | None = None
    text_fragment: str | None = None
    user_transcript: str | None = None
    interrupted: bool = False
    turn_complete: bool = False
    error: str | None = None
    closed: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.closed or self.error is not None


class SessionAdapter(ABC):
    """Abstract base class for backend session adapters."""

    # Whether the controller must capture the microphone for this backend.
    requires_microphone: bool = False
    # Whether inbound events may carry audio to play back.
    produces_audio: bool = False

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._events: asyncio.Queue[AdapterEvent] = asyncio.Queue()
        self._finished = False

    @abstractmethod
    def check_config(self, config: SessionConfig) -> None:
        """
        Validate the session configuration before any resource is acquired.

        Args:
            config: Caller-supplied session configuration.

        Raises:
            ConfigurationError: If a required credential or model is missing.
        """
        ...

    @abstractmethod
    async def open(self, config: SessionConfig, system_instruction: str) -> None:
        """
        Open the backend session.

        Queues an `opened` event once the backend is ready.

        Args:
            config: Session configuration.
            system_instruction: Instruction describing the interviewer.

        Raises:
            TransportError: If the backend could not be reached.
        """
        ...

    @abstractmethod
    async def greet(self) -> None:
        """Send the scripted opening line so the AI speaks first."""
        ...

    @abstractmethod
    async def send_audio_frame(self, frame: str) -> None:
        """
        Send one encoded microphone frame.

        Args:
            frame: Base64 PCM16 mono audio at 16 kHz.
        """
        ...

    @abstractmethod
    async def send_text(self, text: str, history: Sequence[Message] = ()) -> None:
        """
        Send a user text turn.

        Args:
            text: The user's text.
            history: Transcript before this turn.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the backend session. Safe to call more than once."""
        ...

    async def events(self) -> AsyncIterator[AdapterEvent]:
        """
        Iterate inbound events in arrival order.

        Iteration ends after a `closed` or `error` event.
        """
        while True:
            event = await self._events.get()
            yield event
            if event.is_terminal:
                return

    def _emit(self, event: AdapterEvent) -> None:
        if self._finished:
            return
        if event.is_terminal:
            self._finished = True
        self._events.put_nowait(event)
