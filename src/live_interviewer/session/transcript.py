"""
Transcript accumulation.

AI replies arrive as many small fragments; fragments belonging to the same
turn are merged into one growing message, tracked by the id of the message
currently being streamed. A user message or an interruption closes the
current AI turn so the next fragment opens a new message.
"""

import logging
from typing import Callable

from live_interviewer.session.schemas import Message, Role

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """
    Ordered list of transcript messages for one session.

    All mutation goes through this class; callers read snapshots via
    `messages`.
    """

    def __init__(self, on_change: Callable[[], None] | None = None) -> None:
        """
        Initialize an empty transcript.

        Args:
            on_change: Optional callback invoked after every mutation.
        """
        self._messages: list[Message] = []
        self._streaming_id: str | None = None
        self._on_change = on_change

    @property
    def messages(self) -> list[Message]:
        """Get a snapshot of the transcript in insertion order."""
        return list(self._messages)

    @property
    def streaming_message_id(self) -> str | None:
        """Get the id of the AI message currently receiving fragments."""
        return self._streaming_id

    def append_ai_fragment(self, text: str) -> Message | None:
        """
        Add a fragment of AI output.

        Extends the last message when it is the AI turn being streamed,
        otherwise starts a new AI message.

        Args:
            text: Incremental text from the backend.

        Returns:
            The message that received the fragment, or None for empty text.
        """
        if not text:
            return None

        last = self._messages[-1] if self._messages else None
        if (
            last is not None
            and last.role == Role.AI
            and self._streaming_id is not None
            and last.id == self._streaming_id
        ):
            last.content += text
            message = last
        else:
            message = Message(role=Role.AI, content=text)
            self._streaming_id = message.id
            self._messages.append(message)
            logger.debug(f"[SESSION] new AI message id={message.id}")

        self._notify()
        return message

    def append_user_message(self, text: str) -> Message:
        """
        Add a complete user message and close any in-progress AI turn.

        Args:
            text: What the user said or typed.

        Returns:
            The newly created message.
        """
        message = Message(role=Role.USER, content=text)
        self._messages.append(message)
        self._streaming_id = None
        self._notify()
        return message

    def interrupt(self) -> None:
        """Close the current AI turn without touching transcript content."""
        self._streaming_id = None

    def clear(self) -> None:
        """Drop all messages (a new session starts with an empty transcript)."""
        self._messages = []
        self._streaming_id = None
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
