"""Streaming text adapter (chat-completions over server-sent events).

Every user turn is its own POST carrying the full instruction, the role-mapped
history and the new text with `stream: true`. The response body is a sequence
of `data: <json>` lines ending with `data: [DONE]`; each payload's
`choices[0].delta.content` is forwarded as a text fragment.

No persistent connection exists between turns and no audio is sent or received.
A turn sent while an earlier reply is still streaming waits for that reply to
finish, so fragments of two replies never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx

from live_interviewer.adapters.base import AdapterEvent, SessionAdapter
from live_interviewer.config import Settings
from live_interviewer.prompts import OPENING_LINE
from live_interviewer.session.errors import (
    ConfigurationError,
    DecodeError,
    TransportError,
    UnsupportedOperationError,
)
from live_interviewer.session.schemas import Message, Role, SessionConfig

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
DONE_SENTINEL = "[DONE]"

_ROLE_MAP = {Role.AI: "assistant", Role.USER: "user"}


def resolve_endpoint(endpoint: str) -> str:
    """Accept either a full chat-completions URL or the API base URL."""
    url = endpoint.strip().rstrip("/")
    if not url.endswith(CHAT_COMPLETIONS_PATH):
        url += CHAT_COMPLETIONS_PATH
    return url


def decode_sse_data(payload: str) -> str | None:
    """Extract the incremental content from one SSE JSON payload.

    Returns None when the chunk carries no content (role-only or finish chunks).

    Raises:
        DecodeError: If the payload is not JSON or lacks the `choices` shape.
    """
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Malformed stream chunk: {e}") from e

    try:
        delta = chunk["choices"][0].get("delta") or {}
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise DecodeError(f"Unexpected stream chunk shape: {payload[:120]}") from e

    content = delta.get("content") if isinstance(delta, dict) else None
    return content or None


async def iter_sse_content(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield content deltas from an event-stream body until `[DONE]`."""
    async for line in lines:
        line = line.strip()
        if not line or line.startswith(":"):
            continue
        if not line.startswith("data:"):
            continue

        data = line[len("data:"):].strip()
        if data == DONE_SENTINEL:
            return

        try:
            content = decode_sse_data(data)
        except DecodeError as e:
            logger.warning(f"[TEXT] dropped stream chunk: {e}")
            continue
        if content:
            yield content


class StreamingTextAdapter(SessionAdapter):
    """Chat-completions backend; each turn is an independent streamed request."""

    requires_microphone = False
    produces_audio = False

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._endpoint = ""
        self._model = ""
        self._api_key = ""
        self._system_instruction = ""
        self._turns: set[asyncio.Task] = set()
        # Turns stream one at a time, in the order they were sent.
        self._turn_lock = asyncio.Lock()
        self._closed = False

    def _credentials(self, config: SessionConfig) -> tuple[str, str]:
        api_key = config.api_key or self._settings.text_api_key
        model = config.model or self._settings.text_model
        return api_key, model

    def check_config(self, config: SessionConfig) -> None:
        api_key, model = self._credentials(config)
        if not api_key:
            raise ConfigurationError("An API key is required for the streaming text provider.")
        if not model:
            raise ConfigurationError("A model name is required for the streaming text provider.")

    async def open(self, config: SessionConfig, system_instruction: str) -> None:
        self.check_config(config)
        self._api_key, self._model = self._credentials(config)
        self._endpoint = resolve_endpoint(config.endpoint or self._settings.text_endpoint)
        self._system_instruction = system_instruction
        self._client = httpx.AsyncClient(
            timeout=self._settings.text_request_timeout_s,
            transport=self._transport,
        )
        self._closed = False
        logger.info(f"[TEXT] ready endpoint={self._endpoint} model={self._model}")
        self._emit(AdapterEvent(opened=True))

    async def greet(self) -> None:
        self._start_turn(self._build_messages(OPENING_LINE, history=(), include_opening=False))

    async def send_audio_frame(self, frame: str) -> None:
        raise UnsupportedOperationError("The streaming text provider does not accept audio")

    async def send_text(self, text: str, history: Sequence[Message] = ()) -> None:
        if self._client is None or self._closed:
            raise TransportError("Streaming text session is not open")
        self._start_turn(self._build_messages(text, history=history))

    async def close(self) -> None:
        self._closed = True
        turns = list(self._turns)
        for task in turns:
            task.cancel()
        if turns:
            await asyncio.gather(*turns, return_exceptions=True)
        self._turns.clear()

        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_messages(
        self,
        text: str,
        *,
        history: Sequence[Message],
        include_opening: bool = True,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self._system_instruction}]
        if include_opening:
            messages.append({"role": "user", "content": OPENING_LINE})
        messages.extend(
            {"role": _ROLE_MAP[m.role], "content": m.content} for m in history if m.content
        )
        messages.append({"role": "user", "content": text})
        return messages

    def _start_turn(self, messages: list[dict[str, str]]) -> None:
        task = asyncio.create_task(self._stream_turn(messages), name="streaming-text-turn")
        self._turns.add(task)
        task.add_done_callback(self._turns.discard)

    async def _stream_turn(self, messages: list[dict[str, str]]) -> None:
        async with self._turn_lock:
            await self._request_turn(messages)

    async def _request_turn(self, messages: list[dict[str, str]]) -> None:
        payload: dict[str, Any] = {"model": self._model, "messages": messages, "stream": True}
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            client = self._client
            if client is None or self._closed:
                raise TransportError("Streaming text session is not open")

            async with client.stream("POST", self._endpoint, headers=headers, json=payload) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TransportError(
                        f"Chat request failed with HTTP {response.status_code}: {body[:200]}",
                        status_code=response.status_code,
                    )

                count = 0
                async for content in iter_sse_content(response.aiter_lines()):
                    count += 1
                    self._emit(AdapterEvent(text_fragment=content))
                logger.debug(f"[TEXT] turn finished fragments={count}")
                self._emit(AdapterEvent(turn_complete=True))
        except TransportError as e:
            logger.error(f"[TEXT] {e}")
            self._emit(AdapterEvent(error=str(e)))
        except httpx.HTTPError as e:
            logger.error(f"[TEXT] request error: {e}")
            self._emit(AdapterEvent(error=f"Chat request failed: {e}"))
        except Exception as e:
            logger.error(f"[TEXT] stream failed: {e}", exc_info=True)
            self._emit(AdapterEvent(error=f"Chat stream failed: {str(e) or e.__class__.__name__}"))
