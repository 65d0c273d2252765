"""Realtime voice adapter (Gemini Live).

One long-lived bidirectional session per interview. Microphone frames go out
as realtime PCM input as soon as they are encoded; the inbound stream
multiplexes audio, transcripts and interruption signals, which are split into
`AdapterEvent`s here.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Sequence
from typing import Any, Callable

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from live_interviewer.adapters.base import AdapterEvent, SessionAdapter
from live_interviewer.audio.pcm import INPUT_MIME_TYPE
from live_interviewer.config import Settings
from live_interviewer.prompts import OPENING_LINE
from live_interviewer.session.errors import ConfigurationError, TransportError
from live_interviewer.session.schemas import Message, SessionConfig

logger = logging.getLogger(__name__)


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


class RealtimeVoiceAdapter(SessionAdapter):
    """Bidirectional low-latency voice session."""

    requires_microphone = True
    produces_audio = True

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        super().__init__(settings)
        self._client_factory = client_factory or _default_client_factory
        self._session_context = None
        self._session = None
        self._receive_task: asyncio.Task | None = None
        self._closing = False
        self._input_transcript_buffer = ""
        self._audio_send_count = 0

    def _api_key(self, config: SessionConfig) -> str:
        return config.api_key or self._settings.gemini_api_key

    def check_config(self, config: SessionConfig) -> None:
        if not self._api_key(config):
            raise ConfigurationError(
                "An API key is required for the realtime voice provider (set GEMINI_API_KEY or pass one)."
            )

    def build_connect_config(self, system_instruction: str) -> types.LiveConnectConfig:
        kwargs: dict[str, Any] = {}
        if self._settings.live_output_transcription:
            kwargs["output_audio_transcription"] = types.AudioTranscriptionConfig()

        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self._settings.live_voice)
                )
            ),
            input_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=types.Content(parts=[types.Part(text=system_instruction)]),
            **kwargs,
        )

    async def open(self, config: SessionConfig, system_instruction: str) -> None:
        self.check_config(config)
        model = config.model or self._settings.live_model
        client = self._client_factory(self._api_key(config))

        self._closing = False
        self._input_transcript_buffer = ""
        self._session_context = client.aio.live.connect(
            model=model,
            config=self.build_connect_config(system_instruction),
        )
        try:
            self._session = await self._session_context.__aenter__()
        except Exception as e:
            self._session_context = None
            logger.error(f"[VOICE] connect failed model={model}: {e}")
            raise TransportError(f"Could not connect to the voice backend: {e}") from e

        logger.info(f"[VOICE] session connected model={model} voice={self._settings.live_voice}")
        self._emit(AdapterEvent(opened=True))
        self._receive_task = asyncio.create_task(self._receive_loop(), name="voice-receive")

    async def greet(self) -> None:
        await self._send("opening line", self._require_session().send_realtime_input(text=OPENING_LINE))

    async def send_audio_frame(self, frame: str) -> None:
        blob = types.Blob(data=base64.b64decode(frame), mime_type=INPUT_MIME_TYPE)
        await self._send("audio", self._require_session().send_realtime_input(media=blob))
        self._audio_send_count += 1
        if self._audio_send_count % 50 == 0:
            logger.debug(f"[VOICE] sent audio frames={self._audio_send_count}")

    async def send_text(self, text: str, history: Sequence[Message] = ()) -> None:
        # The live session keeps its own context; history is not resent.
        turn = types.Content(role="user", parts=[types.Part(text=text)])
        await self._send("text", self._require_session().send_client_content(turns=turn, turn_complete=True))

    async def close(self) -> None:
        self._closing = True

        if self._receive_task is not None:
            task = self._receive_task
            self._receive_task = None
            if task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._session_context is not None:
            context = self._session_context
            self._session_context = None
            self._session = None
            try:
                await context.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"[VOICE] error while closing session: {e}")
            logger.info("[VOICE] session closed")

    def _require_session(self) -> Any:
        if self._session is None or self._closing:
            raise TransportError("Voice session is not open")
        return self._session

    async def _send(self, what: str, call) -> None:
        try:
            await call
        except Exception as e:
            raise TransportError(f"Failed to send {what} to the voice backend: {e}") from e

    async def _receive_loop(self) -> None:
        try:
            while not self._closing:
                received = 0
                async for message in self._session.receive():
                    received += 1
                    for event in self.demux(message):
                        self._emit(event)
                if received == 0:
                    break
            if not self._closing:
                logger.info("[VOICE] remote closed the session")
                self._emit(AdapterEvent(closed=True))
        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK:
            if not self._closing:
                logger.info("[VOICE] remote closed the session")
                self._emit(AdapterEvent(closed=True))
        except Exception as e:
            if not self._closing:
                logger.error(f"[VOICE] receive error: {e}")
                self._emit(AdapterEvent(error=str(e) or "Connection error occurred."))

    def demux(self, message: Any) -> list[AdapterEvent]:
        """Split one server message into adapter events, in playback order."""
        server_content = getattr(message, "server_content", None)
        if server_content is None:
            return []

        events: list[AdapterEvent] = []

        input_transcription = getattr(server_content, "input_transcription", None)
        if input_transcription is not None and getattr(input_transcription, "text", None):
            self._input_transcript_buffer += input_transcription.text

        ai_events: list[AdapterEvent] = []
        model_turn = getattr(server_content, "model_turn", None)
        for part in (getattr(model_turn, "parts", None) or []):
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and inline_data.data:
                ai_events.append(AdapterEvent(audio_chunk=inline_data.data))
            if getattr(part, "text", None) and not getattr(part, "thought", False):
                ai_events.append(AdapterEvent(text_fragment=part.text))

        output_transcription = getattr(server_content, "output_transcription", None)
        if output_transcription is not None and getattr(output_transcription, "text", None):
            ai_events.append(AdapterEvent(text_fragment=output_transcription.text))

        turn_complete = bool(getattr(server_content, "turn_complete", False))
        if ai_events or turn_complete:
            events.extend(self._flush_user_transcript())
        events.extend(ai_events)

        if getattr(server_content, "interrupted", False):
            events.append(AdapterEvent(interrupted=True))
        if turn_complete:
            events.append(AdapterEvent(turn_complete=True))
        return events

    def _flush_user_transcript(self) -> list[AdapterEvent]:
        text = self._input_transcript_buffer.strip()
        self._input_transcript_buffer = ""
        return [AdapterEvent(user_transcript=text)] if text else []
