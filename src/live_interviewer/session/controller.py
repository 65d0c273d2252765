"""Session controller (glue layer).

This module orchestrates:
mic -> resample -> encode -> adapter          (outbound)
adapter -> decode -> playback scheduler       (inbound audio)
adapter -> transcript accumulator             (inbound text)

It owns every native resource of the active session and is the only mutator
of the state the UI observes (connection state, transcript, volume, error).
Everything runs on one asyncio event loop; microphone blocks are handed over
from the audio thread with `call_soon_threadsafe`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import numpy as np

from live_interviewer.adapters import create_adapter
from live_interviewer.adapters.base import AdapterEvent, SessionAdapter
from live_interviewer.audio import pcm
from live_interviewer.audio.audio_io import (
    AudioCapture,
    AudioDevices,
    AudioSink,
    CaptureConfig,
    SoundDeviceAudio,
)
from live_interviewer.audio.playback import PlaybackScheduler
from live_interviewer.audio.resampler import resample
from live_interviewer.audio.volume import FrequencyAnalyser, VolumeMonitor
from live_interviewer.config import Settings, get_settings
from live_interviewer.prompts import build_system_instruction
from live_interviewer.session.errors import (
    DecodeError,
    InterviewEngineError,
    SessionAlreadyActiveError,
    TransportError,
)
from live_interviewer.session.schemas import (
    ConnectionState,
    ContextSource,
    Message,
    NoContext,
    OutputMode,
    SessionConfig,
)
from live_interviewer.session.transcript import TranscriptAccumulator

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[SessionConfig, Settings], SessionAdapter]
Listener = Callable[["SessionController"], None]


class SessionController:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        audio: AudioDevices | None = None,
        adapter_factory: AdapterFactory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._audio = audio or SoundDeviceAudio()
        self._adapter_factory = adapter_factory or create_adapter

        self._listeners: list[Listener] = []
        self._transcript = TranscriptAccumulator(on_change=self._notify)
        self._state = ConnectionState.DISCONNECTED
        self._error: str | None = None
        self._volume: float = 0.0
        self._is_listening = False
        self._active = False

        # Per-session resources, created in start() and released in stop().
        self._config: SessionConfig | None = None
        self._adapter: SessionAdapter | None = None
        self._microphone: AudioCapture | None = None
        self._speaker: AudioSink | None = None
        self._scheduler: PlaybackScheduler | None = None
        self._analyser: FrequencyAnalyser | None = None
        self._volume_monitor: VolumeMonitor | None = None
        self._outbound: asyncio.Queue[str] | None = None
        self._pump_task: asyncio.Task | None = None
        self._sender_task: asyncio.Task | None = None
        self._start_task: asyncio.Task | None = None
        self._stop_requested = False

    # -- observable state ---------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def messages(self) -> list[Message]:
        return self._transcript.messages

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_listening(self) -> bool:
        return self._is_listening

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked after every observable change."""
        self._listeners.append(listener)

    # -- lifecycle ----------------------------------------------------------

    async def start(self, config: SessionConfig, context: ContextSource | None = None) -> None:
        """Start a session.

        Failures do not raise; they are reported through `error` and
        `connection_state` after the same teardown `stop()` performs.

        Raises:
            SessionAlreadyActiveError: If a session is already active.
        """
        if self._active:
            raise SessionAlreadyActiveError("A session is already active; call stop() first.")

        self._active = True
        self._stop_requested = False
        self._start_task = asyncio.current_task()
        self._config = config
        self._set_error(None)
        self._transcript.clear()
        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            f"[SESSION] starting provider={config.provider.value} mode={config.interview_mode.value} "
            f"output={config.output_mode.value}"
        )

        try:
            adapter = self._adapter_factory(config, self._settings)
            self._adapter = adapter
            instruction = build_system_instruction(config.interview_mode, context or NoContext())

            if adapter.requires_microphone:
                await self._start_microphone()

            if config.output_mode == OutputMode.VOICE:
                if adapter.produces_audio:
                    await self._start_speaker()
                else:
                    logger.warning("[SESSION] voice output requested but this provider only streams text")

            timeout = self._settings.connect_timeout_s
            try:
                await asyncio.wait_for(adapter.open(config, instruction), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise TransportError(f"Timed out connecting to the backend after {timeout:g}s") from e

            self._pump_task = asyncio.create_task(self._pump_events(adapter), name="session-events")
            if adapter.requires_microphone:
                self._start_sender(adapter)

            await adapter.greet()
        except asyncio.CancelledError:
            if self._stop_requested:
                logger.info("[SESSION] start cancelled by stop()")
                return
            raise
        except InterviewEngineError as e:
            await self._fail(e)
        except Exception as e:
            logger.error(f"[SESSION] failed to start: {e}", exc_info=True)
            await self._fail(e)
        finally:
            if self._start_task is asyncio.current_task():
                self._start_task = None

    async def stop(self) -> None:
        """Stop the session and release every resource. Safe from any state."""
        start_task = self._start_task
        if start_task is not None and start_task is not asyncio.current_task() and not start_task.done():
            self._stop_requested = True
            start_task.cancel()
            try:
                await start_task
            except asyncio.CancelledError:
                pass

        self._is_listening = False
        if self._state != ConnectionState.ERROR:
            self._set_state(ConnectionState.DISCONNECTED)
        await self._release()

    async def send_text_message(self, text: str) -> None:
        """Append a user message now and hand the turn to the backend."""
        text = (text or "").strip()
        if not text:
            return

        adapter = self._adapter
        if adapter is None or not self._is_listening:
            logger.warning("[SESSION] ignoring text message: no session is listening")
            return

        history = self._transcript.messages
        self._transcript.append_user_message(text)
        try:
            await adapter.send_text(text, history=history)
        except TransportError as e:
            await self._fail(e)

    # -- start helpers ------------------------------------------------------

    async def _start_microphone(self) -> None:
        capture_config = CaptureConfig(block_size=self._settings.capture_block_size)
        microphone = self._audio.open_microphone(capture_config)
        self._microphone = microphone
        await microphone.start(self._on_input_block)

        self._analyser = FrequencyAnalyser()
        self._volume_monitor = VolumeMonitor(self._analyser, self._set_volume)
        self._volume_monitor.start()

    async def _start_speaker(self) -> None:
        speaker = self._audio.open_speaker(pcm.OUTPUT_SAMPLE_RATE)
        self._speaker = speaker
        await speaker.start()
        self._scheduler = PlaybackScheduler(speaker, sample_rate=pcm.OUTPUT_SAMPLE_RATE)

    def _start_sender(self, adapter: SessionAdapter) -> None:
        self._outbound = asyncio.Queue()
        self._sender_task = asyncio.create_task(
            self._send_audio_loop(adapter, self._outbound), name="session-audio-sender"
        )

    # -- outbound audio -----------------------------------------------------

    def _on_input_block(self, block: np.ndarray) -> None:
        if self._analyser is not None:
            self._analyser.push(block)

        outbound = self._outbound
        microphone = self._microphone
        if outbound is None or microphone is None:
            return

        frame = pcm.encode(resample(block, microphone.sample_rate, pcm.INPUT_SAMPLE_RATE))
        outbound.put_nowait(frame)

    async def _send_audio_loop(self, adapter: SessionAdapter, outbound: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbound.get()
            try:
                await adapter.send_audio_frame(frame)
            except TransportError as e:
                await self._fail(e)
                return

    # -- inbound events -----------------------------------------------------

    async def _pump_events(self, adapter: SessionAdapter) -> None:
        async for event in adapter.events():
            await self._dispatch(event)

    async def _dispatch(self, event: AdapterEvent) -> None:
        if event.opened:
            logger.info("[SESSION] backend connected")
            self._is_listening = True
            self._set_state(ConnectionState.CONNECTED)

        if event.audio_chunk is not None:
            self._play_chunk(event.audio_chunk)

        if event.user_transcript:
            self._transcript.append_user_message(event.user_transcript)

        if event.text_fragment:
            self._transcript.append_ai_fragment(event.text_fragment)

        if event.interrupted:
            logger.debug("[SESSION] model output interrupted")
            if self._scheduler is not None:
                self._scheduler.interrupt()
            self._transcript.interrupt()

        if event.turn_complete:
            # The next reply opens a new AI message.
            self._transcript.interrupt()

        if event.error is not None:
            await self._fail(TransportError(event.error))
        elif event.closed:
            logger.info("[SESSION] backend closed the session")
            await self.stop()

    def _play_chunk(self, chunk: str | bytes) -> None:
        if self._scheduler is None:
            return
        try:
            samples = pcm.decode(chunk)
        except DecodeError as e:
            logger.warning(f"[AUDIO] dropped audio chunk: {e}")
            return
        try:
            self._scheduler.schedule(samples)
        except Exception as e:
            logger.warning(f"[AUDIO] failed to schedule audio chunk: {e}")

    # -- teardown -----------------------------------------------------------

    async def _fail(self, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        logger.error(f"[SESSION] {message}")
        self._set_error(message)
        self._set_state(ConnectionState.ERROR)
        await self.stop()

    async def _release(self) -> None:
        if self._volume_monitor is not None:
            self._volume_monitor.stop()
            self._volume_monitor = None
        self._analyser = None
        self._outbound = None

        await self._cancel_task(self._sender_task)
        self._sender_task = None
        await self._cancel_task(self._pump_task)
        self._pump_task = None

        microphone, self._microphone = self._microphone, None
        if microphone is not None:
            await self._release_one("microphone", microphone.stop())

        speaker, self._speaker = self._speaker, None
        if speaker is not None:
            await self._release_one("speaker", speaker.close())

        adapter, self._adapter = self._adapter, None
        if adapter is not None:
            await self._release_one("backend session", adapter.close())

        if self._scheduler is not None:
            self._scheduler.reset()
            self._scheduler = None
        self._transcript.interrupt()

        self._set_volume(0.0)
        self._active = False

    @staticmethod
    async def _cancel_task(task: asyncio.Task | None) -> None:
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @staticmethod
    async def _release_one(what: str, closing: Awaitable[None]) -> None:
        try:
            await closing
        except Exception as e:
            logger.warning(f"[SESSION] error releasing {what}: {e}")

    # -- state setters ------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug(f"[SESSION] state {self._state.value} -> {state.value}")
            self._state = state
            self._notify()

    def _set_error(self, message: str | None) -> None:
        self._error = message
        self._notify()

    def _set_volume(self, level: float) -> None:
        self._volume = level
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("[SESSION] listener failed")
