"""Audio capture + playback (backend-agnostic).

This module is intentionally "dumb hardware I/O": it knows nothing about the
interview, prompts, or backends.

It provides:
- continuous microphone capture, delivering float32 blocks on the event loop
- a speaker sink with its own clock that plays buffers at scheduled times
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np

from live_interviewer.audio.pcm import OUTPUT_SAMPLE_RATE
from live_interviewer.session.errors import MicrophonePermissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureConfig:
    sample_rate: int | None = None  # None -> device default rate
    block_size: int = 4096
    channels: int = 1
    # Voice processing requested from the host audio stack. PortAudio exposes
    # no switches for these; OS-level processing (e.g. PipeWire echo-cancel)
    # applies when configured on the selected device.
    echo_cancellation: bool = True
    auto_gain_control: bool = True
    noise_suppression: bool = True


def _require_sounddevice():
    try:
        import sounddevice as sd  # type: ignore

        return sd
    except Exception as e:  # pragma: no cover
        raise RuntimeError(
            "sounddevice is required for voice sessions. Install Python deps with: pip install -e '.[voice]'. "
            "If you see 'PortAudio library not found', install PortAudio (Debian/Ubuntu: sudo apt-get install portaudio19-dev)."
        ) from e


class MicrophoneCapture:
    """Mono float32 capture; each block is handed to `on_block` on the event loop."""

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self._config = config or CaptureConfig()
        self._stream = None
        self._sample_rate: int = 0

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    async def start(self, on_block: Callable[[np.ndarray], None]) -> None:
        sd = _require_sounddevice()
        loop = asyncio.get_running_loop()

        def callback(indata, frames, time, status):  # noqa: ANN001
            if status:
                logger.debug(f"[AUDIO] input status: {status}")
            block = indata[:, 0].copy()
            try:
                loop.call_soon_threadsafe(on_block, block)
            except RuntimeError:
                # Loop already closed during shutdown.
                pass

        logger.debug(
            "[AUDIO] capture constraints echo_cancellation=%s auto_gain_control=%s noise_suppression=%s",
            self._config.echo_cancellation,
            self._config.auto_gain_control,
            self._config.noise_suppression,
        )

        try:
            stream = sd.InputStream(
                samplerate=self._config.sample_rate,
                channels=self._config.channels,
                dtype="float32",
                blocksize=self._config.block_size,
                callback=callback,
            )
        except sd.PortAudioError as e:
            logger.error(f"[AUDIO] microphone unavailable: {e}")
            raise MicrophonePermissionError() from e

        # Held before starting so stop() can release it even mid-start.
        self._stream = stream
        self._sample_rate = int(stream.samplerate)
        try:
            await asyncio.to_thread(stream.start)
        except sd.PortAudioError as e:
            logger.error(f"[AUDIO] microphone could not start: {e}")
            raise MicrophonePermissionError() from e

        logger.info(f"[AUDIO] microphone capture started rate={self._sample_rate} block={self._config.block_size}")

    async def stop(self) -> None:
        if self._stream is None:
            return

        stream = self._stream
        self._stream = None

        await asyncio.to_thread(stream.stop)
        await asyncio.to_thread(stream.close)
        logger.info("[AUDIO] microphone capture stopped")


class SpeakerOutput:
    """Callback-driven output stream that mixes buffers at scheduled start times.

    `current_time` counts seconds of audio rendered since `start()`.
    """

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE) -> None:
        self._sample_rate = sample_rate
        self._stream = None
        self._lock = threading.Lock()
        self._frames_rendered = 0
        self._pending: list[tuple[int, np.ndarray]] = []

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._sample_rate

    def play_at(self, samples: np.ndarray, when: float) -> None:
        start_frame = int(round(when * self._sample_rate))
        data = np.asarray(samples, dtype=np.float32).reshape(-1)
        with self._lock:
            self._pending.append((start_frame, data))

    def _render(self, outdata: np.ndarray, frames: int) -> None:
        out = outdata[:, 0]
        out.fill(0.0)
        with self._lock:
            window_start = self._frames_rendered
            window_end = window_start + frames
            keep: list[tuple[int, np.ndarray]] = []
            for start, data in self._pending:
                end = start + len(data)
                if end <= window_start:
                    continue
                if start < window_end:
                    lo = max(start, window_start)
                    hi = min(end, window_end)
                    out[lo - window_start:hi - window_start] += data[lo - start:hi - start]
                if end > window_end:
                    keep.append((start, data))
            self._pending = keep
            self._frames_rendered = window_end

    async def start(self) -> None:
        sd = _require_sounddevice()

        def callback(outdata, frames, time, status):  # noqa: ANN001
            if status:
                logger.debug(f"[AUDIO] output status: {status}")
            self._render(outdata, frames)

        stream = sd.OutputStream(
            samplerate=self._sample_rate,
            channels=1,
            dtype="float32",
            callback=callback,
        )
        self._stream = stream
        await asyncio.to_thread(stream.start)
        logger.info(f"[AUDIO] speaker output started rate={self._sample_rate}")

    async def close(self) -> None:
        with self._lock:
            self._pending.clear()
        if self._stream is None:
            return

        stream = self._stream
        self._stream = None
        await asyncio.to_thread(stream.stop)
        await asyncio.to_thread(stream.close)
        logger.info("[AUDIO] speaker output closed")


class AudioCapture(Protocol):
    @property
    def sample_rate(self) -> int: ...

    async def start(self, on_block: Callable[[np.ndarray], None]) -> None: ...

    async def stop(self) -> None: ...


class AudioSink(Protocol):
    @property
    def current_time(self) -> float: ...

    def play_at(self, samples: np.ndarray, when: float) -> None: ...

    async def start(self) -> None: ...

    async def close(self) -> None: ...


class AudioDevices(Protocol):
    def open_microphone(self, config: CaptureConfig) -> AudioCapture: ...

    def open_speaker(self, sample_rate: int) -> AudioSink: ...


class SoundDeviceAudio:
    """Default `AudioDevices` backed by sounddevice/PortAudio."""

    def open_microphone(self, config: CaptureConfig) -> MicrophoneCapture:
        return MicrophoneCapture(config)

    def open_speaker(self, sample_rate: int = OUTPUT_SAMPLE_RATE) -> SpeakerOutput:
        return SpeakerOutput(sample_rate)
