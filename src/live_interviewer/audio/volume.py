"""Input loudness metering for UI feedback.

`FrequencyAnalyser` keeps the most recent window of microphone samples and
produces a byte-scaled magnitude spectrum (the same scaling a browser analyser
node uses). `VolumeMonitor` polls it on a fixed cadence and publishes the mean
bin value normalized to [0, 1]. Nothing here touches the send path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE = 256
DEFAULT_INTERVAL_S = 0.05
MAX_BYTE_MAGNITUDE = 255.0


class FrequencyAnalyser:
    def __init__(
        self,
        fft_size: int = DEFAULT_FFT_SIZE,
        *,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ) -> None:
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self._fft_size = fft_size
        self._smoothing = smoothing
        self._min_db = min_decibels
        self._max_db = max_decibels

        self._buffer = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)
        n = np.arange(fft_size)
        self._window = (
            0.42
            - 0.5 * np.cos(2 * np.pi * n / fft_size)
            + 0.08 * np.cos(4 * np.pi * n / fft_size)
        )

    @property
    def frequency_bin_count(self) -> int:
        return self._fft_size // 2

    def push(self, samples: np.ndarray) -> None:
        """Append newly captured samples, keeping only the latest window."""
        data = np.asarray(samples, dtype=np.float32).reshape(-1)
        if data.size >= self._fft_size:
            self._buffer[:] = data[-self._fft_size:]
        elif data.size:
            self._buffer = np.roll(self._buffer, -data.size)
            self._buffer[-data.size:] = data

    def byte_frequency_data(self) -> np.ndarray:
        spectrum = np.fft.rfft(self._buffer * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self._fft_size
        self._smoothed = self._smoothing * self._smoothed + (1.0 - self._smoothing) * magnitude

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scaled = (db - self._min_db) * (MAX_BYTE_MAGNITUDE / (self._max_db - self._min_db))
        return np.clip(np.floor(scaled), 0, MAX_BYTE_MAGNITUDE).astype(np.uint8)

    def reset(self) -> None:
        self._buffer.fill(0.0)
        self._smoothed.fill(0.0)


class VolumeMonitor:
    """Samples an analyser every `interval_s` seconds while running."""

    def __init__(
        self,
        analyser: FrequencyAnalyser,
        on_volume: Callable[[float], None],
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
    ) -> None:
        self._analyser = analyser
        self._on_volume = on_volume
        self._interval_s = interval_s
        self._task: asyncio.Task | None = None
        self._volume: float = 0.0

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sample(self) -> float:
        bins = self._analyser.byte_frequency_data()
        level = float(bins.mean()) / MAX_BYTE_MAGNITUDE if bins.size else 0.0
        self._volume = level
        self._on_volume(level)
        return level

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="volume-monitor")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._volume = 0.0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            self.sample()
