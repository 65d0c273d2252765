"""Gapless scheduling of decoded AI audio chunks.

Chunks arrive from the network at irregular intervals. Each one is queued to
start exactly where the previous one ends on the output timeline. When playback
has already caught up (underrun), the cursor jumps to the output clock's current
time instead of stacking a backlog in the past.
"""

from __future__ import annotations

import logging
from typing import Protocol

import numpy as np

from live_interviewer.audio.pcm import OUTPUT_SAMPLE_RATE

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    """Output sink with its own clock (seconds since the sink started)."""

    @property
    def current_time(self) -> float: ...

    def play_at(self, samples: np.ndarray, when: float) -> None: ...


class PlaybackScheduler:
    def __init__(self, output: AudioOutput, sample_rate: int = OUTPUT_SAMPLE_RATE) -> None:
        self._output = output
        self._sample_rate = sample_rate
        self._next_play_time: float = 0.0

    @property
    def next_play_time(self) -> float:
        return self._next_play_time

    def schedule(self, samples: np.ndarray) -> float:
        """Queue one chunk and return the time it is scheduled to start."""
        duration = len(samples) / self._sample_rate
        now = self._output.current_time
        if self._next_play_time < now:
            if self._next_play_time > 0:
                logger.debug(
                    "[AUDIO] playback underrun behind=%.3fs, restarting at output clock",
                    now - self._next_play_time,
                )
            self._next_play_time = now

        start = self._next_play_time
        self._output.play_at(samples, start)
        self._next_play_time += duration
        return start

    def interrupt(self) -> None:
        """Model output was cut off; the next chunk starts at the output clock."""
        self._next_play_time = 0.0

    reset = interrupt
