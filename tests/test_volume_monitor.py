import asyncio

import numpy as np
import pytest

from live_interviewer.audio.volume import FrequencyAnalyser, VolumeMonitor


def test_silence_reads_as_zero_volume():
    levels: list[float] = []
    monitor = VolumeMonitor(FrequencyAnalyser(), levels.append)

    assert monitor.sample() == 0.0
    assert levels == [0.0]


def test_loud_tone_raises_volume():
    analyser = FrequencyAnalyser()
    t = np.arange(4096) / 48000
    analyser.push((0.8 * np.sin(2 * np.pi * 440 * t)).astype(np.float32))
    monitor = VolumeMonitor(analyser, lambda level: None)

    for _ in range(20):
        level = monitor.sample()

    assert 0.0 < level <= 1.0


def test_byte_frequency_data_has_half_fft_bins():
    analyser = FrequencyAnalyser(fft_size=256)
    analyser.push(np.ones(300, dtype=np.float32))

    data = analyser.byte_frequency_data()

    assert data.shape == (128,)
    assert data.dtype == np.uint8


def test_analyser_rejects_non_power_of_two_size():
    with pytest.raises(ValueError):
        FrequencyAnalyser(fft_size=300)


@pytest.mark.asyncio
async def test_monitor_samples_periodically_and_stops_at_zero():
    analyser = FrequencyAnalyser()
    analyser.push(np.full(256, 0.5, dtype=np.float32))
    levels: list[float] = []
    monitor = VolumeMonitor(analyser, levels.append, interval_s=0.01)

    monitor.start()
    assert monitor.running
    await asyncio.sleep(0.06)
    monitor.stop()

    assert len(levels) >= 2
    assert not monitor.running
    assert monitor.volume == 0.0
