"""Audio signal path.

mic -> resample -> PCM16 encode -> backend
backend -> PCM16 decode -> playback scheduler -> speaker

`audio_io` is the only module that touches sounddevice; it imports it lazily.
"""

from live_interviewer.audio.pcm import INPUT_SAMPLE_RATE, OUTPUT_SAMPLE_RATE, decode, encode
from live_interviewer.audio.playback import PlaybackScheduler
from live_interviewer.audio.resampler import resample
from live_interviewer.audio.volume import FrequencyAnalyser, VolumeMonitor

__all__ = [
    "INPUT_SAMPLE_RATE",
    "OUTPUT_SAMPLE_RATE",
    "FrequencyAnalyser",
    "PlaybackScheduler",
    "VolumeMonitor",
    "decode",
    "encode",
    "resample",
]
