"""16-bit PCM conversion for the voice wire format.

Outbound audio is float32 in [-1, 1], quantized to little-endian int16 and
carried as standard base64 text. Negative samples scale by 32768 and positive
ones by 32767; the voice backend expects exactly this quantization, so it must
not be made symmetric.

Inbound audio is decoded with a single ``/ 32768`` scale and is never clamped.
"""

from __future__ import annotations

import base64
import binascii

import numpy as np

from live_interviewer.session.errors import DecodeError

# Outbound capture rate and inbound playback rate are fixed by the voice protocol.
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

_PCM16_LE = np.dtype("<i2")


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and quantize to int16 (truncating toward zero). NaN encodes as 0."""
    s = np.nan_to_num(np.asarray(samples, dtype=np.float32), nan=0.0)
    s = np.clip(s, -1.0, 1.0)
    scaled = np.where(s < 0, s * 32768.0, s * 32767.0)
    return scaled.astype(_PCM16_LE)


def pcm16_to_float(pcm: np.ndarray) -> np.ndarray:
    return np.asarray(pcm, dtype=np.float32) / 32768.0


def encode(samples: np.ndarray) -> str:
    """Float samples -> base64 text of little-endian PCM16."""
    return base64.b64encode(float_to_pcm16(samples).tobytes()).decode("ascii")


def decode_bytes(raw: bytes) -> np.ndarray:
    """Little-endian PCM16 bytes -> float32 samples."""
    if len(raw) % _PCM16_LE.itemsize:
        raise DecodeError(f"PCM16 payload has odd length ({len(raw)} bytes)")
    return pcm16_to_float(np.frombuffer(raw, dtype=_PCM16_LE))


def decode(data: str | bytes) -> np.ndarray:
    """Decode an inbound audio chunk.

    Text is treated as base64 wire data. Bytes are treated as PCM16 that a
    client library already base64-decoded.
    """
    if isinstance(data, str):
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 audio chunk: {e}") from e
    else:
        raw = bytes(data)
    return decode_bytes(raw)
