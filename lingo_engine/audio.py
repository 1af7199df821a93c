"""PCM codec — base64 payloads to float audio buffers and back.

Gemini TTS returns raw signed 16-bit little-endian PCM with no container
header, so the sample layout has to be interpreted here rather than by
a generic decoder.
"""

import base64
import binascii
import logging

import numpy as np

from .errors import AudioDecodeError
from .types import AudioBuffer

log = logging.getLogger("audio")

SAMPLE_RATE = 24000
PCM_SCALE = 32768.0
BYTES_PER_SAMPLE = 2


def decode_base64(payload: str) -> bytes:
    """Base64 text to raw bytes. Raises AudioDecodeError on malformed input."""
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioDecodeError(f"Audio payload is not valid base64: {e}") from e


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_pcm16(data: bytes, sample_rate: int = SAMPLE_RATE, channels: int = 1) -> AudioBuffer:
    """Interpret raw int16 LE PCM as a float32 AudioBuffer in [-1.0, 1.0].

    Interleaved frames are split into per-channel rows.
    """
    if channels < 1:
        raise AudioDecodeError(f"Invalid channel count: {channels}")
    frame_bytes = BYTES_PER_SAMPLE * channels
    if len(data) % frame_bytes:
        raise AudioDecodeError(
            f"PCM payload of {len(data)} bytes is not a whole number of "
            f"{channels}-channel 16-bit frames"
        )

    # '<i2' pins little-endian regardless of host byte order
    ints = np.frombuffer(data, dtype="<i2")
    floats = ints.astype(np.float32) / PCM_SCALE
    samples = floats.reshape(-1, channels).T.copy()

    buffer = AudioBuffer(samples=samples, sample_rate=sample_rate)
    log.debug("Decoded %d bytes -> %d frames x %d ch @ %dHz (%.2fs)",
              len(data), buffer.length, channels, sample_rate, buffer.duration)
    return buffer


def encode_pcm16(samples: np.ndarray) -> bytes:
    """Float samples in [-1.0, 1.0] to int16 LE PCM bytes.

    A 2-D array is treated as (channels, frames) and interleaved.
    """
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr.T.reshape(-1)
    scaled = np.round(np.clip(arr, -1.0, 1.0) * PCM_SCALE)
    ints = np.clip(scaled, -32768, 32767).astype("<i2")
    return ints.tobytes()
