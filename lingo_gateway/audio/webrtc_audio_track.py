"""Custom audio track for aiortc that serves queued PCM frames over WebRTC."""

import asyncio
import time
from fractions import Fraction

import numpy as np
from av import AudioFrame
from aiortc import MediaStreamTrack

from .playback_queue import PlaybackQueue

SAMPLE_RATE = 48000
FRAME_SAMPLES = 960  # 20ms at 48kHz
FRAME_BYTES = FRAME_SAMPLES * 2  # int16
PTIME = FRAME_SAMPLES / SAMPLE_RATE  # 0.02 seconds


class WebRTCAudioTrack(MediaStreamTrack):
    """A server-side audio track that streams silence or queued speech.

    aiortc calls recv() on this track roughly every 20ms. Each call drains
    one frame from the playback queue, which is silence when nothing plays.
    """

    kind = "audio"

    def __init__(self, queue: PlaybackQueue):
        super().__init__()
        self.queue = queue
        self._start_time = None
        self._frame_count = 0

    async def recv(self) -> AudioFrame:
        """Called by aiortc to get the next audio frame."""
        # Pace ourselves to avoid busy-spinning
        if self._start_time is None:
            self._start_time = time.monotonic()

        target_time = self._start_time + self._frame_count * PTIME
        now = time.monotonic()
        if target_time > now:
            await asyncio.sleep(target_time - now)

        self._frame_count += 1

        pcm = self.queue.read(FRAME_BYTES)
        samples = np.frombuffer(pcm, dtype="<i2")

        frame = AudioFrame.from_ndarray(
            samples.reshape(1, -1),  # shape: (channels, samples)
            format="s16",
            layout="mono",
        )
        frame.sample_rate = SAMPLE_RATE
        frame.pts = (self._frame_count - 1) * FRAME_SAMPLES
        frame.time_base = Fraction(1, SAMPLE_RATE)

        return frame
