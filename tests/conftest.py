"""Fakes for the Gemini SDK and the audio output used across the test suite."""

import asyncio
from types import SimpleNamespace

import pytest

from lingo_engine.audio import encode_base64, encode_pcm16
from lingo_engine.playback import AudioOutputContext, ContextState, PlaybackHandle


def text_response(text):
    return SimpleNamespace(text=text)


def audio_response(data, mime_type="audio/L16;codec=pcm;rate=24000"):
    inline = SimpleNamespace(data=data, mime_type=mime_type)
    part = SimpleNamespace(inline_data=inline)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class FakeModels:
    """Stands in for client.aio.models; records every generate_content call."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakeGenaiClient:
    def __init__(self, models):
        self.models = models
        self.aio = SimpleNamespace(models=models)


class FakeSpeech:
    """Speech client double returning a fixed payload."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    async def synthesize(self, text, voice="Kore"):
        self.calls.append((text, voice))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.payload


class GatedSpeech(FakeSpeech):
    """Each synthesize call waits on its own event so tests pick the finish order."""

    def __init__(self, payload=None, error=None):
        super().__init__(payload, error)
        self.gates = []

    async def synthesize(self, text, voice="Kore"):
        gate = asyncio.Event()
        self.gates.append(gate)
        self.calls.append((text, voice))
        await gate.wait()
        if self.error is not None:
            raise self.error
        return self.payload


class FakeHandle(PlaybackHandle):
    def __init__(self, buffer):
        super().__init__()
        self.buffer = buffer
        self.started = False
        self.stopped = False

    @property
    def playing(self):
        return self.started and not self.stopped

    def start(self):
        self.started = True

    def stop(self):
        if self.stopped:
            return
        self.stopped = True
        self._fire_ended()

    def finish(self):
        """Simulate the buffer playing out to its natural end."""
        self.stopped = True
        self._fire_ended()


class FakeContext(AudioOutputContext):
    def __init__(self, sample_rate, state=ContextState.RUNNING):
        self._sample_rate = sample_rate
        self._state = state
        self.sources = []
        self.resume_calls = 0
        self.fail_on_create = None

    @property
    def sample_rate(self):
        return self._sample_rate

    @property
    def state(self):
        return self._state

    @state.setter
    def state(self, value):
        self._state = value

    async def resume(self):
        self.resume_calls += 1
        self._state = ContextState.RUNNING

    def create_buffer_source(self, buffer):
        if self.fail_on_create is not None:
            raise self.fail_on_create
        handle = FakeHandle(buffer)
        self.sources.append(handle)
        return handle

    async def close(self):
        self._state = ContextState.CLOSED

    def active(self):
        return [s for s in self.sources if s.playing]


class ContextFactory:
    """Records every context it creates."""

    def __init__(self, state=ContextState.RUNNING):
        self.state = state
        self.created = []

    def __call__(self, sample_rate):
        context = FakeContext(sample_rate, self.state)
        self.created.append(context)
        return context


@pytest.fixture
def pcm_payload():
    """Half a second of a quiet 440Hz tone as a base64 PCM payload."""
    import numpy as np

    t = np.arange(12000) / 24000
    return encode_base64(encode_pcm16(0.25 * np.sin(2 * np.pi * 440 * t)))
