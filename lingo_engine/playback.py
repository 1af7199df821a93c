"""Speech playback controller — one active voice at a time.

Flow for speak():
  1. Blank text is ignored
  2. Whatever is still playing is stopped
  3. The output context is created on first use, or resumed if suspended
  4. Gemini TTS renders the text (base64 PCM)
  5-6. Payload decoded to bytes, then to a float buffer at 24kHz
  7. A fresh source is bound to the buffer and started

A call that is overtaken by stop() or a newer speak() while it waits on the
context or on Gemini returns False without touching playback.

The output context is injected through a factory so the controller runs
against any backend (WebRTC track in the gateway, in-memory fakes in tests).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from .audio import SAMPLE_RATE, decode_base64, decode_pcm16
from .catalog import DEFAULT_VOICE
from .errors import AudioGenerationError, LinguoError
from .types import AudioBuffer

log = logging.getLogger("playback")


class ContextState(str, Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class PlaybackState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


class PlaybackHandle(ABC):
    """A live, stoppable playback of one AudioBuffer."""

    def __init__(self) -> None:
        self.on_ended: Optional[Callable[[], None]] = None

    @abstractmethod
    def start(self) -> None:
        """Begin playback immediately."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback now, even if it has not finished. Safe to call twice."""

    def _fire_ended(self) -> None:
        callback = self.on_ended
        self.on_ended = None
        if callback:
            callback()


class AudioOutputContext(ABC):
    """The audio output device a controller plays through."""

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """Output rate in Hz."""

    @property
    @abstractmethod
    def state(self) -> ContextState:
        """Current lifecycle state."""

    @abstractmethod
    async def resume(self) -> None:
        """Bring a suspended context back to RUNNING."""

    @abstractmethod
    def create_buffer_source(self, buffer: AudioBuffer) -> PlaybackHandle:
        """Bind a new playable source to `buffer`. Does not start it."""

    @abstractmethod
    async def close(self) -> None:
        """Release the output. A closed context is never reused."""


ContextFactory = Callable[[int], AudioOutputContext]
StateListener = Callable[[PlaybackState], None]


class PlaybackSlot:
    """Single-slot owner of the current playback handle.

    replace() stops whatever was there before installing the new handle,
    so at most one handle is ever live.
    """

    def __init__(self) -> None:
        self._handle: Optional[PlaybackHandle] = None

    @property
    def current(self) -> Optional[PlaybackHandle]:
        return self._handle

    def is_current(self, handle: PlaybackHandle) -> bool:
        return self._handle is handle

    def replace(self, handle: PlaybackHandle) -> None:
        old, self._handle = self._handle, handle
        if old is not None and old is not handle:
            old.stop()

    def release(self, handle: PlaybackHandle) -> bool:
        """Empty the slot if it still holds `handle`. Returns True if it did."""
        if self._handle is handle:
            self._handle = None
            return True
        return False

    def stop(self) -> bool:
        """Stop and drop the current handle. Returns True if one was playing."""
        old, self._handle = self._handle, None
        if old is None:
            return False
        old.stop()
        return True


class PlaybackController:
    """Owns the output context, the current playback and the speaking indicator."""

    def __init__(
        self,
        speech,
        context_factory: ContextFactory,
        sample_rate: int = SAMPLE_RATE,
        resume_timeout: Optional[float] = None,
    ):
        self._speech = speech
        self._context_factory = context_factory
        self._sample_rate = sample_rate
        self._resume_timeout = resume_timeout
        self._context: Optional[AudioOutputContext] = None
        self._slot = PlaybackSlot()
        self._state = PlaybackState.IDLE
        self._listeners: List[StateListener] = []
        self._generation = 0

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_speaking(self) -> bool:
        return self._state is PlaybackState.SPEAKING

    @property
    def context(self) -> Optional[AudioOutputContext]:
        return self._context

    @property
    def current(self) -> Optional[PlaybackHandle]:
        return self._slot.current

    def add_listener(self, listener: StateListener) -> None:
        """Call `listener(state)` on every IDLE <-> SPEAKING transition."""
        self._listeners.append(listener)

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        self._state = state
        log.debug("Playback state: %s", state.value)
        for listener in list(self._listeners):
            listener(state)

    async def _ensure_context(self) -> AudioOutputContext:
        context = self._context
        if context is None or context.state is ContextState.CLOSED:
            context = self._context_factory(self._sample_rate)
            self._context = context
            log.info("Audio output created @ %dHz", context.sample_rate)
        elif context.state is ContextState.SUSPENDED:
            log.info("Audio output suspended, resuming...")
            if self._resume_timeout:
                await asyncio.wait_for(context.resume(), self._resume_timeout)
            else:
                await context.resume()
        return context

    async def speak(self, text: str, voice: str = DEFAULT_VOICE) -> bool:
        """Synthesize `text` and play it, replacing any current playback.

        Returns False for blank text or when overtaken, True once playback
        has started. Raises SpeechGenerationError, AudioGenerationError or
        AudioDecodeError; the indicator is back to IDLE whenever this raises.
        """
        if not text.strip():
            return False

        self._generation += 1
        generation = self._generation

        if self._slot.stop():
            log.info("Stopped previous playback")
        self._set_state(PlaybackState.IDLE)

        handle = None
        try:
            context = await self._ensure_context()
            if self._overtaken(generation):
                return False

            payload = await self._speech.synthesize(text, voice)
            if self._overtaken(generation):
                return False
            if payload is None:
                raise AudioGenerationError("Speech model returned no audio")

            data = decode_base64(payload)
            buffer = decode_pcm16(data, sample_rate=self._sample_rate)

            handle = context.create_buffer_source(buffer)
            handle.on_ended = lambda: self._handle_ended(handle)
            self._slot.replace(handle)
            handle.start()
        except LinguoError as e:
            if self._overtaken(generation):
                log.info("Dropped failure of overtaken speak: %s", e)
                return False
            self._abort(handle)
            raise
        except Exception as e:
            if self._overtaken(generation):
                log.info("Dropped failure of overtaken speak: %s", e)
                return False
            self._abort(handle)
            raise AudioGenerationError(f"Audio playback failed: {e}") from e

        log.info("Speaking %.2fs of audio (voice=%s)", buffer.duration, voice)
        # An empty buffer may already have ended inside start()
        if self._slot.is_current(handle):
            self._set_state(PlaybackState.SPEAKING)
        return True

    def _overtaken(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        log.debug("Speak #%d overtaken by #%d, not playing", generation, self._generation)
        return True

    def _abort(self, handle: Optional[PlaybackHandle]) -> None:
        if handle is not None and self._slot.release(handle):
            handle.on_ended = None
            handle.stop()
        self._set_state(PlaybackState.IDLE)

    def _handle_ended(self, handle: PlaybackHandle) -> None:
        # A replaced or stopped handle must not clear its successor's state
        if self._slot.release(handle):
            log.debug("Playback finished")
            self._set_state(PlaybackState.IDLE)

    def stop(self) -> None:
        """Stop the current playback, if any, and cancel any speak in flight."""
        self._generation += 1
        if self._slot.stop():
            log.info("Playback stopped")
        self._set_state(PlaybackState.IDLE)

    async def close(self) -> None:
        """Stop playback and release the output context."""
        self.stop()
        if self._context is not None:
            await self._context.close()
            self._context = None
