import asyncio

import pytest

from conftest import ContextFactory, FakeSpeech, GatedSpeech
from lingo_engine.audio import encode_base64
from lingo_engine.errors import (
    AudioDecodeError,
    AudioGenerationError,
    SpeechGenerationError,
)
from lingo_engine.playback import ContextState, PlaybackController, PlaybackSlot, PlaybackState


def make_player(payload, factory=None, **kwargs):
    speech = FakeSpeech(payload)
    factory = factory or ContextFactory()
    player = PlaybackController(speech, factory, **kwargs)
    return player, speech, factory


async def test_speak_starts_playback(pcm_payload):
    player, speech, factory = make_player(pcm_payload)

    assert await player.speak("Hola", "Puck") is True

    assert player.state is PlaybackState.SPEAKING
    assert speech.calls == [("Hola", "Puck")]
    (context,) = factory.created
    (source,) = context.sources
    assert source.started
    assert source.buffer.sample_rate == 24000
    assert source.buffer.length == 12000


async def test_context_created_lazily_once_at_24khz(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    assert factory.created == []

    await player.speak("uno")
    await player.speak("dos")

    assert len(factory.created) == 1
    assert factory.created[0].sample_rate == 24000


@pytest.mark.parametrize("text", ["", "   "])
async def test_blank_text_is_a_noop(pcm_payload, text):
    player, speech, factory = make_player(pcm_payload)

    assert await player.speak(text) is False
    assert speech.calls == []
    assert factory.created == []
    assert player.state is PlaybackState.IDLE


async def test_new_speak_stops_previous_playback(pcm_payload):
    player, _, factory = make_player(pcm_payload)

    await player.speak("first")
    await player.speak("second")
    await player.speak("third")

    context = factory.created[0]
    first, second, third = context.sources
    assert first.stopped and second.stopped
    assert context.active() == [third]
    assert player.current is third


async def test_interleaved_speaks_leave_one_active(pcm_payload):
    player, _, factory = make_player(pcm_payload)

    await asyncio.gather(player.speak("a"), player.speak("b"), player.speak("c"))

    assert len(factory.created[0].active()) == 1
    assert player.state is PlaybackState.SPEAKING


async def test_natural_end_returns_to_idle(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("Hola")

    factory.created[0].sources[0].finish()

    assert player.state is PlaybackState.IDLE
    assert player.current is None


async def test_stopped_predecessor_does_not_clear_speaking(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("first")
    await player.speak("second")
    first, second = factory.created[0].sources

    # A late end notification from the replaced source is ignored
    first.finish()
    assert player.state is PlaybackState.SPEAKING
    assert player.current is second


async def test_missing_audio_raises_and_stays_idle():
    player, _, factory = make_player(None)

    with pytest.raises(AudioGenerationError):
        await player.speak("Hola")

    assert player.state is PlaybackState.IDLE
    assert factory.created[0].sources == []


async def test_missing_audio_after_playback_leaves_nothing_playing(pcm_payload):
    player, speech, factory = make_player(pcm_payload)
    await player.speak("first")
    speech.payload = None

    with pytest.raises(AudioGenerationError):
        await player.speak("second")

    assert player.state is PlaybackState.IDLE
    assert factory.created[0].active() == []


async def test_odd_length_pcm_is_a_decode_error():
    player, _, _ = make_player(encode_base64(b"\x00\x01\x02"))

    with pytest.raises(AudioDecodeError):
        await player.speak("Hola")
    assert player.state is PlaybackState.IDLE


async def test_speech_failure_propagates_unchanged():
    player = PlaybackController(FakeSpeech(error=SpeechGenerationError("boom")), ContextFactory())

    with pytest.raises(SpeechGenerationError):
        await player.speak("Hola")
    assert player.state is PlaybackState.IDLE


async def test_context_failure_is_wrapped(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("warm up")
    factory.created[0].fail_on_create = RuntimeError("device lost")

    with pytest.raises(AudioGenerationError) as excinfo:
        await player.speak("Hola")
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert player.state is PlaybackState.IDLE


async def test_suspended_context_is_resumed_before_synthesis(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("first")
    context = factory.created[0]
    context.state = ContextState.SUSPENDED

    await player.speak("second")

    assert context.resume_calls == 1
    assert context.state is ContextState.RUNNING
    assert len(factory.created) == 1


async def test_resume_timeout_surfaces_generation_error(pcm_payload):
    player, speech, factory = make_player(pcm_payload, resume_timeout=0.01)
    await player.speak("first")
    context = factory.created[0]
    context.state = ContextState.SUSPENDED

    async def never_resume():
        await asyncio.sleep(10)

    context.resume = never_resume

    with pytest.raises(AudioGenerationError):
        await player.speak("second")
    assert len(speech.calls) == 1


async def test_closed_context_is_recreated(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("first")
    await player.close()

    await player.speak("second")

    assert len(factory.created) == 2


async def test_explicit_stop(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    await player.speak("Hola")

    player.stop()

    assert player.state is PlaybackState.IDLE
    assert factory.created[0].sources[0].stopped


async def test_listeners_see_each_transition(pcm_payload):
    player, _, factory = make_player(pcm_payload)
    events = []
    player.add_listener(events.append)

    await player.speak("Hola")
    factory.created[0].sources[0].finish()

    assert events == [PlaybackState.SPEAKING, PlaybackState.IDLE]


def test_slot_replace_stops_old_handle():
    from conftest import FakeHandle

    slot = PlaybackSlot()
    a, b = FakeHandle(None), FakeHandle(None)
    slot.replace(a)
    slot.replace(b)
    assert a.stopped and not b.stopped
    assert slot.current is b
    assert slot.release(a) is False
    assert slot.release(b) is True
    assert slot.stop() is False


async def wait_for_calls(speech, count):
    while len(speech.calls) < count:
        await asyncio.sleep(0)


async def test_stop_cancels_speak_waiting_on_synthesis(pcm_payload):
    speech = GatedSpeech(pcm_payload)
    factory = ContextFactory()
    player = PlaybackController(speech, factory)
    events = []
    player.add_listener(events.append)

    task = asyncio.ensure_future(player.speak("hola"))
    await wait_for_calls(speech, 1)
    player.stop()
    speech.gates[0].set()

    assert await task is False
    assert player.state is PlaybackState.IDLE
    assert factory.created[0].sources == []
    assert events == []


async def test_newer_speak_wins_when_older_resolves_last(pcm_payload):
    speech = GatedSpeech(pcm_payload)
    factory = ContextFactory()
    player = PlaybackController(speech, factory)

    old = asyncio.ensure_future(player.speak("old"))
    await wait_for_calls(speech, 1)
    new = asyncio.ensure_future(player.speak("new"))
    await wait_for_calls(speech, 2)

    speech.gates[1].set()
    assert await new is True
    speech.gates[0].set()
    assert await old is False

    context = factory.created[0]
    (source,) = context.sources
    assert context.active() == [source]
    assert player.current is source
    assert player.state is PlaybackState.SPEAKING


async def test_overtaken_speak_failure_is_not_reported(pcm_payload):
    speech = GatedSpeech(pcm_payload)
    player = PlaybackController(speech, ContextFactory())

    old = asyncio.ensure_future(player.speak("old"))
    await wait_for_calls(speech, 1)
    new = asyncio.ensure_future(player.speak("new"))
    await wait_for_calls(speech, 2)

    speech.gates[1].set()
    await new
    speech.error = SpeechGenerationError("late failure")
    speech.gates[0].set()

    assert await old is False
    assert player.state is PlaybackState.SPEAKING
