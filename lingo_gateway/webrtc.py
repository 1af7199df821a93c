"""WebRTC session management — PeerConnection lifecycle and the audio output it backs.

The browser's speaker is reached through one outbound WebRTC audio track.
WebRTCAudioContext adapts that track to the AudioOutputContext interface
the playback controller expects: speech buffers are resampled to 48kHz,
queued, and reported finished when the track has sent their last frame.
"""

import asyncio
import logging

import numpy as np
from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from scipy.signal import resample

from lingo_engine.audio import encode_pcm16
from lingo_engine.playback import AudioOutputContext, ContextState, PlaybackHandle
from lingo_engine.types import AudioBuffer
from lingo_gateway.audio.playback_queue import PlaybackQueue
from lingo_gateway.audio.webrtc_audio_track import SAMPLE_RATE as TRACK_RATE
from lingo_gateway.audio.webrtc_audio_track import WebRTCAudioTrack

log = logging.getLogger("webrtc")


def ice_servers_to_rtc(servers: list) -> list:
    """Convert ICE server dicts to RTCIceServer objects."""
    result = []
    for s in servers:
        urls = s.get("urls", s.get("url", ""))
        if isinstance(urls, str):
            urls = [urls]
        result.append(RTCIceServer(
            urls=urls,
            username=s.get("username", ""),
            credential=s.get("credential", ""),
        ))
    return result


def to_track_pcm(buffer: AudioBuffer) -> bytes:
    """Mix down to mono, resample to the track rate, and encode as int16 PCM."""
    samples = buffer.samples.mean(axis=0) if buffer.channels > 1 else buffer.samples[0]
    if buffer.sample_rate != TRACK_RATE and len(samples):
        num_output = int(len(samples) * TRACK_RATE / buffer.sample_rate)
        samples = resample(samples, num_output)
    return encode_pcm16(np.asarray(samples))


class TrackBufferSource(PlaybackHandle):
    """One speech buffer played through the session's track."""

    def __init__(self, queue: PlaybackQueue, pcm: bytes):
        super().__init__()
        self._queue = queue
        self._pcm = pcm
        self._started = False
        self._playing = False

    @property
    def playing(self) -> bool:
        return self._playing

    def start(self) -> None:
        if self._started:
            raise RuntimeError("Buffer source can only be started once")
        self._started = True
        self._playing = True
        self._queue.enqueue(self._pcm, owner=self, on_done=self._finished)

    def _finished(self) -> None:
        if self._playing:
            self._playing = False
            self._fire_ended()

    def stop(self) -> None:
        if not self._playing:
            return
        dropped = self._queue.remove(self)
        log.debug("Buffer source stopped, %d bytes dropped", dropped)
        self._finished()


class WebRTCAudioContext(AudioOutputContext):
    """Audio output backed by a Session's WebRTC track.

    SUSPENDED while the peer connection is down, RUNNING once connected.
    """

    def __init__(self, session: "Session", sample_rate: int):
        self._session = session
        self._sample_rate = sample_rate
        self._closed = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def state(self) -> ContextState:
        if self._closed:
            return ContextState.CLOSED
        return ContextState.RUNNING if self._session.connected else ContextState.SUSPENDED

    async def resume(self) -> None:
        if self._closed:
            raise RuntimeError("Audio output is closed")
        await self._session.wait_connected()

    def create_buffer_source(self, buffer: AudioBuffer) -> TrackBufferSource:
        if self._closed:
            raise RuntimeError("Audio output is closed")
        pcm = to_track_pcm(buffer)
        log.debug("Buffer source: %.2fs @ %dHz -> %d bytes @ %dHz",
                  buffer.duration, buffer.sample_rate, len(pcm), TRACK_RATE)
        return TrackBufferSource(self._session.queue, pcm)

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._session.queue.clear()


class Session:
    """Manages one WebRTC peer connection and its outbound audio track."""

    def __init__(self, ice_servers: list = None):
        rtc_servers = ice_servers_to_rtc(ice_servers or [])
        config = RTCConfiguration(iceServers=rtc_servers) if rtc_servers else RTCConfiguration()
        self._pc = RTCPeerConnection(configuration=config)
        self.queue = PlaybackQueue()
        self._track = WebRTCAudioTrack(self.queue)
        self._connected = asyncio.Event()

        @self._pc.on("connectionstatechange")
        async def on_conn_state():
            state = self._pc.connectionState
            log.info("Connection state: %s", state)
            if state == "connected":
                self._connected.set()
            elif state in ("disconnected", "failed", "closed"):
                self._connected.clear()

        @self._pc.on("iceconnectionstatechange")
        async def on_ice_state():
            log.info("ICE connection state: %s", self._pc.iceConnectionState)

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    async def wait_connected(self) -> None:
        await self._connected.wait()

    async def handle_offer(self, sdp: str) -> str:
        """Process client SDP offer, return SDP answer.

        aiortc bundles all ICE candidates into the answer SDP
        automatically (no trickle ICE support).
        """
        self._pc.addTrack(self._track)

        offer = RTCSessionDescription(sdp=sdp, type="offer")
        await self._pc.setRemoteDescription(offer)

        answer = await self._pc.createAnswer()
        await self._pc.setLocalDescription(answer)

        log.info("SDP answer created")
        return self._pc.localDescription.sdp

    def create_audio_context(self, sample_rate: int) -> WebRTCAudioContext:
        return WebRTCAudioContext(self, sample_rate)

    async def close(self):
        """Tear down the peer connection."""
        self.queue.clear()
        self._connected.clear()
        await self._pc.close()
        log.info("Session closed")
