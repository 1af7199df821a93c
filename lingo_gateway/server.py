"""Gateway server — HTTP static serving + WebSocket protocol for the translator UI."""

import asyncio
import json
import logging
import sys
from dataclasses import replace

from aiohttp import web
from dotenv import load_dotenv

load_dotenv()  # Must be before engine imports so they see .env vars

from lingo_engine import catalog
from lingo_engine.config import PROJECT_ROOT, Settings, settings
from lingo_engine.errors import AudioUnavailableError, ConfigurationError, LinguoError
from lingo_engine.gemini import create_client
from lingo_engine.playback import PlaybackController, PlaybackState
from lingo_engine.speech import SpeechClient
from lingo_engine.translate import TranslationClient
from lingo_engine.types import TranslatorState

log = logging.getLogger("gateway")

WEB_DIR = PROJECT_ROOT / "web"

SETTINGS_KEY = web.AppKey("settings", Settings)
TRANSLATOR_KEY = web.AppKey("translator", TranslationClient)
SPEECH_KEY = web.AppKey("speech", SpeechClient)
INDEX_KEY = web.AppKey("index_html", str)


def parse_ice_servers(raw: str) -> list:
    try:
        servers = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("ICE_SERVERS_JSON is not valid JSON, ignoring")
        return []
    return servers if isinstance(servers, list) else []


def build_index_html(cfg: Settings) -> str:
    """Read index.html and inject ICE servers config."""
    raw = (WEB_DIR / "index.html").read_text(encoding="utf-8")
    return raw.replace("__ICE_SERVERS_PLACEHOLDER__", json.dumps(parse_ice_servers(cfg.ice_servers_json)))


# ── Per-connection state ──────────────────────────────────────

class Connection:
    """One browser tab: its UI state, its WebRTC session and its player."""

    def __init__(self, ws: web.WebSocketResponse, translator: TranslationClient,
                 speech: SpeechClient, cfg: Settings):
        self.ws = ws
        self.cfg = cfg
        self.translator = translator
        self.state = TranslatorState(
            source_lang=catalog.DEFAULT_SOURCE,
            target_lang=catalog.DEFAULT_TARGET,
            voice=cfg.default_voice,
        )
        self.session = None  # WebRTC Session once the browser offers one
        self.player = PlaybackController(
            speech,
            self._create_audio_context,
            sample_rate=cfg.output_sample_rate,
            resume_timeout=cfg.resume_timeout,
        )
        self.player.add_listener(self._on_playback_state)
        self._translate_seq = 0
        self._tasks: set[asyncio.Task] = set()

    def _create_audio_context(self, sample_rate: int):
        if self.session is None:
            raise AudioUnavailableError("No WebRTC session")
        return self.session.create_audio_context(sample_rate)

    def _on_playback_state(self, state: PlaybackState):
        msg_type = "speaking" if state is PlaybackState.SPEAKING else "speech_ended"
        self.spawn(self.send({"type": msg_type}))

    def spawn(self, coro) -> asyncio.Task:
        """Run a handler in the background so the socket keeps reading."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def send(self, payload: dict):
        if self.ws.closed:
            return
        try:
            await self.ws.send_json(payload)
        except ConnectionResetError:
            log.debug("Dropped %s, socket already closing", payload.get("type"))

    async def send_error(self, message: str):
        await self.send({"type": "error", "message": message})

    def merge_state(self, msg: dict):
        """Take the browser's view of pickers and text boxes where it sent one."""
        updates = {}
        for field, key in (("source_lang", "source"), ("target_lang", "target"),
                           ("input_text", "input_text"), ("translated_text", "translated_text")):
            if isinstance(msg.get(key), str):
                updates[field] = msg[key]
        if isinstance(msg.get("text"), str) and msg.get("type") == "translate":
            updates["input_text"] = msg["text"]
        if updates:
            self.state = replace(self.state, **updates)

    async def send_state(self):
        await self.send({"type": "state", "state": self.state.to_dict()})

    # ── Actions ───────────────────────────────────────────────

    def _is_latest(self, seq: int) -> bool:
        if seq == self._translate_seq:
            return True
        log.debug("Dropping stale translation #%d (latest is #%d)", seq, self._translate_seq)
        return False

    async def translate(self):
        text = self.state.input_text
        source = self.state.source_lang
        target = self.state.target_lang
        src_name = catalog.language_name(source, "English")
        tgt_name = catalog.language_name(target, "Spanish")

        self._translate_seq += 1
        seq = self._translate_seq
        try:
            translated = await self.translator.translate(text, src_name, tgt_name)
        except LinguoError as e:
            log.error("Translation error: %s", e)
            if self._is_latest(seq):
                await self.send_error(e.user_message)
            return

        if not self._is_latest(seq):
            return

        self.state = replace(self.state, translated_text=translated)
        await self.send({"type": "translation", "text": translated, "source": source, "target": target})

    async def speak(self, text: str, voice: str):
        try:
            await self.player.speak(text, voice)
        except LinguoError as e:
            log.error("Speech error: %s", e)
            await self.send_error(e.user_message)

    async def attach_session(self, sdp: str, ice_servers: list) -> str:
        # Lazy import to avoid loading aiortc until needed
        from lingo_gateway.webrtc import Session

        await self.player.close()
        if self.session:
            await self.session.close()
            self.session = None
        session = Session(ice_servers=ice_servers)
        try:
            answer = await session.handle_offer(sdp)
        except Exception:
            await session.close()
            raise
        self.session = session
        return answer

    async def close(self):
        for task in list(self._tasks):
            task.cancel()
        await self.player.close()
        if self.session:
            await self.session.close()
            self.session = None


# ── HTTP routes ───────────────────────────────────────────────

async def handle_index(request: web.Request) -> web.Response:
    """Serve index.html with injected config."""
    return web.Response(text=request.app[INDEX_KEY], content_type="text/html")


async def handle_catalog(request: web.Request) -> web.Response:
    return web.json_response(catalog.catalog_dict())


# ── WebSocket handler ─────────────────────────────────────────

def _str_field(msg: dict, key: str) -> str:
    """A string field of a client message; anything else counts as missing."""
    value = msg.get(key)
    return value if isinstance(value, str) else ""


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    log.info("WebSocket connected from %s", request.remote)

    cfg = request.app[SETTINGS_KEY]
    conn = Connection(ws, request.app[TRANSLATOR_KEY], request.app[SPEECH_KEY], cfg)
    ice_servers = parse_ice_servers(cfg.ice_servers_json)
    authed = False

    try:
        async for raw in ws:
            if raw.type != web.WSMsgType.TEXT:
                continue
            try:
                msg = json.loads(raw.data)
            except json.JSONDecodeError:
                await conn.send_error("Invalid JSON")
                continue
            if not isinstance(msg, dict):
                await conn.send_error("Invalid message")
                continue

            msg_type = msg.get("type")
            log.debug("WS recv: %s", msg_type)

            if msg_type == "ping":
                await conn.send({"type": "pong"})

            elif msg_type == "hello":
                if msg.get("token", "") != cfg.auth_token:
                    await conn.send_error("Bad token")
                    await ws.close()
                    break
                authed = True
                await conn.send({
                    "type": "hello_ack",
                    **catalog.catalog_dict(),
                    "ice_servers": ice_servers,
                    "state": conn.state.to_dict(),
                })

            elif not authed:
                await conn.send_error("Say hello first")

            elif msg_type == "webrtc_offer":
                sdp = _str_field(msg, "sdp")
                if not sdp:
                    await conn.send_error("Missing SDP")
                    continue
                try:
                    answer_sdp = await conn.attach_session(sdp, ice_servers)
                except Exception as e:
                    log.error("WebRTC setup failed: %s", e)
                    await conn.send_error("Audio connection failed")
                    continue
                await conn.send({"type": "webrtc_answer", "sdp": answer_sdp})

            elif msg_type == "translate":
                conn.merge_state(msg)
                if not conn.state.input_text.strip():
                    await conn.send_error("Empty text")
                else:
                    conn.spawn(conn.translate())

            elif msg_type == "swap":
                conn.merge_state(msg)
                conn.state = conn.state.swap()
                await conn.send_state()

            elif msg_type == "set_voice":
                voice = _str_field(msg, "voice")
                if not catalog.is_voice(voice):
                    await conn.send_error(f"Unknown voice: {voice}")
                    continue
                conn.state = replace(conn.state, voice=voice)
                await conn.send_state()

            elif msg_type == "speak":
                text = _str_field(msg, "text") or conn.state.translated_text
                voice = _str_field(msg, "voice") or conn.state.voice
                if not text.strip():
                    await conn.send_error("Empty text")
                elif not catalog.is_voice(voice):
                    await conn.send_error(f"Unknown voice: {voice}")
                else:
                    log.info("TTS speak: %r", text[:80])
                    conn.spawn(conn.speak(text, voice))

            elif msg_type == "stop_speaking":
                conn.player.stop()
                log.info("TTS playback stopped by user")

            else:
                await conn.send_error(f"Unknown type: {msg_type}")
    finally:
        # Cleanup on disconnect
        await conn.close()
        log.info("WebSocket disconnected")
    return ws


# ── App setup ─────────────────────────────────────────────────

def create_app(cfg: Settings = settings, translator: TranslationClient = None,
               speech: SpeechClient = None) -> web.Application:
    """Build the aiohttp app. Raises ConfigurationError if Gemini has no key."""
    if translator is None or speech is None:
        client = create_client(cfg)
        translator = translator or TranslationClient(client, model=cfg.translation_model)
        speech = speech or SpeechClient(client, model=cfg.speech_model)

    app = web.Application()
    app[SETTINGS_KEY] = cfg
    app[TRANSLATOR_KEY] = translator
    app[SPEECH_KEY] = speech
    app[INDEX_KEY] = build_index_html(cfg)

    app.router.add_get("/", handle_index)
    app.router.add_get("/ws", handle_ws)
    app.router.add_get("/api/catalog", handle_catalog)
    app.router.add_static("/static", WEB_DIR, show_index=False)
    return app


def setup_logging(cfg: Settings):
    cfg.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = cfg.log_dir / "server.log"

    fmt = logging.Formatter("%(asctime)s %(name)-12s %(levelname)-8s %(message)s")

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(fmt)

    filelog = logging.FileHandler(log_file)
    filelog.setLevel(logging.INFO)
    filelog.setFormatter(fmt)

    logging.basicConfig(level=logging.INFO, handlers=[console, filelog])

    # Silence noisy library internals
    for name in ("aiortc", "aioice", "httpx", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)
    log.info("Logging to %s", log_file)


def main():
    setup_logging(settings)
    try:
        app = create_app(settings)
    except ConfigurationError as e:
        log.error("%s", e)
        sys.exit(1)

    log.info("Serving on http://%s:%d", settings.host, settings.port)
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
