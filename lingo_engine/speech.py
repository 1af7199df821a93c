"""Gemini speech synthesis — text to a base64 PCM payload."""

import base64
import logging
import re
from typing import Optional

from google.genai import types

from .catalog import DEFAULT_VOICE
from .config import settings
from .errors import SpeechGenerationError
from .gemini import get_client

log = logging.getLogger("speech")

SPEECH_PROMPT = "Say clearly in the appropriate language: {text}"
EXPECTED_RATE = 24000

_RATE_RE = re.compile(r"rate=(\d+)")


def build_speech_config(voice: str) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        response_modalities=["AUDIO"],
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
            ),
        ),
    )


def _first_inline_data(response):
    """inline_data of the first part of the first candidate, or None."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) if content else None
    if not parts:
        return None
    return getattr(parts[0], "inline_data", None)


class SpeechClient:
    """Thin wrapper around Gemini's TTS model."""

    def __init__(self, client=None, model: str = ""):
        self._client = client
        self.model = model or settings.speech_model

    def _get_client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    async def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> Optional[str]:
        """Render `text` as speech and return the audio as base64 text.

        Returns None for blank input, or when the response carries no
        inline audio. Raises SpeechGenerationError if the call fails.
        """
        if not text.strip():
            return None

        client = self._get_client()
        contents = [
            types.Content(
                role="user",
                parts=[types.Part.from_text(text=SPEECH_PROMPT.format(text=text))],
            )
        ]

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=build_speech_config(voice or DEFAULT_VOICE),
            )
        except Exception as e:
            log.error("Speech request failed: %s", e)
            raise SpeechGenerationError(f"Speech request failed: {e}") from e

        inline = _first_inline_data(response)
        data = getattr(inline, "data", None) if inline is not None else None
        if not data:
            log.warning("Speech response had no inline audio for: %r", text[:50])
            return None

        mime_type = getattr(inline, "mime_type", None) or ""
        match = _RATE_RE.search(mime_type)
        if match and int(match.group(1)) != EXPECTED_RATE:
            log.warning("Speech payload rate %s Hz differs from %d Hz", match.group(1), EXPECTED_RATE)

        # The SDK hands back decoded bytes; callers get the base64 wire form
        if isinstance(data, str):
            payload = data
        else:
            payload = base64.b64encode(data).decode("ascii")

        log.debug("Speech [%s]: %d chars -> %d base64 chars (%s)",
                  voice, len(text), len(payload), mime_type or "no mime type")
        return payload
