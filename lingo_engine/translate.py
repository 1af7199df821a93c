"""Gemini text translation — one prompt in, plain translated text out."""

import logging

from .config import settings
from .errors import TranslationError
from .gemini import get_client
from .types import TranslationRequest, TranslationResult

log = logging.getLogger("translate")

PROMPT_TEMPLATE = (
    "Translate the following text from {source} to {target}. "
    "Only provide the translated text, nothing else:\n\n{text}"
)


def build_prompt(text: str, source_language: str, target_language: str) -> str:
    return PROMPT_TEMPLATE.format(source=source_language, target=target_language, text=text)


class TranslationClient:
    """Thin wrapper around Gemini's generate_content for translation.

    `client` is a google-genai Client (or anything exposing
    `aio.models.generate_content`). When omitted, the shared
    client from `lingo_engine.gemini` is used.
    """

    def __init__(self, client=None, model: str = ""):
        self._client = client
        self.model = model or settings.translation_model

    def _get_client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate `text` between two languages given by display name.

        Returns "" for blank input without touching the network.
        Raises TranslationError if the call fails or yields no text.
        """
        if not text.strip():
            return ""

        client = self._get_client()
        prompt = build_prompt(text, source_language, target_language)
        log.debug("Translating %d chars %s -> %s", len(text), source_language, target_language)

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except Exception as e:
            log.error("Translation request failed: %s", e)
            raise TranslationError(f"Translation request failed: {e}") from e

        translated = getattr(response, "text", None)
        if not translated or not translated.strip():
            raise TranslationError("Translation response contained no text")

        translated = translated.strip()
        log.info("Translation %s -> %s: %r", source_language, target_language, translated[:80])
        return translated

    async def translate_request(self, request: TranslationRequest) -> TranslationResult:
        translated = await self.translate(
            request.text, request.source_language, request.target_language
        )
        return TranslationResult(
            translated_text=translated,
            source_language=request.source_language,
            target_language=request.target_language,
        )
