"""Language and voice catalogs — static tables shown in the UI pickers."""

from dataclasses import asdict
from typing import List, Optional

from .types import Language, VoiceOption

# ── Languages ─────────────────────────────────────────────────

LANGUAGES: List[Language] = [
    Language(code="en", name="English", flag="🇺🇸"),
    Language(code="es", name="Spanish", flag="🇪🇸"),
    Language(code="fr", name="French", flag="🇫🇷"),
    Language(code="de", name="German", flag="🇩🇪"),
    Language(code="it", name="Italian", flag="🇮🇹"),
    Language(code="pt", name="Portuguese", flag="🇵🇹"),
    Language(code="ja", name="Japanese", flag="🇯🇵"),
    Language(code="ko", name="Korean", flag="🇰🇷"),
    Language(code="zh", name="Chinese", flag="🇨🇳"),
    Language(code="ru", name="Russian", flag="🇷🇺"),
    Language(code="ar", name="Arabic", flag="🇸🇦"),
    Language(code="hi", name="Hindi", flag="🇮🇳"),
    Language(code="tr", name="Turkish", flag="🇹🇷"),
    Language(code="nl", name="Dutch", flag="🇳🇱"),
    Language(code="vi", name="Vietnamese", flag="🇻🇳"),
    Language(code="th", name="Thai", flag="🇹🇭"),
]

DEFAULT_SOURCE = "en"
DEFAULT_TARGET = "es"

# ── Voices ────────────────────────────────────────────────────
# Prebuilt Gemini TTS voice personas.

VOICES: List[VoiceOption] = [
    VoiceOption(id="Kore", label="Kore", description="Bright and energetic"),
    VoiceOption(id="Puck", label="Puck", description="Warm and friendly"),
    VoiceOption(id="Charon", label="Charon", description="Deep and professional"),
    VoiceOption(id="Fenrir", label="Fenrir", description="Authoritative and calm"),
    VoiceOption(id="Zephyr", label="Zephyr", description="Gentle and soft"),
]

DEFAULT_VOICE = "Kore"

_LANGUAGES_BY_CODE = {lang.code: lang for lang in LANGUAGES}
_VOICES_BY_ID = {v.id: v for v in VOICES}


def list_languages() -> List[Language]:
    return LANGUAGES


def list_voices() -> List[VoiceOption]:
    return VOICES


def get_language(code: str) -> Optional[Language]:
    return _LANGUAGES_BY_CODE.get(code)


def language_name(code: str, default: str) -> str:
    """Display name for a language code, or `default` if the code is unknown."""
    lang = _LANGUAGES_BY_CODE.get(code)
    return lang.name if lang else default


def get_voice(voice_id: str) -> Optional[VoiceOption]:
    return _VOICES_BY_ID.get(voice_id)


def is_voice(voice_id: str) -> bool:
    return voice_id in _VOICES_BY_ID


def catalog_dict() -> dict:
    """Both catalogs as plain dicts, ready for JSON."""
    return {
        "languages": [asdict(lang) for lang in LANGUAGES],
        "voices": [asdict(v) for v in VOICES],
        "defaults": {
            "source": DEFAULT_SOURCE,
            "target": DEFAULT_TARGET,
            "voice": DEFAULT_VOICE,
        },
    }
