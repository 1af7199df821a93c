"""Shared data types for the translation engine."""

from dataclasses import dataclass, replace

import numpy as np


@dataclass(frozen=True)
class Language:
    """A language the translator can read or write."""
    code: str
    name: str
    flag: str


@dataclass(frozen=True)
class VoiceOption:
    """Describes a prebuilt Gemini voice."""
    id: str
    label: str
    description: str


@dataclass(frozen=True)
class TranslationRequest:
    source_language: str    # display name, e.g. "English"
    target_language: str
    text: str


@dataclass(frozen=True)
class TranslationResult:
    translated_text: str
    source_language: str
    target_language: str


@dataclass
class AudioBuffer:
    """Decoded float32 audio, shaped (channels, frames), values in [-1.0, 1.0]."""
    samples: np.ndarray
    sample_rate: int = 24000

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def length(self) -> int:
        """Number of frames per channel."""
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def channel_data(self, channel: int) -> np.ndarray:
        return self.samples[channel]


@dataclass
class TranslatorState:
    """What one UI client currently shows."""
    source_lang: str = "en"
    target_lang: str = "es"
    input_text: str = ""
    translated_text: str = ""
    voice: str = "Kore"

    def swap(self) -> "TranslatorState":
        """Swap languages and move the translation into the input box."""
        return replace(
            self,
            source_lang=self.target_lang,
            target_lang=self.source_lang,
            input_text=self.translated_text,
            translated_text=self.input_text,
        )

    def to_dict(self) -> dict:
        return {
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "input_text": self.input_text,
            "translated_text": self.translated_text,
            "voice": self.voice,
        }
