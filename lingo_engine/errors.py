"""Error taxonomy for the translation and speech pipeline."""


class LinguoError(Exception):
    """Base for every error the UI boundary reports to the user."""

    user_message = "Something went wrong."


class ConfigurationError(LinguoError):
    """Required configuration (e.g. the API key) is missing or invalid."""

    user_message = "Server is not configured."


class TranslationError(LinguoError):
    """The translation call failed or returned unusable data."""

    user_message = "Translation failed. Please try again."


class SpeechGenerationError(LinguoError):
    """The speech synthesis call failed."""

    user_message = "Speech generation failed."


class AudioGenerationError(LinguoError):
    """Speech synthesis succeeded but produced no playable audio."""

    user_message = "Speech generation failed."


class AudioDecodeError(LinguoError):
    """The audio payload could not be interpreted as 16-bit PCM."""

    user_message = "Speech generation failed."


class AudioUnavailableError(AudioGenerationError):
    """No audio output is connected to play through."""

    user_message = "Audio playback is unavailable. Connect audio first."
