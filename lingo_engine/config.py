"""Settings for the translator.

Uses pydantic-settings to load from the project's .env file,
with type validation and defaults matching the hosted Gemini models.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Gemini credentials and models
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
    )
    translation_model: str = "gemini-3-flash-preview"
    speech_model: str = "gemini-2.5-flash-preview-tts"
    default_voice: str = "Kore"

    # Gemini TTS emits 24kHz mono PCM; playback must run at the same rate
    output_sample_rate: int = 24000

    # Gateway
    host: str = "0.0.0.0"
    port: int = 8080
    auth_token: str = "devtoken"
    ice_servers_json: str = "[]"

    # Seconds to wait for a suspended audio output to come back
    resume_timeout: float = 10.0

    log_dir: Path = PROJECT_ROOT / "logs"

    model_config = {
        "env_file": str(PROJECT_ROOT / ".env"),
        "extra": "ignore",
        "populate_by_name": True,
    }

    def require_api_key(self) -> str:
        """Return the Gemini API key, or raise if it was never configured."""
        key = self.gemini_api_key.strip()
        if not key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Add it to your environment or .env file."
            )
        return key


settings = Settings()
