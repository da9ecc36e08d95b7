"""Runtime configuration for chat-voice."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_voice.models import SpeechConfig, UtteranceConfig

SUPPORTED_LANGUAGES: tuple[tuple[str, str], ...] = (
    ("en-US", "English (US)"),
    ("en-GB", "English (UK)"),
    ("es-ES", "Spanish (Spain)"),
    ("es-MX", "Spanish (Mexico)"),
    ("fr-FR", "French"),
    ("de-DE", "German"),
    ("it-IT", "Italian"),
    ("pt-BR", "Portuguese (Brazil)"),
    ("ru-RU", "Russian"),
    ("ja-JP", "Japanese"),
    ("ko-KR", "Korean"),
    ("zh-CN", "Chinese (Simplified)"),
    ("hi-IN", "Hindi"),
    ("ar-SA", "Arabic"),
)


def language_name(code: str) -> str | None:
    """Return the display name for a supported language tag, ignoring case."""
    lowered = code.lower()
    for tag, name in SUPPORTED_LANGUAGES:
        if tag.lower() == lowered:
            return name
    return None


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="CHAT_VOICE_", env_file=".env", extra="ignore")

    app_name: str = "chat-voice"
    log_level: str = "INFO"
    speech_backend: str = Field(
        default="local",
        description="Speech platform backend: 'local' (speech_recognition + pyttsx3) or 'scripted'.",
    )
    language: str = "en-US"
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int = Field(default=1, ge=1)
    voice_id: str | None = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    stop_timeout_seconds: float = Field(default=2.0, gt=0)
    phrase_time_limit: float = 5.0
    telemetry_enabled: bool = True

    def speech_config(self) -> SpeechConfig:
        return SpeechConfig(
            language_tag=self.language,
            continuous=self.continuous,
            interim_results=self.interim_results,
            max_alternatives=self.max_alternatives,
        )

    def utterance_config(self) -> UtteranceConfig:
        return UtteranceConfig(
            language_tag=self.language,
            voice_id=self.voice_id,
            rate=self.rate,
            pitch=self.pitch,
            volume=self.volume,
        )


settings = Settings()
