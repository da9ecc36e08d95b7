from __future__ import annotations

import pytest
from pydantic import ValidationError

from chat_voice.config import SUPPORTED_LANGUAGES, Settings, language_name
from chat_voice.models import SpeechConfig


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("CHAT_VOICE_LANGUAGE", "fr-FR")
    monkeypatch.setenv("CHAT_VOICE_CONTINUOUS", "false")
    monkeypatch.setenv("CHAT_VOICE_VOLUME", "0.4")
    monkeypatch.setenv("CHAT_VOICE_VOICE_ID", "Amelie")

    configured = Settings(_env_file=None)
    speech = configured.speech_config()
    utterance = configured.utterance_config()

    assert speech.language_tag == "fr-FR"
    assert speech.continuous is False
    assert utterance.language_tag == "fr-FR"
    assert utterance.volume == 0.4
    assert utterance.voice_id == "Amelie"


def test_settings_reject_invalid_alternatives(monkeypatch) -> None:
    monkeypatch.setenv("CHAT_VOICE_MAX_ALTERNATIVES", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_speech_config_requires_one_alternative() -> None:
    with pytest.raises(ValueError):
        SpeechConfig(max_alternatives=0)


def test_language_catalogue_lookup() -> None:
    assert ("en-US", "English (US)") in SUPPORTED_LANGUAGES
    assert language_name("pt-br") == "Portuguese (Brazil)"
    assert language_name("xx-XX") is None
