"""Text-to-speech backend powered by ``pyttsx3``."""

from __future__ import annotations

import logging
import threading

from chat_voice.models import UtterancePlan, VoiceDescriptor

from .interfaces import UtteranceFailed, UtteranceFinished, UtteranceSink, UtteranceStarted


def normalize_language_tag(raw: object) -> str:
    """Turn driver language codes such as ``b'\\x05en-us'`` or ``en_US`` into ``en-US``."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    text = "".join(ch for ch in str(raw) if ch.isprintable()).strip().replace("_", "-")
    if not text:
        return ""
    primary, _, region = text.partition("-")
    return f"{primary.lower()}-{region.upper()}" if region else primary.lower()


def _matches_language(voice_tag: str, requested: str) -> bool:
    voice_tag = voice_tag.lower()
    requested = requested.lower()
    return bool(voice_tag) and (voice_tag == requested or voice_tag.split("-")[0] == requested.split("-")[0])


class Pyttsx3Playback:
    """Speaker playback using a local pyttsx3 engine run on a worker thread."""

    def __init__(self, *, base_words_per_minute: int = 200, logger: logging.Logger | None = None) -> None:
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Voice TTS backend unavailable. Install extras with: pip install 'chat-voice[voice]'"
            ) from exc

        self._pyttsx3 = pyttsx3
        self._base_words_per_minute = base_words_per_minute
        self._logger = logger or logging.getLogger("chat_voice.tts")
        self._engine = None
        self._engine_lock = threading.Lock()
        self._playback_lock = threading.Lock()
        self._generation = 0

    def supported(self) -> bool:
        try:
            self._get_engine()
        except (RuntimeError, OSError, ImportError, KeyError) as exc:
            self._logger.info("tts_engine_unavailable", extra={"reason": str(exc)})
            return False
        return True

    def enumerate_voices(self) -> list[VoiceDescriptor]:
        engine = self._get_engine()
        voices = engine.getProperty("voices") or []
        return [
            VoiceDescriptor(
                id=voice.id,
                display_name=voice.name or voice.id,
                language_tag=normalize_language_tag(voice.languages[0]) if voice.languages else "",
            )
            for voice in voices
        ]

    def speak_utterance(self, text: str, plan: UtterancePlan, sink: UtteranceSink) -> None:
        with self._engine_lock:
            self._generation += 1
            generation = self._generation
        threading.Thread(
            target=self._play,
            args=(text, plan, sink, generation),
            name="speech-playback",
            daemon=True,
        ).start()

    def cancel_utterance(self) -> None:
        with self._engine_lock:
            self._generation += 1
            engine = self._engine
        if engine is not None:
            engine.stop()

    def _play(self, text: str, plan: UtterancePlan, sink: UtteranceSink, generation: int) -> None:
        with self._playback_lock:
            if generation != self._generation:
                # cancelled or replaced while waiting for the previous utterance
                self._logger.debug("tts_stale_utterance_skipped", extra={"generation": generation})
                return
            try:
                engine = self._get_engine()
                voice_id = plan.voice_id or self._voice_for_language(plan.language_tag)
                if voice_id:
                    engine.setProperty("voice", voice_id)
                engine.setProperty("rate", int(self._base_words_per_minute * plan.rate))
                engine.setProperty("volume", plan.volume)
                sink(UtteranceStarted())
                engine.say(text)
                engine.runAndWait()
            except Exception as exc:  # noqa: BLE001 - reported through the sink.
                sink(UtteranceFailed(reason=f"{type(exc).__name__}: {exc}"))
                return
        sink(UtteranceFinished())

    def _voice_for_language(self, language_tag: str) -> str | None:
        for voice in self.enumerate_voices():
            if _matches_language(voice.language_tag, language_tag):
                return voice.id
        return None

    def _get_engine(self):
        with self._engine_lock:
            if self._engine is None:
                self._engine = self._pyttsx3.init()
            return self._engine
