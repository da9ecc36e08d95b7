"""Local host speech platform built from the optional voice extras."""

from __future__ import annotations

import logging

from chat_voice.models import SpeechConfig, UtterancePlan, VoiceDescriptor

from .interfaces import CaptureError, CaptureSink, UtteranceFailed, UtteranceSink

VOICE_EXTRA_HINT = "Install extras with: pip install 'chat-voice[voice]'"


class LocalSpeechPlatform:
    """Combines a speech_recognition capture and a pyttsx3 playback backend.

    Either backend may be missing; the corresponding capability then probes
    as unsupported.
    """

    def __init__(self, capture=None, playback=None, logger: logging.Logger | None = None) -> None:
        self._capture = capture
        self._playback = playback
        self._logger = logger or logging.getLogger("chat_voice.platform")

    @classmethod
    def from_environment(cls, *, phrase_time_limit: float = 5.0) -> "LocalSpeechPlatform":
        """Build whichever backends are installed; fail only when neither is."""
        from .stt_speechrecognition import SpeechRecognitionCapture
        from .tts_pyttsx3 import Pyttsx3Playback

        logger = logging.getLogger("chat_voice.platform")
        capture = playback = None
        try:
            capture = SpeechRecognitionCapture(phrase_time_limit=phrase_time_limit)
        except RuntimeError as exc:
            logger.warning("stt_backend_unavailable", extra={"reason": str(exc)})
        try:
            playback = Pyttsx3Playback()
        except RuntimeError as exc:
            logger.warning("tts_backend_unavailable", extra={"reason": str(exc)})

        if capture is None and playback is None:
            raise RuntimeError(VOICE_EXTRA_HINT)
        return cls(capture=capture, playback=playback, logger=logger)

    def supports_recognition(self) -> bool:
        return self._capture is not None and self._capture.supported()

    def supports_synthesis(self) -> bool:
        return self._playback is not None and self._playback.supported()

    async def request_microphone(self) -> bool:
        if self._capture is None:
            return False
        return await self._capture.request_microphone()

    def start_capture(self, config: SpeechConfig, sink: CaptureSink) -> None:
        if self._capture is None:
            sink(CaptureError(reason="speech recognition backend is not installed"))
            return
        self._capture.start_capture(config, sink)

    def stop_capture(self) -> None:
        if self._capture is not None:
            self._capture.stop_capture()

    def enumerate_voices(self) -> list[VoiceDescriptor]:
        if self._playback is None:
            return []
        return self._playback.enumerate_voices()

    def speak_utterance(self, text: str, plan: UtterancePlan, sink: UtteranceSink) -> None:
        if self._playback is None:
            sink(UtteranceFailed(reason="speech synthesis backend is not installed"))
            return
        self._playback.speak_utterance(text, plan, sink)

    def cancel_utterance(self) -> None:
        if self._playback is not None:
            self._playback.cancel_utterance()
