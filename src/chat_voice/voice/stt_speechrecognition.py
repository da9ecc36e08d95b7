"""Speech-to-text backend powered by ``speech_recognition``."""

from __future__ import annotations

import asyncio
import logging
import threading
from functools import partial

from chat_voice.models import SpeechConfig, TranscriptSegment

from .interfaces import CaptureEnded, CaptureError, CaptureResult, CaptureSink, CaptureStarted


class SpeechRecognitionCapture:
    """Continuous microphone capture via speech_recognition's background listener.

    Each phrase is transcribed with the Google Web Speech recognizer and
    reported as a single final segment; this backend has no interim results.
    """

    def __init__(
        self,
        *,
        phrase_time_limit: float = 5.0,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
        adjust_noise_seconds: float = 0.2,
        logger: logging.Logger | None = None,
    ) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Voice STT backend unavailable. Install extras with: pip install 'chat-voice[voice]'"
            ) from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._phrase_time_limit = phrase_time_limit
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._logger = logger or logging.getLogger("chat_voice.stt")

        self._lock = threading.Lock()
        self._generation = 0
        self._stopper = None
        self._sink: CaptureSink | None = None

    def supported(self) -> bool:
        try:
            return bool(self._sr.Microphone.list_microphone_names())
        except (AttributeError, OSError):
            return False

    async def request_microphone(self) -> bool:
        return await asyncio.to_thread(self._open_and_release)

    def start_capture(self, config: SpeechConfig, sink: CaptureSink) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._sink = sink
        threading.Thread(
            target=self._run_capture,
            args=(config, sink, generation),
            name="speech-capture",
            daemon=True,
        ).start()

    def stop_capture(self) -> None:
        with self._lock:
            self._generation += 1
            stopper, self._stopper = self._stopper, None
            sink, self._sink = self._sink, None
        if stopper is None:
            return
        stopper(wait_for_stop=False)
        if sink is not None:
            sink(CaptureEnded())

    def _open_and_release(self) -> bool:
        try:
            with self._sr.Microphone(sample_rate=self._sample_rate, chunk_size=self._chunk_size):
                return True
        except (AttributeError, OSError) as exc:
            self._logger.info("microphone_unavailable", extra={"reason": str(exc)})
            return False

    def _run_capture(self, config: SpeechConfig, sink: CaptureSink, generation: int) -> None:
        try:
            microphone = self._sr.Microphone(sample_rate=self._sample_rate, chunk_size=self._chunk_size)
            if self._adjust_noise_seconds > 0:
                with microphone as source:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)
            stopper = self._recognizer.listen_in_background(
                microphone,
                partial(self._on_phrase, config, sink),
                phrase_time_limit=self._phrase_time_limit,
            )
        except (AttributeError, OSError) as exc:
            sink(CaptureError(reason=f"microphone unavailable: {exc}"))
            return

        with self._lock:
            stale = generation != self._generation
            if not stale:
                self._stopper = stopper
        if stale:
            stopper(wait_for_stop=False)
            sink(CaptureEnded())
            return
        sink(CaptureStarted())

    def _on_phrase(self, config: SpeechConfig, sink: CaptureSink, recognizer, audio) -> None:
        try:
            response = recognizer.recognize_google(audio, language=config.language_tag, show_all=True)
        except self._sr.UnknownValueError:
            return
        except self._sr.RequestError as exc:
            sink(CaptureError(reason=f"recognition service request failed: {exc}"))
            return
        segment = self._best_segment(response, config.max_alternatives)
        if segment is not None:
            sink(CaptureResult(segments=(segment,)))

    def _best_segment(self, response, max_alternatives: int) -> TranscriptSegment | None:
        # show_all returns [] when nothing was recognized
        if not isinstance(response, dict):
            return None
        alternatives = [alt for alt in response.get("alternative") or [] if alt.get("transcript")]
        alternatives = alternatives[:max_alternatives]
        if not alternatives:
            return None
        if len(alternatives) > 1:
            self._logger.debug(
                "stt_alternatives",
                extra={"alternatives": [alt["transcript"] for alt in alternatives[1:]]},
            )
        best = alternatives[0]
        return TranscriptSegment(text=best["transcript"], is_final=True, confidence=best.get("confidence"))
