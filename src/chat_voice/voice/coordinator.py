"""Single observable façade over capability probing, recognition and synthesis."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable

from chat_voice.errors import PermissionDeniedError, SpeechError, SynthesisFailedError, UnsupportedError
from chat_voice.models import (
    DEFAULT_PARAMETER_RANGES,
    ParameterRanges,
    SpeechConfig,
    TranscriptEvent,
    UtteranceConfig,
    VoiceDescriptor,
)
from chat_voice.telemetry.logging import Telemetry

from .interfaces import SpeechPlatform
from .probe import CapabilityProbe
from .recognition import RecognitionHandlers, RecognitionSession
from .synthesis import SynthesisController


def _noop(*_args: object) -> None:
    return None


@dataclass(frozen=True, slots=True)
class SpeechState:
    """Snapshot of everything the UI renders about speech."""

    is_listening: bool = False
    is_speaking: bool = False
    is_supported: bool = False
    is_synthesis_supported: bool = False
    is_microphone_available: bool = False
    current_transcript: str = ""
    last_error: SpeechError | None = None
    available_voices: tuple[VoiceDescriptor, ...] = ()


@dataclass(slots=True)
class SpeechCallbacks:
    """UI notifications. Each may fire after the UI has moved on."""

    on_transcript: Callable[[str, bool], None] = _noop
    on_error: Callable[[SpeechError], None] = _noop
    on_start: Callable[[], None] = _noop
    on_stop: Callable[[], None] = _noop


StateListener = Callable[[SpeechState], None]


class SpeechCoordinator:
    """Merges the probe, the recognition session and the synthesis controller.

    The coordinator owns at most one recognition session and one utterance at
    a time. It never retries; errors stay in ``last_error`` until cleared.
    """

    def __init__(
        self,
        platform: SpeechPlatform,
        *,
        callbacks: SpeechCallbacks | None = None,
        speech_config: SpeechConfig | None = None,
        utterance_config: UtteranceConfig | None = None,
        probe: CapabilityProbe | None = None,
        parameter_ranges: ParameterRanges = DEFAULT_PARAMETER_RANGES,
        stop_timeout_seconds: float = 2.0,
        telemetry: Telemetry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._callbacks = callbacks or SpeechCallbacks()
        self._speech_config = speech_config or SpeechConfig()
        self._utterance_config = utterance_config or UtteranceConfig(language_tag=self._speech_config.language_tag)
        self._probe = probe or CapabilityProbe(platform)
        self._stop_timeout_seconds = stop_timeout_seconds
        self._telemetry = telemetry
        self._logger = logger or logging.getLogger("chat_voice.coordinator")

        self._synthesis = SynthesisController(platform, self._probe, ranges=parameter_ranges)
        self._session: RecognitionSession | None = None
        self._listeners: list[StateListener] = []

        self._state = SpeechState()

    @property
    def state(self) -> SpeechState:
        return self._state

    @property
    def probe(self) -> CapabilityProbe:
        return self._probe

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener and return a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def initialize(self) -> SpeechState:
        """Probe capabilities, check the microphone once and load voices."""
        report = self._probe.probe()
        microphone = await self._probe.check_microphone()
        voices = self._synthesis.voices() if report.synthesis_supported else []
        self._update(
            is_supported=report.recognition_supported,
            is_synthesis_supported=report.synthesis_supported,
            is_microphone_available=microphone,
            available_voices=tuple(voices),
        )
        return self._state

    async def refresh_capabilities(self) -> SpeechState:
        """Discard cached probe results and detect capabilities again."""
        self._probe.reset()
        return await self.initialize()

    def start_listening(self) -> None:
        if self._session is not None and self._session.active:
            self._logger.debug("start_listening_ignored", extra={"state": self._session.state.value})
            return

        report = self._probe.probe()
        self._update(
            is_supported=report.recognition_supported,
            is_synthesis_supported=report.synthesis_supported,
        )
        if not report.recognition_supported:
            self._report_error(UnsupportedError("speech recognition is not supported on this host"))
            return
        if self._probe.microphone_available is False:
            self._report_error(PermissionDeniedError("microphone access is not available"))
            return

        session = RecognitionSession(
            self._platform,
            self._probe,
            stop_timeout_seconds=self._stop_timeout_seconds,
        )
        self._session = session
        session.start(
            self._speech_config,
            RecognitionHandlers(
                on_transcript=partial(self._handle_transcript, session),
                on_error=partial(self._handle_recognition_error, session),
                on_listening=partial(self._handle_listening, session),
                on_ended=partial(self._handle_ended, session),
            ),
        )
        if session.active:
            self._update(is_listening=True)

    def stop_listening(self) -> None:
        if self._session is not None:
            self._session.stop()

    def toggle_listening(self) -> None:
        if self._state.is_listening:
            self.stop_listening()
        else:
            self.start_listening()

    def speak(self, text: str, volume_override: float | None = None) -> asyncio.Future[None]:
        """Speak ``text``; the returned future may be ignored by the caller."""
        config = self._utterance_config
        if volume_override is not None:
            config = replace(config, volume=volume_override)

        future = self._synthesis.speak(text, config)
        self._update(is_speaking=self._synthesis.speaking)
        future.add_done_callback(self._handle_speech_done)
        return future

    def stop_speaking(self) -> None:
        self._synthesis.stop()
        self._update(is_speaking=self._synthesis.speaking)

    def pause_speaking(self) -> bool:
        return self._synthesis.pause()

    def resume_speaking(self) -> bool:
        return self._synthesis.resume()

    def clear_transcript(self) -> None:
        self._update(current_transcript="")

    def clear_error(self) -> None:
        self._update(last_error=None)

    async def wait_until_idle(self) -> None:
        if self._session is not None:
            await self._session.wait_idle()

    async def aclose(self) -> None:
        """Stop everything this coordinator owns and wait for the capture to end."""
        self.stop_speaking()
        self.stop_listening()
        await self.wait_until_idle()
        self._listeners.clear()

    def _handle_transcript(self, session: RecognitionSession, event: TranscriptEvent) -> None:
        if session is not self._session:
            return
        self._update(current_transcript=event.text)
        self._callbacks.on_transcript(event.text, event.is_final)

    def _handle_listening(self, session: RecognitionSession) -> None:
        if session is not self._session:
            return
        self._emit("listening_started", {"language": self._speech_config.language_tag})
        self._callbacks.on_start()

    def _handle_ended(self, session: RecognitionSession) -> None:
        if session is not self._session:
            return
        self._update(is_listening=False)
        self._emit("listening_stopped", {})
        self._callbacks.on_stop()

    def _handle_recognition_error(self, session: RecognitionSession, error: SpeechError) -> None:
        if session is not self._session:
            return
        self._update(is_listening=False)
        self._report_error(error)

    def _handle_speech_done(self, future: asyncio.Future[None]) -> None:
        self._update(is_speaking=self._synthesis.speaking)
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            self._emit("utterance_finished", {})
            return
        if isinstance(error, SynthesisFailedError) and error.self_inflicted:
            self._logger.debug("utterance_cancelled", extra={"reason": error.reason})
            return
        if isinstance(error, SpeechError):
            self._report_error(error)
        else:
            self._report_error(SynthesisFailedError(str(error) or type(error).__name__))

    def _report_error(self, error: SpeechError) -> None:
        self._logger.warning("speech_error", extra={"kind": error.kind.value, "reason": error.reason})
        self._emit("speech_error", {"kind": error.kind.value, "reason": error.reason})
        self._update(last_error=error)
        self._callbacks.on_error(error)

    def _emit(self, event_name: str, payload: dict) -> None:
        if self._telemetry is not None:
            self._telemetry.emit(event_name, payload)

    def _update(self, **changes: object) -> None:
        updated = replace(self._state, **changes)
        if updated == self._state:
            return
        self._state = updated
        for listener in list(self._listeners):
            try:
                listener(updated)
            except Exception:  # noqa: BLE001
                self._logger.exception("state_listener_failed")
