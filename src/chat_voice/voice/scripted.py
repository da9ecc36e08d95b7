"""Deterministic in-memory speech platform for local demos and tests."""

from __future__ import annotations

from chat_voice.models import SpeechConfig, TranscriptSegment, UtterancePlan, VoiceDescriptor

from .interfaces import (
    CaptureEnded,
    CaptureError,
    CaptureEvent,
    CaptureResult,
    CaptureSink,
    CaptureStarted,
    UtteranceFailed,
    UtteranceFinished,
    UtteranceSink,
    UtteranceStarted,
)


class ScriptedSpeechPlatform:
    """Records every platform call and lets the caller emit events by hand.

    Sinks are kept after a capture or utterance ends, so late events can be
    replayed into a torn-down session.
    """

    def __init__(
        self,
        *,
        recognition: bool = True,
        synthesis: bool = True,
        microphone: bool = True,
        voices: list[VoiceDescriptor] | None = None,
        auto_start: bool = True,
        end_on_stop: bool = True,
        auto_finish: bool = False,
        transcripts: tuple[str, ...] = (),
    ) -> None:
        self.recognition_supported = recognition
        self.synthesis_supported = synthesis
        self.microphone_granted = microphone
        self.voices = list(voices or [])
        self.auto_start = auto_start
        self.end_on_stop = end_on_stop
        self.auto_finish = auto_finish
        self.transcripts = transcripts

        self.captures: list[SpeechConfig] = []
        self.capture_sinks: list[CaptureSink] = []
        self.stop_requests = 0
        self.microphone_requests = 0
        self.spoken: list[tuple[str, UtterancePlan]] = []
        self.utterance_sinks: list[UtteranceSink] = []
        self.cancellations = 0
        self.paused = False

    def supports_recognition(self) -> bool:
        return self.recognition_supported

    def supports_synthesis(self) -> bool:
        return self.synthesis_supported

    async def request_microphone(self) -> bool:
        self.microphone_requests += 1
        return self.microphone_granted

    def start_capture(self, config: SpeechConfig, sink: CaptureSink) -> None:
        self.captures.append(config)
        self.capture_sinks.append(sink)
        if self.auto_start:
            sink(CaptureStarted())
        for text in self.transcripts:
            sink(CaptureResult(segments=(TranscriptSegment(text=text, is_final=True),)))

    def stop_capture(self) -> None:
        self.stop_requests += 1
        if self.end_on_stop and self.capture_sinks:
            self.capture_sinks[-1](CaptureEnded())

    def enumerate_voices(self) -> list[VoiceDescriptor]:
        return list(self.voices)

    def speak_utterance(self, text: str, plan: UtterancePlan, sink: UtteranceSink) -> None:
        self.spoken.append((text, plan))
        self.utterance_sinks.append(sink)
        sink(UtteranceStarted())
        if self.auto_finish:
            sink(UtteranceFinished())

    def cancel_utterance(self) -> None:
        self.cancellations += 1

    def pause_utterance(self) -> None:
        self.paused = True

    def resume_utterance(self) -> None:
        self.paused = False

    def emit_capture(self, event: CaptureEvent, index: int = -1) -> None:
        self.capture_sinks[index](event)

    def emit_transcript(self, text: str, *, is_final: bool = True, index: int = -1) -> None:
        self.emit_capture(CaptureResult(segments=(TranscriptSegment(text=text, is_final=is_final),)), index)

    def emit_capture_error(self, reason: str, index: int = -1) -> None:
        self.emit_capture(CaptureError(reason=reason), index)

    def end_capture(self, index: int = -1) -> None:
        self.emit_capture(CaptureEnded(), index)

    def finish_utterance(self, index: int = -1) -> None:
        self.utterance_sinks[index](UtteranceFinished())

    def fail_utterance(self, reason: str, index: int = -1) -> None:
        self.utterance_sinks[index](UtteranceFailed(reason=reason))
