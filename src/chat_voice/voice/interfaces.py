"""Contracts for the host speech platform and the events it emits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from chat_voice.models import SpeechConfig, TranscriptSegment, UtterancePlan, VoiceDescriptor


@dataclass(frozen=True, slots=True)
class CaptureStarted:
    """The platform began capturing audio."""


@dataclass(frozen=True, slots=True)
class CaptureResult:
    segments: tuple[TranscriptSegment, ...]


@dataclass(frozen=True, slots=True)
class CaptureError:
    reason: str


@dataclass(frozen=True, slots=True)
class CaptureEnded:
    """The platform released the capture stream."""


CaptureEvent = CaptureStarted | CaptureResult | CaptureError | CaptureEnded


@dataclass(frozen=True, slots=True)
class UtteranceStarted:
    pass


@dataclass(frozen=True, slots=True)
class UtteranceFinished:
    pass


@dataclass(frozen=True, slots=True)
class UtteranceFailed:
    reason: str


UtteranceEvent = UtteranceStarted | UtteranceFinished | UtteranceFailed

CaptureSink = Callable[[CaptureEvent], None]
UtteranceSink = Callable[[UtteranceEvent], None]


class SpeechPlatform(Protocol):
    """Host speech capability. Sinks may be invoked from any thread."""

    def supports_recognition(self) -> bool:
        """Return whether continuous speech recognition is available."""

    def supports_synthesis(self) -> bool:
        """Return whether utterance synthesis is available."""

    async def request_microphone(self) -> bool:
        """Request transient microphone access and release it before returning."""

    def start_capture(self, config: SpeechConfig, sink: CaptureSink) -> None:
        """Begin capturing audio and report progress to ``sink``."""

    def stop_capture(self) -> None:
        """Ask the platform to end the active capture."""

    def enumerate_voices(self) -> list[VoiceDescriptor]:
        """Return the voices currently known to the synthesizer."""

    def speak_utterance(self, text: str, plan: UtterancePlan, sink: UtteranceSink) -> None:
        """Queue ``text`` for playback and report completion to ``sink``."""

    def cancel_utterance(self) -> None:
        """Abort the utterance currently playing, if any."""


@runtime_checkable
class PausablePlatform(Protocol):
    """Optional extension for platforms that can pause playback."""

    def pause_utterance(self) -> None: ...

    def resume_utterance(self) -> None: ...
