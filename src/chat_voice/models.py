from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RecognitionState(str, Enum):
    """Lifecycle states for a recognition session."""

    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"
    FAILED = "failed"


class SynthesisState(str, Enum):
    """Lifecycle states for the synthesis controller."""

    IDLE = "idle"
    SPEAKING = "speaking"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SpeechConfig:
    """Recognition parameters, fixed for the lifetime of one session.

    ``max_alternatives`` bounds how many recognizer hypotheses are considered
    per phrase. Only the most likely one is delivered as a transcript.
    """

    language_tag: str = "en-US"
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int = 1

    def __post_init__(self) -> None:
        if self.max_alternatives < 1:
            raise ValueError(f"max_alternatives must be >= 1, got {self.max_alternatives}")


@dataclass(frozen=True, slots=True)
class UtteranceConfig:
    """Caller-facing synthesis parameters. Out-of-range values are clamped later."""

    language_tag: str = "en-US"
    voice_id: str | None = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


@dataclass(frozen=True, slots=True)
class ParameterRanges:
    """Inclusive bounds accepted by the synthesis platform."""

    rate: tuple[float, float] = (0.5, 2.0)
    pitch: tuple[float, float] = (0.0, 2.0)
    volume: tuple[float, float] = (0.0, 1.0)


DEFAULT_PARAMETER_RANGES = ParameterRanges()


@dataclass(frozen=True, slots=True)
class UtterancePlan:
    """Resolved parameters handed to the platform for one utterance."""

    language_tag: str
    voice_id: str | None
    rate: float
    pitch: float
    volume: float


@dataclass(frozen=True, slots=True)
class TranscriptEvent:
    text: str
    is_final: bool


@dataclass(frozen=True, slots=True)
class TranscriptSegment:
    """One recognition result fragment as reported by the platform.

    ``confidence`` is whatever score the recognizer attached, if any. It is
    informational and does not affect delivery.
    """

    text: str
    is_final: bool
    confidence: float | None = None


@dataclass(frozen=True, slots=True)
class VoiceDescriptor:
    id: str
    display_name: str
    language_tag: str


@dataclass(frozen=True, slots=True)
class CapabilityReport:
    recognition_supported: bool
    synthesis_supported: bool


def clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))
