"""Typed failures surfaced by the speech layer."""

from __future__ import annotations

from enum import Enum

CANCELLED = "cancelled"
SUPERSEDED = "superseded"


class SpeechErrorKind(str, Enum):
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    RECOGNITION_FAILED = "recognition_failed"
    SYNTHESIS_FAILED = "synthesis_failed"


class SpeechError(Exception):
    """Base class for every error reported through callbacks or futures."""

    kind: SpeechErrorKind

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason or self.kind.value)
        self.reason = reason

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reason={self.reason!r})"


class UnsupportedError(SpeechError):
    """The host does not provide the requested speech capability."""

    kind = SpeechErrorKind.UNSUPPORTED


class PermissionDeniedError(SpeechError):
    """Microphone access was refused."""

    kind = SpeechErrorKind.PERMISSION_DENIED


class RecognitionFailedError(SpeechError):
    kind = SpeechErrorKind.RECOGNITION_FAILED


class SynthesisFailedError(SpeechError):
    kind = SpeechErrorKind.SYNTHESIS_FAILED

    @property
    def self_inflicted(self) -> bool:
        """True for cancellations caused by ``stop`` or a newer ``speak`` call."""
        return self.reason in (CANCELLED, SUPERSEDED)
