"""Lazy, cached detection of host speech capabilities."""

from __future__ import annotations

import logging

from chat_voice.models import CapabilityReport

from .interfaces import SpeechPlatform


class CapabilityProbe:
    """Detects recognition/synthesis support and microphone access once.

    Results stay cached until :meth:`reset` is called explicitly.
    """

    def __init__(self, platform: SpeechPlatform, logger: logging.Logger | None = None) -> None:
        self._platform = platform
        self._logger = logger or logging.getLogger("chat_voice.probe")
        self._report: CapabilityReport | None = None
        self._microphone: bool | None = None

    @property
    def microphone_available(self) -> bool | None:
        """Cached microphone result, or ``None`` when not checked yet."""
        return self._microphone

    def probe(self) -> CapabilityReport:
        if self._report is None:
            self._report = CapabilityReport(
                recognition_supported=self._safe_support_check(self._platform.supports_recognition),
                synthesis_supported=self._safe_support_check(self._platform.supports_synthesis),
            )
            self._logger.info(
                "capabilities_probed",
                extra={
                    "recognition_supported": self._report.recognition_supported,
                    "synthesis_supported": self._report.synthesis_supported,
                },
            )
        return self._report

    async def check_microphone(self, *, recheck: bool = False) -> bool:
        """Request transient microphone access; the platform releases it before returning."""
        if self._microphone is not None and not recheck:
            return self._microphone

        try:
            granted = bool(await self._platform.request_microphone())
        except Exception:  # noqa: BLE001 - any platform failure means no usable microphone.
            self._logger.exception("microphone_check_failed")
            granted = False

        self._microphone = granted
        self._logger.info("microphone_checked", extra={"granted": granted})
        return granted

    def reset(self) -> None:
        self._report = None
        self._microphone = None

    def _safe_support_check(self, check) -> bool:
        try:
            return bool(check())
        except Exception:  # noqa: BLE001
            self._logger.exception("capability_check_failed", extra={"check": getattr(check, "__name__", "?")})
            return False
