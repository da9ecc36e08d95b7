"""Text-to-speech orchestration for spoken assistant responses."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial

from chat_voice.errors import CANCELLED, SUPERSEDED, SpeechError, SynthesisFailedError, UnsupportedError
from chat_voice.models import (
    DEFAULT_PARAMETER_RANGES,
    ParameterRanges,
    SynthesisState,
    UtteranceConfig,
    UtterancePlan,
    VoiceDescriptor,
    clamp,
)

from .channel import EventChannel, current_task_or_none
from .interfaces import PausablePlatform, SpeechPlatform, UtteranceFailed, UtteranceFinished
from .probe import CapabilityProbe


@dataclass(slots=True, eq=False)
class _ActiveUtterance:
    text: str
    plan: UtterancePlan
    future: asyncio.Future[None]
    channel: EventChannel
    task: asyncio.Task[None] | None = None


class SynthesisController:
    """Plays one utterance at a time; a newer ``speak`` call replaces the current one."""

    def __init__(
        self,
        platform: SpeechPlatform,
        probe: CapabilityProbe | None = None,
        *,
        ranges: ParameterRanges = DEFAULT_PARAMETER_RANGES,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._probe = probe or CapabilityProbe(platform)
        self._ranges = ranges
        self._logger = logger or logging.getLogger("chat_voice.synthesis")
        self._state = SynthesisState.IDLE
        self._active: _ActiveUtterance | None = None

    @property
    def state(self) -> SynthesisState:
        return self._state

    @property
    def speaking(self) -> bool:
        return self._active is not None

    def voices(self) -> list[VoiceDescriptor]:
        try:
            return list(self._platform.enumerate_voices())
        except Exception:  # noqa: BLE001 - an empty voice list is a valid platform answer.
            self._logger.exception("voice_enumeration_failed")
            return []

    def plan(self, config: UtteranceConfig) -> UtterancePlan:
        """Clamp numeric parameters and resolve the requested voice."""
        return UtterancePlan(
            language_tag=config.language_tag,
            voice_id=self._resolve_voice(config),
            rate=clamp(config.rate, self._ranges.rate),
            pitch=clamp(config.pitch, self._ranges.pitch),
            volume=clamp(config.volume, self._ranges.volume),
        )

    def speak(self, text: str, config: UtteranceConfig | None = None) -> asyncio.Future[None]:
        """Start speaking ``text`` and return a future settled exactly once."""
        config = config or UtteranceConfig()
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        if not self._probe.probe().synthesis_supported:
            future.set_exception(UnsupportedError("speech synthesis is not supported on this host"))
            return future

        if self._active is not None:
            self._cancel(self._active, SUPERSEDED)

        normalized = " ".join(text.split())
        if not normalized:
            future.set_result(None)
            return future

        plan = self.plan(config)
        utterance = _ActiveUtterance(
            text=normalized,
            plan=plan,
            future=future,
            channel=EventChannel(loop, name="synthesis"),
        )
        self._active = utterance
        self._transition(SynthesisState.SPEAKING)
        utterance.task = loop.create_task(self._await_outcome(utterance), name="synthesis-utterance")
        future.add_done_callback(partial(self._on_future_done, utterance))
        self._logger.info(
            "utterance_started",
            extra={"chars": len(normalized), "voice_id": plan.voice_id, "rate": plan.rate, "volume": plan.volume},
        )

        try:
            self._platform.speak_utterance(normalized, plan, utterance.channel)
        except Exception as exc:  # noqa: BLE001 - surfaced through the returned future.
            self._logger.exception("utterance_start_failed")
            self._settle(utterance, SynthesisFailedError(str(exc) or type(exc).__name__))
        return future

    def stop(self) -> None:
        """Cancel the active utterance, if any."""
        if self._active is None:
            return
        self._cancel(self._active, CANCELLED)

    def pause(self) -> bool:
        if self._active is None or not isinstance(self._platform, PausablePlatform):
            return False
        self._platform.pause_utterance()
        return True

    def resume(self) -> bool:
        if self._active is None or not isinstance(self._platform, PausablePlatform):
            return False
        self._platform.resume_utterance()
        return True

    async def _await_outcome(self, utterance: _ActiveUtterance) -> None:
        channel = utterance.channel
        while not channel.closed:
            event = await channel.get()
            if isinstance(event, UtteranceFinished):
                self._settle(utterance)
            elif isinstance(event, UtteranceFailed):
                self._settle(utterance, SynthesisFailedError(event.reason))
            else:
                self._logger.debug("utterance_event", extra={"event": type(event).__name__})

    def _cancel(self, utterance: _ActiveUtterance, reason: str) -> None:
        try:
            self._platform.cancel_utterance()
        except Exception:  # noqa: BLE001
            self._logger.exception("utterance_cancel_failed")
        self._settle(utterance, SynthesisFailedError(reason))

    def _settle(self, utterance: _ActiveUtterance, error: SpeechError | None = None) -> None:
        if utterance.channel.closed:
            return
        utterance.channel.close()
        task = utterance.task
        if task is not None and not task.done() and task is not current_task_or_none():
            task.cancel()

        if self._active is utterance:
            self._active = None
            if isinstance(error, SynthesisFailedError) and not error.self_inflicted:
                self._transition(SynthesisState.FAILED)
            self._transition(SynthesisState.IDLE)

        if error is None:
            self._logger.info("utterance_finished", extra={"chars": len(utterance.text)})
        else:
            self._logger.info("utterance_rejected", extra={"reason": error.reason})

        if not utterance.future.done():
            if error is None:
                utterance.future.set_result(None)
            else:
                utterance.future.set_exception(error)

    def _on_future_done(self, utterance: _ActiveUtterance, future: asyncio.Future[None]) -> None:
        if future.cancelled() and self._active is utterance:
            self._cancel(utterance, CANCELLED)

    def _resolve_voice(self, config: UtteranceConfig) -> str | None:
        if not config.voice_id:
            return None
        for voice in self.voices():
            if config.voice_id in (voice.id, voice.display_name):
                return voice.id
        self._logger.debug(
            "voice_not_found",
            extra={"voice_id": config.voice_id, "language": config.language_tag},
        )
        return None

    def _transition(self, state: SynthesisState) -> None:
        self._logger.debug("synthesis_state", extra={"from": self._state.value, "to": state.value})
        self._state = state
