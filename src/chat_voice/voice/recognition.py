"""Continuous speech-to-text capture driven by platform events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from chat_voice.errors import RecognitionFailedError, SpeechError, UnsupportedError
from chat_voice.models import RecognitionState, SpeechConfig, TranscriptEvent

from .channel import EventChannel, current_task_or_none
from .interfaces import CaptureEnded, CaptureError, CaptureResult, CaptureStarted, SpeechPlatform
from .probe import CapabilityProbe


def _noop(*_args: object) -> None:
    return None


@dataclass(slots=True)
class RecognitionHandlers:
    """Callbacks a session reports to. Every field defaults to a no-op."""

    on_transcript: Callable[[TranscriptEvent], None] = _noop
    on_error: Callable[[SpeechError], None] = _noop
    on_listening: Callable[[], None] = _noop
    on_ended: Callable[[], None] = _noop


@dataclass(frozen=True, slots=True)
class _StopRequested:
    """Wakes the consumer so the stop timeout starts counting."""


class RecognitionSession:
    """Wraps one continuous capture and normalizes its events into transcripts.

    Each capture reports exactly one terminal notification, ``on_ended`` or
    ``on_error``. After that its channel is closed and late platform events
    are dropped.
    """

    def __init__(
        self,
        platform: SpeechPlatform,
        probe: CapabilityProbe | None = None,
        *,
        stop_timeout_seconds: float = 2.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._probe = probe or CapabilityProbe(platform)
        self._stop_timeout_seconds = stop_timeout_seconds
        self._logger = logger or logging.getLogger("chat_voice.recognition")

        self._state = RecognitionState.IDLE
        self._config = SpeechConfig()
        self._handlers = RecognitionHandlers()
        self._channel: EventChannel | None = None
        self._task: asyncio.Task[None] | None = None
        self._capture_closed = False

    @property
    def state(self) -> RecognitionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is not RecognitionState.IDLE

    def start(self, config: SpeechConfig, handlers: RecognitionHandlers | None = None) -> None:
        """Open a capture stream. Calling while a capture is active does nothing."""
        if self._state is not RecognitionState.IDLE:
            self._logger.debug("recognition_start_ignored", extra={"state": self._state.value})
            return

        handlers = handlers or RecognitionHandlers()
        if not self._probe.probe().recognition_supported:
            self._notify(handlers.on_error, UnsupportedError("speech recognition is not supported on this host"))
            return

        loop = asyncio.get_running_loop()
        channel: EventChannel = EventChannel(loop, name="recognition")
        self._config = config
        self._handlers = handlers
        self._channel = channel
        self._capture_closed = False
        self._transition(RecognitionState.STARTING)
        self._task = loop.create_task(self._consume(channel), name="recognition-session")
        self._logger.info(
            "recognition_starting",
            extra={"language": config.language_tag, "continuous": config.continuous},
        )

        try:
            self._platform.start_capture(config, channel)
        except Exception as exc:  # noqa: BLE001 - surfaced through on_error.
            self._logger.exception("recognition_start_failed")
            self._fail(channel, str(exc) or type(exc).__name__)

    def stop(self) -> None:
        """Request the end of the capture. ``idle`` is reached asynchronously."""
        channel = self._channel
        if channel is None or self._state not in (RecognitionState.STARTING, RecognitionState.LISTENING):
            return

        self._transition(RecognitionState.STOPPING)
        channel.put(_StopRequested())
        try:
            self._platform.stop_capture()
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("recognition_stop_failed")
            self._fail(channel, str(exc) or type(exc).__name__)

    async def wait_idle(self) -> None:
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _consume(self, channel: EventChannel) -> None:
        while not channel.closed:
            timeout = self._stop_timeout_seconds if self._state is RecognitionState.STOPPING else None
            try:
                event = await asyncio.wait_for(channel.get(), timeout)
            except asyncio.TimeoutError:
                self._logger.warning(
                    "recognition_stop_timeout",
                    extra={"timeout_seconds": self._stop_timeout_seconds},
                )
                self._finish(channel)
                return

            if channel.closed:
                return
            if isinstance(event, CaptureStarted):
                self._on_started()
            elif isinstance(event, CaptureResult):
                self._on_result(channel, event)
            elif isinstance(event, CaptureError):
                self._fail(channel, event.reason, release_capture=True)
            elif isinstance(event, CaptureEnded):
                self._finish(channel)

    def _on_started(self) -> None:
        if self._state is not RecognitionState.STARTING:
            self._logger.debug("recognition_start_event_ignored", extra={"state": self._state.value})
            return
        self._transition(RecognitionState.LISTENING)
        self._notify(self._handlers.on_listening)

    def _on_result(self, channel: EventChannel, event: CaptureResult) -> None:
        if self._capture_closed:
            return
        if self._state is RecognitionState.STARTING:
            # some hosts deliver results without a start notification
            self._on_started()

        final = "".join(segment.text for segment in event.segments if segment.is_final)
        interim = "".join(segment.text for segment in event.segments if not segment.is_final)

        if final.strip():
            self._notify(self._handlers.on_transcript, TranscriptEvent(text=final, is_final=True))
            if not self._config.continuous:
                self._capture_closed = True
                self.stop()
                return

        if interim.strip() and self._config.interim_results and self._channel is channel:
            self._notify(self._handlers.on_transcript, TranscriptEvent(text=interim, is_final=False))

    def _fail(self, channel: EventChannel, reason: str, *, release_capture: bool = False) -> None:
        if channel is not self._channel:
            return
        handlers = self._handlers
        self._transition(RecognitionState.FAILED)
        self._teardown(channel)
        if release_capture:
            self._release_capture()
        self._logger.warning("recognition_failed", extra={"reason": reason})
        self._notify(handlers.on_error, RecognitionFailedError(reason))
        self._transition(RecognitionState.IDLE)

    def _release_capture(self) -> None:
        # the channel is already closed, so an end event from the platform is dropped
        try:
            self._platform.stop_capture()
        except Exception:  # noqa: BLE001
            self._logger.exception("recognition_release_failed")

    def _finish(self, channel: EventChannel) -> None:
        if channel is not self._channel:
            return
        handlers = self._handlers
        self._teardown(channel)
        self._transition(RecognitionState.IDLE)
        self._logger.info("recognition_ended")
        self._notify(handlers.on_ended)

    def _teardown(self, channel: EventChannel) -> None:
        channel.close()
        self._channel = None
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not current_task_or_none():
            task.cancel()

    def _transition(self, state: RecognitionState) -> None:
        self._logger.debug("recognition_state", extra={"from": self._state.value, "to": state.value})
        self._state = state

    def _notify(self, handler: Callable[..., None], *args: object) -> None:
        try:
            handler(*args)
        except Exception:  # noqa: BLE001 - caller handlers must not break the state machine.
            self._logger.exception("recognition_handler_failed")
