from __future__ import annotations

import asyncio

from chat_voice.errors import SpeechErrorKind, SynthesisFailedError
from chat_voice.models import SpeechConfig, UtteranceConfig, VoiceDescriptor
from chat_voice.voice import ScriptedSpeechPlatform, SpeechCallbacks, SpeechCoordinator, SpeechState


class CallbackLog:
    def __init__(self) -> None:
        self.transcripts: list[tuple[str, bool]] = []
        self.errors: list = []
        self.starts = 0
        self.stops = 0

    def callbacks(self) -> SpeechCallbacks:
        return SpeechCallbacks(
            on_transcript=lambda text, is_final: self.transcripts.append((text, is_final)),
            on_error=self.errors.append,
            on_start=self._on_start,
            on_stop=self._on_stop,
        )

    def _on_start(self) -> None:
        self.starts += 1

    def _on_stop(self) -> None:
        self.stops += 1


class RecordingTelemetry:
    def __init__(self) -> None:
        self.events: list[str] = []

    def emit(self, event_name: str, payload: dict) -> None:
        self.events.append(event_name)


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def test_initialize_probes_once_and_loads_voices() -> None:
    voices = [VoiceDescriptor(id="v1", display_name="Sky", language_tag="en-US")]

    async def _run() -> tuple[SpeechState, int, int]:
        platform = ScriptedSpeechPlatform(voices=voices)
        coordinator = SpeechCoordinator(platform)
        state = await coordinator.initialize()
        await coordinator.initialize()
        cached_requests = platform.microphone_requests
        await coordinator.refresh_capabilities()
        return state, cached_requests, platform.microphone_requests

    state, cached_requests, refreshed_requests = asyncio.run(_run())
    assert state.is_supported is True
    assert state.is_synthesis_supported is True
    assert state.is_microphone_available is True
    assert state.available_voices == tuple(voices)
    assert cached_requests == 1
    assert refreshed_requests == 2


def test_unsupported_recognition_reports_one_error_and_stays_idle() -> None:
    async def _run() -> tuple[CallbackLog, SpeechState, int]:
        platform = ScriptedSpeechPlatform(recognition=False)
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        coordinator.start_listening()
        await _drain()
        return log, coordinator.state, len(platform.captures)

    log, state, captures = asyncio.run(_run())
    assert [error.kind for error in log.errors] == [SpeechErrorKind.UNSUPPORTED]
    assert state.is_listening is False
    assert state.last_error is log.errors[0]
    assert captures == 0


def test_denied_microphone_blocks_listening() -> None:
    async def _run() -> tuple[CallbackLog, int]:
        platform = ScriptedSpeechPlatform(microphone=False)
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        await coordinator.initialize()
        coordinator.start_listening()
        return log, len(platform.captures)

    log, captures = asyncio.run(_run())
    assert [error.kind for error in log.errors] == [SpeechErrorKind.PERMISSION_DENIED]
    assert captures == 0


def test_listening_flow_publishes_transcripts_and_stop() -> None:
    async def _run() -> tuple[CallbackLog, list[SpeechState], SpeechState]:
        platform = ScriptedSpeechPlatform()
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        states: list[SpeechState] = []
        coordinator.subscribe(states.append)

        coordinator.start_listening()
        platform.emit_transcript("what is", is_final=False)
        platform.emit_transcript("what is the weather")
        await _drain()
        during = coordinator.state
        coordinator.stop_listening()
        await coordinator.wait_until_idle()
        return log, states, during

    log, states, during = asyncio.run(_run())
    assert log.starts == 1
    assert log.stops == 1
    assert log.transcripts == [("what is", False), ("what is the weather", True)]
    assert during.is_listening is True
    assert during.current_transcript == "what is the weather"
    assert any(state.is_listening for state in states)
    assert states[-1].is_listening is False


def test_concurrent_start_requests_open_a_single_capture() -> None:
    async def _run() -> int:
        platform = ScriptedSpeechPlatform()
        coordinator = SpeechCoordinator(platform)
        coordinator.start_listening()
        coordinator.start_listening()
        coordinator.toggle_listening()
        coordinator.start_listening()
        await coordinator.wait_until_idle()
        return len(platform.captures)

    assert asyncio.run(_run()) == 1


def test_delayed_events_from_previous_session_are_ignored() -> None:
    async def _run() -> tuple[CallbackLog, SpeechState]:
        platform = ScriptedSpeechPlatform()
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        coordinator.start_listening()
        await _drain()
        coordinator.stop_listening()
        await coordinator.wait_until_idle()
        coordinator.start_listening()
        await _drain()

        platform.emit_transcript("from the old session", index=0)
        platform.emit_capture_error("aborted", index=0)
        platform.emit_transcript("from the new session", index=1)
        await _drain()
        return log, coordinator.state

    log, state = asyncio.run(_run())
    assert log.transcripts == [("from the new session", True)]
    assert log.errors == []
    assert log.starts == 2
    assert state.is_listening is True
    assert state.current_transcript == "from the new session"


def test_last_error_is_sticky_until_cleared() -> None:
    async def _run() -> tuple[SpeechState, SpeechState, SpeechState]:
        platform = ScriptedSpeechPlatform(auto_finish=True)
        coordinator = SpeechCoordinator(platform)
        coordinator.start_listening()
        platform.emit_capture_error("network")
        await _drain()
        after_error = coordinator.state

        await coordinator.speak("all good")
        await _drain()
        after_success = coordinator.state

        coordinator.clear_error()
        return after_error, after_success, coordinator.state

    after_error, after_success, cleared = asyncio.run(_run())
    assert after_error.last_error is not None
    assert after_error.last_error.reason == "network"
    assert after_error.is_listening is False
    assert after_success.last_error is after_error.last_error
    assert cleared.last_error is None


def test_self_inflicted_synthesis_rejections_do_not_set_last_error() -> None:
    async def _run() -> tuple[CallbackLog, SpeechState, BaseException | None, list[float]]:
        platform = ScriptedSpeechPlatform()
        log = CallbackLog()
        coordinator = SpeechCoordinator(
            platform,
            callbacks=log.callbacks(),
            utterance_config=UtteranceConfig(volume=0.5),
        )
        first = coordinator.speak("first")
        second = coordinator.speak("second", volume_override=0.8)
        await _drain()
        speaking = coordinator.state.is_speaking
        platform.finish_utterance()
        await second
        await _drain()
        volumes = [plan.volume for _, plan in platform.spoken]
        assert speaking is True
        return log, coordinator.state, first.exception(), volumes

    log, state, first_error, volumes = asyncio.run(_run())
    assert isinstance(first_error, SynthesisFailedError)
    assert log.errors == []
    assert state.last_error is None
    assert state.is_speaking is False
    assert volumes == [0.5, 0.8]


def test_real_synthesis_failure_is_reported() -> None:
    async def _run() -> tuple[CallbackLog, SpeechState]:
        platform = ScriptedSpeechPlatform()
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        future = coordinator.speak("hello")
        platform.fail_utterance("synthesis-failed")
        await asyncio.wait({future})
        await _drain()
        return log, coordinator.state

    log, state = asyncio.run(_run())
    assert [error.reason for error in log.errors] == ["synthesis-failed"]
    assert state.last_error is log.errors[0]
    assert state.is_speaking is False


def test_stop_commands_while_idle_change_nothing() -> None:
    async def _run() -> tuple[CallbackLog, list[SpeechState], int, int]:
        platform = ScriptedSpeechPlatform()
        log = CallbackLog()
        coordinator = SpeechCoordinator(platform, callbacks=log.callbacks())
        states: list[SpeechState] = []
        coordinator.subscribe(states.append)
        coordinator.stop_listening()
        coordinator.stop_speaking()
        coordinator.clear_transcript()
        await _drain()
        return log, states, platform.stop_requests, platform.cancellations

    log, states, stop_requests, cancellations = asyncio.run(_run())
    assert states == []
    assert log.errors == [] and log.stops == 0 and log.starts == 0
    assert stop_requests == 0
    assert cancellations == 0


def test_listening_and_speaking_can_overlap() -> None:
    async def _run() -> SpeechState:
        platform = ScriptedSpeechPlatform()
        coordinator = SpeechCoordinator(platform, speech_config=SpeechConfig(language_tag="de-DE"))
        coordinator.start_listening()
        coordinator.speak("hallo")
        await _drain()
        state = coordinator.state
        await coordinator.aclose()
        return state

    state = asyncio.run(_run())
    assert state.is_listening is True
    assert state.is_speaking is True


def test_unsubscribe_and_telemetry() -> None:
    async def _run() -> tuple[int, list[str]]:
        platform = ScriptedSpeechPlatform(auto_finish=True)
        telemetry = RecordingTelemetry()
        coordinator = SpeechCoordinator(platform, telemetry=telemetry)
        seen: list[SpeechState] = []
        unsubscribe = coordinator.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        coordinator.start_listening()
        await _drain()
        await coordinator.speak("done")
        await _drain()
        coordinator.stop_listening()
        await coordinator.wait_until_idle()
        return len(seen), telemetry.events

    seen, events = asyncio.run(_run())
    assert seen == 0
    assert events == ["listening_started", "utterance_finished", "listening_stopped"]
