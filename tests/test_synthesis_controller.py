from __future__ import annotations

import asyncio

import pytest

from chat_voice.errors import CANCELLED, SUPERSEDED, SynthesisFailedError, UnsupportedError
from chat_voice.models import SynthesisState, UtteranceConfig, VoiceDescriptor
from chat_voice.voice import ScriptedSpeechPlatform, SynthesisController


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def test_speak_resolves_once_on_natural_completion() -> None:
    async def _run() -> tuple[object, object, SynthesisState, float]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        future = controller.speak("hello", UtteranceConfig(volume=0.8))
        await _drain()
        platform.finish_utterance()
        platform.finish_utterance()
        first = await future
        second = await future
        return first, second, controller.state, platform.spoken[0][1].volume

    first, second, state, volume = asyncio.run(_run())
    assert first is None
    assert second is None
    assert state == SynthesisState.IDLE
    assert volume == 0.8


def test_new_utterance_supersedes_the_active_one() -> None:
    async def _run() -> tuple[BaseException | None, object, list[str], int]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        first = controller.speak("first")
        second = controller.speak("second")
        await _drain()
        platform.finish_utterance(index=0)
        platform.finish_utterance(index=1)
        result = await second
        return first.exception(), result, [text for text, _ in platform.spoken], platform.cancellations

    first_error, result, spoken, cancellations = asyncio.run(_run())
    assert isinstance(first_error, SynthesisFailedError)
    assert first_error.reason == SUPERSEDED
    assert first_error.self_inflicted is True
    assert result is None
    assert spoken == ["first", "second"]
    assert cancellations == 1


def test_stop_rejects_active_utterance_with_cancelled() -> None:
    async def _run() -> tuple[str, SynthesisState]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        future = controller.speak("long answer")
        controller.stop()
        controller.stop()
        with pytest.raises(SynthesisFailedError) as excinfo:
            await future
        return excinfo.value.reason, controller.state

    reason, state = asyncio.run(_run())
    assert reason == CANCELLED
    assert state == SynthesisState.IDLE


def test_stop_while_idle_is_silent() -> None:
    async def _run() -> tuple[SynthesisState, int]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        controller.stop()
        return controller.state, platform.cancellations

    state, cancellations = asyncio.run(_run())
    assert state == SynthesisState.IDLE
    assert cancellations == 0


def test_out_of_range_parameters_are_clamped_before_platform_call() -> None:
    async def _run():
        platform = ScriptedSpeechPlatform(auto_finish=True)
        controller = SynthesisController(platform)
        await controller.speak("fast", UtteranceConfig(rate=5.0, pitch=-3.0, volume=1.7))
        return platform.spoken[0][1]

    plan = asyncio.run(_run())
    assert plan.rate == 2.0
    assert plan.pitch == 0.0
    assert plan.volume == 1.0


def test_missing_voice_falls_back_to_language_default() -> None:
    voices = [VoiceDescriptor(id="voice-1", display_name="Sky", language_tag="en-US")]
    controller = SynthesisController(ScriptedSpeechPlatform(voices=voices))

    missing = controller.plan(UtteranceConfig(language_tag="fr-FR", voice_id="nobody"))
    by_name = controller.plan(UtteranceConfig(voice_id="Sky"))

    assert missing.voice_id is None
    assert missing.language_tag == "fr-FR"
    assert by_name.voice_id == "voice-1"


def test_voice_enumeration_failure_yields_empty_list() -> None:
    class NoVoices(ScriptedSpeechPlatform):
        def enumerate_voices(self):
            raise RuntimeError("driver not ready")

    controller = SynthesisController(NoVoices())

    assert controller.voices() == []
    assert controller.plan(UtteranceConfig(voice_id="Sky")).voice_id is None


def test_platform_error_rejects_with_reason() -> None:
    async def _run() -> tuple[SynthesisFailedError, SynthesisState]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        future = controller.speak("hello")
        platform.fail_utterance("audio-busy")
        with pytest.raises(SynthesisFailedError) as excinfo:
            await future
        return excinfo.value, controller.state

    error, state = asyncio.run(_run())
    assert error.reason == "audio-busy"
    assert error.self_inflicted is False
    assert state == SynthesisState.IDLE


def test_unsupported_synthesis_returns_rejected_future() -> None:
    async def _run() -> BaseException | None:
        platform = ScriptedSpeechPlatform(synthesis=False)
        future = SynthesisController(platform).speak("hello")
        await asyncio.wait({future})
        return future.exception()

    assert isinstance(asyncio.run(_run()), UnsupportedError)


def test_late_completion_after_cancel_is_ignored() -> None:
    async def _run() -> tuple[str, SynthesisState]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        future = controller.speak("hello")
        controller.stop()
        platform.finish_utterance()
        platform.fail_utterance("interrupted")
        await _drain()
        return future.exception().reason, controller.state

    reason, state = asyncio.run(_run())
    assert reason == CANCELLED
    assert state == SynthesisState.IDLE


def test_blank_text_resolves_without_platform_call() -> None:
    async def _run() -> int:
        platform = ScriptedSpeechPlatform()
        await SynthesisController(platform).speak("   ")
        return len(platform.spoken)

    assert asyncio.run(_run()) == 0


def test_caller_cancelling_future_cancels_playback() -> None:
    async def _run() -> tuple[int, bool]:
        platform = ScriptedSpeechPlatform()
        controller = SynthesisController(platform)
        future = controller.speak("hello")
        future.cancel()
        await _drain()
        return platform.cancellations, controller.speaking

    cancellations, speaking = asyncio.run(_run())
    assert cancellations == 1
    assert speaking is False


def test_pause_and_resume_require_pausable_platform() -> None:
    class PlainPlatform:
        def supports_recognition(self) -> bool:
            return False

        def supports_synthesis(self) -> bool:
            return True

        async def request_microphone(self) -> bool:
            return False

        def enumerate_voices(self):
            return []

        def speak_utterance(self, text, plan, sink) -> None:
            pass

        def cancel_utterance(self) -> None:
            pass

    async def _run() -> tuple[bool, bool, bool, bool, bool]:
        scripted = ScriptedSpeechPlatform()
        controller = SynthesisController(scripted)
        idle_pause = controller.pause()
        speaking = controller.speak("hello")
        paused = controller.pause() and scripted.paused
        resumed = controller.resume() and not scripted.paused

        plain = SynthesisController(PlainPlatform())
        plain_speaking = plain.speak("hello")
        plain_paused = plain.pause()

        controller.stop()
        plain.stop()
        await asyncio.wait({speaking, plain_speaking})
        cancelled = speaking.exception().reason == plain_speaking.exception().reason == CANCELLED
        return idle_pause, paused, resumed, plain_paused, cancelled

    idle_pause, paused, resumed, plain_paused, cancelled = asyncio.run(_run())
    assert idle_pause is False
    assert paused is True
    assert resumed is True
    assert plain_paused is False
    assert cancelled is True
