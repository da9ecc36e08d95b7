"""CLI startup entrypoint for chat-voice."""

from __future__ import annotations

import asyncio

import typer
from rich import print

from chat_voice.config import SUPPORTED_LANGUAGES, settings
from chat_voice.errors import SpeechError
from chat_voice.models import VoiceDescriptor
from chat_voice.telemetry.logging import LoggingTelemetry, configure_logging
from chat_voice.voice import ScriptedSpeechPlatform, SpeechCallbacks, SpeechCoordinator, SpeechPlatform

app = typer.Typer(help="chat-voice speech layer entrypoint")

_BACKEND_HELP = "Speech backend: local or scripted (defaults to CHAT_VOICE_SPEECH_BACKEND)"


def _build_platform(backend: str | None = None) -> SpeechPlatform:
    choice = (backend or settings.speech_backend).lower()
    if choice == "scripted":
        return ScriptedSpeechPlatform(
            auto_finish=True,
            transcripts=("hello from the scripted platform",),
            voices=[VoiceDescriptor(id="scripted", display_name="Scripted", language_tag=settings.language)],
        )
    if choice == "local":
        from chat_voice.voice.platform import LocalSpeechPlatform

        return LocalSpeechPlatform.from_environment(phrase_time_limit=settings.phrase_time_limit)
    raise typer.BadParameter(f"Unknown speech backend: {choice}")


def _platform_or_exit(backend: str | None) -> SpeechPlatform:
    try:
        return _build_platform(backend)
    except RuntimeError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)


def _build_coordinator(platform: SpeechPlatform, callbacks: SpeechCallbacks | None = None) -> SpeechCoordinator:
    return SpeechCoordinator(
        platform,
        callbacks=callbacks,
        speech_config=settings.speech_config(),
        utterance_config=settings.utterance_config(),
        stop_timeout_seconds=settings.stop_timeout_seconds,
        telemetry=LoggingTelemetry() if settings.telemetry_enabled else None,
    )


@app.callback()
def main(log_level: str = typer.Option(None, help="Override CHAT_VOICE_LOG_LEVEL")) -> None:
    configure_logging(log_level or settings.log_level)


@app.command()
def start() -> None:
    """Show runtime speech configuration."""
    print(
        {
            "app_name": settings.app_name,
            "speech_backend": settings.speech_backend,
            "language": settings.language,
            "continuous": settings.continuous,
            "interim_results": settings.interim_results,
            "voice_id": settings.voice_id,
            "rate": settings.rate,
            "pitch": settings.pitch,
            "volume": settings.volume,
        }
    )


@app.command()
def languages() -> None:
    """List the language tags offered to users."""
    print([{"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES])


@app.command()
def capabilities(backend: str = typer.Option(None, help=_BACKEND_HELP)) -> None:
    """Probe recognition/synthesis support and microphone access."""
    platform = _platform_or_exit(backend)

    async def _run() -> dict:
        state = await _build_coordinator(platform).initialize()
        return {
            "recognition_supported": state.is_supported,
            "synthesis_supported": state.is_synthesis_supported,
            "microphone_available": state.is_microphone_available,
        }

    print(asyncio.run(_run()))


@app.command()
def voices(backend: str = typer.Option(None, help=_BACKEND_HELP)) -> None:
    """List voices known to the synthesizer."""
    platform = _platform_or_exit(backend)

    async def _run() -> list[dict]:
        state = await _build_coordinator(platform).initialize()
        return [
            {"id": voice.id, "name": voice.display_name, "language": voice.language_tag}
            for voice in state.available_voices
        ]

    print(asyncio.run(_run()))


@app.command()
def say(
    text: str,
    volume: float = typer.Option(None, help="Volume override between 0.0 and 1.0"),
    backend: str = typer.Option(None, help=_BACKEND_HELP),
) -> None:
    """Speak TEXT and wait for playback to finish."""
    platform = _platform_or_exit(backend)

    async def _run() -> dict:
        coordinator = _build_coordinator(platform)
        await coordinator.initialize()
        try:
            await coordinator.speak(text, volume_override=volume)
        except SpeechError as exc:
            return {"spoken": False, "error": exc.kind.value, "reason": exc.reason}
        return {"spoken": True}

    result = asyncio.run(_run())
    print(result)
    if not result["spoken"]:
        raise typer.Exit(code=1)


@app.command()
def listen(
    max_finals: int = typer.Option(1, min=1, help="Stop after this many final transcripts"),
    seconds: float = typer.Option(30.0, help="Maximum listening window in seconds"),
    backend: str = typer.Option(None, help=_BACKEND_HELP),
) -> None:
    """Print transcripts from the microphone until enough final results arrive."""
    platform = _platform_or_exit(backend)

    async def _run() -> dict:
        finals: list[str] = []
        done = asyncio.Event()

        def _on_transcript(transcript: str, is_final: bool) -> None:
            print({"transcript": transcript, "final": is_final})
            if is_final:
                finals.append(transcript)
                if len(finals) >= max_finals:
                    done.set()

        coordinator = _build_coordinator(
            platform,
            SpeechCallbacks(
                on_transcript=_on_transcript,
                on_error=lambda _error: done.set(),
                on_stop=done.set,
            ),
        )
        await coordinator.initialize()
        coordinator.start_listening()
        try:
            await asyncio.wait_for(done.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            print({"listen": "window elapsed"})
        await coordinator.aclose()

        error = coordinator.state.last_error
        return {
            "finals": finals,
            "error": None if error is None else {"kind": error.kind.value, "reason": error.reason},
        }

    result = asyncio.run(_run())
    print(result)
    if result["error"] is not None:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
