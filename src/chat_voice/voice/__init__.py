"""Speech recognition and synthesis orchestration."""

from .channel import EventChannel
from .coordinator import SpeechCallbacks, SpeechCoordinator, SpeechState
from .interfaces import PausablePlatform, SpeechPlatform
from .probe import CapabilityProbe
from .recognition import RecognitionHandlers, RecognitionSession
from .scripted import ScriptedSpeechPlatform
from .synthesis import SynthesisController

__all__ = [
    "CapabilityProbe",
    "EventChannel",
    "PausablePlatform",
    "RecognitionHandlers",
    "RecognitionSession",
    "ScriptedSpeechPlatform",
    "SpeechCallbacks",
    "SpeechCoordinator",
    "SpeechPlatform",
    "SpeechState",
    "SynthesisController",
]
