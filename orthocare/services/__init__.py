"""Service layer for OrthoCare."""

from .dictation_controller import DictationController, DictationMode, user_message
from .publisher import DictationPublisher, STATE_TOPIC, DURATION_TOPIC
from .transcription_service import create_backend, create_client

__all__ = [
    "DictationController",
    "DictationMode",
    "user_message",
    "DictationPublisher",
    "STATE_TOPIC",
    "DURATION_TOPIC",
    "create_backend",
    "create_client",
]
