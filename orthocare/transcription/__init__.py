"""Transcription module for OrthoCare."""

from .base import AbstractTranscriptionBackend
from ..models.transcription import TranscriptionResult
from .client import TranscriptionClient, request_session_token
from .whisper_backend import WhisperBackend
from .validation import MAX_AUDIO_BYTES, ALLOWED_TYPES, validate_audio_upload

__all__ = [
    "AbstractTranscriptionBackend",
    "TranscriptionResult",
    "TranscriptionClient",
    "request_session_token",
    "WhisperBackend",
    "MAX_AUDIO_BYTES",
    "ALLOWED_TYPES",
    "validate_audio_upload",
]
