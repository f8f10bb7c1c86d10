"""Data models for the OrthoCare application."""

from .audio import AudioStats, AudioBlob
from .session import RecordingState, RecordingSession
from .transcription import TranscriptionResult, TranscriptionResponse, TranscriptionErrorResponse
from .events import DictationStateEvent, DurationEvent
from .patient import (
    FORM_FIELDS,
    FIELD_LABELS,
    ExtractedFields,
    PlannedFollowUps,
    PatientRecord,
    PatientForm,
)

__all__ = [
    "AudioStats",
    "AudioBlob",
    "RecordingState",
    "RecordingSession",
    "TranscriptionResult",
    "TranscriptionResponse",
    "TranscriptionErrorResponse",
    "DictationStateEvent",
    "DurationEvent",
    # Patient models
    "FORM_FIELDS",
    "FIELD_LABELS",
    "ExtractedFields",
    "PlannedFollowUps",
    "PatientRecord",
    "PatientForm",
]
