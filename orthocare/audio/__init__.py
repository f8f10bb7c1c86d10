"""Audio capture and encoding module."""

from .capture import AudioCapture, check_microphone_available
from .encoding import MIME_PREFERENCES, select_mime_type, encode_pcm, format_duration

__all__ = [
    'AudioCapture',
    'check_microphone_available',
    'MIME_PREFERENCES',
    'select_mime_type',
    'encode_pcm',
    'format_duration',
]
