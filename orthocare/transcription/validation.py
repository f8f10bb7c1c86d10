"""Upload constraints shared by the transcription client and endpoint."""

from typing import Optional

from ..errors import InvalidInput

MAX_AUDIO_BYTES = 25 * 1024 * 1024  # provider limit

ALLOWED_TYPES = (
    "audio/webm",
    "audio/mp4",
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
    "video/webm",  # some recorders tag audio-only webm as video
)

# Matching is by top-level category of the allow-list
ALLOWED_CATEGORIES = frozenset(t.split("/")[0] for t in ALLOWED_TYPES)


def is_allowed_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.split("/")[0].strip().lower() in ALLOWED_CATEGORIES


def validate_audio_upload(data: Optional[bytes], content_type: Optional[str]) -> None:
    """Raise InvalidInput if the payload may not be sent for transcription."""
    if not data:
        raise InvalidInput("No audio file provided")
    if len(data) > MAX_AUDIO_BYTES:
        raise InvalidInput("Audio file too large. Maximum size is 25MB.")
    if not is_allowed_type(content_type):
        raise InvalidInput("Invalid audio file type")
