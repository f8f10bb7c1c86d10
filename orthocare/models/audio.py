"""Audio-related data models."""

from dataclasses import dataclass


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: int
    sample_rate: int
    chunk_size: int
    total_chunks: int
    peak_level: float = 0.0


@dataclass(frozen=True)
class AudioBlob:
    """A finalized recording ready for upload."""
    data: bytes
    mime_type: str
    sample_rate: int = 48000
    channels: int = 1
    duration_seconds: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """File extension matching the container, used for the upload filename."""
        container = self.mime_type.split(";")[0].strip()
        return {
            "audio/webm": "webm",
            "video/webm": "webm",
            "audio/ogg": "ogg",
            "audio/mp4": "mp4",
            "audio/mpeg": "mp3",
            "audio/wav": "wav",
        }.get(container, "webm")
