"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
import logging

from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for speech-to-text providers behind the endpoint."""

    service_name = "unknown"

    def __init__(self, language: str = "en"):
        """Initialize backend with a pinned language."""
        self.language = language

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def transcribe(self, audio_data: bytes, mime_type: str, filename: str) -> TranscriptionResult:
        """Transcribe a complete audio file.

        Args:
            audio_data: Encoded audio file contents
            mime_type: Content type of the upload
            filename: Original upload filename

        Returns:
            TranscriptionResult; text may be empty if nothing was recognized

        Raises:
            UpstreamError: the provider rejected or failed the request
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
