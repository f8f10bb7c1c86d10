"""Google Speech-to-Text transcription backend."""

import time
import asyncio
import logging
import functools
from typing import Optional

from .base import AbstractTranscriptionBackend
from ..errors import UpstreamError
from ..models.transcription import TranscriptionResult

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

_ENCODINGS = {
    "audio/webm": speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
    "video/webm": speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
    "audio/ogg": speech.RecognitionConfig.AudioEncoding.OGG_OPUS,
    "audio/wav": speech.RecognitionConfig.AudioEncoding.LINEAR16,
}

# Opus containers need the rate stated; WAV carries it in its header
_OPUS_SAMPLE_RATE = 48000


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Synchronous recognize calls against Google Cloud Speech, run off the event loop."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = True,
                 timeout_seconds: float = 30.0):
        """Recognizer pinned to one language.

        Args:
            credentials_path: Service account key file
            language: Language code the recognizer is pinned to (e.g. 'en-US')
            enable_automatic_punctuation: Let the recognizer insert sentence punctuation
            timeout_seconds: Per-request deadline
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required")
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.timeout_seconds = timeout_seconds
        self.client = None
        self.project_id = None

    def initialize(self) -> bool:
        """Load the service account and open a client; False if the key is unusable."""
        try:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot load Google credentials from {self.credentials_path}: {e}")
            return False

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Google Speech client ready (project {self.project_id})")
        return True

    def build_config(self, mime_type: str) -> speech.RecognitionConfig:
        """Recognition config pinned to one language and a single alternative."""
        container = mime_type.split(";")[0].strip().lower()
        encoding = _ENCODINGS.get(container, speech.RecognitionConfig.AudioEncoding.ENCODING_UNSPECIFIED)
        kwargs = {}
        if encoding in (speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
                        speech.RecognitionConfig.AudioEncoding.OGG_OPUS):
            kwargs["sample_rate_hertz"] = _OPUS_SAMPLE_RATE
        return speech.RecognitionConfig(
            encoding=encoding,
            language_code=self.language,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            max_alternatives=1,
            model="latest_short",
            **kwargs,
        )

    async def transcribe(self, audio_data: bytes, mime_type: str, filename: str) -> TranscriptionResult:
        """Transcribe a complete recording using Google Speech-to-Text."""
        start_time = time.time()
        config = self.build_config(mime_type)
        audio = speech.RecognitionAudio(content=audio_data)

        logger.debug(f"File: {filename}; size: {len(audio_data)} bytes; language: {self.language}; encoding: {config.encoding}")

        recognize = functools.partial(self.client.recognize, config=config, audio=audio, timeout=self.timeout_seconds)
        try:
            response = await asyncio.get_running_loop().run_in_executor(None, recognize)
        except gax_exceptions.DeadlineExceeded as e:
            logger.error(f"Google STT recognize deadline exceeded for {filename}")
            raise UpstreamError(f"Google Speech recognize timeout: {e}", 504) from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error(f"Google STT service unavailable for {filename}")
            raise UpstreamError(f"Google Speech service unavailable: {e}", 503) from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error for {filename}: {e}")
            raise UpstreamError(f"Google Speech API error: {e}", getattr(e, "code", None) or 502) from e
        processing_time = time.time() - start_time

        # Longer recordings come back as consecutive results
        text = " ".join(
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ).strip()

        if not text:
            logger.debug("--- NO SPEECH DETECTED ---")
        else:
            logger.debug(f"Transcript='{text}' (processing_time: {processing_time:.3f}s)")

        return TranscriptionResult(
            text=text,
            language=self.language,
            processing_time=processing_time,
            service=self.service_name,
        )

    def cleanup(self) -> None:
        self.client = None
