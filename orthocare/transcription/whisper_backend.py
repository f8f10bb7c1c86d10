"""OpenAI Whisper transcription backend."""

import time
import asyncio
import logging
from typing import Optional

import aiohttp

from .base import AbstractTranscriptionBackend
from ..errors import UpstreamError
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class WhisperBackend(AbstractTranscriptionBackend):
    """Sends complete recordings to the OpenAI audio transcription API."""

    service_name = "OpenAI Whisper"

    def __init__(self,
                 api_key: Optional[str],
                 model: str = "whisper-1",
                 language: str = "en",
                 base_url: str = "https://api.openai.com/v1",
                 timeout_seconds: float = 30.0):
        """Initialize Whisper backend.

        Args:
            api_key: OpenAI API key
            model: Transcription model
            language: ISO-639-1 code the provider is pinned to
            base_url: API root, overridable for proxies and tests
            timeout_seconds: Upper bound on one request
        """
        super().__init__(language)
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/audio/transcriptions"
        self.timeout_seconds = timeout_seconds

        logger.info(f"WhisperBackend initialized with model: {model}")

    def initialize(self) -> bool:
        if not self.api_key:
            logger.error("OpenAI API key not configured")
            return False
        return True

    async def transcribe(self, audio_data: bytes, mime_type: str, filename: str) -> TranscriptionResult:
        """Transcribe with the most deterministic decoding the API offers."""
        start_time = time.time()

        form = aiohttp.FormData()
        form.add_field("file", audio_data, filename=filename, content_type=mime_type)
        form.add_field("model", self.model)
        form.add_field("language", self.language)
        form.add_field("response_format", "verbose_json")
        form.add_field("temperature", "0")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        logger.info(f"Transcribing audio: name={filename}, type={mime_type}, size={len(audio_data)}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, headers=headers, data=form) as response:
                    if response.status != 200:
                        message = await self._error_message(response)
                        raise UpstreamError(f"OpenAI API error: {message}", response.status)
                    result = await response.json()
        except asyncio.TimeoutError as e:
            raise UpstreamError("OpenAI API request timed out", 504) from e
        except aiohttp.ClientError as e:
            raise UpstreamError(f"OpenAI API request failed: {e}", 502) from e

        if not isinstance(result, dict):
            raise UpstreamError("OpenAI API returned an unexpected response", 502)

        processing_time = time.time() - start_time
        text = result.get("text") or ""
        logger.info(f"Transcription successful: {len(text)} chars, duration={result.get('duration')}")
        logger.debug(f"Transcript='{text}'")

        return TranscriptionResult(
            text=text,
            duration_seconds=result.get("duration"),
            language=result.get("language", self.language),
            processing_time=processing_time,
            service=self.service_name,
        )

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            body = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return (await response.text()) or response.reason or "unknown error"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message", "unknown error")
        return str(error or "unknown error")

    def cleanup(self) -> None:
        """Nothing held between requests."""
        pass
