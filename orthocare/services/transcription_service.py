"""Builds transcription providers and clients from configuration."""

import logging
from typing import Optional

from ..config import OrthoCareConfig
from ..errors import ConfigError
from ..transcription.base import AbstractTranscriptionBackend
from ..transcription.client import TranscriptionClient
from ..transcription.whisper_backend import WhisperBackend

logger = logging.getLogger(__name__)

PROVIDERS = ("whisper", "google")


def create_backend(config: OrthoCareConfig) -> AbstractTranscriptionBackend:
    """Create the provider named by ``transcription.provider``.

    The backend is returned uninitialized; callers decide what an
    ``initialize()`` failure means for them.

    Raises:
        ConfigError: unknown provider, or Google selected without credentials
    """
    provider = str(config.get('transcription.provider', 'whisper')).lower()
    timeout = float(config.get('transcription.timeout_seconds', 30))
    logger.info(f"Creating transcription backend: {provider}")

    if provider == "whisper":
        return WhisperBackend(
            api_key=config.get('transcription.whisper.api_key'),
            model=config.get('transcription.whisper.model', 'whisper-1'),
            language=config.get('transcription.language', 'en'),
            base_url=config.get('transcription.whisper.base_url', 'https://api.openai.com/v1'),
            timeout_seconds=timeout,
        )

    if provider == "google":
        # Imported here so the Google client libraries load only when selected
        from ..transcription.google_backend import GoogleSpeechBackend

        return GoogleSpeechBackend(
            credentials_path=config.get_google_credentials_path(),
            language=config.get('google_cloud.language', 'en-US'),
            timeout_seconds=float(config.get('google_cloud.timeout_seconds', timeout)),
        )

    raise ConfigError(f"Unknown transcription provider '{provider}', expected one of {PROVIDERS}")


def create_client(config: OrthoCareConfig, auth_token: Optional[str] = None) -> TranscriptionClient:
    """Create a client for the configured transcription endpoint."""
    return TranscriptionClient(
        endpoint=config.get('transcription.endpoint'),
        timeout_seconds=float(config.get('transcription.timeout_seconds', 30)),
        auth_token=auth_token,
    )
