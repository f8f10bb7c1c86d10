"""Exception hierarchy for OrthoCare."""

from typing import Optional


class OrthoCareError(Exception):
    """Base class for all OrthoCare errors."""


class ConfigError(OrthoCareError):
    """Configuration is missing or invalid."""


class DictationError(OrthoCareError):
    """Base class for failures in the dictation pipeline."""


class PermissionDenied(DictationError):
    """Microphone access was refused by the operating system."""


class DeviceUnavailable(DictationError):
    """No usable audio input device exists."""


class InvalidInput(DictationError):
    """Audio payload is missing, oversized or of a disallowed type."""


class UpstreamError(DictationError):
    """The transcription provider rejected or failed the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else 500

    def __str__(self) -> str:
        return f"{self.message} (status {self.status_code})"


class TranscriptionUnavailable(DictationError):
    """The provider answered successfully but returned no text."""


class StoreError(OrthoCareError):
    """Patient record storage failed."""


class RecordNotFound(StoreError):
    """No patient record exists with the requested id."""


class AuthenticationError(OrthoCareError):
    """Credentials were rejected."""
