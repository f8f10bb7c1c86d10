"""Transcription-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class TranscriptionResult:
    """Result of a transcription operation."""
    text: str
    duration_seconds: Optional[float] = None
    language: Optional[str] = None
    processing_time: float = 0.0
    service: str = "remote"
    timestamp: datetime = field(default_factory=datetime.now)

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned by the transcription endpoint."""
        return {
            "text": self.text,
            "duration": self.duration_seconds,
            "language": self.language,
        }


class TranscriptionResponse(BaseModel):
    """Success body of the transcription endpoint."""
    text: Optional[str] = None
    duration: Optional[float] = None
    language: Optional[str] = None


class TranscriptionErrorResponse(BaseModel):
    """Error body of the transcription endpoint."""
    error: str = "Transcription failed"
    status: Optional[int] = None
