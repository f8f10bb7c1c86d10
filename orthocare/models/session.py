"""Recording session models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class RecordingState(Enum):
    """Lifecycle states of a dictation."""
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class RecordingSession:
    """Transient state of one dictation, owned by a DictationController."""
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: RecordingState = RecordingState.IDLE
    started_at: Optional[datetime] = None
    elapsed_seconds: int = 0
    audio_chunks: List[bytes] = field(default_factory=list)
    last_error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        """True while recording or waiting on transcription."""
        return self.state in (RecordingState.RECORDING, RecordingState.PROCESSING)
