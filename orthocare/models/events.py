"""Event models published on the dictation pub/sub topics."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .session import RecordingState


@dataclass
class DictationStateEvent:
    """A controller changed state."""
    controller_id: str
    session_id: str
    state: RecordingState
    last_error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DurationEvent:
    """One tick of the recording duration counter."""
    controller_id: str
    session_id: str
    elapsed_seconds: int
    timestamp: datetime = field(default_factory=datetime.now)
