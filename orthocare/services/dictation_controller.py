"""Dictation lifecycle: record, transcribe, then fill one field or the whole form."""

import uuid
import asyncio
import logging
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, Optional

from ..audio.capture import AudioCapture
from ..errors import (
    DictationError,
    PermissionDenied,
    DeviceUnavailable,
    InvalidInput,
    UpstreamError,
    TranscriptionUnavailable,
)
from ..extraction.field_extractor import FieldExtractor
from ..models.session import RecordingSession, RecordingState
from ..transcription.client import TranscriptionClient
from .publisher import DictationPublisher

logger = logging.getLogger(__name__)

ApplyField = Callable[[str, str], None]
CaptureFactory = Callable[[Callable[[int], None]], AudioCapture]


class DictationMode(Enum):
    """Where a transcript goes."""
    FIELD = "field"
    FORM = "form"


def user_message(error: Exception) -> str:
    """Translate a pipeline failure into the text shown next to the dictation control."""
    if isinstance(error, PermissionDenied):
        return "Microphone access denied. Please enable it in your system settings."
    if isinstance(error, DeviceUnavailable):
        return "No microphone found. Please connect an audio input device."
    if isinstance(error, InvalidInput):
        return "Recording could not be processed. Please try again."
    if isinstance(error, UpstreamError):
        return f"Transcription failed: {error.message}"
    if isinstance(error, TranscriptionUnavailable):
        return f"Transcription failed: {error}"
    return "Recording error occurred"


class DictationController:
    """Drives one dictation at a time through Idle -> Recording -> Processing -> Idle.

    The form itself belongs to the caller. The controller only proposes
    values through ``apply_field`` and never reads them back.

    Every recording gets a fresh ``RecordingSession``. Results and duration
    ticks are applied only while their session is still the current one, so
    a response that arrives after ``cleanup()`` or after a newer recording
    started is dropped.
    """

    def __init__(self,
                 capture_factory: CaptureFactory,
                 client: TranscriptionClient,
                 apply_field: ApplyField,
                 mode: DictationMode = DictationMode.FORM,
                 field_name: Optional[str] = None,
                 extractor: Optional[FieldExtractor] = None,
                 publisher: Optional[DictationPublisher] = None,
                 on_transcript: Optional[Callable[[str], None]] = None,
                 controller_id: Optional[str] = None):
        """Initialize dictation controller.

        Args:
            capture_factory: Builds a new AudioCapture for each recording; it
                             receives the per-second tick callback
            client: Transcription client used once the recording is finalized
            apply_field: Called with (field name, value) for each proposed update
            mode: FIELD assigns the raw transcript to ``field_name``; FORM runs
                  the extractor and assigns every recognized field
            field_name: Bound field for FIELD mode
            extractor: Field extractor for FORM mode
            publisher: State and duration event publisher
            on_transcript: Optional hook receiving the raw transcript
            controller_id: Name used in published events
        """
        if mode is DictationMode.FIELD and not field_name:
            raise ValueError("Single-field dictation requires a field name")

        self.capture_factory = capture_factory
        self.client = client
        self.apply_field = apply_field
        self.mode = mode
        self.field_name = field_name
        self.extractor = extractor or FieldExtractor()
        self.controller_id = controller_id or f"dictation-{uuid.uuid4().hex[:8]}"
        self.publisher = publisher or DictationPublisher(self.controller_id)
        self.on_transcript = on_transcript

        self.session = RecordingSession()
        self.capture: Optional[AudioCapture] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info(f"DictationController {self.controller_id} ready "
                    f"(mode={mode.value}, field={field_name})")

    @property
    def state(self) -> RecordingState:
        return self.session.state

    @property
    def last_error(self) -> Optional[str]:
        return self.session.last_error

    @property
    def elapsed_seconds(self) -> int:
        return self.session.elapsed_seconds

    @property
    def is_active(self) -> bool:
        return self.session.is_active

    async def toggle(self) -> None:
        """Start when idle, stop and transcribe when recording."""
        if self.state is RecordingState.RECORDING:
            await self.stop()
        elif self.state is RecordingState.PROCESSING:
            logger.warning("Transcription in progress; toggle ignored")
        else:
            await self.start()

    async def start(self) -> bool:
        """Acquire the microphone and begin a new recording.

        Returns:
            True if recording started. False when a dictation is already
            active (no-op) or the microphone could not be acquired.
        """
        if self.session.is_active:
            logger.warning(f"Dictation already {self.state.value}; start ignored")
            return False

        self._loop = asyncio.get_running_loop()
        session = RecordingSession()
        self.session = session

        capture = self.capture_factory(partial(self._tick_from_thread, session.session_id))
        try:
            capture.start(session.audio_chunks)
        except DictationError as e:
            capture.cleanup()
            self._fail(session, e)
            return False

        self.capture = capture
        session.started_at = datetime.now()
        self._set_state(session, RecordingState.RECORDING)
        logger.info(f"Dictation session {session.session_id} recording")
        return True

    async def stop(self) -> None:
        """Stop recording and run transcription to completion.

        A no-op unless recording.
        """
        if self.state is not RecordingState.RECORDING:
            logger.warning(f"Stop requested while {self.state.value}; ignored")
            return

        session = self.session
        capture, self.capture = self.capture, None
        self._set_state(session, RecordingState.PROCESSING)

        task = asyncio.ensure_future(self._process(session, capture))
        self._task = task
        try:
            # wait() does not re-raise when cleanup() cancels the task
            await asyncio.wait({task})
        finally:
            if self._task is task:
                self._task = None

    def cleanup(self) -> None:
        """Tear down: discard audio, release the microphone, drop pending results.

        Idempotent; always leaves the controller Idle.
        """
        task, self._task = self._task, None
        if task is not None and not task.done():
            logger.info(f"Cancelling in-flight transcription for session {self.session.session_id}")
            task.cancel()

        capture, self.capture = self.capture, None
        if capture is not None:
            capture.cleanup()

        previous = self.session
        self.session = RecordingSession()
        if previous.state is not RecordingState.IDLE:
            logger.info(f"Dictation session {previous.session_id} cleaned up")
            self.publisher.publish_state(self.session)

    async def _process(self, session: RecordingSession, capture: AudioCapture) -> None:
        try:
            loop = asyncio.get_running_loop()
            blob = await loop.run_in_executor(None, capture.stop)
            if not self._is_current(session):
                return
            if blob is None:
                logger.info(f"Nothing captured in session {session.session_id}; skipping transcription")
                self._set_state(session, RecordingState.IDLE)
                return
            result = await self.client.transcribe(blob)
            if not self._is_current(session):
                logger.info(f"Discarding transcription for stale session {session.session_id}")
                return
            logger.debug(f"Transcript for session {session.session_id}: {result.text}")
            self._apply(result.text)
            self._set_state(session, RecordingState.IDLE)
        except DictationError as e:
            if self._is_current(session):
                self._fail(session, e)
        except Exception as e:
            logger.exception(f"Unexpected dictation failure: {e}")
            if self._is_current(session):
                self._fail(session, e)
        finally:
            capture.cleanup()

    def _apply(self, text: str) -> None:
        if self.on_transcript:
            self.on_transcript(text)

        if self.mode is DictationMode.FIELD:
            self.apply_field(self.field_name, text)
            return

        fields = self.extractor.parse(text)
        for name, value in fields.items():
            self.apply_field(name, value)
        logger.info(f"Applied {len(fields)} extracted fields: {sorted(fields)}")

    def _fail(self, session: RecordingSession, error: Exception) -> None:
        logger.error(f"Dictation failed ({type(error).__name__}): {error}")
        session.last_error = user_message(error)
        self._set_state(session, RecordingState.ERROR)
        self._set_state(session, RecordingState.IDLE)

    def _set_state(self, session: RecordingSession, state: RecordingState) -> None:
        session.state = state
        self.publisher.publish_state(session)

    def _is_current(self, session: RecordingSession) -> bool:
        return session is self.session

    def _tick_from_thread(self, session_id: str, elapsed_seconds: int) -> None:
        """Called on the capture's ticker thread; hops onto the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_tick, session_id, elapsed_seconds)

    def _on_tick(self, session_id: str, elapsed_seconds: int) -> None:
        session = self.session
        if session.session_id != session_id or session.state is not RecordingState.RECORDING:
            return
        session.elapsed_seconds = elapsed_seconds
        self.publisher.publish_duration(session)
