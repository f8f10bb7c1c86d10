"""Microphone capture with a start/stop/cleanup lifecycle and a duration counter."""

import pyaudio
import logging
from threading import Thread, Event, Lock
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable

import numpy as np

from ..errors import PermissionDenied, DeviceUnavailable
from ..models.audio import AudioStats, AudioBlob
from .encoding import select_mime_type, encode_pcm


logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission", "not permitted", "access denied", "not authorized")


def _classify_open_error(error: Exception) -> Exception:
    """Map a PortAudio open failure onto the dictation error taxonomy."""
    message = str(error)
    if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
        return PermissionDenied(f"Microphone access denied: {message}")
    return DeviceUnavailable(f"Audio input device unavailable: {message}")


class AudioCapture:
    """Records the default microphone into ordered PCM fragments.

    The OS-level stream is opened by ``start`` in the caller's thread so that
    permission and device errors surface immediately. Fragments are read on a
    background thread and a second thread ticks the elapsed-seconds counter.
    The stream is released by ``stop``, by ``cleanup`` and whenever reading fails.
    """

    def __init__(
        self,
        sample_rate: int = 48000,
        chunk_size: int = 4800,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        mime_type: Optional[str] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate (48kHz for voice clarity)
            chunk_size: Frames per read; 4800 at 48kHz is one fragment per 100ms
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            mime_type: Container for the finalized blob; chosen from the
                       preference list when None
            on_tick: Called with the elapsed seconds once per second while recording
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self.on_tick = on_tick
        self.mime_type = select_mime_type() if mime_type is None else mime_type

        # Requested voice-processing constraints. PortAudio has no switches for
        # these; they are kept for reporting.
        self.constraints: Dict[str, Any] = {
            "echo_cancellation": True,
            "noise_suppression": True,
            "auto_gain_control": True,
            "sample_rate": sample_rate,
            "channel_count": channels,
        }

        # Thread management
        self.recording_thread: Optional[Thread] = None
        self.ticker_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.device_lock = Lock()
        self.data_lock = Lock()
        self.is_recording = False

        # Captured fragments, in capture order
        self.audio_data: List[bytes] = []
        self.capture_error: Optional[Exception] = None

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.elapsed_seconds = 0
        self.total_chunks = 0
        self.peak_level = 0.0

        # PyAudio handles
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    def start(self, fragments: Optional[List[bytes]] = None) -> None:
        """Acquire the microphone and start recording.

        Args:
            fragments: List to accumulate raw fragments into, in capture order;
                       a private list when omitted

        Raises:
            PermissionDenied: the OS refused access to the microphone
            DeviceUnavailable: no input device exists or it cannot be opened
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info(f"Starting audio recording with constraints {self.constraints}")
        self.stop_event.clear()
        with self.data_lock:
            self.audio_data = fragments if fragments is not None else []
        self.capture_error = None
        self.elapsed_seconds = 0
        self.total_chunks = 0
        self.peak_level = 0.0

        self.stream = self._open_stream()
        self.start_time = datetime.now()
        self.is_recording = True

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()

        self.ticker_thread = Thread(target=self._tick_duration, daemon=True)
        self.ticker_thread.name = "AudioDurationThread"
        self.ticker_thread.start()

    def stop(self) -> Optional[AudioBlob]:
        """Stop recording, release the microphone and finalize the blob.

        Returns:
            The encoded recording, or None if not recording or nothing was captured.

        Raises:
            DeviceUnavailable: reading from the device failed during recording
        """
        if not self.is_recording:
            logger.warning("No recording in progress")
            return None

        logger.info("Stopping audio recording")
        self._join_threads()
        self._release_device()
        self.is_recording = False

        with self.data_lock:
            chunks = self.audio_data
            self.audio_data = []

        if self.capture_error is not None:
            error = self.capture_error
            self.capture_error = None
            raise DeviceUnavailable(f"Recording error occurred: {error}") from error

        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}, duration: {self.elapsed_seconds}s")
        if not chunks:
            logger.warning("No audio captured")
            return None

        return encode_pcm(chunks, self.mime_type, self.sample_rate, self.channels)

    def cleanup(self) -> None:
        """Stop any recording, discard captured audio and release the device.

        Safe to call any number of times from any state.
        """
        if self.is_recording:
            logger.info("Cleaning up active recording; captured audio is discarded")
        self._join_threads()
        self._release_device()
        self.is_recording = False
        with self.data_lock:
            self.audio_data = []
        self.capture_error = None
        self.elapsed_seconds = 0

    def _join_threads(self) -> None:
        self.stop_event.set()
        for thread in (self.recording_thread, self.ticker_thread):
            if thread and thread.is_alive():
                thread.join(timeout=2.0)
                if thread.is_alive():
                    logger.warning(f"{thread.name} did not stop cleanly")
        self.recording_thread = None
        self.ticker_thread = None

    def _open_stream(self):
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self.pyaudio_instance.get_default_input_device_info()
        except (IOError, OSError) as e:
            self._release_device()
            raise DeviceUnavailable("No audio input device found") from e

        try:
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except (IOError, OSError) as e:
            self._release_device()
            raise _classify_open_error(e) from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk, container {self.mime_type or 'default'}")
        return stream

    def _release_device(self) -> None:
        """Close the stream and terminate PyAudio. Idempotent."""
        with self.device_lock:
            stream, self.stream = self.stream, None
            instance, self.pyaudio_instance = self.pyaudio_instance, None
        if stream is not None:
            try:
                stream.stop_stream()
            finally:
                stream.close()
            logger.debug("Audio stream closed")
        if instance is not None:
            instance.terminate()
            logger.debug("Microphone released")

    def _record_continuously(self) -> None:
        """Internal method: read fragments until stopped."""
        stream = self.stream
        try:
            while not self.stop_event.is_set() and stream is not None:
                audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                if not audio_chunk:
                    continue
                self._update_peak_level(audio_chunk)
                with self.data_lock:
                    self.audio_data.append(audio_chunk)
                self.total_chunks += 1
        except (IOError, OSError) as e:
            logger.error(f"Error reading from audio stream: {e}")
            self.capture_error = e
            self.stop_event.set()

    def _tick_duration(self) -> None:
        """Internal method: 1-second granularity duration counter."""
        while not self.stop_event.wait(1.0):
            self.elapsed_seconds += 1
            if self.on_tick:
                self.on_tick(self.elapsed_seconds)

    def _update_peak_level(self, audio_chunk: bytes) -> None:
        usable = len(audio_chunk) - (len(audio_chunk) % 2)
        if usable == 0:
            return
        samples = np.frombuffer(audio_chunk[:usable], dtype=np.int16)
        self.peak_level = float(np.max(np.abs(samples.astype(np.int32)))) / 32768.0

    def get_audio_data_size(self) -> int:
        """Bytes of PCM captured so far."""
        with self.data_lock:
            return sum(len(chunk) for chunk in self.audio_data)

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=self.elapsed_seconds,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )

    def __del__(self):
        """Ensure the microphone is released on deletion."""
        if getattr(self, "is_recording", False):
            self.cleanup()


def check_microphone_available() -> bool:
    """Check if a default input device exists."""
    instance = pyaudio.PyAudio()
    try:
        instance.get_default_input_device_info()
        return True
    except (IOError, OSError) as e:
        logger.debug(f"Microphone not available: {e}")
        return False
    finally:
        instance.terminate()
