"""Pytest configuration and fixtures for OrthoCare tests."""

import time
import socket
import threading
import pytest
import tempfile
import logging
from typing import Callable, List, Optional
from unittest.mock import DEFAULT, Mock, AsyncMock, patch

import numpy as np
import uvicorn
from pubsub import pub

from orthocare.models.audio import AudioBlob
from orthocare.models.transcription import TranscriptionResult
from orthocare.transcription.base import AbstractTranscriptionBackend


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without devices or network")
    config.addinivalue_line("markers", "integration: multi-component tests")
    config.addinivalue_line("markers", "hardware: needs a real microphone")
    config.addinivalue_line("markers", "slow: takes more than a few seconds")


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Drop listeners left behind by a previous test."""
    yield
    pub.unsubAll()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """One 100ms fragment of 16-bit mono audio at 48kHz (440Hz sine)."""
    sample_rate = 48000
    samples = 4800
    t = np.linspace(0, samples / sample_rate, samples, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    return (wave_data * 32767 * 0.5).astype(np.int16).tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Silent 100ms fragments, paced so reader threads do not spin
        def _paced_read(*args, **kwargs):
            time.sleep(0.01)
            return DEFAULT

        mock_stream.read.side_effect = _paced_read
        mock_stream.read.return_value = b'\x00' * 9600
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_default_input_device_info.return_value = {"index": 0, "name": "Mock Mic"}

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def wav_blob():
    """A small finalized recording."""
    return AudioBlob(data=b'RIFF' + b'\x00' * 2044, mime_type="audio/wav", duration_seconds=1.0)


class FakeCapture:
    """Stands in for AudioCapture: records calls, returns a fixed blob from stop()."""

    def __init__(self, on_tick: Callable[[int], None], blob: Optional[AudioBlob] = None,
                 start_error: Optional[Exception] = None):
        self.on_tick = on_tick
        self.blob = blob
        self.start_error = start_error
        self.is_recording = False
        self.fragments: Optional[List[bytes]] = None
        self.start_calls = 0
        self.stop_calls = 0
        self.cleanup_calls = 0

    def start(self, fragments: Optional[List[bytes]] = None) -> None:
        self.start_calls += 1
        self.fragments = fragments
        if self.start_error is not None:
            raise self.start_error
        self.is_recording = True

    def stop(self) -> Optional[AudioBlob]:
        self.stop_calls += 1
        self.is_recording = False
        return self.blob

    def cleanup(self) -> None:
        self.cleanup_calls += 1
        self.is_recording = False


@pytest.fixture
def capture_factory(wav_blob):
    """Factory producing FakeCaptures; every capture created is kept in ``.created``."""
    created: List[FakeCapture] = []

    def factory(on_tick):
        capture = FakeCapture(on_tick, blob=factory.blob, start_error=factory.start_error)
        created.append(capture)
        return capture

    factory.blob = wav_blob
    factory.start_error = None
    factory.created = created
    return factory


@pytest.fixture
def mock_client():
    """TranscriptionClient double whose transcribe() is an AsyncMock."""
    client = Mock()
    client.transcribe = AsyncMock(return_value=TranscriptionResult(text=""))
    return client


class FakeBackend(AbstractTranscriptionBackend):
    """Provider double for the HTTP endpoint; records every upload."""

    service_name = "Fake"

    def __init__(self, text: str = "diagnosis is gout", error: Optional[Exception] = None):
        super().__init__("en")
        self.text = text
        self.error = error
        self.calls = []
        self.cleaned_up = False

    def initialize(self) -> bool:
        return True

    async def transcribe(self, audio_data: bytes, mime_type: str, filename: str) -> TranscriptionResult:
        self.calls.append((audio_data, mime_type, filename))
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text, duration_seconds=1.0, language="en")

    def cleanup(self) -> None:
        self.cleaned_up = True


@pytest.fixture
def fake_backend():
    return FakeBackend()


class LiveServer:
    """Serves an ASGI app with uvicorn on a background thread."""

    def __init__(self, app):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.url = f"http://127.0.0.1:{self.sock.getsockname()[1]}"
        self.server = uvicorn.Server(uvicorn.Config(app, log_config=None, log_level="warning"))
        self.thread = threading.Thread(target=self.server.run, kwargs={"sockets": [self.sock]}, daemon=True)

    def start(self):
        self.thread.start()
        deadline = time.time() + 5.0
        while not self.server.started:
            if not self.thread.is_alive() or time.time() > deadline:
                raise RuntimeError("Test server did not start")
            time.sleep(0.01)

    def stop(self):
        self.server.should_exit = True
        self.thread.join(timeout=10.0)
        self.sock.close()


@pytest.fixture
def live_server():
    """Start apps on free local ports; returns their base URLs."""
    servers = []

    def serve(app):
        server = LiveServer(app)
        server.start()
        servers.append(server)
        return server.url

    yield serve
    for server in servers:
        server.stop()
