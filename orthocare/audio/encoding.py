"""Container selection and encoding of captured PCM into an uploadable blob."""

import io
import wave
import logging
from typing import Callable, Iterable, Sequence

import numpy as np
import soundfile as sf

from ..models.audio import AudioBlob

logger = logging.getLogger(__name__)

# Ordered best-first; selection falls back silently down the list.
MIME_PREFERENCES = (
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/ogg;codecs=opus",
    "audio/mp4",
    "audio/wav",
)

# Containers libsndfile can write, keyed by MIME type
_SOUNDFILE_FORMATS = {
    "audio/ogg;codecs=opus": ("OGG", "OPUS"),
}

SAMPLE_WIDTH = 2  # 16-bit PCM


def is_supported_by_encoder(mime_type: str) -> bool:
    """Whether the local encoder can produce the given container."""
    if mime_type == "audio/wav":
        return True
    target = _SOUNDFILE_FORMATS.get(mime_type)
    if target is None:
        return False
    container, subtype = target
    return container in sf.available_formats() and subtype in sf.available_subtypes(container)


def select_mime_type(is_supported: Callable[[str], bool] = is_supported_by_encoder,
                     preferences: Sequence[str] = MIME_PREFERENCES) -> str:
    """Pick the first supported container from the preference list.

    Returns an empty string (provider default) if nothing is supported.
    """
    for mime_type in preferences:
        if is_supported(mime_type):
            logger.debug(f"Selected recording container: {mime_type}")
            return mime_type
        logger.debug(f"Container not supported, falling back: {mime_type}")
    return ""


def encode_pcm(chunks: Iterable[bytes], mime_type: str, sample_rate: int, channels: int = 1) -> AudioBlob:
    """Join 16-bit PCM fragments in order and wrap them in the chosen container."""
    pcm = b"".join(chunks)
    frame_bytes = SAMPLE_WIDTH * channels
    usable = len(pcm) - (len(pcm) % frame_bytes)
    if usable != len(pcm):
        logger.debug(f"Dropping {len(pcm) - usable} trailing bytes of partial frame")
        pcm = pcm[:usable]
    duration = len(pcm) / float(sample_rate * frame_bytes) if sample_rate else 0.0

    if mime_type in _SOUNDFILE_FORMATS:
        container, subtype = _SOUNDFILE_FORMATS[mime_type]
        samples = np.frombuffer(pcm, dtype=np.int16).reshape(-1, channels)
        buffer = io.BytesIO()
        sf.write(buffer, samples, sample_rate, format=container, subtype=subtype)
        data = buffer.getvalue()
    elif mime_type in ("audio/wav", ""):
        mime_type = "audio/wav"
        data = _to_wav(pcm, sample_rate, channels)
    else:
        raise ValueError(f"Cannot encode audio as {mime_type}")

    logger.info(f"Encoded {len(pcm)} bytes of PCM as {mime_type} ({len(data)} bytes, {duration:.1f}s)")
    return AudioBlob(
        data=data,
        mime_type=mime_type,
        sample_rate=sample_rate,
        channels=channels,
        duration_seconds=duration,
    )


def _to_wav(pcm: bytes, sample_rate: int, channels: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def format_duration(seconds: int) -> str:
    """Format a duration as MM:SS."""
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{secs:02d}"
