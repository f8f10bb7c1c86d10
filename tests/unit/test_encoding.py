"""Unit tests for container selection and PCM encoding."""

import io
import wave
import pytest
from unittest.mock import patch

from orthocare.audio.encoding import (
    MIME_PREFERENCES,
    encode_pcm,
    format_duration,
    is_supported_by_encoder,
    select_mime_type,
)


@pytest.mark.unit
class TestSelectMimeType:

    def test_first_supported_wins(self):
        assert select_mime_type(lambda mime: True) == "audio/webm;codecs=opus"

    def test_falls_back_in_preference_order(self):
        seen = []

        def supported(mime):
            seen.append(mime)
            return mime == "audio/ogg;codecs=opus"

        assert select_mime_type(supported) == "audio/ogg;codecs=opus"
        assert seen == list(MIME_PREFERENCES[:3])

    def test_nothing_supported_uses_provider_default(self):
        assert select_mime_type(lambda mime: False) == ""

    def test_wav_always_supported_locally(self):
        assert is_supported_by_encoder("audio/wav") is True
        assert is_supported_by_encoder("audio/webm") is False
        assert is_supported_by_encoder("audio/mp4") is False

    def test_ogg_opus_depends_on_libsndfile(self):
        with patch("orthocare.audio.encoding.sf.available_formats", return_value={"WAV": "", "OGG": ""}), \
             patch("orthocare.audio.encoding.sf.available_subtypes", return_value={"VORBIS": ""}):
            assert is_supported_by_encoder("audio/ogg;codecs=opus") is False

        with patch("orthocare.audio.encoding.sf.available_formats", return_value={"OGG": ""}), \
             patch("orthocare.audio.encoding.sf.available_subtypes", return_value={"OPUS": ""}):
            assert is_supported_by_encoder("audio/ogg;codecs=opus") is True

    def test_default_selection_is_local(self):
        """Without browser containers the default lands on something we can write."""
        assert select_mime_type() in ("audio/ogg;codecs=opus", "audio/wav")


@pytest.mark.unit
class TestEncodePcm:

    def test_wav_keeps_fragment_order(self):
        fragments = [b"\x01\x00" * 10, b"\x02\x00" * 10, b"\x03\x00" * 10]

        blob = encode_pcm(fragments, "audio/wav", 48000)

        with wave.open(io.BytesIO(blob.data), 'rb') as wf:
            assert wf.readframes(wf.getnframes()) == b"".join(fragments)
        assert blob.extension == "wav"

    def test_partial_frame_dropped(self):
        blob = encode_pcm([b"\x00\x00\x00"], "audio/wav", 48000)

        with wave.open(io.BytesIO(blob.data), 'rb') as wf:
            assert wf.getnframes() == 1

    def test_empty_type_means_wav(self):
        blob = encode_pcm([b"\x00\x00" * 48000], "", 48000)

        assert blob.mime_type == "audio/wav"
        assert blob.duration_seconds == pytest.approx(1.0)

    def test_unwritable_container(self):
        with pytest.raises(ValueError):
            encode_pcm([b"\x00\x00"], "audio/mp4", 48000)


@pytest.mark.unit
@pytest.mark.parametrize("seconds,expected", [
    (0, "00:00"),
    (7, "00:07"),
    (65, "01:05"),
    (600, "10:00"),
    (-3, "00:00"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
