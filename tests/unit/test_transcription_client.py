"""Unit tests for TranscriptionClient and session sign-in."""

import asyncio
import pytest
from unittest.mock import patch

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from orthocare.auth import ConfigAuthProvider, hash_password
from orthocare.errors import AuthenticationError, InvalidInput, TranscriptionUnavailable, UpstreamError
from orthocare.models.audio import AudioBlob
from orthocare.server.app import create_app
from orthocare.transcription.client import TranscriptionClient, request_session_token
from orthocare.transcription.validation import MAX_AUDIO_BYTES


def endpoint_app(status=200, body=None, text=None, delay=0.0, seen=None):
    """A stand-in transcription endpoint answering every upload the same way."""
    app = FastAPI()

    @app.post("/api/transcribe")
    async def transcribe(request: Request):
        form = await request.form()
        upload = form.get("audio")
        if seen is not None:
            seen.append({
                "authorization": request.headers.get("Authorization"),
                "filename": upload.filename if upload is not None else None,
                "content_type": upload.content_type if upload is not None else None,
            })
        if delay:
            await asyncio.sleep(delay)
        if text is not None:
            return PlainTextResponse(text, status_code=status)
        return JSONResponse(body, status_code=status)

    return app


@pytest.fixture
def transcribe_via(live_server):
    def transcribe(app, blob, **client_kwargs):
        client = TranscriptionClient(f"{live_server(app)}/api/transcribe", **client_kwargs)
        return asyncio.run(client.transcribe(blob))

    return transcribe


@pytest.mark.unit
class TestTranscriptionClient:

    def test_success(self, transcribe_via, wav_blob):
        seen = []
        app = endpoint_app(body={"text": "age is 45", "duration": 2.5, "language": "en"}, seen=seen)

        result = transcribe_via(app, wav_blob)

        assert result.text == "age is 45"
        assert result.duration_seconds == 2.5
        assert result.language == "en"
        assert seen == [{"authorization": None, "filename": "recording.wav", "content_type": "audio/wav"}]

    def test_bearer_token_sent(self, transcribe_via, wav_blob):
        seen = []
        app = endpoint_app(body={"text": "ok"}, seen=seen)

        transcribe_via(app, wav_blob, auth_token="tok-123")

        assert seen[0]["authorization"] == "Bearer tok-123"

    def test_upload_named_after_container(self, transcribe_via):
        seen = []
        blob = AudioBlob(data=b"OggS" + b"\x00" * 64, mime_type="audio/ogg;codecs=opus")

        transcribe_via(endpoint_app(body={"text": "ok"}, seen=seen), blob)

        assert seen[0]["filename"] == "recording.ogg"

    def test_error_status_raises(self, transcribe_via, wav_blob):
        app = endpoint_app(status=400, body={"error": "Invalid file format", "status": 400})

        with pytest.raises(UpstreamError) as exc_info:
            transcribe_via(app, wav_blob)

        assert exc_info.value.message == "Invalid file format"
        assert exc_info.value.status_code == 400

    def test_non_json_error(self, transcribe_via, wav_blob):
        app = endpoint_app(status=502, text="Bad gateway")

        with pytest.raises(UpstreamError) as exc_info:
            transcribe_via(app, wav_blob)

        assert exc_info.value.message == "Transcription failed"
        assert exc_info.value.status_code == 502

    @pytest.mark.parametrize("body", [{"text": ""}, {"text": None}, {}])
    def test_no_text(self, transcribe_via, wav_blob, body):
        with pytest.raises(TranscriptionUnavailable, match="No transcription text received"):
            transcribe_via(endpoint_app(body=body), wav_blob)

    def test_timeout(self, transcribe_via, wav_blob):
        app = endpoint_app(body={"text": "late"}, delay=2.0)

        with pytest.raises(UpstreamError) as exc_info:
            transcribe_via(app, wav_blob, timeout_seconds=0.2)

        assert exc_info.value.status_code == 504

    def test_unreachable(self, wav_blob):
        client = TranscriptionClient("http://127.0.0.1:1/api/transcribe", timeout_seconds=2)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(client.transcribe(wav_blob))

        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize("blob,message", [
        (None, "No audio file provided"),
        (AudioBlob(data=b"", mime_type="audio/wav"), "No audio file provided"),
        (AudioBlob(data=b"\x00" * (MAX_AUDIO_BYTES + 1), mime_type="audio/wav"),
         "Audio file too large. Maximum size is 25MB."),
        (AudioBlob(data=b"hello", mime_type="text/plain"), "Invalid audio file type"),
    ])
    def test_rejected_before_network(self, blob, message):
        client = TranscriptionClient("http://127.0.0.1:8765/api/transcribe")

        with patch("orthocare.transcription.client.aiohttp.ClientSession") as mock_session:
            with pytest.raises(InvalidInput, match=message):
                asyncio.run(client.transcribe(blob))

        mock_session.assert_not_called()


@pytest.mark.unit
class TestRequestSessionToken:

    @pytest.fixture
    def secured_url(self, live_server, fake_backend):
        users = [{"email": "dr.reyes@clinic.org", "password_hash": hash_password("s3cret", rounds=4)}]
        return live_server(create_app(fake_backend, ConfigAuthProvider(users), auth_required=True))

    def test_token_returned(self, secured_url):
        token = asyncio.run(request_session_token(f"{secured_url}/api/session", "dr.reyes@clinic.org", "s3cret"))

        assert isinstance(token, str) and token

    def test_bad_credentials(self, secured_url):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            asyncio.run(request_session_token(f"{secured_url}/api/session", "dr.reyes@clinic.org", "nope"))

    def test_sign_in_not_offered(self, live_server, fake_backend):
        url = live_server(create_app(fake_backend))

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(request_session_token(f"{url}/api/session", "dr.reyes@clinic.org", "s3cret"))

        assert exc_info.value.status_code == 404
