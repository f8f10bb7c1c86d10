"""Client for the remote transcription endpoint."""

import time
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
from pydantic import ValidationError

from ..errors import AuthenticationError, InvalidInput, UpstreamError, TranscriptionUnavailable
from ..models.audio import AudioBlob
from ..models.transcription import TranscriptionResult, TranscriptionResponse
from .validation import validate_audio_upload

logger = logging.getLogger(__name__)


class TranscriptionClient:
    """Uploads a finalized recording and returns the recognized text.

    Stateless: every call opens and closes its own HTTP session. Payload
    constraints are checked before any network I/O.
    """

    def __init__(self,
                 endpoint: str,
                 timeout_seconds: float = 30.0,
                 auth_token: Optional[str] = None):
        """Initialize transcription client.

        Args:
            endpoint: URL of the transcription endpoint (POST, multipart)
            timeout_seconds: Upper bound on one round-trip
            auth_token: Session token sent as a bearer token when set
        """
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.auth_token = auth_token
        logger.info(f"TranscriptionClient initialized for {endpoint} (timeout {timeout_seconds}s)")

    async def transcribe(self, blob: Optional[AudioBlob]) -> TranscriptionResult:
        """Transcribe one recording.

        Raises:
            InvalidInput: blob missing, empty, over 25MB or of a disallowed type
            UpstreamError: endpoint answered with an error, timed out or was unreachable
            TranscriptionUnavailable: the call succeeded but returned no text
        """
        if blob is None:
            raise InvalidInput("No audio file provided")
        validate_audio_upload(blob.data, blob.mime_type)

        form = aiohttp.FormData()
        form.add_field("audio", blob.data, filename=f"recording.{blob.extension}", content_type=blob.mime_type)

        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        start_time = time.time()
        logger.info(f"Uploading {blob.size} bytes of {blob.mime_type} for transcription")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, data=form, headers=headers) as response:
                    status = response.status
                    body = await self._read_json(response)
        except asyncio.TimeoutError as e:
            logger.error(f"Transcription request timed out after {self.timeout_seconds}s")
            raise UpstreamError("Transcription request timed out", 504) from e
        except aiohttp.ClientError as e:
            logger.error(f"Transcription request failed: {e}")
            raise UpstreamError(f"Transcription request failed: {e}", 500) from e

        if not 200 <= status < 300:
            message = body.get("error") if body else None
            logger.error(f"Transcription endpoint returned {status}: {message}")
            raise UpstreamError(str(message or "Transcription failed"), status)

        try:
            parsed = TranscriptionResponse.model_validate(body or {})
        except ValidationError as e:
            raise UpstreamError("Malformed transcription response", status) from e

        if not parsed.text:
            raise TranscriptionUnavailable("No transcription text received")

        processing_time = time.time() - start_time
        logger.info(f"Transcription received: {len(parsed.text)} chars in {processing_time:.2f}s")
        return TranscriptionResult(
            text=parsed.text,
            duration_seconds=parsed.duration,
            language=parsed.language,
            processing_time=processing_time,
            service=self.endpoint,
        )

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Optional[Dict[str, Any]]:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            logger.warning(f"Non-JSON response from transcription endpoint (status {response.status})")
            return None
        return body if isinstance(body, dict) else None


async def request_session_token(session_endpoint: str, email: str, password: str,
                                timeout_seconds: float = 30.0) -> str:
    """Sign in against the endpoint's session route and return the bearer token.

    Raises:
        AuthenticationError: credentials rejected
        UpstreamError: the server could not be reached or answered unexpectedly
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(session_endpoint, json={"email": email, "password": password}) as response:
                status = response.status
                body = await TranscriptionClient._read_json(response)
    except asyncio.TimeoutError as e:
        raise UpstreamError("Sign-in request timed out", 504) from e
    except aiohttp.ClientError as e:
        raise UpstreamError(f"Sign-in request failed: {e}", 500) from e

    if status == 401:
        raise AuthenticationError((body or {}).get("error") or "Invalid email or password")
    token = (body or {}).get("token")
    if not 200 <= status < 300 or not token:
        raise UpstreamError(str((body or {}).get("error") or "Sign-in failed"), status)
    return token
