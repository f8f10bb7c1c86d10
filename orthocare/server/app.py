"""HTTP transcription endpoint."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from .. import __version__
from ..auth import AuthProvider, ConfigAuthProvider, SESSION_COOKIE, SESSION_LIFETIME
from ..config import OrthoCareConfig
from ..errors import AuthenticationError, InvalidInput, UpstreamError
from ..models.transcription import TranscriptionErrorResponse, TranscriptionResponse
from ..services.transcription_service import create_backend
from ..transcription.base import AbstractTranscriptionBackend
from ..transcription.validation import MAX_AUDIO_BYTES, validate_audio_upload

logger = logging.getLogger(__name__)

_OPEN_ROUTES = ("/api/health", "/api/session")


def error_response(message: str, status: int, provider_status: Optional[int] = None) -> JSONResponse:
    body = TranscriptionErrorResponse(error=message, status=provider_status)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status)


def request_token(request: Request) -> Optional[str]:
    """Session token from a bearer header or the session cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def create_app(backend: Optional[AbstractTranscriptionBackend],
               auth_provider: Optional[AuthProvider] = None,
               auth_required: bool = False) -> FastAPI:
    """Build the transcription web application.

    Args:
        backend: Initialized provider, or None to answer 500 on every transcription
        auth_provider: Verifies session tokens and handles sign-in
        auth_required: Require a valid session token on protected routes
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if backend is not None:
            backend.cleanup()
            logger.info(f"{backend.service_name} backend cleaned up")

    app = FastAPI(title="OrthoCare transcription", version=__version__, lifespan=lifespan)

    @app.middleware("http")
    async def require_session(request: Request, call_next):
        if auth_required and request.url.path not in _OPEN_ROUTES:
            token = request_token(request)
            if auth_provider is None or not token or auth_provider.verify_token(token) is None:
                logger.warning(f"Rejected unauthenticated request to {request.url.path}")
                return error_response("Unauthorized", 401)
        return await call_next(request)

    @app.post("/api/transcribe", response_model=TranscriptionResponse)
    async def transcribe(request: Request):
        """Multipart upload with a single ``audio`` file."""
        if backend is None:
            return error_response("Transcription provider not configured", 500)

        form = await request.form()
        upload = form.get("audio")
        if not isinstance(upload, UploadFile):
            return error_response("No audio file provided", 400)

        if upload.size is not None and upload.size > MAX_AUDIO_BYTES:
            return error_response("Audio file too large. Maximum size is 25MB.", 400)
        data = await upload.read()
        try:
            validate_audio_upload(data, upload.content_type)
        except InvalidInput as e:
            return error_response(str(e), 400)

        logger.info(f"Transcribing audio: name={upload.filename}, type={upload.content_type}, size={len(data)}")
        try:
            result = await backend.transcribe(data, upload.content_type, upload.filename)
        except UpstreamError as e:
            logger.error(f"Transcription error: {e}")
            return error_response(e.message, e.status_code, e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected transcription failure: {e}")
            return error_response("Failed to transcribe audio", 500)

        return TranscriptionResponse(**result.to_response())

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok" if backend is not None else "unconfigured",
            "provider": backend.service_name if backend is not None else None,
            "auth_required": auth_required,
        }

    @app.post("/api/session")
    async def sign_in(request: Request):
        """JSON ``{email, password}``; returns a bearer token and sets the session cookie."""
        if auth_provider is None:
            return error_response("Authentication not configured", 404)
        try:
            body = await request.json()
        except ValueError:
            return error_response("Invalid request body", 400)
        if not isinstance(body, dict):
            return error_response("Invalid request body", 400)

        try:
            identity = auth_provider.authenticate(str(body.get("email", "")), str(body.get("password", "")))
        except AuthenticationError as e:
            return error_response(str(e), 401)

        token = auth_provider.issue_token(identity)
        response = JSONResponse({"token": token, "uid": identity.uid, "email": identity.email})
        response.set_cookie(
            SESSION_COOKIE, token,
            max_age=int(SESSION_LIFETIME.total_seconds()),
            httponly=True, samesite="lax", path="/",
        )
        return response

    return app


def build_app_from_config(config: OrthoCareConfig) -> FastAPI:
    """Create the backend and auth provider named by the configuration."""
    backend: Optional[AbstractTranscriptionBackend] = create_backend(config)
    if not backend.initialize():
        logger.error(f"{backend.service_name} backend failed to initialize; transcription disabled")
        backend = None

    auth_provider = ConfigAuthProvider.from_config(config)
    auth_required = bool(config.get('auth.required', False))
    if auth_required:
        logger.info("Session token required for /api/transcribe")
    return create_app(backend, auth_provider, auth_required)


def run_server(config: OrthoCareConfig) -> None:
    host = config.get('server.host', '127.0.0.1')
    port = int(config.get('server.port', 8765))
    app = build_app_from_config(config)
    logger.info(f"Serving transcription endpoint on http://{host}:{port}/api/transcribe")
    # Keep the handlers installed by setup_logging
    uvicorn.run(app, host=host, port=port, log_config=None)
