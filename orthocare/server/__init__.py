"""Transcription HTTP server."""

from .app import create_app, build_app_from_config, run_server

__all__ = [
    "create_app",
    "build_app_from_config",
    "run_server",
]
