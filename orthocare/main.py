"""Main application entry point for OrthoCare."""

import sys
import asyncio
import getpass
import argparse
import logging
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.table import Table

from . import __version__
from .audio.capture import AudioCapture
from .auth import hash_password
from .config import OrthoCareConfig
from .errors import OrthoCareError
from .extraction.field_extractor import FieldExtractor
from .models.patient import FIELD_LABELS
from .services.transcription_service import create_client
from .storage.patient_store import JsonPatientStore
from .transcription.client import request_session_token

logger = logging.getLogger(__name__)


def setup_logging(config: OrthoCareConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/orthocare.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - warnings and above only, the screen owns the terminal
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("OrthoCare starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def make_capture_factory(config: OrthoCareConfig) -> Callable[[Callable[[int], None]], AudioCapture]:
    """AudioCapture factory using the configured audio settings."""
    sample_rate = int(config.get('audio.sample_rate', 48000))
    chunk_size = int(config.get('audio.chunk_size', 4800))
    channels = int(config.get('audio.channels', 1))
    logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

    def factory(on_tick: Callable[[int], None]) -> AudioCapture:
        return AudioCapture(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels, on_tick=on_tick)

    return factory


def run_dictate(config: OrthoCareConfig, email: Optional[str]) -> None:
    # Imported here so the other commands run without a terminal UI
    from .ui.intake_screen import IntakeScreen

    token = None
    if email:
        password = getpass.getpass(f"Password for {email}: ")
        token = asyncio.run(request_session_token(
            config.get('transcription.session_endpoint'), email, password,
            float(config.get('transcription.timeout_seconds', 30)),
        ))

    client = create_client(config, auth_token=token)
    store = JsonPatientStore(config.get_data_directory())

    async def _run() -> None:
        screen = IntakeScreen(client, store, make_capture_factory(config))
        await screen.run()

    asyncio.run(_run())


def run_patients(config: OrthoCareConfig, query: str, console: Console) -> None:
    store = JsonPatientStore(config.get_data_directory())
    records = store.search(query) if query else store.get_all()

    table = Table(title=f"Patients ({len(records)})", header_style="bold magenta")
    for column in ("Date", "Name", "Age", "Diagnosis", "Procedure", "Hospital"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.date.isoformat() if record.date else "",
            record.patient_name,
            str(record.age),
            record.diagnosis,
            record.procedure or "",
            record.hospital,
        )
    console.print(table)


def run_parse(text: str, console: Console) -> None:
    fields = FieldExtractor().parse(text)
    table = Table(title="Extracted fields", header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in fields.items():
        table.add_row(FIELD_LABELS.get(name, name), value)
    console.print(table)
    if not fields:
        console.print("No fields recognized", style="yellow")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orthocare",
        description="OrthoCare - dictated patient intake",
        epilog="Dictation keys: SPACE=Dictate form, f+key=Dictate field, s=Save, r=Reset, q=Quit",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"OrthoCare v{__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    dictate = commands.add_parser("dictate", help="Open the intake form with voice dictation")
    dictate.add_argument("--email", help="Sign in to a protected transcription endpoint")

    patients = commands.add_parser("patients", help="List or search stored patients")
    patients.add_argument("query", nargs="?", default="", help="Case-insensitive search text")

    commands.add_parser("serve", help="Run the transcription endpoint")

    parse = commands.add_parser("parse", help="Show the fields extracted from a transcript")
    parse.add_argument("text", help="Transcript text")

    commands.add_parser("hash-password", help="Print a password hash for auth.users")
    return parser


def main(argv=None) -> None:
    """Main entry point for OrthoCare."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = OrthoCareConfig(args.config)
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

        if args.command == "dictate":
            run_dictate(config, args.email)
        elif args.command == "patients":
            run_patients(config, args.query, console)
        elif args.command == "serve":
            from .server.app import run_server
            run_server(config)
        elif args.command == "parse":
            run_parse(args.text, console)
        elif args.command == "hash-password":
            console.print(hash_password(getpass.getpass("Password: ")))
    except KeyboardInterrupt:
        console.print("\nGoodbye!")
    except (OrthoCareError, FileNotFoundError) as e:
        logger.error(f"Application error: {e}")
        console.print(f"Error: {e}", style="bold red")
        sys.exit(1)


if __name__ == "__main__":
    main()
